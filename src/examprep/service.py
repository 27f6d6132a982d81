import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional, Set

from fastapi.concurrency import run_in_threadpool

from .config import settings
from .engine import StudySession
from .exceptions import GenerationError, MalformedQuestionError, PersistenceError
from .generator import QuestionSource
from .models import (
    Flashcard,
    SessionConfig,
    SessionResult,
    SessionStatus,
    StudyMode,
    UserAction,
)
from .scoring import score_percentage
from .store import StudySessionStore
from .timer import TimerRegistry

logger = logging.getLogger(__name__)


@dataclass
class ClientSession:
    session: StudySession
    user_id: str
    registration_id: str
    created_at: datetime = field(default_factory=datetime.now)


class SessionManager:
    """Owns the single live study session of each client.

    Starting, restarting or tearing down always cancels the client's timer
    first, and a generation reply is applied only while its session is still
    the client's current one. Clients idle past the session timeout are
    forgotten the next time they or a new client are looked up.
    """

    def __init__(
        self,
        source: QuestionSource,
        history: StudySessionStore,
        timers: Optional[TimerRegistry] = None,
        clock: Callable[[], datetime] = datetime.now,
        timeout: Optional[timedelta] = None,
    ):
        self.source = source
        self.history = history
        self.timers = timers or TimerRegistry()
        self.clock = clock
        self.timeout = timeout or timedelta(minutes=settings.SESSION_TIMEOUT_MINUTES)
        self._clients: Dict[str, ClientSession] = {}
        self._saving: Set[asyncio.Future] = set()

    def get(self, client_id: str) -> Optional[StudySession]:
        entry = self._clients.get(client_id)
        if entry is None:
            return None
        if self._expired(entry):
            logger.info(f"Session {entry.session.session_id} expired")
            self.teardown(client_id)
            return None
        return entry.session

    def create(
        self, client_id: str, config: SessionConfig, user_id: str, registration_id: str
    ) -> StudySession:
        self.teardown(client_id)
        self.expire_stale()
        session = StudySession(config, self.source, on_complete=self._persist)
        self._clients[client_id] = ClientSession(
            session, user_id, registration_id, created_at=self.clock()
        )
        return session

    def expire_stale(self) -> int:
        stale = [cid for cid, entry in self._clients.items() if self._expired(entry)]
        for client_id in stale:
            self.teardown(client_id)
        if stale:
            logger.info(f"Expired {len(stale)} idle sessions")
        return len(stale)

    def _expired(self, entry: ClientSession) -> bool:
        return self.clock() - entry.created_at > self.timeout

    async def start(self, client_id: str) -> StudySession:
        session = self.get(client_id)
        if session is None:
            raise KeyError(client_id)

        session.begin_generation()
        strategy = session.strategy
        try:
            items = await run_in_threadpool(
                self.source.generate,
                session.config.exam_type,
                session.config.category,
                session.config.difficulty,
                strategy.item_count,
                strategy.item_kind,
            )
        except (GenerationError, MalformedQuestionError):
            session.fail_generation()
            raise

        if self.get(client_id) is not session:
            logger.info(f"Dropping generated items for superseded session {session.session_id}")
            return session

        session.activate(items)
        self.timers.start(client_id, session)
        return session

    def act(self, client_id: str, action: UserAction) -> bool:
        session = self.get(client_id)
        if session is None:
            return False
        accepted = session.act(action)
        if not session.is_active:
            self.timers.cancel(client_id)
        return accepted

    def restart(self, client_id: str) -> Optional[StudySession]:
        if self.get(client_id) is None:
            return None
        entry = self._clients[client_id]
        self.timers.cancel(client_id)
        fresh = entry.session.restart()
        self._clients[client_id] = ClientSession(
            fresh, entry.user_id, entry.registration_id, created_at=self.clock()
        )
        return fresh

    def teardown(self, client_id: str) -> None:
        self.timers.cancel(client_id)
        self._clients.pop(client_id, None)

    def shutdown(self) -> None:
        self.timers.cancel_all()
        self._clients.clear()

    async def flush(self) -> None:
        """Waits for results still being written to the history store."""
        if self._saving:
            await asyncio.gather(*list(self._saving))

    def _persist(self, session: StudySession, result: SessionResult) -> None:
        entry = next(
            (e for e in self._clients.values() if e.session is session), None
        )
        if entry is None:
            logger.warning(f"Session {session.session_id} finished after teardown; not saved")
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._save(result, entry)
            return
        # Completion runs on the event loop; the redis write must not.
        future = loop.run_in_executor(None, self._save, result, entry)
        self._saving.add(future)
        future.add_done_callback(self._saving.discard)

    def _save(self, result: SessionResult, entry: ClientSession) -> None:
        try:
            self.history.add(result, entry.user_id, entry.registration_id)
        except PersistenceError as e:
            logger.error(f"Session {entry.session.session_id}: result not saved: {e}")


def session_view(session: StudySession) -> Dict[str, Any]:
    """What a renderer needs for the current item; answers stay hidden until earned."""
    state = session.state
    view: Dict[str, Any] = {
        "session_id": session.session_id,
        "status": state.status.value,
        "mode": session.config.mode.value,
        "difficulty": session.config.difficulty.value,
        "exam_type": session.config.exam_type,
        "category": session.config.category,
        "total_questions": len(state.items),
    }
    if state.status != SessionStatus.ACTIVE:
        if session.result is not None:
            view["result"] = result_view(session.result)
        return view

    item = state.items[state.current_index]
    answered = state.recorded_answers.get(state.current_index)
    view.update(
        {
            "current_index": state.current_index,
            "remaining_seconds": state.remaining_seconds,
            "score": state.score,
            "prompt": item.prompt,
        }
    )
    if isinstance(item, Flashcard):
        view["revealed"] = state.revealed
        view["answer"] = item.answer if state.revealed else None
    elif session.config.mode == StudyMode.MULTIPLE_CHOICE:
        view["options"] = item.options
        view["selected"] = answered
        if answered is not None:
            view["correct_answer"] = item.correct_answer
            view["explanation"] = item.explanation
    else:
        view["typed_answer"] = answered or ""
    return view


def result_view(result: SessionResult) -> Dict[str, Any]:
    data = result.model_dump(mode="json")
    data["score_percentage"] = score_percentage(result.score, result.total_questions)
    return data

