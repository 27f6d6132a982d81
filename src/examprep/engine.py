import logging
import uuid
from datetime import datetime
from typing import Callable, List, Optional

from .exceptions import GenerationError, MalformedQuestionError, PersistenceError
from .generator import QuestionSource
from .models import (
    ActionKind,
    Item,
    SessionConfig,
    SessionResult,
    SessionState,
    SessionStatus,
    UserAction,
)
from .modes import ModeStrategy, mode_strategy_for
from .scoring import build_result

logger = logging.getLogger(__name__)

CompletionListener = Callable[["StudySession", SessionResult], None]


class StudySession:
    """One run of study interaction, from configuration to a frozen result.

    Transitions: configuring -> generating -> active -> complete. Every
    mutation of ``state`` goes through the methods below; anything delivered
    to a session that is not active is ignored and reported as ``False``.
    """

    def __init__(
        self,
        config: SessionConfig,
        source: QuestionSource,
        on_complete: Optional[CompletionListener] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.session_id = uuid.uuid4().hex
        self.config = config
        self.source = source
        self.on_complete = on_complete
        self.clock = clock
        self.strategy: ModeStrategy = mode_strategy_for(config.mode)
        self.state = SessionState()
        self.result: Optional[SessionResult] = None

    @property
    def status(self) -> SessionStatus:
        return self.state.status

    @property
    def is_active(self) -> bool:
        return self.state.status == SessionStatus.ACTIVE

    # --- Generation ---
    def start(self) -> None:
        """Generates the item set in one blocking call and activates the session."""
        self.begin_generation()
        try:
            items = self.source.generate(
                self.config.exam_type,
                self.config.category,
                self.config.difficulty,
                self.strategy.item_count,
                self.strategy.item_kind,
            )
        except (GenerationError, MalformedQuestionError):
            self.fail_generation()
            raise
        self.activate(items)

    def begin_generation(self) -> None:
        if self.state.status != SessionStatus.CONFIGURING:
            raise RuntimeError(f"Cannot start a session that is {self.state.status.value}")
        self.state.status = SessionStatus.GENERATING

    def fail_generation(self) -> None:
        if self.state.status == SessionStatus.GENERATING:
            self.state = SessionState()

    def activate(self, items: List[Item]) -> None:
        if self.state.status != SessionStatus.GENERATING:
            logger.warning(f"Session {self.session_id}: dropping items, not generating")
            return
        try:
            if not items:
                raise MalformedQuestionError("Model returned no items")
            self.strategy.validate(items)
        except MalformedQuestionError:
            self.fail_generation()
            raise

        self.state = SessionState(
            status=SessionStatus.ACTIVE,
            items=list(items),
            remaining_seconds=self.strategy.initial_seconds,
            started_at=self.clock(),
        )
        logger.info(
            f"Session {self.session_id} active [{self.config.mode.value}, "
            f"{self.config.difficulty.value}, {len(items)} items]"
        )

    # --- Active transitions ---
    def advance(self) -> bool:
        if not self.is_active:
            return False
        state = self.state
        if state.current_index >= len(state.items) - 1:
            self._complete("last item")
            return True
        state.current_index += 1
        state.revealed = False
        state.advance_in = None
        if self.strategy.per_item_timer:
            state.remaining_seconds = self.strategy.initial_seconds
        return True

    def end(self) -> bool:
        if not self.is_active:
            return False
        self._complete("ended by user")
        return True

    def act(self, action: UserAction) -> bool:
        if not self.is_active:
            return False
        if action.kind == ActionKind.NEXT:
            return self.advance()
        if action.kind == ActionKind.END:
            return self.end()
        return self.strategy.on_user_action(self, action)

    def tick(self) -> bool:
        if not self.is_active:
            return False
        self.strategy.on_tick(self)
        if self.is_active and self.strategy.is_complete(self.state):
            self._complete("time expired")
        return True

    def restart(self) -> "StudySession":
        """A fresh session with the same configuration; this one is left as is."""
        return StudySession(
            self.config, self.source, on_complete=self.on_complete, clock=self.clock
        )

    # --- Completion ---
    def _complete(self, reason: str) -> None:
        self.state.status = SessionStatus.COMPLETE
        self.state.advance_in = None
        self.result = build_result(self.config, self.state, self.clock())
        logger.info(
            f"Session {self.session_id} complete ({reason}): "
            f"{self.result.score}/{self.result.total_questions}"
        )
        if self.on_complete is None:
            return
        try:
            self.on_complete(self, self.result)
        except PersistenceError as e:
            logger.error(f"Session {self.session_id}: result not saved: {e}")
