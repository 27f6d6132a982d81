import asyncio
import logging
from typing import Dict, Optional

from .config import settings
from .engine import StudySession

logger = logging.getLogger(__name__)


class SessionTimer:
    """Cooperative countdown bound to one session instance.

    Each tick only forwards to ``session.tick()``; the task ends on its own
    once the session leaves the active state.
    """

    def __init__(self, session: StudySession, interval: float = settings.TICK_INTERVAL):
        self.session = session
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        while self.session.is_active:
            await asyncio.sleep(self.interval)
            self.session.tick()
        logger.debug(f"Timer for session {self.session.session_id} finished")

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None


class TimerRegistry:
    """Keeps at most one live timer per client."""

    def __init__(self, interval: float = settings.TICK_INTERVAL):
        self.interval = interval
        self._timers: Dict[str, SessionTimer] = {}

    def start(self, client_id: str, session: StudySession) -> SessionTimer:
        self.cancel(client_id)
        timer = SessionTimer(session, self.interval)
        self._timers[client_id] = timer
        timer.start()
        return timer

    def get(self, client_id: str) -> Optional[SessionTimer]:
        return self._timers.get(client_id)

    def cancel(self, client_id: str) -> None:
        timer = self._timers.pop(client_id, None)
        if timer is not None:
            timer.cancel()

    def cancel_all(self) -> None:
        for client_id in list(self._timers):
            self.cancel(client_id)
