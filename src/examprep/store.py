import logging
import uuid
from datetime import datetime
from typing import List, Optional

from redis import Redis
from redis.exceptions import RedisError

from .exceptions import PersistenceError
from .models import ExamRegistration, SessionResult, StudySessionRecord

logger = logging.getLogger(__name__)


# --- Service Layer: Redis-backed records ---
class RegistrationStore:
    """Read side of exam registrations; the sign-up flow writes them."""

    PAID_STATUS = "completed"

    def __init__(self, client: Redis):
        self.client = client

    @staticmethod
    def _key(registration_id: str) -> str:
        return f"registration:{registration_id}"

    def save(self, registration: ExamRegistration) -> None:
        self.client.set(self._key(registration.id), registration.model_dump_json())

    def get(self, registration_id: str, user_id: str) -> Optional[ExamRegistration]:
        raw = self.client.get(self._key(registration_id))
        if not raw:
            return None
        registration = ExamRegistration.model_validate_json(raw)
        if registration.user_id != user_id:
            logger.warning(
                f"Registration {registration_id} requested by another user {user_id}"
            )
            return None
        if registration.payment_status != self.PAID_STATUS:
            return None
        return registration


class StudySessionStore:
    """Insert-only log of finished study sessions, newest first."""

    def __init__(self, client: Redis, clock=datetime.now):
        self.client = client
        self.clock = clock

    @staticmethod
    def _key(registration_id: str) -> str:
        return f"study_sessions:{registration_id}"

    def add(
        self, result: SessionResult, user_id: str, registration_id: str
    ) -> StudySessionRecord:
        record = StudySessionRecord(
            id=str(uuid.uuid4()),
            user_id=user_id,
            exam_registration_id=registration_id,
            mode=result.mode,
            difficulty=result.difficulty,
            score=result.score,
            total_questions=result.total_questions,
            time_spent=result.time_spent_seconds,
            created_at=self.clock(),
        )
        try:
            self.client.lpush(self._key(registration_id), record.model_dump_json())
        except RedisError as e:
            raise PersistenceError(f"Could not save study session: {e}") from e
        logger.info(
            f"Saved study session {record.id} for registration {registration_id}"
        )
        return record

    def recent(self, registration_id: str, limit: int = 10) -> List[StudySessionRecord]:
        rows = self.client.lrange(self._key(registration_id), 0, limit - 1)
        return [StudySessionRecord.model_validate_json(row) for row in rows]
