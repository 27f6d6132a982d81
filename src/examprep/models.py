from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# --- Enums ---
class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class StudyMode(str, Enum):
    FLASHCARD = "flashcard"
    MULTIPLE_CHOICE = "multiple_choice"
    TYPING = "typing"


class SessionStatus(str, Enum):
    CONFIGURING = "configuring"
    GENERATING = "generating"
    ACTIVE = "active"
    COMPLETE = "complete"


class ItemKind(str, Enum):
    FLASHCARD = "flashcard"
    QUESTION = "question"


class ActionKind(str, Enum):
    REVEAL = "reveal"
    ANSWER = "answer"
    NEXT = "next"
    END = "end"


# --- Models ---
class SessionConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    exam_type: str
    category: str
    difficulty: Difficulty
    mode: StudyMode


class Question(BaseModel):
    id: str
    prompt: str
    options: Optional[List[str]] = None
    correct_answer: str
    explanation: str = ""
    difficulty: Difficulty
    category: str
    exam_type: str


class Flashcard(BaseModel):
    prompt: str
    answer: str


Item = Union[Question, Flashcard]


class SessionState(BaseModel):
    status: SessionStatus = SessionStatus.CONFIGURING
    items: List[Item] = Field(default_factory=list)
    current_index: int = 0
    revealed: bool = False
    recorded_answers: Dict[int, str] = Field(default_factory=dict)
    score: int = 0
    remaining_seconds: Optional[int] = None
    advance_in: Optional[int] = None
    started_at: Optional[datetime] = None


class SessionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    mode: StudyMode
    difficulty: Difficulty
    score: int
    total_questions: int
    time_spent_seconds: int


class UserAction(BaseModel):
    kind: ActionKind
    value: Optional[str] = None


class ExamRegistration(BaseModel):
    id: str
    user_id: str
    exam_type: str
    exam_category: str
    state: str = ""
    exam_date: Optional[date] = None
    payment_status: str = "pending"


class StudySessionRecord(BaseModel):
    id: str
    user_id: str
    exam_registration_id: str
    mode: StudyMode
    difficulty: Difficulty
    score: int
    total_questions: int
    time_spent: int
    created_at: datetime


class DashboardSummary(BaseModel):
    session_count: int
    average_score_percentage: int
    days_until_exam: Optional[int] = None
    recent_sessions: List[StudySessionRecord]
