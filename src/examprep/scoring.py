from datetime import date, datetime
from typing import List, Optional

from .models import (
    DashboardSummary,
    SessionConfig,
    SessionResult,
    SessionState,
    StudyMode,
    StudySessionRecord,
)
from .modes import FLASHCARD_SECONDS, TYPING_SECONDS


def build_result(
    config: SessionConfig, state: SessionState, now: datetime
) -> SessionResult:
    """Freezes a finished session into the summary handed to persistence.

    Flashcard and typing sessions report their nominal duration; multiple
    choice is untimed, so it reports whole seconds of wall clock since start.
    """
    total = len(state.items)
    if config.mode == StudyMode.FLASHCARD:
        time_spent = total * FLASHCARD_SECONDS
    elif config.mode == StudyMode.TYPING:
        time_spent = TYPING_SECONDS
    else:
        started = state.started_at or now
        time_spent = max(0, int((now - started).total_seconds()))

    return SessionResult(
        mode=config.mode,
        difficulty=config.difficulty,
        score=state.score,
        total_questions=total,
        time_spent_seconds=time_spent,
    )


def score_percentage(score: int, total: int) -> int:
    return round((score / total) * 100) if total > 0 else 0


def summarize_history(
    records: List[StudySessionRecord],
    exam_date: Optional[date],
    today: date,
) -> DashboardSummary:
    """Dashboard figures over the most recent study sessions."""
    percentages = [score_percentage(r.score, r.total_questions) for r in records]
    average = round(sum(percentages) / len(percentages)) if percentages else 0

    days_left = None
    if exam_date is not None:
        days_left = max(0, (exam_date - today).days)

    return DashboardSummary(
        session_count=len(records),
        average_score_percentage=average,
        days_until_exam=days_left,
        recent_sessions=records,
    )
