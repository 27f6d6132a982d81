import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, List, Optional

from .exceptions import MalformedQuestionError
from .models import (
    ActionKind,
    Flashcard,
    Item,
    ItemKind,
    Question,
    SessionState,
    StudyMode,
    UserAction,
)

if TYPE_CHECKING:
    from .engine import StudySession

logger = logging.getLogger(__name__)

OPTION_COUNT = 5
FLASHCARD_SECONDS = 10
TYPING_SECONDS = 300
FEEDBACK_TICKS = 2


def option_letter(option: str) -> str:
    return option.strip()[:1].upper()


# --- Strategy Pattern: Interaction Modes ---
class ModeStrategy(ABC):
    """How one study mode counts time, accepts input and decides it is done."""

    mode: StudyMode
    item_kind: ItemKind
    item_count: int
    initial_seconds: Optional[int] = None
    per_item_timer: bool = False

    def validate(self, items: List[Item]) -> None:
        """Rejects the whole batch if any item cannot be studied in this mode."""
        for index, item in enumerate(items):
            problem = self._check_item(item)
            if problem:
                raise MalformedQuestionError(f"Item {index}: {problem}")

    @abstractmethod
    def _check_item(self, item: Item) -> Optional[str]:
        pass

    @abstractmethod
    def on_tick(self, session: "StudySession") -> None:
        pass

    @abstractmethod
    def on_user_action(self, session: "StudySession", action: UserAction) -> bool:
        pass

    def is_complete(self, state: SessionState) -> bool:
        return False


class FlashcardMode(ModeStrategy):
    mode = StudyMode.FLASHCARD
    item_kind = ItemKind.FLASHCARD
    item_count = 20
    initial_seconds = FLASHCARD_SECONDS
    per_item_timer = True

    def _check_item(self, item):
        if not isinstance(item, Flashcard):
            return "expected a flashcard"
        if not item.prompt.strip():
            return "empty prompt"
        return None

    def on_tick(self, session):
        state = session.state
        if state.remaining_seconds > 0:
            state.remaining_seconds -= 1
        if state.remaining_seconds > 0:
            return
        if not state.revealed:
            state.revealed = True
            logger.debug(f"Session {session.session_id}: card {state.current_index} force-revealed")
        else:
            session.advance()

    def on_user_action(self, session, action):
        if action.kind != ActionKind.REVEAL or session.state.revealed:
            return False
        session.state.revealed = True
        return True


class MultipleChoiceMode(ModeStrategy):
    """Single-shot answers graded on submit, then a short feedback window."""

    mode = StudyMode.MULTIPLE_CHOICE
    item_kind = ItemKind.QUESTION
    item_count = 20

    def _check_item(self, item):
        if not isinstance(item, Question):
            return "expected a question"
        if not item.options or len(item.options) != OPTION_COUNT:
            return f"expected {OPTION_COUNT} options"
        letters = [option_letter(o) for o in item.options]
        if item.correct_answer.strip().upper() not in letters:
            return f"correct answer {item.correct_answer!r} matches no option"
        return None

    def on_tick(self, session):
        state = session.state
        if state.advance_in is None:
            return
        state.advance_in -= 1
        if state.advance_in <= 0:
            session.advance()

    def on_user_action(self, session, action):
        state = session.state
        if action.kind != ActionKind.ANSWER or not action.value:
            return False
        if state.current_index in state.recorded_answers:
            return False

        selected = option_letter(action.value)
        item = state.items[state.current_index]
        state.recorded_answers[state.current_index] = selected
        if selected == item.correct_answer.strip().upper():
            state.score += 1
        state.advance_in = FEEDBACK_TICKS
        return True


class TypingMode(ModeStrategy):
    """Free-text answers against one session-wide countdown. Never graded."""

    mode = StudyMode.TYPING
    item_kind = ItemKind.QUESTION
    item_count = 10
    initial_seconds = TYPING_SECONDS

    def _check_item(self, item):
        if not isinstance(item, Question):
            return "expected a question"
        if not item.prompt.strip():
            return "empty prompt"
        return None

    def on_tick(self, session):
        state = session.state
        if state.remaining_seconds > 0:
            state.remaining_seconds -= 1

    def on_user_action(self, session, action):
        if action.kind != ActionKind.ANSWER or action.value is None:
            return False
        session.state.recorded_answers[session.state.current_index] = action.value
        return True

    def is_complete(self, state):
        return state.remaining_seconds is not None and state.remaining_seconds <= 0


MODE_STRATEGIES = {
    StudyMode.FLASHCARD: FlashcardMode,
    StudyMode.MULTIPLE_CHOICE: MultipleChoiceMode,
    StudyMode.TYPING: TypingMode,
}


def mode_strategy_for(mode: StudyMode) -> ModeStrategy:
    return MODE_STRATEGIES[StudyMode(mode)]()
