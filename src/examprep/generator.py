import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, List

from .exceptions import GenerationError, MalformedQuestionError
from .llm_client import LLMClient
from .models import Difficulty, Flashcard, Item, ItemKind, Question

logger = logging.getLogger(__name__)


def extract_json_array(text: str) -> Any:
    """Parses the span between the first '[' and the last ']' of a model reply."""
    first = text.find("[")
    last = text.rfind("]")
    if first == -1 or last == -1 or last < first:
        raise GenerationError("JSON array not found in model response")
    try:
        return json.loads(text[first : last + 1])
    except json.JSONDecodeError as e:
        raise GenerationError(f"Model response is not valid JSON: {e}") from e


def _require_entries(parsed: Any, fields: List[str]) -> List[dict]:
    if not isinstance(parsed, list):
        raise GenerationError("Model response is not a JSON array")
    for index, entry in enumerate(parsed):
        if not isinstance(entry, dict):
            raise MalformedQuestionError(f"Entry {index} is not an object")
        missing = [f for f in fields if not isinstance(entry.get(f), str)]
        if missing:
            raise MalformedQuestionError(f"Entry {index} is missing {', '.join(missing)}")
    return parsed


# --- Strategy Pattern: Item Generators ---
class ItemGenerator(ABC):
    """Abstract Base Class for the two prompt/parse strategies."""

    max_tokens: int = 4000

    def __init__(self, client: LLMClient):
        self.client = client

    @abstractmethod
    def build_prompt(
        self, exam_type: str, category: str, difficulty: Difficulty, count: int
    ) -> str:
        pass

    @abstractmethod
    def parse(
        self, parsed: Any, exam_type: str, category: str, difficulty: Difficulty
    ) -> List[Item]:
        pass

    def generate(
        self, exam_type: str, category: str, difficulty: Difficulty, count: int
    ) -> List[Item]:
        prompt = self.build_prompt(exam_type, category, difficulty, count)
        content = self.client.complete(prompt, max_tokens=self.max_tokens)
        return self.parse(extract_json_array(content), exam_type, category, difficulty)


class QuestionGenerator(ItemGenerator):
    """Five-option exam questions with a lettered answer and explanation."""

    max_tokens = 4000

    def build_prompt(self, exam_type, category, difficulty, count):
        return f"""Generate {count} {difficulty.value} level practice questions for the {exam_type} exam in the {category} category.

For each question, provide:
1. A clear, specific question
2. 5 multiple choice options (A, B, C, D, E)
3. The correct answer (just the letter)
4. A detailed explanation

Format as a JSON array with this structure:
[
  {{
    "question": "Question text",
    "options": ["A) Option 1", "B) Option 2", "C) Option 3", "D) Option 4", "E) Option 5"],
    "correctAnswer": "A",
    "explanation": "Detailed explanation"
  }}
]"""

    def parse(self, parsed, exam_type, category, difficulty):
        entries = _require_entries(parsed, ["question", "correctAnswer"])
        stamp = int(time.time() * 1000)
        questions = []
        for index, entry in enumerate(entries):
            options = entry.get("options")
            if options is not None and not (
                isinstance(options, list) and all(isinstance(o, str) for o in options)
            ):
                raise MalformedQuestionError(f"Entry {index} has malformed options")
            questions.append(
                Question(
                    id=f"q_{stamp}_{index}",
                    prompt=entry["question"],
                    options=options,
                    correct_answer=entry["correctAnswer"],
                    explanation=str(entry.get("explanation") or ""),
                    difficulty=difficulty,
                    category=category,
                    exam_type=exam_type,
                )
            )
        return questions


class FlashcardGenerator(ItemGenerator):
    """Question/answer pairs for quick review."""

    max_tokens = 3000

    def build_prompt(self, exam_type, category, difficulty, count):
        return f"""Generate {count} flashcard questions for the {exam_type} exam in the {category} category at {difficulty.value} level.

Format as a JSON array:
[
  {{
    "question": "Question or term",
    "answer": "Answer or definition"
  }}
]"""

    def parse(self, parsed, exam_type, category, difficulty):
        entries = _require_entries(parsed, ["question", "answer"])
        return [Flashcard(prompt=e["question"], answer=e["answer"]) for e in entries]


class QuestionSource:
    """Adapter between the session engine and the generative model."""

    def __init__(self, client: LLMClient):
        self.generators = {
            ItemKind.QUESTION: QuestionGenerator(client),
            ItemKind.FLASHCARD: FlashcardGenerator(client),
        }

    def generate(
        self,
        exam_type: str,
        category: str,
        difficulty: Difficulty,
        count: int,
        kind: ItemKind,
    ) -> List[Item]:
        if count <= 0:
            raise ValueError("count must be positive")
        difficulty = Difficulty(difficulty)
        kind = ItemKind(kind)
        generator = self.generators[kind]

        logger.info(
            f"Generating {count} {kind.value} items [{exam_type} / {category}, {difficulty.value}]"
        )
        items = generator.generate(exam_type, category, difficulty, count)
        logger.info(f"Model produced {len(items)} {kind.value} items")
        return items
