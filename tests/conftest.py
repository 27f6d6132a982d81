import json
from datetime import datetime

import pytest

from examprep.generator import QuestionSource
from examprep.models import Difficulty, Flashcard, Question, SessionConfig, StudyMode

LETTERS = "ABCDE"


class FakeLLM:
    """Returns canned replies in order and remembers the prompts it saw."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.prompts = []

    def complete(self, prompt, max_tokens=4000):
        self.prompts.append(prompt)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


class FrozenClock:
    def __init__(self, now=datetime(2026, 3, 1, 9, 0, 0)):
        self.now = now

    def __call__(self):
        return self.now


def question_payload(count, correct="B"):
    return [
        {
            "question": f"Question {i}?",
            "options": [f"{letter}) Option {letter}" for letter in LETTERS],
            "correctAnswer": correct,
            "explanation": f"Because of rule {i}.",
        }
        for i in range(count)
    ]


def flashcard_payload(count):
    return [{"question": f"Term {i}", "answer": f"Definition {i}"} for i in range(count)]


def wrap_reply(payload):
    return "Here are your questions:\n" + json.dumps(payload) + "\nGood luck!"


def make_questions(count, correct="B", options=True):
    return [
        Question(
            id=f"q_1_{i}",
            prompt=f"Question {i}?",
            options=[f"{letter}) Option {letter}" for letter in LETTERS] if options else None,
            correct_answer=correct,
            explanation="",
            difficulty=Difficulty.MEDIUM,
            category="medical",
            exam_type="NCLEX",
        )
        for i in range(count)
    ]


def make_flashcards(count):
    return [Flashcard(prompt=f"Term {i}", answer=f"Definition {i}") for i in range(count)]


class StaticSource:
    """Question source that hands back a fixed batch, or raises."""

    def __init__(self, items=None, error=None):
        self.items = items
        self.error = error
        self.calls = []

    def generate(self, exam_type, category, difficulty, count, kind):
        self.calls.append((exam_type, category, difficulty, count, kind))
        if self.error is not None:
            raise self.error
        return self.items if self.items is not None else []


@pytest.fixture
def clock():
    return FrozenClock()


def config_for(mode, difficulty=Difficulty.MEDIUM):
    return SessionConfig(
        exam_type="NCLEX", category="medical", difficulty=difficulty, mode=StudyMode(mode)
    )


@pytest.fixture
def llm_source():
    def build(*replies):
        llm = FakeLLM(*replies)
        return QuestionSource(llm), llm

    return build
