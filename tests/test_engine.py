from datetime import timedelta

import pytest

from conftest import FakeLLM, StaticSource, config_for, make_flashcards, make_questions
from examprep.engine import StudySession
from examprep.exceptions import GenerationError, MalformedQuestionError, PersistenceError
from examprep.generator import QuestionSource
from examprep.models import ActionKind, ItemKind, SessionStatus, UserAction


def answer(letter):
    return UserAction(kind=ActionKind.ANSWER, value=letter)


def active_session(mode, items, clock, **kwargs):
    session = StudySession(config_for(mode), StaticSource(items), clock=clock, **kwargs)
    session.start()
    return session


class TestGeneration:
    @pytest.mark.parametrize(
        "mode, count, kind",
        [
            ("flashcard", 20, ItemKind.FLASHCARD),
            ("multiple_choice", 20, ItemKind.QUESTION),
            ("typing", 10, ItemKind.QUESTION),
        ],
    )
    def test_requests_mode_item_count(self, mode, count, kind, clock):
        items = make_flashcards(count) if kind == ItemKind.FLASHCARD else make_questions(count)
        source = StaticSource(items)
        session = StudySession(config_for(mode), source, clock=clock)

        session.start()

        assert source.calls == [("NCLEX", "medical", session.config.difficulty, count, kind)]
        assert session.status == SessionStatus.ACTIVE
        assert len(session.state.items) == count

    @pytest.mark.parametrize(
        "mode, seconds", [("flashcard", 10), ("typing", 300), ("multiple_choice", None)]
    )
    def test_activation_seeds_state(self, mode, seconds, clock):
        items = make_flashcards(20) if mode == "flashcard" else make_questions(10)
        session = active_session(mode, items, clock)

        state = session.state
        assert state.current_index == 0
        assert state.score == 0
        assert state.recorded_answers == {}
        assert state.revealed is False
        assert state.remaining_seconds == seconds
        assert state.started_at == clock.now

    def test_no_brackets_leaves_session_configuring(self, clock):
        source = QuestionSource(FakeLLM("Sorry, I can only answer in prose."))
        session = StudySession(config_for("multiple_choice"), source, clock=clock)

        with pytest.raises(GenerationError):
            session.start()

        assert session.status == SessionStatus.CONFIGURING
        assert session.state.items == []

    def test_malformed_reply_leaves_session_configuring(self, clock):
        reply = '[{"question": "Q?", "options": ["A) 1", "B) 2", "C) 3", "D) 4", "E) 5"]}]'
        source = QuestionSource(FakeLLM(reply))
        session = StudySession(config_for("multiple_choice"), source, clock=clock)

        with pytest.raises(MalformedQuestionError):
            session.start()

        assert session.status == SessionStatus.CONFIGURING
        assert session.state.items == []

    def test_malformed_batch_rejected_whole(self, clock):
        items = make_questions(20)
        items[7] = items[7].model_copy(update={"correct_answer": "Z"})
        session = StudySession(config_for("multiple_choice"), StaticSource(items), clock=clock)

        with pytest.raises(MalformedQuestionError, match="Item 7"):
            session.start()

        assert session.status == SessionStatus.CONFIGURING
        assert session.state.items == []

    def test_empty_batch_rejected(self, clock):
        session = StudySession(config_for("typing"), StaticSource([]), clock=clock)

        with pytest.raises(MalformedQuestionError):
            session.start()
        assert session.status == SessionStatus.CONFIGURING

    def test_cannot_start_twice(self, clock):
        session = active_session("typing", make_questions(10), clock)

        with pytest.raises(RuntimeError):
            session.start()

    def test_actions_rejected_while_generating(self, clock):
        session = StudySession(config_for("multiple_choice"), StaticSource(), clock=clock)
        session.begin_generation()

        assert session.act(answer("A")) is False
        assert session.advance() is False
        assert session.tick() is False
        assert session.status == SessionStatus.GENERATING

    def test_late_items_ignored_after_failure(self, clock):
        session = StudySession(config_for("typing"), StaticSource(), clock=clock)
        session.begin_generation()
        session.fail_generation()

        session.activate(make_questions(10))

        assert session.status == SessionStatus.CONFIGURING
        assert session.state.items == []


class TestTransitions:
    def test_advance_moves_forward_only(self, clock):
        session = active_session("typing", make_questions(10), clock)

        seen = [session.state.current_index]
        for _ in range(5):
            session.advance()
            seen.append(session.state.current_index)

        assert seen == sorted(seen)
        assert seen[-1] == 5

    def test_advance_on_last_item_completes(self, clock):
        completed = []
        session = active_session(
            "typing", make_questions(2), clock, on_complete=lambda s, r: completed.append(r)
        )

        session.advance()
        assert session.status == SessionStatus.ACTIVE
        session.advance()

        assert session.status == SessionStatus.COMPLETE
        assert session.state.current_index == 1
        assert completed == [session.result]

    def test_everything_is_a_noop_after_complete(self, clock):
        completed = []
        session = active_session(
            "multiple_choice",
            make_questions(20),
            clock,
            on_complete=lambda s, r: completed.append(r),
        )
        session.act(answer("B"))
        session.end()
        snapshot = session.state.model_copy(deep=True)

        assert session.advance() is False
        assert session.end() is False
        assert session.tick() is False
        assert session.act(answer("C")) is False
        assert session.act(UserAction(kind=ActionKind.NEXT)) is False

        assert session.state == snapshot
        assert len(completed) == 1

    def test_restart_builds_independent_session(self, clock):
        session = active_session("multiple_choice", make_questions(20), clock)
        session.act(answer("B"))
        session.advance()
        session.end()

        fresh = session.restart()

        assert fresh is not session
        assert fresh.session_id != session.session_id
        assert fresh.config == session.config
        assert fresh.status == SessionStatus.CONFIGURING
        assert fresh.state.score == 0
        assert fresh.state.current_index == 0
        assert fresh.state.recorded_answers == {}
        assert session.state.score == 1

        fresh.start()
        assert fresh.status == SessionStatus.ACTIVE
        assert fresh.state.score == 0


class TestCompletion:
    def test_multiple_choice_scenario(self, clock):
        results = []
        session = active_session(
            "multiple_choice",
            make_questions(20, correct="C"),
            clock,
            on_complete=lambda s, r: results.append(r),
        )

        session.act(answer("C"))
        session.advance()
        session.act(answer("A"))
        session.advance()
        assert session.state.current_index == 2
        session.act(UserAction(kind=ActionKind.END))

        assert session.status == SessionStatus.COMPLETE
        assert results == [session.result]
        assert session.result.score == 1
        assert session.result.total_questions == 20
        assert session.result.time_spent_seconds == 0

    def test_multiple_choice_reports_elapsed_time(self, clock):
        session = active_session("multiple_choice", make_questions(20), clock)
        clock.now = clock.now + timedelta(seconds=95, milliseconds=400)

        session.end()

        assert session.result.time_spent_seconds == 95

    def test_persistence_failure_keeps_result(self, clock):
        def failing_store(session, result):
            raise PersistenceError("redis down")

        session = active_session(
            "typing", make_questions(10), clock, on_complete=failing_store
        )
        session.end()

        assert session.status == SessionStatus.COMPLETE
        assert session.result.total_questions == 10
        assert session.result.time_spent_seconds == 300
