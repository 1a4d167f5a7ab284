"""
Tests for the test-taking session state machine, driven against an
in-memory store so timing and failures are under the test's control.
"""

import asyncio
from datetime import datetime

import pytest

from rapid_steno.exam import controller, errors, views
from rapid_steno.shared.context import RequestUser

STUDENT = RequestUser(key="7", role="student", email="s@example.com", full_name="Student")


def _question(qid: int, correct_index: int, points: float = 1.0) -> views.QuestionView:
    options = tuple(
        views.OptionView(id=qid * 10 + i, label=f"Option {i}", is_correct=(i == correct_index), order_index=i)
        for i in range(4)
    )
    return views.QuestionView(id=qid, text=f"Question {qid}", points=points, order_index=qid, options=options)


class FakeStore:
    def __init__(self, status="published", previous=None, fail_saves=0, questions=None, **test_kwargs):
        self.test = views.TestView(id=1, title="Sample Test", status=status, duration_minutes=1, **test_kwargs)
        self.questions = questions or [_question(1, 0), _question(2, 1), _question(3, 2)]
        self.previous = previous
        self.fail_saves = fail_saves
        self.saves = []

    def load_test(self, test_id):
        return self.test if test_id == self.test.id else None

    def load_questions(self, test_id):
        return list(self.questions)

    def find_submitted_attempt(self, user, test_id):
        return self.previous

    def find_or_create_active_attempt(self, user, test):
        return views.AttemptRef(id=42, started_at=datetime(2024, 1, 1), time_remaining=60, created=True)

    def save_submission(self, attempt_id, user, test, questions, graded, time_remaining, submitted_at):
        if self.fail_saves:
            self.fail_saves -= 1
            raise errors.SubmitError("Failed to submit test. Please try again.")
        self.saves.append((attempt_id, graded, time_remaining))


def run(coro):
    return asyncio.run(coro)


async def _started(store, test_id=1):
    session = controller.TestSession(store, STUDENT, test_id)
    await session.load()
    session.start()
    return session


class TestLoading:
    def test_load_and_start_builds_empty_answer_cache(self):
        async def scenario():
            session = await _started(FakeStore())
            assert session.state == controller.SessionState.IN_PROGRESS
            assert session.answers == {1: None, 2: None, 3: None}
            assert session.remaining_seconds == 60
            assert session.attempt_id == 42

        run(scenario())

    def test_missing_test_is_not_found(self):
        async def scenario():
            session = controller.TestSession(FakeStore(), STUDENT, 999)
            with pytest.raises(errors.TestNotFound):
                await session.load()
            assert session.state == controller.SessionState.ERROR

        run(scenario())

    def test_unpublished_test_redirects_to_listing(self):
        async def scenario():
            session = controller.TestSession(FakeStore(status="draft"), STUDENT, 1)
            with pytest.raises(errors.TestNotPublished) as exc:
                await session.load()
            assert exc.value.location == "/catalog/tests"

        run(scenario())

    def test_previous_submission_redirects_to_results(self):
        async def scenario():
            session = controller.TestSession(FakeStore(previous=5), STUDENT, 1)
            with pytest.raises(errors.AlreadySubmitted) as exc:
                await session.load()
            assert exc.value.location == "/results/attempts/5"

        run(scenario())

    def test_start_requires_ready_state(self):
        session = controller.TestSession(FakeStore(), STUDENT, 1)
        with pytest.raises(errors.InvalidTransition):
            session.start()

    def test_shuffled_order_is_stable_for_an_attempt(self):
        questions = [_question(i, 0) for i in range(1, 11)]

        async def order():
            store = FakeStore(questions=questions, shuffle_questions=True, shuffle_options=True)
            session = await _started(store)
            return [(q.id, tuple(o.id for o in q.options)) for q in session.questions]

        first = run(order())
        second = run(order())
        assert first == second
        assert sorted(qid for qid, _ in first) == list(range(1, 11))


class TestAnswering:
    def test_last_selection_wins(self):
        async def scenario():
            session = await _started(FakeStore())
            session.select_option(1, 11)
            session.select_option(1, 12)
            assert session.answers[1] == 12
            assert session.answered_count == 1
            assert len(session.answers) == 3

        run(scenario())

    def test_clear_selection(self):
        async def scenario():
            session = await _started(FakeStore())
            session.select_option(2, 21)
            session.clear_selection(2)
            assert session.answers[2] is None
            assert session.answered_count == 0

        run(scenario())

    def test_option_from_another_question_is_rejected(self):
        async def scenario():
            session = await _started(FakeStore())
            with pytest.raises(errors.InvalidSelection):
                session.select_option(1, 21)
            with pytest.raises(errors.InvalidSelection):
                session.select_option(99, 10)
            assert session.answered_count == 0

        run(scenario())

    def test_navigation_is_clamped(self):
        async def scenario():
            session = await _started(FakeStore())
            assert session.navigate(step=-1) == 0
            assert session.navigate(step=1) == 1
            assert session.navigate(index=10) == 2

        run(scenario())

    def test_snapshot_hides_correct_answers(self):
        async def scenario():
            session = await _started(FakeStore())
            snap = session.snapshot()
            assert snap["state"] == "in_progress"
            assert snap["total_questions"] == 3
            for option in snap["current_question"]["options"]:
                assert set(option) == {"id", "label"}

        run(scenario())


class TestSubmitting:
    def test_scoring_counts_only_answered_questions(self):
        async def scenario():
            store = FakeStore()
            session = await _started(store)
            session.select_option(1, 10)  # correct
            session.select_option(2, 20)  # wrong
            result = await session.submit()
            return store, session, result

        store, session, result = run(scenario())
        assert session.state == controller.SessionState.SUBMITTED
        assert result.total_score == 1
        assert result.max_score == 3
        assert result.answered == 2
        assert result.correct == 1
        assert result.results_url == "/results/attempts/42"
        assert len(store.saves) == 1
        graded = store.saves[0][1]
        assert {a.question_id for a in graded.answers} == {1, 2}

    def test_countdown_submits_once(self):
        async def scenario():
            store = FakeStore()
            session = await _started(store)
            session.remaining_seconds = 2
            await session.tick()
            assert session.state == controller.SessionState.IN_PROGRESS
            await session.tick()
            await session.tick()
            return store, session

        store, session = run(scenario())
        assert session.state == controller.SessionState.SUBMITTED
        assert session.result.auto_submitted is True
        assert session.result.time_remaining == 0
        assert len(store.saves) == 1

    def test_submit_and_final_tick_race_saves_once(self):
        async def scenario():
            store = FakeStore()
            session = await _started(store)
            session.remaining_seconds = 1
            result, _ = await asyncio.gather(session.submit(), session.tick())
            return store, session, result

        store, session, result = run(scenario())
        assert len(store.saves) == 1
        assert session.result is result

    def test_second_submit_returns_same_result(self):
        async def scenario():
            store = FakeStore()
            session = await _started(store)
            first = await session.submit()
            second = await session.submit()
            return store, first, second

        store, first, second = run(scenario())
        assert first is second
        assert len(store.saves) == 1

    def test_failed_submit_can_be_retried(self):
        async def scenario():
            store = FakeStore(fail_saves=1)
            session = await _started(store)
            session.select_option(3, 32)
            with pytest.raises(errors.SubmitError) as exc:
                await session.submit()
            assert exc.value.retry is True
            assert session.state == controller.SessionState.IN_PROGRESS
            assert session.last_error
            assert session.answers[3] == 32

            result = await session.submit()
            return store, session, result

        store, session, result = run(scenario())
        assert session.state == controller.SessionState.SUBMITTED
        assert session.last_error is None
        assert result.correct == 1
        assert len(store.saves) == 1

    def test_no_changes_after_submit(self):
        async def scenario():
            session = await _started(FakeStore())
            await session.submit()
            with pytest.raises(errors.InvalidTransition):
                session.select_option(1, 10)

        run(scenario())
