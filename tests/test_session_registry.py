"""
Tests for the registry of live sessions and their countdown tasks.
"""

import asyncio

import pytest

from rapid_steno.exam import controller, errors
from rapid_steno.exam.registry import SessionRegistry
from test_session_controller import STUDENT, FakeStore, run

KEY = (STUDENT.key, 1)


class SubmittingStore(FakeStore):
    """Remembers the submitted attempt so re-entering finds it."""

    def save_submission(self, attempt_id, user, test, questions, graded, time_remaining, submitted_at):
        super().save_submission(attempt_id, user, test, questions, graded, time_remaining, submitted_at)
        self.previous = attempt_id


def _registry(store, tick_seconds=0.001):
    return SessionRegistry(store, store, tick_seconds=tick_seconds)


class TestCountdown:
    def test_time_up_submits_once_and_drops_session(self):
        async def scenario():
            store = SubmittingStore()
            registry = _registry(store)

            session = await registry.enter(STUDENT, 1)
            assert registry.live_count == 1
            await asyncio.wait_for(registry._tasks[KEY], 5)

            assert len(store.saves) == 1
            attempt_id, _, time_remaining = store.saves[0]
            assert attempt_id == 42
            assert time_remaining == 0
            assert session.state == controller.SessionState.SUBMITTED
            assert session.result.auto_submitted is True

            assert registry.live_count == 0
            assert registry.current(STUDENT, 1) is None
            assert registry._locks == {}
            assert registry._tasks == {}

            with pytest.raises(errors.AlreadySubmitted) as exc:
                await registry.enter(STUDENT, 1)
            assert exc.value.location == "/results/attempts/42"
            assert len(store.saves) == 1
            assert registry._locks == {}

        run(scenario())

    def test_failed_save_is_retried_on_next_tick(self):
        async def scenario():
            store = SubmittingStore(fail_saves=2)
            registry = _registry(store)

            session = await registry.enter(STUDENT, 1)
            await asyncio.wait_for(registry._tasks[KEY], 5)

            assert len(store.saves) == 1
            assert session.state == controller.SessionState.SUBMITTED
            assert registry.live_count == 0

        run(scenario())


class TestEnter:
    def test_entering_twice_returns_same_session(self):
        async def scenario():
            registry = _registry(FakeStore(), tick_seconds=3600)
            first = await registry.enter(STUDENT, 1)
            second = await registry.enter(STUDENT, 1)
            assert first is second
            assert registry.live_count == 1
            await registry.shutdown()

        run(scenario())

    def test_concurrent_enters_share_one_session(self):
        async def scenario():
            registry = _registry(FakeStore(), tick_seconds=3600)
            first, second = await asyncio.gather(registry.enter(STUDENT, 1), registry.enter(STUDENT, 1))
            assert first is second
            assert registry._entering == {}
            assert list(registry._locks) == [KEY]
            await registry.shutdown()

        run(scenario())

    def test_failed_enter_leaves_no_lock_behind(self):
        async def scenario():
            registry = _registry(FakeStore(status="draft"), tick_seconds=3600)
            with pytest.raises(errors.TestNotPublished):
                await registry.enter(STUDENT, 1)
            assert registry.live_count == 0
            assert registry._locks == {}
            assert registry._entering == {}

        run(scenario())

    def test_shutdown_cancels_countdowns_without_saving(self):
        async def scenario():
            store = FakeStore()
            registry = _registry(store, tick_seconds=3600)
            await registry.enter(STUDENT, 1)
            task = registry._tasks[KEY]

            await registry.shutdown()

            assert task.cancelled()
            assert store.saves == []
            assert registry.live_count == 0
            assert registry._locks == {}

        run(scenario())
