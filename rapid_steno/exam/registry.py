import asyncio
import logging
from typing import Optional

from starlette.concurrency import run_in_threadpool

from ..shared.context import RequestUser
from .controller import LIVE_STATES, TestSession
from .errors import SessionError
from .store import AttemptStore
from .views import AttemptId

logger = logging.getLogger("rapid-steno.exam")

SessionKey = tuple[str, int]


class SessionRegistry:
    """
    Live test sessions keyed by (user key, test id), each with its own
    countdown task. A student who comes back to a running test gets the
    same session; finished sessions are dropped.
    """

    def __init__(self, store: AttemptStore, demo_store: AttemptStore, tick_seconds: float = 1.0):
        self.store = store
        self.demo_store = demo_store
        self.tick_seconds = tick_seconds
        self._sessions: dict[SessionKey, TestSession] = {}
        self._tasks: dict[SessionKey, asyncio.Task] = {}
        self._locks: dict[SessionKey, asyncio.Lock] = {}
        # callers inside enter() per key; a lock is only discarded when none are left
        self._entering: dict[SessionKey, int] = {}

    def _store_for(self, user: RequestUser) -> AttemptStore:
        return self.demo_store if user.is_demo else self.store

    def get(self, user: RequestUser, test_id: int) -> Optional[TestSession]:
        session = self._sessions.get((user.key, test_id))
        if session is None or session.state not in LIVE_STATES:
            return None
        return session

    def current(self, user: RequestUser, test_id: int) -> Optional[TestSession]:
        # includes a session that has just been submitted and not yet dropped
        return self._sessions.get((user.key, test_id))

    async def find_submitted(self, user: RequestUser, test_id: int) -> Optional[AttemptId]:
        return await run_in_threadpool(self._store_for(user).find_submitted_attempt, user, test_id)

    async def enter(self, user: RequestUser, test_id: int) -> TestSession:
        key = (user.key, test_id)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._entering[key] = self._entering.get(key, 0) + 1
        try:
            async with lock:
                live = self.get(user, test_id)
                if live is not None:
                    return live

                session = TestSession(self._store_for(user), user, test_id)
                await session.load()
                session.start()

                self._sessions[key] = session
                self._tasks[key] = asyncio.create_task(self._countdown(key, session))
                return session
        finally:
            remaining = self._entering.pop(key, 1) - 1
            if remaining:
                self._entering[key] = remaining
            elif key not in self._sessions:
                self._locks.pop(key, None)

    async def _countdown(self, key: SessionKey, session: TestSession) -> None:
        try:
            while session.state in LIVE_STATES:
                await asyncio.sleep(self.tick_seconds)
                try:
                    await session.tick()
                except SessionError as e:
                    # the session stays in progress and the next tick tries again
                    logger.warning("Countdown for attempt %s: %s", session.attempt_id, e.message)
        finally:
            self._drop(key, session)

    def _drop(self, key: SessionKey, session: TestSession) -> None:
        if self._sessions.get(key) is session:
            del self._sessions[key]
            self._tasks.pop(key, None)
            if key not in self._entering:
                self._locks.pop(key, None)

    @property
    def live_count(self) -> int:
        return len(self._sessions)

    async def shutdown(self) -> None:
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._sessions.clear()
        self._tasks.clear()
        self._locks.clear()
        self._entering.clear()
