import asyncio
import logging
import random
from dataclasses import asdict, dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from starlette.concurrency import run_in_threadpool

from ..shared.context import RequestUser
from ..shared.database import utcnow
from .errors import AlreadySubmitted, InvalidSelection, InvalidTransition, SessionError, SubmitError, TestNotFound, TestNotPublished
from .scoring import grade_answers
from .store import AttemptStore, results_location
from .views import AttemptId, QuestionView, TestView

logger = logging.getLogger("rapid-steno.exam")

TESTS_LISTING = "/catalog/tests"


class SessionState(str, Enum):
    LOADING = "loading"
    READY = "ready"
    IN_PROGRESS = "in_progress"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"
    ERROR = "error"


LIVE_STATES = (SessionState.IN_PROGRESS, SessionState.SUBMITTING)


@dataclass
class SubmissionResult:
    attempt_id: AttemptId
    total_score: float
    max_score: float
    answered: int
    correct: int
    time_remaining: int
    submitted_at: datetime
    results_url: str
    auto_submitted: bool = False


class TestSession:
    """
    One student's run through one test.

    Answers live in an in-memory cache keyed by question id and reach the
    store only on submit. The countdown (`tick`) and an explicit `submit`
    both end up in the same submit path, which runs at most once.
    """

    __test__ = False

    def __init__(self, store: AttemptStore, user: RequestUser, test_id: int):
        self.store = store
        self.user = user
        self.test_id = test_id

        self.state = SessionState.LOADING
        self.test: Optional[TestView] = None
        self.questions: list[QuestionView] = []
        self.attempt_id: Optional[AttemptId] = None
        self.answers: dict[int, Optional[int]] = {}
        self.current_index = 0
        self.remaining_seconds = 0
        self.result: Optional[SubmissionResult] = None
        self.last_error: Optional[str] = None

        self._submit_lock = asyncio.Lock()

    # loading -> ready

    async def load(self) -> None:
        if self.state not in (SessionState.LOADING, SessionState.ERROR):
            raise InvalidTransition(f"Cannot load a session that is {self.state.value}")
        self.state = SessionState.LOADING
        self.last_error = None

        try:
            test = await run_in_threadpool(self.store.load_test, self.test_id)
            if test is None:
                raise TestNotFound("Test not found")
            if test.status != "published":
                raise TestNotPublished("This test is not available", TESTS_LISTING)

            previous = await run_in_threadpool(self.store.find_submitted_attempt, self.user, self.test_id)
            if previous is not None:
                raise AlreadySubmitted("You have already submitted this test", results_location(previous))

            questions = await run_in_threadpool(self.store.load_questions, self.test_id)
            attempt = await run_in_threadpool(self.store.find_or_create_active_attempt, self.user, test)
        except SessionError as e:
            self.state = SessionState.ERROR
            self.last_error = e.message
            raise

        self.test = test
        self.attempt_id = attempt.id
        self.questions = self._arrange(test, questions, attempt.id)
        self.state = SessionState.READY
        logger.info(
            "Loaded test %s for %s (attempt %s, %d questions)",
            self.test_id, self.user.key, self.attempt_id, len(self.questions),
        )

    @staticmethod
    def _arrange(test: TestView, questions: list[QuestionView], attempt_id: AttemptId) -> list[QuestionView]:
        # seeded by attempt so a resumed attempt keeps its order
        rng = random.Random(str(attempt_id))
        questions = list(questions)
        if test.shuffle_options:
            shuffled = []
            for q in questions:
                options = list(q.options)
                rng.shuffle(options)
                shuffled.append(replace(q, options=tuple(options)))
            questions = shuffled
        if test.shuffle_questions:
            rng.shuffle(questions)
        return questions

    # ready -> in_progress

    def start(self) -> None:
        if self.state != SessionState.READY:
            raise InvalidTransition(f"Cannot start a session that is {self.state.value}")
        self.answers = {q.id: None for q in self.questions}
        self.current_index = 0
        self.remaining_seconds = self.test.duration_minutes * 60
        self.state = SessionState.IN_PROGRESS

    # in_progress

    def _require_in_progress(self) -> None:
        if self.state != SessionState.IN_PROGRESS:
            raise InvalidTransition(f"Session is {self.state.value}")

    def _question(self, question_id: int) -> QuestionView:
        for q in self.questions:
            if q.id == question_id:
                return q
        raise InvalidSelection(f"Question {question_id} is not part of this test")

    def select_option(self, question_id: int, option_id: int) -> None:
        self._require_in_progress()
        q = self._question(question_id)
        if q.option(option_id) is None:
            raise InvalidSelection(f"Option {option_id} does not belong to question {question_id}")
        self.answers[question_id] = option_id

    def clear_selection(self, question_id: int) -> None:
        self._require_in_progress()
        self._question(question_id)
        self.answers[question_id] = None

    def navigate(self, index: Optional[int] = None, step: int = 0) -> int:
        self._require_in_progress()
        target = self.current_index + step if index is None else index
        self.current_index = max(0, min(target, len(self.questions) - 1)) if self.questions else 0
        return self.current_index

    async def tick(self) -> None:
        if self.state != SessionState.IN_PROGRESS:
            return
        self.remaining_seconds = max(0, self.remaining_seconds - 1)
        if self.remaining_seconds == 0:
            logger.info("Time is up for attempt %s; submitting", self.attempt_id)
            await self.submit(auto=True)

    # in_progress -> submitting -> submitted

    async def submit(self, auto: bool = False) -> SubmissionResult:
        async with self._submit_lock:
            if self.state == SessionState.SUBMITTED:
                if self.result is None:
                    raise AlreadySubmitted("This attempt has already been submitted", results_location(self.attempt_id))
                return self.result
            self._require_in_progress()

            self.state = SessionState.SUBMITTING
            graded = grade_answers(self.questions, self.answers)
            submitted_at = utcnow()
            time_remaining = self.remaining_seconds

            try:
                await run_in_threadpool(
                    self.store.save_submission,
                    self.attempt_id,
                    self.user,
                    self.test,
                    self.questions,
                    graded,
                    time_remaining,
                    submitted_at,
                )
            except AlreadySubmitted:
                # another controller got there first; nothing left to do here
                self.state = SessionState.SUBMITTED
                raise
            except SubmitError as e:
                self.state = SessionState.IN_PROGRESS
                self.last_error = e.message
                logger.error("Submission of attempt %s failed: %s", self.attempt_id, e.message)
                raise

            self.state = SessionState.SUBMITTED
            self.last_error = None
            self.result = SubmissionResult(
                attempt_id=self.attempt_id,
                total_score=graded.total_score,
                max_score=graded.max_score,
                answered=graded.answered_count,
                correct=graded.correct_count,
                time_remaining=time_remaining,
                submitted_at=submitted_at,
                results_url=results_location(self.attempt_id),
                auto_submitted=auto,
            )
            logger.info(
                "Attempt %s submitted%s: %s/%s",
                self.attempt_id, " (time up)" if auto else "", graded.total_score, graded.max_score,
            )
            return self.result

    # views

    @property
    def answered_count(self) -> int:
        return sum(1 for v in self.answers.values() if v is not None)

    def snapshot(self) -> dict[str, Any]:
        current = None
        if self.questions and self.state in LIVE_STATES:
            q = self.questions[self.current_index]
            current = {
                "id": q.id,
                "text": q.text,
                "points": q.points,
                "options": [{"id": o.id, "label": o.label} for o in q.options],
                "chosen_option_id": self.answers.get(q.id),
            }
        return {
            "state": self.state.value,
            "test_id": self.test_id,
            "test_title": self.test.title if self.test else "",
            "attempt_id": self.attempt_id,
            "current_index": self.current_index,
            "total_questions": len(self.questions),
            "current_question": current,
            "remaining_seconds": self.remaining_seconds,
            "answered_count": self.answered_count,
            "answers": [{"question_id": qid, "chosen_option_id": oid} for qid, oid in self.answers.items()],
            "result": asdict(self.result) if self.result else None,
            "error": self.last_error,
        }
