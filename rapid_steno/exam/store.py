import logging
import secrets
from datetime import datetime
from typing import Optional, Protocol

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import selectinload

from ..catalog.models import Question, Test
from ..shared.context import DEMO_PREFIX, RequestUser
from ..shared.local_store import LocalStore
from ..shared.database import utcnow
from .errors import AlreadySubmitted, LoadError, SubmitError
from .models import Answer, Attempt
from .views import AttemptId, AttemptRef, GradedSubmission, OptionView, QuestionView, TestView

logger = logging.getLogger("rapid-steno.exam")


def results_location(attempt_id: AttemptId) -> str:
    if isinstance(attempt_id, str) and attempt_id.startswith(DEMO_PREFIX):
        return f"/results/demo/{attempt_id}"
    return f"/results/attempts/{attempt_id}"


class AttemptStore(Protocol):
    def load_test(self, test_id: int) -> Optional[TestView]: ...

    def load_questions(self, test_id: int) -> list[QuestionView]: ...

    def find_submitted_attempt(self, user: RequestUser, test_id: int) -> Optional[AttemptId]: ...

    def find_or_create_active_attempt(self, user: RequestUser, test: TestView) -> AttemptRef: ...

    def save_submission(
        self,
        attempt_id: AttemptId,
        user: RequestUser,
        test: TestView,
        questions: list[QuestionView],
        graded: GradedSubmission,
        time_remaining: int,
        submitted_at: datetime,
    ) -> None: ...


class SqlAttemptStore:
    """Attempts and answers in the relational database."""

    def __init__(self, SessionLocal):
        self.SessionLocal = SessionLocal

    def load_test(self, test_id: int) -> Optional[TestView]:
        try:
            with self.SessionLocal() as db:
                t = db.query(Test).filter(Test.id == test_id).first()
                if not t:
                    return None
                return TestView(
                    id=t.id,
                    title=t.title,
                    status=t.status,
                    duration_minutes=t.duration_minutes,
                    shuffle_questions=t.shuffle_questions,
                    shuffle_options=t.shuffle_options,
                    negative_marking=t.negative_marking,
                    category_name=t.category_name,
                )
        except SQLAlchemyError as e:
            logger.error("Failed to load test %s: %s", test_id, e)
            raise LoadError("Failed to load the test. Please try again.")

    def load_questions(self, test_id: int) -> list[QuestionView]:
        try:
            with self.SessionLocal() as db:
                rows = (
                    db.query(Question)
                    .options(selectinload(Question.options))
                    .filter(Question.test_id == test_id)
                    .order_by(Question.order_index.asc(), Question.id.asc())
                    .all()
                )
                return [
                    QuestionView(
                        id=q.id,
                        text=q.text,
                        points=q.points,
                        negative_points=q.negative_points,
                        order_index=q.order_index,
                        options=tuple(
                            OptionView(id=o.id, label=o.label, is_correct=o.is_correct, order_index=o.order_index)
                            for o in q.options
                        ),
                    )
                    for q in rows
                ]
        except SQLAlchemyError as e:
            logger.error("Failed to load questions for test %s: %s", test_id, e)
            raise LoadError("Failed to load questions. Please try again.")

    def find_submitted_attempt(self, user: RequestUser, test_id: int) -> Optional[AttemptId]:
        try:
            with self.SessionLocal() as db:
                row = (
                    db.query(Attempt.id)
                    .filter(Attempt.user_id == user.id, Attempt.test_id == test_id, Attempt.status == "submitted")
                    .first()
                )
                return row[0] if row else None
        except SQLAlchemyError as e:
            logger.error("Failed to check previous attempts for user %s test %s: %s", user.key, test_id, e)
            raise LoadError("Failed to check previous attempts. Please try again.")

    def find_or_create_active_attempt(self, user: RequestUser, test: TestView) -> AttemptRef:
        try:
            with self.SessionLocal() as db:
                a = (
                    db.query(Attempt)
                    .filter(Attempt.user_id == user.id, Attempt.test_id == test.id, Attempt.status == "active")
                    .order_by(Attempt.started_at.desc(), Attempt.id.desc())
                    .first()
                )
                if a:
                    return AttemptRef(id=a.id, started_at=a.started_at, time_remaining=a.time_remaining)

                a = Attempt(
                    user_id=user.id,
                    test_id=test.id,
                    status="active",
                    time_remaining=test.duration_minutes * 60,
                )
                db.add(a)
                db.commit()
                db.refresh(a)
                return AttemptRef(id=a.id, started_at=a.started_at, time_remaining=a.time_remaining, created=True)
        except SQLAlchemyError as e:
            logger.error("Failed to start attempt for user %s test %s: %s", user.key, test.id, e)
            raise LoadError("Failed to start the test attempt. Please try again.")

    @staticmethod
    def _other_submission(db, attempt_id: AttemptId, user: RequestUser, test_id: int) -> Optional[AttemptId]:
        try:
            row = (
                db.query(Attempt.id)
                .filter(
                    Attempt.user_id == user.id,
                    Attempt.test_id == test_id,
                    Attempt.status == "submitted",
                    Attempt.id != attempt_id,
                )
                .first()
            )
        except SQLAlchemyError as e:
            logger.error("Failed to check previous attempts for user %s test %s: %s", user.key, test_id, e)
            return None
        return row[0] if row else None

    def save_submission(
        self,
        attempt_id: AttemptId,
        user: RequestUser,
        test: TestView,
        questions: list[QuestionView],
        graded: GradedSubmission,
        time_remaining: int,
        submitted_at: datetime,
    ) -> None:
        with self.SessionLocal() as db:
            try:
                # compare-and-set: only an active attempt owned by this user can be submitted
                claimed = db.execute(
                    update(Attempt)
                    .where(Attempt.id == attempt_id, Attempt.user_id == user.id, Attempt.status == "active")
                    .values(
                        status="submitted",
                        submitted_at=submitted_at,
                        total_score=graded.total_score,
                        time_remaining=time_remaining,
                    )
                ).rowcount
                if claimed != 1:
                    db.rollback()
                    raise AlreadySubmitted("This attempt has already been submitted", results_location(attempt_id))

                existing = {
                    a.question_id: a
                    for a in db.query(Answer).filter(Answer.attempt_id == attempt_id).all()
                }
                for g in graded.answers:
                    row = existing.get(g.question_id)
                    if row is None:
                        row = Answer(attempt_id=attempt_id, question_id=g.question_id)
                        db.add(row)
                    row.chosen_option_id = g.chosen_option_id
                    row.is_correct = g.is_correct
                    row.score = g.score

                db.commit()
            except IntegrityError as e:
                db.rollback()
                other = self._other_submission(db, attempt_id, user, test.id)
                if other is None:
                    # e.g. a question was removed mid-test; the attempt is still active
                    logger.error("Failed to submit attempt %s: %s", attempt_id, e.orig)
                    raise SubmitError("Failed to submit test. Please try again.")
                # the partial unique index refused a second submitted attempt for (user, test)
                logger.warning("Duplicate submission for user %s test %s: %s", user.key, test.id, e.orig)
                raise AlreadySubmitted("You have already submitted this test", results_location(other))
            except SQLAlchemyError as e:
                db.rollback()
                logger.error("Failed to submit attempt %s: %s", attempt_id, e)
                raise SubmitError("Failed to submit test. Please try again.")


class DemoAttemptStore(SqlAttemptStore):
    """
    Reads tests from the database like everyone else, but keeps demo attempts
    and results in the local store only. Nothing is written to the database.
    """

    def __init__(self, SessionLocal, local_store: LocalStore):
        super().__init__(SessionLocal)
        self.local_store = local_store

    def find_submitted_attempt(self, user: RequestUser, test_id: int) -> Optional[AttemptId]:
        attempt = self.local_store.find_demo_attempt(user.key, test_id, "submitted")
        return attempt["id"] if attempt else None

    def find_or_create_active_attempt(self, user: RequestUser, test: TestView) -> AttemptRef:
        attempt = self.local_store.find_demo_attempt(user.key, test.id, "active")
        if attempt:
            return AttemptRef(
                id=attempt["id"],
                started_at=datetime.fromisoformat(attempt["started_at"]),
                time_remaining=attempt.get("time_remaining"),
            )

        started_at = utcnow()
        attempt = {
            "id": f"{DEMO_PREFIX}{secrets.token_hex(8)}",
            "user_key": user.key,
            "user_name": user.full_name,
            "test_id": test.id,
            "status": "active",
            "started_at": started_at.isoformat(),
            "time_remaining": test.duration_minutes * 60,
        }
        self.local_store.save_demo_attempt(attempt)
        return AttemptRef(id=attempt["id"], started_at=started_at, time_remaining=attempt["time_remaining"], created=True)

    def save_submission(
        self,
        attempt_id: AttemptId,
        user: RequestUser,
        test: TestView,
        questions: list[QuestionView],
        graded: GradedSubmission,
        time_remaining: int,
        submitted_at: datetime,
    ) -> None:
        attempt = self.local_store.get_demo_attempt(str(attempt_id))
        if attempt and attempt["status"] == "submitted":
            raise AlreadySubmitted("This attempt has already been submitted", results_location(attempt_id))

        by_question = {g.question_id: g for g in graded.answers}
        result = {
            "attempt_id": attempt_id,
            "user_key": user.key,
            "user_name": user.full_name,
            "test_id": test.id,
            "test_title": test.title,
            "category_name": test.category_name,
            "duration_minutes": test.duration_minutes,
            "started_at": attempt["started_at"] if attempt else None,
            "submitted_at": submitted_at.isoformat(),
            "time_remaining": time_remaining,
            "total_score": graded.total_score,
            "max_score": graded.max_score,
            "questions": [
                {
                    "id": q.id,
                    "text": q.text,
                    "points": q.points,
                    "options": [
                        {"id": o.id, "label": o.label, "is_correct": o.is_correct} for o in q.options
                    ],
                    # unanswered questions carry no answer entry, like the database
                    "answer": (
                        {
                            "chosen_option_id": by_question[q.id].chosen_option_id,
                            "is_correct": by_question[q.id].is_correct,
                            "score": by_question[q.id].score,
                        }
                        if q.id in by_question
                        else None
                    ),
                }
                for q in questions
            ],
        }
        try:
            self.local_store.save_demo_result(str(attempt_id), result)
        except OSError as e:
            logger.error("Failed to write demo result %s: %s", attempt_id, e)
            raise SubmitError("Failed to submit test. Please try again.")
