from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import case, func
from sqlalchemy.orm import Session, selectinload

from ..auth.models import User
from ..catalog.models import Question, Test, TestCategory
from ..exam.models import Answer, Attempt
from ..exam.scoring import letter_grade, percentage


@dataclass
class AttemptSummary:
    attempt_id: int
    user_id: int
    user_name: str
    user_email: str
    test_id: int
    test_title: str
    category_name: str
    status: str
    started_at: datetime
    submitted_at: Optional[datetime]
    total_score: float
    max_score: float
    question_count: int
    answered: int
    correct: int
    duration_minutes: int
    time_remaining: Optional[int]

    @property
    def incorrect(self) -> int:
        return self.answered - self.correct

    @property
    def unanswered(self) -> int:
        return max(0, self.question_count - self.answered)

    @property
    def percentage(self) -> float:
        return percentage(self.total_score, self.max_score)

    @property
    def grade(self) -> str:
        return letter_grade(self.percentage)

    @property
    def time_spent_seconds(self) -> int:
        total = self.duration_minutes * 60
        if self.time_remaining is None:
            return total
        return max(0, total - self.time_remaining)


def attempt_summaries(
    db: Session,
    user_id: int | None = None,
    test_id: int | None = None,
    status: str | None = "submitted",
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[AttemptSummary]:
    """Attempts joined with their test, category, user, max score and answer counts, newest first."""
    test_totals = (
        db.query(
            Question.test_id.label("test_id"),
            func.coalesce(func.sum(Question.points), 0).label("max_score"),
            func.count(Question.id).label("question_count"),
        )
        .group_by(Question.test_id)
        .subquery()
    )
    answer_totals = (
        db.query(
            Answer.attempt_id.label("attempt_id"),
            func.count(Answer.id).label("answered"),
            func.coalesce(func.sum(case((Answer.is_correct.is_(True), 1), else_=0)), 0).label("correct"),
        )
        .group_by(Answer.attempt_id)
        .subquery()
    )

    q = (
        db.query(
            Attempt,
            Test.title,
            Test.duration_minutes,
            TestCategory.name,
            User.full_name,
            User.email,
            test_totals.c.max_score,
            test_totals.c.question_count,
            answer_totals.c.answered,
            answer_totals.c.correct,
        )
        .join(Test, Test.id == Attempt.test_id)
        .outerjoin(TestCategory, TestCategory.id == Test.category_id)
        .outerjoin(User, User.id == Attempt.user_id)
        .outerjoin(test_totals, test_totals.c.test_id == Test.id)
        .outerjoin(answer_totals, answer_totals.c.attempt_id == Attempt.id)
    )
    if user_id is not None:
        q = q.filter(Attempt.user_id == user_id)
    if test_id is not None:
        q = q.filter(Attempt.test_id == test_id)
    if status is not None:
        q = q.filter(Attempt.status == status)
    if start is not None:
        q = q.filter(Attempt.submitted_at >= start)
    if end is not None:
        q = q.filter(Attempt.submitted_at <= end)

    rows = q.order_by(func.coalesce(Attempt.submitted_at, Attempt.started_at).desc(), Attempt.id.desc()).all()
    return [
        AttemptSummary(
            attempt_id=a.id,
            user_id=a.user_id,
            user_name=full_name or "",
            user_email=email or "",
            test_id=a.test_id,
            test_title=title,
            category_name=category_name or "",
            status=a.status,
            started_at=a.started_at,
            submitted_at=a.submitted_at,
            total_score=a.total_score or 0,
            max_score=float(max_score or 0),
            question_count=int(question_count or 0),
            answered=int(answered or 0),
            correct=int(correct or 0),
            duration_minutes=duration,
            time_remaining=a.time_remaining,
        )
        for a, title, duration, category_name, full_name, email, max_score, question_count, answered, correct in rows
    ]


def account_stats(summaries: list[AttemptSummary]) -> dict[str, Any]:
    completed = [s for s in summaries if s.status == "submitted"]
    percentages = [s.percentage for s in completed]
    return {
        "total_tests": len(summaries),
        "completed_tests": len(completed),
        "average_percentage": round(sum(percentages) / len(percentages), 2) if percentages else 0.0,
        "best_percentage": max(percentages) if percentages else 0.0,
        "total_time_minutes": sum(s.time_spent_seconds for s in completed) // 60,
    }


def get_attempt_detail(db: Session, attempt_id: int) -> Attempt | None:
    return (
        db.query(Attempt)
        .options(
            selectinload(Attempt.test).selectinload(Test.questions).selectinload(Question.options),
            selectinload(Attempt.test).selectinload(Test.category),
            selectinload(Attempt.answers),
        )
        .filter(Attempt.id == attempt_id)
        .first()
    )


def delete_attempt(db: Session, attempt_id: int) -> bool:
    a = db.query(Attempt).filter(Attempt.id == attempt_id).first()
    if not a:
        return False
    db.delete(a)
    db.commit()
    return True


# Review building works on plain dicts so database attempts and
# locally stored demo results go through the same code.

def questions_from_test(test: Test) -> list[dict]:
    return [
        {
            "id": q.id,
            "text": q.text,
            "points": q.points,
            "options": [{"id": o.id, "label": o.label, "is_correct": o.is_correct} for o in q.options],
        }
        for q in test.questions
    ]


def answers_from_attempt(attempt: Attempt) -> dict[int, dict]:
    return {
        a.question_id: {"chosen_option_id": a.chosen_option_id, "is_correct": a.is_correct, "score": a.score}
        for a in attempt.answers
    }


def review_questions(questions: list[dict], answers: dict[int, dict]) -> list[dict]:
    out = []
    for q in questions:
        answer = answers.get(q["id"])
        correct = next((o["id"] for o in q["options"] if o["is_correct"]), None)
        if answer is None:
            # no stored row means the question was left blank
            status, chosen, score = "unanswered", None, 0
        else:
            chosen = answer["chosen_option_id"]
            status = "correct" if answer["is_correct"] else "incorrect"
            score = answer["score"]
        out.append({
            "id": q["id"],
            "text": q["text"],
            "points": q["points"],
            "options": q["options"],
            "chosen_option_id": chosen,
            "correct_option_id": correct,
            "status": status,
            "score": score,
        })
    return out
