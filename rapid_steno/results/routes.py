from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session

from ..analytics.crud import category_breakdown
from ..auth.models import User
from ..exam.models import Attempt
from ..exam.scoring import letter_grade, percentage, performance_message
from ..shared.context import RequestUser, current_user, require_admin, require_registered_student
from ..shared.database import db_dependency
from ..shared.local_store import LocalStore
from ..shared.rendering import render
from .crud import (
    AttemptSummary,
    account_stats,
    answers_from_attempt,
    attempt_summaries,
    get_attempt_detail,
    questions_from_test,
    review_questions,
)
from .schemas import AttemptHistoryOut, MyAttemptsOut, QuestionReviewOut, ResultOut

RECENT_ACTIVITY = 5


def _time_taken(duration_minutes: int, time_remaining: int | None) -> int:
    total = duration_minutes * 60
    if time_remaining is None:
        return total
    return max(0, total - time_remaining)


def _result(base: dict[str, Any], review: list[dict], score: float, max_score: float) -> ResultOut:
    correct = sum(1 for q in review if q["status"] == "correct")
    incorrect = sum(1 for q in review if q["status"] == "incorrect")
    pct = percentage(score, max_score)
    return ResultOut(
        **base,
        score=score,
        max_score=max_score,
        correct=correct,
        incorrect=incorrect,
        unanswered=len(review) - correct - incorrect,
        percentage=pct,
        grade=letter_grade(pct),
        message=performance_message(pct),
        questions=[QuestionReviewOut(**q) for q in review],
    )


def _attempt_result(attempt: Attempt, user_name: str) -> ResultOut:
    review = review_questions(questions_from_test(attempt.test), answers_from_attempt(attempt))
    base = {
        "attempt_id": attempt.id,
        "user_name": user_name,
        "test_id": attempt.test_id,
        "test_title": attempt.test.title,
        "category_name": attempt.test.category_name,
        "started_at": attempt.started_at,
        "submitted_at": attempt.submitted_at,
        "time_taken_seconds": _time_taken(attempt.test.duration_minutes, attempt.time_remaining),
        "time_remaining": attempt.time_remaining,
    }
    return _result(base, review, attempt.total_score or 0, sum(q["points"] for q in review))


def _demo_result(data: dict[str, Any]) -> ResultOut:
    answers = {q["id"]: q["answer"] for q in data["questions"] if q.get("answer")}
    review = review_questions(data["questions"], answers)
    base = {
        "attempt_id": data["attempt_id"],
        "is_demo": True,
        "user_name": data.get("user_name") or "Demo User",
        "test_id": data["test_id"],
        "test_title": data["test_title"],
        "category_name": data.get("category_name") or "",
        "started_at": data.get("started_at"),
        "submitted_at": data.get("submitted_at"),
        "time_taken_seconds": _time_taken(data["duration_minutes"], data.get("time_remaining")),
        "time_remaining": data.get("time_remaining"),
    }
    return _result(base, review, data["total_score"], data["max_score"])


def _mistakes(result: ResultOut) -> ResultOut:
    return result.model_copy(update={"questions": [q for q in result.questions if q.status == "incorrect"]})


def _history(s: AttemptSummary) -> AttemptHistoryOut:
    return AttemptHistoryOut(
        attempt_id=s.attempt_id,
        test_id=s.test_id,
        test_title=s.test_title,
        category_name=s.category_name,
        status=s.status,
        started_at=s.started_at,
        submitted_at=s.submitted_at,
        score=s.total_score,
        max_score=s.max_score,
        percentage=s.percentage,
        grade=s.grade,
        correct=s.correct,
        incorrect=s.incorrect,
        unanswered=s.unanswered,
    )


def build_router(SessionLocal, local_store: LocalStore):
    router = APIRouter()
    get_db = db_dependency(SessionLocal)

    def load_result(db: Session, attempt_id: int, user: RequestUser) -> ResultOut:
        attempt = get_attempt_detail(db, attempt_id)
        if not attempt:
            raise HTTPException(404, "Attempt not found")
        if not user.is_admin and attempt.user_id != user.id:
            raise HTTPException(403, "Not your attempt")
        if attempt.status != "submitted":
            raise HTTPException(409, "Attempt has not been submitted yet")
        owner = db.get(User, attempt.user_id)
        return _attempt_result(attempt, owner.full_name if owner else "")

    def load_demo_result(attempt_id: str, user: RequestUser) -> ResultOut:
        data = local_store.get_demo_result(attempt_id)
        if not data:
            raise HTTPException(404, "Result not found")
        if not user.is_admin and data.get("user_key") != user.key:
            raise HTTPException(403, "Not your attempt")
        return _demo_result(data)

    def report_page(db: Session, owner: User) -> str:
        summaries = attempt_summaries(db, user_id=owner.id)
        stats = account_stats(summaries)
        report = {
            "user_name": owner.full_name or owner.email,
            "user_email": owner.email,
            "generated_at": datetime.now(),
            "total_tests": stats["completed_tests"],
            "average_percentage": stats["average_percentage"],
            "best_percentage": stats["best_percentage"],
            "total_time_minutes": stats["total_time_minutes"],
            "categories": category_breakdown(summaries),
            "attempts": summaries,
        }
        return render("report.html", report=report)

    @router.get("/attempts/{attempt_id}", response_model=ResultOut)
    def attempt_result(attempt_id: int, db: Session = Depends(get_db), user: RequestUser = Depends(current_user)):
        return load_result(db, attempt_id, user)

    @router.get("/attempts/{attempt_id}/mistakes", response_model=ResultOut)
    def attempt_mistakes(attempt_id: int, db: Session = Depends(get_db), user: RequestUser = Depends(current_user)):
        return _mistakes(load_result(db, attempt_id, user))

    @router.get("/attempts/{attempt_id}/revision", response_model=ResultOut)
    def attempt_revision(attempt_id: int, db: Session = Depends(get_db), user: RequestUser = Depends(current_user)):
        return load_result(db, attempt_id, user)

    @router.get("/demo/{attempt_id}", response_model=ResultOut)
    def demo_result(attempt_id: str, user: RequestUser = Depends(current_user)):
        return load_demo_result(attempt_id, user)

    @router.get("/demo/{attempt_id}/mistakes", response_model=ResultOut)
    def demo_mistakes(attempt_id: str, user: RequestUser = Depends(current_user)):
        return _mistakes(load_demo_result(attempt_id, user))

    @router.get("/demo/{attempt_id}/revision", response_model=ResultOut)
    def demo_revision(attempt_id: str, user: RequestUser = Depends(current_user)):
        return load_demo_result(attempt_id, user)

    @router.get("/me", response_model=MyAttemptsOut)
    def my_attempts(db: Session = Depends(get_db), user: RequestUser = Depends(require_registered_student)):
        summaries = attempt_summaries(db, user_id=user.id, status=None)
        history = [_history(s) for s in summaries]
        return MyAttemptsOut(
            stats=account_stats(summaries),
            recent_activity=history[:RECENT_ACTIVITY],
            attempts=history,
        )

    @router.get("/report", response_class=HTMLResponse)
    def my_report(db: Session = Depends(get_db), user: RequestUser = Depends(require_registered_student)):
        owner = db.get(User, user.id)
        if not owner:
            raise HTTPException(404, "User not found")
        return HTMLResponse(report_page(db, owner))

    @router.get("/report/{user_id}", response_class=HTMLResponse)
    def student_report(user_id: int, db: Session = Depends(get_db), admin: RequestUser = Depends(require_admin)):
        owner = db.get(User, user_id)
        if not owner:
            raise HTTPException(404, "User not found")
        return HTMLResponse(report_page(db, owner))

    return router
