from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from ..config import Settings
from ..results.crud import AttemptSummary
from ..shared.context import RequestUser, current_user, require_admin, require_registered_student
from ..shared.database import db_dependency
from ..shared.local_store import LocalStore
from .crud import (
    admin_overview,
    build_leaderboard,
    dashboard_counts,
    demo_analytics,
    demo_users_csv,
    student_analytics,
)
from .schemas import (
    AdminAnalyticsOut,
    ClearedOut,
    DashboardOut,
    DemoAnalyticsOut,
    LeaderboardOut,
    StudentAnalyticsOut,
    SubmissionRowOut,
)


def _submission_row(s: AttemptSummary) -> SubmissionRowOut:
    return SubmissionRowOut(
        attempt_id=s.attempt_id,
        user_name=s.user_name,
        user_email=s.user_email,
        test_title=s.test_title,
        submitted_at=s.submitted_at,
        score=s.total_score,
        max_score=s.max_score,
        percentage=s.percentage,
    )


def build_router(SessionLocal, settings: Settings, local_store: LocalStore):
    router = APIRouter()
    get_db = db_dependency(SessionLocal)

    @router.get("/me", response_model=StudentAnalyticsOut)
    def my_analytics(
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        db: Session = Depends(get_db),
        user: RequestUser = Depends(require_registered_student),
    ):
        return student_analytics(db, user.id, start=start, end=end)

    @router.get("/leaderboard", response_model=LeaderboardOut)
    def leaderboard(
        placeholders: Optional[bool] = None,
        db: Session = Depends(get_db),
        user: RequestUser = Depends(current_user),
    ):
        include = settings.leaderboard_placeholders if placeholders is None else placeholders
        return build_leaderboard(db, include_placeholders=include, current_user_id=user.id)

    # Admin endpoints
    @router.get("/admin/overview", response_model=AdminAnalyticsOut)
    def overview(db: Session = Depends(get_db), admin: RequestUser = Depends(require_admin)):
        data = admin_overview(db)
        data["top_scores"] = [_submission_row(s) for s in data["top_scores"]]
        data["recent_submissions"] = [_submission_row(s) for s in data["recent_submissions"]]
        return data

    @router.get("/admin/dashboard", response_model=DashboardOut)
    def dashboard(db: Session = Depends(get_db), admin: RequestUser = Depends(require_admin)):
        return dashboard_counts(db)

    @router.get("/admin/demo-users", response_model=DemoAnalyticsOut)
    def demo_users(admin: RequestUser = Depends(require_admin)):
        return demo_analytics(local_store)

    @router.get("/admin/demo-users/export")
    def export_demo_users(admin: RequestUser = Depends(require_admin)):
        filename = f"demo-users-{datetime.now().strftime('%Y-%m-%d')}.csv"
        return Response(
            content=demo_users_csv(local_store),
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    @router.delete("/admin/demo-users", response_model=ClearedOut)
    def clear_demo_users(admin: RequestUser = Depends(require_admin)):
        return ClearedOut(cleared=local_store.clear_demo_users())

    return router
