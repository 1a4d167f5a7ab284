"""
Periodic housekeeping, meant to be run daily from cron:

    rapid-steno-deactivate

Deactivates students who have not logged in for INACTIVE_DAYS and expires
subscriptions whose end date has passed, then records the run in
admin_activity_log.
"""
import logging
from datetime import datetime, timedelta

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..auth.models import User
from ..config import load_settings
from ..shared.database import Base, make_engine, make_session_factory, utcnow
from ..subscriptions.models import UserSubscription
from .crud import log_activity

logger = logging.getLogger("rapid-steno.maintenance")

INACTIVE_DAYS = 90


def deactivate_inactive_students(db: Session, now: datetime | None = None, days: int = INACTIVE_DAYS) -> int:
    cutoff = (now or utcnow()) - timedelta(days=days)
    last_seen = func.coalesce(User.last_login_at, User.created_at)
    users = (
        db.query(User)
        .filter(User.role == "student", User.is_active.is_(True), last_seen < cutoff)
        .all()
    )
    for u in users:
        u.is_active = False
    db.commit()
    return len(users)


def expire_lapsed_subscriptions(db: Session, now: datetime | None = None) -> int:
    now = now or utcnow()
    subs = (
        db.query(UserSubscription)
        .filter(
            UserSubscription.expires_at.is_not(None),
            UserSubscription.expires_at <= now,
            or_(UserSubscription.status == "active", UserSubscription.is_active.is_(True)),
        )
        .all()
    )
    for s in subs:
        s.status = "expired"
        s.is_active = False
        s.deactivated_at = now
        s.deactivation_reason = "Subscription expired"
    db.commit()
    return len(subs)


def run(db: Session, now: datetime | None = None) -> dict[str, int]:
    details = {
        "deactivated_count": deactivate_inactive_students(db, now),
        "expired_subscriptions": expire_lapsed_subscriptions(db, now),
    }
    log_activity(db, "auto_deactivate_users", details)
    return details


def main() -> int:
    settings = load_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    import rapid_steno.models  # noqa: F401  (registers every table)

    engine = make_engine(settings.database_url)
    Base.metadata.create_all(bind=engine)
    SessionLocal = make_session_factory(engine)

    logger.info("Starting automatic user deactivation")
    with SessionLocal() as db:
        details = run(db)
    logger.info(
        "Deactivated %s users, expired %s subscriptions",
        details["deactivated_count"],
        details["expired_subscriptions"],
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
