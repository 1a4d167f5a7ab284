from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from ..auth.models import User
from ..shared.database import utcnow
from .models import Plan, UserSubscription

SUBSCRIPTION_DAYS = 90

DEFAULT_PLANS = (
    ("gold", "Gold Plan", ["All tests and materials except Allahabad High Court content"]),
    ("ahc", "AHC Plan", ["Everything in Gold", "Allahabad High Court tests and materials"]),
)


def ensure_default_plans(db: Session) -> None:
    existing = {p.name for p in db.query(Plan).all()}
    for name, display_name, features in DEFAULT_PLANS:
        if name not in existing:
            db.add(Plan(name=name, display_name=display_name, features=features))
    db.commit()


def list_plans(db: Session) -> list[Plan]:
    return db.query(Plan).order_by(Plan.id.asc()).all()


def get_plan_by_name(db: Session, name: str) -> Plan | None:
    return db.query(Plan).filter(Plan.name == name.strip().lower()).first()


def time_left_label(expires_at: datetime | None, now: datetime | None = None) -> str:
    if expires_at is None:
        return "No expiry"
    now = now or utcnow()
    diff = expires_at - now
    if diff.total_seconds() <= 0:
        return "Expired"

    days = diff.days
    hours = diff.seconds // 3600
    minutes = (diff.seconds % 3600) // 60
    if days > 7:
        return f"{days} days left"
    if days > 0:
        return f"{days}d {hours}h left"
    return f"{hours}h {minutes}m left"


def list_subscriptions(db: Session) -> list[tuple[UserSubscription, User]]:
    return (
        db.query(UserSubscription, User)
        .join(User, User.id == UserSubscription.user_id)
        .order_by(UserSubscription.created_at.desc())
        .all()
    )


def get_subscription(db: Session, subscription_id: int) -> UserSubscription | None:
    return db.query(UserSubscription).filter(UserSubscription.id == subscription_id).first()


def _default_name(email: str) -> str:
    local = email.split("@")[0]
    return "".join(ch for ch in local if ch.isalpha() or ch.isspace()) or local


def create_or_reactivate(
    db: Session,
    email: str,
    plan_name: str,
    full_name: str = "",
    create_user_if_missing: bool = False,
    days: int = SUBSCRIPTION_DAYS,
) -> tuple[UserSubscription, bool]:
    """
    Give the user at `email` an active subscription to `plan_name` for `days`.
    An existing subscription to the same plan is reactivated instead of duplicated.
    Returns (subscription, created).
    """
    email = email.strip().lower()
    plan = get_plan_by_name(db, plan_name)
    if not plan:
        raise LookupError("Plan not found")

    user = db.query(User).filter(User.email == email).first()
    if not user:
        if not create_user_if_missing:
            raise LookupError("No user exists with that email")
        user = User(email=email, full_name=full_name.strip() or _default_name(email), role="student")
        db.add(user)
        db.flush()
    elif user.role != "student":
        user.role = "student"

    expires_at = utcnow() + timedelta(days=days)
    sub = (
        db.query(UserSubscription)
        .filter(UserSubscription.user_id == user.id, UserSubscription.plan_id == plan.id)
        .first()
    )
    created = sub is None
    if created:
        sub = UserSubscription(user_id=user.id, plan_id=plan.id)
        db.add(sub)

    sub.status = "active"
    sub.is_active = True
    sub.expires_at = expires_at
    sub.deactivated_at = None
    sub.deactivation_reason = None

    db.commit()
    db.refresh(sub)
    return sub, created


def update_subscription(db: Session, subscription_id: int, payload: dict) -> UserSubscription | None:
    sub = get_subscription(db, subscription_id)
    if not sub:
        return None

    for field, value in payload.items():
        if hasattr(sub, field):
            setattr(sub, field, value)

    if payload.get("is_active") is False and sub.deactivated_at is None:
        sub.deactivated_at = utcnow()
    if payload.get("is_active") is True:
        sub.deactivated_at = None
        sub.deactivation_reason = None

    db.commit()
    db.refresh(sub)
    return sub


def toggle_subscription(db: Session, subscription_id: int) -> UserSubscription | None:
    sub = get_subscription(db, subscription_id)
    if not sub:
        return None

    sub.is_active = not sub.is_active
    if sub.is_active:
        sub.status = "active"
        sub.deactivated_at = None
        sub.deactivation_reason = None
    else:
        sub.status = "cancelled"
        sub.deactivated_at = utcnow()
        sub.deactivation_reason = "Manual deactivation by admin"

    db.commit()
    db.refresh(sub)
    return sub


def delete_subscription(db: Session, subscription_id: int, delete_user: bool = False) -> bool:
    sub = get_subscription(db, subscription_id)
    if not sub:
        return False

    user_id = sub.user_id
    db.delete(sub)
    if delete_user:
        user = db.query(User).filter(User.id == user_id).first()
        if user:
            db.delete(user)
    db.commit()
    return True
