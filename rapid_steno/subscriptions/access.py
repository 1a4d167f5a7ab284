import logging
from dataclasses import dataclass

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..shared.context import RequestUser
from ..shared.database import utcnow
from .models import Plan, UserSubscription

logger = logging.getLogger("rapid-steno.access")

SAMPLE_KEYWORDS = ("sample", "demo")
AHC_KEYWORDS = ("allahabad", "ahc", "allahabad high court")


@dataclass(frozen=True)
class UserAccess:
    has_ahc_plan: bool = False
    has_gold_plan: bool = False


NO_ACCESS = UserAccess()
FULL_ACCESS = UserAccess(has_ahc_plan=True, has_gold_plan=True)


def is_sample_category(category_name: str) -> bool:
    name = (category_name or "").lower()
    return any(k in name for k in SAMPLE_KEYWORDS)


def is_ahc_content(category_name: str) -> bool:
    if is_sample_category(category_name):
        return False
    name = (category_name or "").lower()
    return any(k in name for k in AHC_KEYWORDS)


def can_access_category(access: UserAccess, category_name: str) -> bool:
    if is_sample_category(category_name):
        return True
    if access.has_ahc_plan:
        return True
    return access.has_gold_plan and not is_ahc_content(category_name)


def upgrade_message(category_name: str) -> str:
    if is_ahc_content(category_name):
        return (
            f"This content is part of the Allahabad High Court (AHC) Plan. Upgrade to AHC Plan "
            f"to access all {category_name} materials and tests, or contact admin for specific access."
        )
    return "Upgrade to Gold Plan or AHC Plan to access this content."


def active_plan_names(db: Session, user_id: int) -> set[str]:
    now = utcnow()
    rows = (
        db.query(Plan.name)
        .join(UserSubscription, UserSubscription.plan_id == Plan.id)
        .filter(
            UserSubscription.user_id == user_id,
            UserSubscription.status == "active",
            UserSubscription.is_active.is_(True),
            or_(UserSubscription.expires_at.is_(None), UserSubscription.expires_at > now),
        )
        .all()
    )
    return {name for (name,) in rows}


def get_user_access(db: Session, user: RequestUser | None) -> UserAccess:
    if user is None:
        return NO_ACCESS
    if user.is_admin:
        return FULL_ACCESS
    if user.id is None:
        # demo visitors only ever see sample content
        return NO_ACCESS

    plans = active_plan_names(db, user.id)
    logger.debug("Access check for user %s: plans=%s", user.id, sorted(plans))
    return UserAccess(has_ahc_plan="ahc" in plans, has_gold_plan="gold" in plans)
