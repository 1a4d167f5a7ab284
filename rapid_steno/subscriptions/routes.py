from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..auth.models import User
from ..shared.context import RequestUser, current_user, require_admin
from ..shared.database import db_dependency
from .access import get_user_access
from .crud import (
    create_or_reactivate,
    delete_subscription,
    list_plans,
    list_subscriptions,
    time_left_label,
    toggle_subscription,
    update_subscription,
)
from .models import UserSubscription
from .schemas import MyAccessOut, PlanOut, SubscriptionCreateIn, SubscriptionOut, SubscriptionUpdateIn


def _to_out(sub: UserSubscription, user: User) -> SubscriptionOut:
    return SubscriptionOut(
        id=sub.id,
        user_id=sub.user_id,
        user_email=user.email,
        user_name=user.full_name,
        plan_name=sub.plan.name,
        plan_display_name=sub.plan.display_name,
        status=sub.status,
        is_active=sub.is_active,
        expires_at=sub.expires_at,
        time_left=time_left_label(sub.expires_at),
        deactivated_at=sub.deactivated_at,
        deactivation_reason=sub.deactivation_reason,
        created_at=sub.created_at,
    )


def build_router(SessionLocal):
    router = APIRouter()
    get_db = db_dependency(SessionLocal)

    @router.get("/plans", response_model=list[PlanOut])
    def plans(db: Session = Depends(get_db), user: RequestUser = Depends(current_user)):
        return [PlanOut(id=p.id, name=p.name, display_name=p.display_name, features=p.features or []) for p in list_plans(db)]

    @router.get("/me", response_model=MyAccessOut)
    def my_access(db: Session = Depends(get_db), user: RequestUser = Depends(current_user)):
        access = get_user_access(db, user)
        return MyAccessOut(has_ahc_plan=access.has_ahc_plan, has_gold_plan=access.has_gold_plan)

    # Admin endpoints
    @router.get("/", response_model=list[SubscriptionOut])
    def list_all(db: Session = Depends(get_db), admin: RequestUser = Depends(require_admin)):
        return [_to_out(sub, user) for sub, user in list_subscriptions(db)]

    @router.post("/", response_model=SubscriptionOut)
    def create(payload: SubscriptionCreateIn, db: Session = Depends(get_db), admin: RequestUser = Depends(require_admin)):
        try:
            sub, _ = create_or_reactivate(
                db,
                payload.email,
                payload.plan_name,
                full_name=payload.full_name,
                create_user_if_missing=payload.create_user_if_missing,
                days=payload.days,
            )
        except LookupError as e:
            raise HTTPException(404, str(e))
        user = db.get(User, sub.user_id)
        return _to_out(sub, user)

    @router.put("/{subscription_id}", response_model=SubscriptionOut)
    def update(
        subscription_id: int,
        payload: SubscriptionUpdateIn,
        db: Session = Depends(get_db),
        admin: RequestUser = Depends(require_admin),
    ):
        sub = update_subscription(db, subscription_id, payload.model_dump(exclude_unset=True))
        if not sub:
            raise HTTPException(404, "Subscription not found")
        return _to_out(sub, db.get(User, sub.user_id))

    @router.post("/{subscription_id}/toggle", response_model=SubscriptionOut)
    def toggle(subscription_id: int, db: Session = Depends(get_db), admin: RequestUser = Depends(require_admin)):
        sub = toggle_subscription(db, subscription_id)
        if not sub:
            raise HTTPException(404, "Subscription not found")
        return _to_out(sub, db.get(User, sub.user_id))

    @router.delete("/{subscription_id}")
    def delete(
        subscription_id: int,
        delete_user: bool = False,
        db: Session = Depends(get_db),
        admin: RequestUser = Depends(require_admin),
    ):
        if not delete_subscription(db, subscription_id, delete_user=delete_user):
            raise HTTPException(404, "Subscription not found")
        return {"deleted": True}

    return router
