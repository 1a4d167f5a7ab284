from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field


class PlanOut(BaseModel):
    id: int
    name: str
    display_name: str
    features: list = Field(default_factory=list)


class SubscriptionOut(BaseModel):
    id: int
    user_id: int
    user_email: str
    user_name: str
    plan_name: str
    plan_display_name: str
    status: str
    is_active: bool
    expires_at: Optional[datetime] = None
    time_left: str
    deactivated_at: Optional[datetime] = None
    deactivation_reason: Optional[str] = None
    created_at: datetime


class SubscriptionCreateIn(BaseModel):
    email: EmailStr
    plan_name: Literal["gold", "ahc"]
    full_name: str = ""
    create_user_if_missing: bool = False
    days: int = Field(default=90, ge=1, le=3650)


class SubscriptionUpdateIn(BaseModel):
    status: Optional[Literal["active", "expired", "cancelled"]] = None
    expires_at: Optional[datetime] = None
    is_active: Optional[bool] = None


class MyAccessOut(BaseModel):
    has_ahc_plan: bool
    has_gold_plan: bool
