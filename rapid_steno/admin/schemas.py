from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class StudentCreateIn(BaseModel):
    email: EmailStr
    full_name: str = Field(min_length=1, max_length=255)


class StudentUpdateIn(BaseModel):
    email: Optional[EmailStr] = None
    full_name: Optional[str] = Field(default=None, max_length=255)
    is_active: Optional[bool] = None


class StudentOut(BaseModel):
    id: int
    email: str
    full_name: str
    is_active: bool
    last_login_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class StudentImportOut(BaseModel):
    created: list[str]
    skipped: list[str]
    errors: list[str]


class AdminResultOut(BaseModel):
    attempt_id: int
    user_id: int
    user_name: str
    user_email: str
    test_id: int
    test_title: str
    category_name: str
    submitted_at: Optional[datetime] = None
    score: float
    max_score: float
    percentage: float
    grade: str
    correct: int
    incorrect: int
    unanswered: int
    time_spent_seconds: int


class SecretKeyOut(BaseModel):
    id: int
    code: str
    status: str
    expires_at: datetime
    created_at: datetime
    used_at: Optional[datetime] = None
    used_by_name: Optional[str] = None
    used_by_email: Optional[str] = None


class SecretKeyGenerateIn(BaseModel):
    count: int = Field(default=10, ge=1, le=500)
    days: int = Field(default=30, ge=1, le=3650)
