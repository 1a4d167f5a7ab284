from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from fastapi import HTTPException, Request, status

from .errors import RedirectRequired

DEMO_PREFIX = "demo-"


@dataclass(frozen=True)
class RequestUser:
    """Who is making the request, built from verified token claims."""

    key: str
    role: str
    email: str = ""
    full_name: str = ""
    is_demo: bool = False

    @property
    def id(self) -> int | None:
        # demo visitors and the configured admin have no users row
        if self.is_demo or not self.key.isdigit():
            return None
        return int(self.key)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> "RequestUser":
        sub = str(claims.get("sub") or "").strip()
        return cls(
            key=sub,
            role=str(claims.get("role") or "student"),
            email=str(claims.get("email") or ""),
            full_name=str(claims.get("name") or ""),
            is_demo=bool(claims.get("demo")) or sub.startswith(DEMO_PREFIX),
        )


def current_user(request: Request) -> RequestUser:
    claims = getattr(request.state, "user", None)
    if not isinstance(claims, dict) or not claims.get("sub"):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return RequestUser.from_claims(claims)


def require_admin(request: Request) -> RequestUser:
    user = current_user(request)
    if not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user


def require_student(request: Request) -> RequestUser:
    user = current_user(request)
    if user.role != "student":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Student access required")
    return user


def require_registered_student(request: Request) -> RequestUser:
    user = require_student(request)
    if user.is_demo:
        raise RedirectRequired("/catalog/tests?demo=true", "Demo users cannot open account pages")
    return user
