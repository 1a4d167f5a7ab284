import logging
import secrets

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from ..config import Settings
from ..shared.context import DEMO_PREFIX, RequestUser, current_user
from ..shared.database import db_dependency
from ..shared.local_store import LocalStore
from ..shared.mailer import Mailer
from ..shared.security import create_access_token, verify_password
from .crud import (
    RegistrationError,
    register_with_secret_key,
    touch_login,
    validate_student_login,
)
from .models import User
from .otp import OtpStore
from .schemas import (
    AdminLoginIn,
    DemoLoginIn,
    MeOut,
    MessageOut,
    OtpSendIn,
    OtpVerifyIn,
    RegisterIn,
    StudentLoginIn,
    TokenOut,
)

logger = logging.getLogger("rapid-steno.auth")

OTP_SENT_MESSAGE = "If your email is registered, you will receive an OTP"


def _me(user: RequestUser) -> MeOut:
    return MeOut(
        id=user.id,
        key=user.key,
        email=user.email,
        full_name=user.full_name,
        role=user.role,
        is_demo=user.is_demo,
    )


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for") or request.headers.get("x-real-ip")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "127.0.0.1"


def build_router(SessionLocal, settings: Settings, local_store: LocalStore, mailer: Mailer, otp_store: OtpStore):
    router = APIRouter()
    get_db = db_dependency(SessionLocal)

    def issue(claims: dict) -> TokenOut:
        token = create_access_token(
            claims,
            settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
            minutes=settings.jwt_expire_minutes,
        )
        return TokenOut(access_token=token, user=_me(RequestUser.from_claims(claims)))

    def student_token(user: User, full_name: str | None = None) -> TokenOut:
        return issue({
            "sub": str(user.id),
            "email": user.email,
            "name": full_name or user.full_name,
            "role": "student",
        })

    @router.post("/login", response_model=TokenOut)
    def student_login(payload: StudentLoginIn, db: Session = Depends(get_db)):
        user = validate_student_login(db, payload.email)
        if not user:
            raise HTTPException(
                status.HTTP_403_FORBIDDEN,
                "Email not found in our system. Premium access required.",
            )
        touch_login(db, user)
        return student_token(user, payload.full_name.strip())

    @router.post("/register", response_model=TokenOut)
    def register(payload: RegisterIn, db: Session = Depends(get_db)):
        try:
            user = register_with_secret_key(db, payload.email, payload.full_name, payload.secret_key)
        except RegistrationError as e:
            raise HTTPException(400, str(e))
        logger.info("Registered student %s with a secret key", user.email)
        return student_token(user)

    @router.post("/otp/send", response_model=MessageOut)
    def otp_send(payload: OtpSendIn, background_tasks: BackgroundTasks, db: Session = Depends(get_db)):
        user = validate_student_login(db, payload.email)
        # same answer either way, so the endpoint does not reveal who is registered
        if user:
            otp = otp_store.issue(user.email)
            background_tasks.add_task(mailer.send_otp, user.email, otp)
        return MessageOut(success=True, message=OTP_SENT_MESSAGE)

    @router.post("/otp/verify", response_model=TokenOut)
    def otp_verify(
        payload: OtpVerifyIn,
        request: Request,
        background_tasks: BackgroundTasks,
        db: Session = Depends(get_db),
    ):
        valid, message = otp_store.verify(payload.email, payload.otp)
        if not valid:
            raise HTTPException(400, message)

        user = validate_student_login(db, payload.email)
        if not user:
            raise HTTPException(status.HTTP_403_FORBIDDEN, "Account is not active")
        touch_login(db, user)

        ip_address = _client_ip(request)
        location = "Local Development" if ip_address in ("127.0.0.1", "::1", "testclient") else "Unknown"
        background_tasks.add_task(
            mailer.send_login_notification,
            user.email,
            user.full_name,
            ip_address,
            request.headers.get("user-agent") or "Unknown Device",
            location,
        )
        return student_token(user)

    @router.post("/demo", response_model=TokenOut)
    def demo_login(payload: DemoLoginIn):
        demo_id = f"{DEMO_PREFIX}{secrets.token_hex(8)}"
        name = payload.name.strip()
        local_store.record_demo_user(demo_id, name)
        logger.info("Demo visit %s (%s)", demo_id, name)
        return issue({"sub": demo_id, "name": name, "role": "student", "demo": True})

    @router.post("/admin/login", response_model=TokenOut)
    def admin_login(payload: AdminLoginIn):
        ok = (
            payload.email.lower() == settings.admin_email
            and bool(settings.admin_passcode)
            and secrets.compare_digest(payload.passcode, settings.admin_passcode)
            and verify_password(payload.password, settings.admin_password_hash)
        )
        if not ok:
            logger.warning("Failed admin login for %s", payload.email)
            raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid admin credentials or passcode")
        return issue({"sub": "admin", "email": settings.admin_email, "name": "Administrator", "role": "admin"})

    @router.get("/me", response_model=MeOut)
    def me(user: RequestUser = Depends(current_user)):
        return _me(user)

    return router
