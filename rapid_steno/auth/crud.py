from sqlalchemy import update
from sqlalchemy.orm import Session

from ..shared.database import utcnow
from .models import SecretKey, User


class RegistrationError(ValueError):
    pass


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(User.email == email.strip().lower()).first()


def validate_student_login(db: Session, email: str) -> User | None:
    # only the email is checked; the name is taken as given
    user = get_user_by_email(db, email)
    if not user or user.role != "student" or not user.is_active:
        return None
    return user


def touch_login(db: Session, user: User) -> User:
    user.last_login_at = utcnow()
    db.commit()
    db.refresh(user)
    return user


def create_student(db: Session, email: str, full_name: str) -> User:
    user = User(email=email.strip().lower(), full_name=full_name.strip(), role="student")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def register_with_secret_key(db: Session, email: str, full_name: str, code: str) -> User:
    email = email.strip().lower()
    if get_user_by_email(db, email):
        raise RegistrationError("Email already registered")

    key = db.query(SecretKey).filter(SecretKey.code == code).first()
    if not key:
        raise RegistrationError("Invalid secret key")
    if key.is_used:
        raise RegistrationError("Secret key has already been used")
    if key.expires_at <= utcnow():
        raise RegistrationError("Secret key has expired")

    user = User(email=email, full_name=full_name.strip(), role="student")
    db.add(user)
    db.flush()

    # claim the key only if nobody else did in the meantime
    now = utcnow()
    claimed = db.execute(
        update(SecretKey)
        .where(SecretKey.id == key.id, SecretKey.is_used.is_(False))
        .values(is_used=True, used_by=user.id, used_at=now)
    ).rowcount
    if claimed != 1:
        db.rollback()
        raise RegistrationError("Secret key has already been used")

    user.last_login_at = now
    db.commit()
    db.refresh(user)
    return user
