import io
import secrets
import string
from dataclasses import dataclass, field
from datetime import datetime, timedelta

import pandas as pd
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..auth.models import SecretKey, User
from ..results.crud import AttemptSummary
from ..shared.database import utcnow
from .models import AdminActivityLog

KEY_ALPHABET = string.ascii_uppercase + string.digits
KEY_LENGTH = 12
DEFAULT_KEY_COUNT = 10
DEFAULT_KEY_DAYS = 30


def log_activity(db: Session, action: str, details: dict, performed_by: str = "system") -> AdminActivityLog:
    entry = AdminActivityLog(action=action, details=details, performed_by=performed_by)
    db.add(entry)
    db.commit()
    return entry


# Students

def list_students(db: Session, search: str = "") -> list[User]:
    q = db.query(User).filter(User.role == "student")
    term = search.strip()
    if term:
        like = f"%{term}%"
        q = q.filter(or_(User.email.ilike(like), User.full_name.ilike(like)))
    return q.order_by(User.created_at.desc(), User.id.desc()).all()


def get_student(db: Session, user_id: int) -> User | None:
    return db.query(User).filter(User.id == user_id, User.role == "student").first()


def create_student(db: Session, email: str, full_name: str) -> User:
    email = email.strip().lower()
    if db.query(User).filter(User.email == email).first():
        raise ValueError("Email already registered")
    user = User(email=email, full_name=full_name.strip(), role="student")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def update_student(db: Session, user_id: int, payload: dict) -> User | None:
    user = get_student(db, user_id)
    if not user:
        return None

    if "email" in payload and payload["email"] is not None:
        email = payload["email"].strip().lower()
        clash = db.query(User).filter(User.email == email, User.id != user.id).first()
        if clash:
            raise ValueError("Email already registered")
        user.email = email
    if payload.get("full_name") is not None:
        user.full_name = payload["full_name"].strip()
    if payload.get("is_active") is not None:
        user.is_active = payload["is_active"]

    db.commit()
    db.refresh(user)
    return user


def delete_student(db: Session, user_id: int) -> bool:
    user = get_student(db, user_id)
    if not user:
        return False
    db.delete(user)
    db.commit()
    return True


@dataclass
class ImportReport:
    created: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def read_student_sheet(content: bytes, filename: str) -> pd.DataFrame:
    """Read an uploaded CSV or XLSX sheet with `email` and `full_name`/`name` columns."""
    name = filename.lower()
    if name.endswith((".xlsx", ".xls")):
        df = pd.read_excel(io.BytesIO(content), dtype=str)
    elif name.endswith(".csv"):
        df = pd.read_csv(io.BytesIO(content), dtype=str, keep_default_na=False)
    else:
        raise ValueError("Upload a .csv or .xlsx file")

    df = df.fillna("")
    df.columns = [str(c).strip().lower().replace(" ", "_") for c in df.columns]
    if "email" not in df.columns:
        raise ValueError("Sheet must have an 'email' column")
    if "full_name" not in df.columns:
        df["full_name"] = df["name"] if "name" in df.columns else ""
    return df


def import_students(db: Session, df: pd.DataFrame) -> ImportReport:
    report = ImportReport()
    known = {e for (e,) in db.query(User.email).all()}

    for idx, row in df.iterrows():
        email = str(row["email"]).strip().lower()
        if not email or "@" not in email:
            report.errors.append(f"Row {idx + 2}: invalid email '{email}'")
            continue
        if email in known:
            report.skipped.append(email)
            continue
        db.add(User(email=email, full_name=str(row["full_name"]).strip(), role="student"))
        known.add(email)
        report.created.append(email)

    db.commit()
    return report


def students_csv(students: list[User]) -> str:
    rows = [
        {
            "Email": u.email,
            "Full Name": u.full_name,
            "Active": "Yes" if u.is_active else "No",
            "Last Login": u.last_login_at.isoformat() if u.last_login_at else "",
            "Created At": u.created_at.isoformat() if u.created_at else "",
        }
        for u in students
    ]
    return pd.DataFrame(rows, columns=["Email", "Full Name", "Active", "Last Login", "Created At"]).to_csv(index=False)


# Results

def results_csv(summaries: list[AttemptSummary]) -> str:
    rows = [
        {
            "Student": s.user_name,
            "Email": s.user_email,
            "Test": s.test_title,
            "Category": s.category_name,
            "Score": s.total_score,
            "Max Score": s.max_score,
            "Percentage": s.percentage,
            "Grade": s.grade,
            "Correct": s.correct,
            "Incorrect": s.incorrect,
            "Unanswered": s.unanswered,
            "Submitted At": s.submitted_at.isoformat() if s.submitted_at else "",
        }
        for s in summaries
    ]
    columns = [
        "Student", "Email", "Test", "Category", "Score", "Max Score",
        "Percentage", "Grade", "Correct", "Incorrect", "Unanswered", "Submitted At",
    ]
    return pd.DataFrame(rows, columns=columns).to_csv(index=False)


# Secret keys

def generate_key_code() -> str:
    return "".join(secrets.choice(KEY_ALPHABET) for _ in range(KEY_LENGTH))


def key_status(key: SecretKey, now: datetime | None = None) -> str:
    if key.is_used:
        return "Used"
    if key.expires_at <= (now or utcnow()):
        return "Expired"
    return "Available"


def list_secret_keys(db: Session) -> list[tuple[SecretKey, User | None]]:
    return (
        db.query(SecretKey, User)
        .outerjoin(User, User.id == SecretKey.used_by)
        .order_by(SecretKey.created_at.desc(), SecretKey.id.desc())
        .all()
    )


def generate_secret_keys(db: Session, count: int = DEFAULT_KEY_COUNT, days: int = DEFAULT_KEY_DAYS) -> list[SecretKey]:
    expires_at = utcnow() + timedelta(days=days)
    keys: list[SecretKey] = []
    while len(keys) < count:
        key = SecretKey(code=generate_key_code(), expires_at=expires_at)
        db.add(key)
        try:
            db.commit()
        except IntegrityError:
            # code collision, draw again
            db.rollback()
            continue
        db.refresh(key)
        keys.append(key)
    return keys


def unused_keys_csv(db: Session) -> str:
    keys = (
        db.query(SecretKey)
        .filter(SecretKey.is_used.is_(False))
        .order_by(SecretKey.created_at.asc(), SecretKey.id.asc())
        .all()
    )
    rows = [
        {"Secret Key": k.code, "Expires At": k.expires_at.isoformat(), "Created At": k.created_at.isoformat()}
        for k in keys
    ]
    return pd.DataFrame(rows, columns=["Secret Key", "Expires At", "Created At"]).to_csv(index=False)
