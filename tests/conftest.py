"""
Shared fixtures: an app on in-memory SQLite, a local store in tmp_path,
token helpers and a small seeded catalog.
"""

import pytest
from fastapi.testclient import TestClient

from rapid_steno.auth.models import User
from rapid_steno.catalog import models as catalog_models
from rapid_steno.config import Settings
from rapid_steno.exam.models import Answer, Attempt
from rapid_steno.main import create_app
from rapid_steno.shared.database import utcnow
from rapid_steno.shared.security import create_access_token, hash_password

JWT_SECRET = "test-secret-key"
ADMIN_EMAIL = "admin@rapidsteno.com"
ADMIN_PASSWORD = "admin-pass"
ADMIN_PASSCODE = "1505"

SAMPLE_QUESTIONS = [
    ("Capital of India?", ["New Delhi", "Mumbai", "Kolkata", "Chennai"], 0, 1.0),
    ("Red planet?", ["Venus", "Mars", "Jupiter", "Saturn"], 1, 1.0),
    ("2 + 2 = ?", ["3", "4", "5", "22"], 1, 1.0),
]


@pytest.fixture
def settings(tmp_path):
    return Settings(
        jwt_secret_key=JWT_SECRET,
        database_url="sqlite://",
        admin_email=ADMIN_EMAIL,
        admin_password_hash=hash_password(ADMIN_PASSWORD),
        admin_passcode=ADMIN_PASSCODE,
        local_store_path=str(tmp_path / "local_store.json"),
        # countdowns never fire on their own during API tests
        session_tick_seconds=3600,
        leaderboard_placeholders=True,
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db(app):
    session = app.state.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def local_store(app):
    return app.state.local_store


def bearer(claims: dict) -> dict[str, str]:
    token = create_access_token(claims, JWT_SECRET)
    return {"Authorization": f"Bearer {token}"}


def student_headers(user: User) -> dict[str, str]:
    return bearer({"sub": str(user.id), "email": user.email, "name": user.full_name, "role": "student"})


@pytest.fixture
def admin_headers():
    return bearer({"sub": "admin", "email": ADMIN_EMAIL, "name": "Administrator", "role": "admin"})


@pytest.fixture
def demo_headers():
    return bearer({"sub": "demo-0123456789abcdef", "name": "Visitor", "role": "student", "demo": True})


def make_student(db, email="student@example.com", full_name="Asha Verma", **kwargs) -> User:
    user = User(email=email, full_name=full_name, role="student", **kwargs)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_category(db, name: str) -> catalog_models.TestCategory:
    category = catalog_models.TestCategory(name=name)
    db.add(category)
    db.commit()
    db.refresh(category)
    return category


def make_test(db, title="Sample Test 1", category=None, status="published", questions=SAMPLE_QUESTIONS, **kwargs):
    test = catalog_models.Test(
        title=title,
        category_id=category.id if category else None,
        status=status,
        duration_minutes=kwargs.pop("duration_minutes", 10),
        **kwargs,
    )
    for qi, (text, labels, correct, points) in enumerate(questions):
        question = catalog_models.Question(text=text, points=points, order_index=qi)
        question.options = [
            catalog_models.Option(label=label, is_correct=(oi == correct), order_index=oi)
            for oi, label in enumerate(labels)
        ]
        test.questions.append(question)
    db.add(test)
    db.commit()
    db.refresh(test)
    return test


def correct_option_id(question) -> int:
    return next(o.id for o in question.options if o.is_correct)


def wrong_option_id(question) -> int:
    return next(o.id for o in question.options if not o.is_correct)


@pytest.fixture
def student(db):
    return make_student(db)


@pytest.fixture
def sample_category(db):
    return make_category(db, "Sample Tests")


@pytest.fixture
def sample_test(db, sample_category):
    return make_test(db, category=sample_category)


def make_submitted_attempt(db, user, test, correct: int, submitted_at=None, time_remaining=300):
    """Submit `user`'s attempt at `test` with the first `correct` questions right and the rest wrong."""
    attempt = Attempt(
        user_id=user.id,
        test_id=test.id,
        status="submitted",
        submitted_at=submitted_at or utcnow(),
        time_remaining=time_remaining,
    )
    score = 0.0
    for i, question in enumerate(test.questions):
        is_correct = i < correct
        score += question.points if is_correct else 0
        attempt.answers.append(Answer(
            question_id=question.id,
            chosen_option_id=correct_option_id(question) if is_correct else wrong_option_id(question),
            is_correct=is_correct,
            score=question.points if is_correct else 0,
        ))
    attempt.total_score = score
    db.add(attempt)
    db.commit()
    db.refresh(attempt)
    return attempt
