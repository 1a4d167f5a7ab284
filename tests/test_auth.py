from datetime import timedelta

import pytest

from conftest import ADMIN_EMAIL, ADMIN_PASSCODE, ADMIN_PASSWORD, make_student
from rapid_steno.auth import crud as auth_crud
from rapid_steno.auth.models import SecretKey, User
from rapid_steno.auth.otp import OTP_EXPIRY_SECONDS, OtpStore
from rapid_steno.shared.database import utcnow


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def _key(db, code="ABCDEF123456", days=30, **kwargs) -> SecretKey:
    key = SecretKey(code=code, expires_at=utcnow() + timedelta(days=days), **kwargs)
    db.add(key)
    db.commit()
    return key


class TestStudentLogin:
    def test_registered_student_gets_token(self, client, db, student):
        r = client.post("/auth/login", json={"email": student.email, "full_name": "Asha"})
        assert r.status_code == 200
        data = r.json()
        assert data["token_type"] == "bearer"
        assert data["user"]["id"] == student.id
        assert data["user"]["full_name"] == "Asha"

        db.expire_all()
        assert db.get(User, student.id).last_login_at is not None

        me = client.get("/auth/me", headers={"Authorization": f"Bearer {data['access_token']}"})
        assert me.status_code == 200
        assert me.json()["email"] == student.email

    def test_unknown_email_is_refused(self, client):
        r = client.post("/auth/login", json={"email": "nobody@example.com", "full_name": "Nobody"})
        assert r.status_code == 403
        assert r.json()["detail"] == "Email not found in our system. Premium access required."

    def test_inactive_student_is_refused(self, client, db):
        user = make_student(db, email="old@example.com", is_active=False)
        r = client.post("/auth/login", json={"email": user.email, "full_name": "Old"})
        assert r.status_code == 403

    def test_bad_token_is_rejected(self, client):
        r = client.get("/auth/me", headers={"Authorization": "Bearer not-a-token"})
        assert r.status_code == 401


class TestSecretKeyRegistration:
    def test_key_is_single_use(self, client, db):
        _key(db)
        payload = {"email": "new@example.com", "full_name": "New Student", "secret_key": "abcdef123456"}
        r = client.post("/auth/register", json=payload)
        assert r.status_code == 200

        again = client.post("/auth/register", json={**payload, "email": "second@example.com"})
        assert again.status_code == 400
        assert again.json()["detail"] == "Secret key has already been used"

        db.expire_all()
        key = db.query(SecretKey).filter(SecretKey.code == "ABCDEF123456").one()
        assert key.is_used is True
        assert key.used_by == r.json()["user"]["id"]

    def test_expired_key_is_refused(self, client, db):
        _key(db, days=-1)
        r = client.post(
            "/auth/register",
            json={"email": "late@example.com", "full_name": "Late", "secret_key": "ABCDEF123456"},
        )
        assert r.status_code == 400
        assert r.json()["detail"] == "Secret key has expired"

    def test_unknown_key_is_refused(self, db):
        with pytest.raises(auth_crud.RegistrationError, match="Invalid secret key"):
            auth_crud.register_with_secret_key(db, "x@example.com", "X", "ZZZZZZZZZZZZ")

    def test_existing_email_is_refused(self, db, student):
        _key(db)
        with pytest.raises(auth_crud.RegistrationError, match="already registered"):
            auth_crud.register_with_secret_key(db, student.email, "Dup", "ABCDEF123456")

    def test_malformed_key_fails_validation(self, client):
        r = client.post("/auth/register", json={"email": "a@example.com", "full_name": "A", "secret_key": "short"})
        assert r.status_code == 422


class TestOtp:
    def test_correct_code_verifies_once(self):
        store = OtpStore(clock=FakeClock())
        code = store.issue("User@Example.com")
        assert store.verify("user@example.com", code) == (True, "OTP verified successfully")
        ok, _ = store.verify("user@example.com", code)
        assert ok is False

    def test_code_expires_after_ten_minutes(self):
        clock = FakeClock()
        store = OtpStore(clock=clock)
        code = store.issue("user@example.com")
        clock.now += OTP_EXPIRY_SECONDS + 1
        ok, message = store.verify("user@example.com", code)
        assert ok is False
        assert "expired" in message

    def test_locks_after_five_wrong_tries(self):
        store = OtpStore(clock=FakeClock())
        code = store.issue("user@example.com")
        wrong = "000000" if code != "000000" else "111111"
        for _ in range(5):
            ok, _ = store.verify("user@example.com", wrong)
            assert ok is False
        ok, message = store.verify("user@example.com", code)
        assert ok is False
        assert "Too many failed attempts" in message

    def test_send_does_not_reveal_unknown_emails(self, client, student):
        known = client.post("/auth/otp/send", json={"email": student.email})
        unknown = client.post("/auth/otp/send", json={"email": "nobody@example.com"})
        assert known.status_code == unknown.status_code == 200
        assert known.json() == unknown.json()

    def test_verify_without_code_fails(self, client, student):
        r = client.post("/auth/otp/verify", json={"email": student.email, "otp": "123456"})
        assert r.status_code == 400

    def test_verified_code_logs_student_in(self, app, client, student):
        code = app.state.otp_store.issue(student.email)
        r = client.post("/auth/otp/verify", json={"email": student.email, "otp": code})
        assert r.status_code == 200
        assert r.json()["user"]["role"] == "student"

    def test_non_student_accounts_get_no_student_token(self, app, client, db):
        staff = User(email="staff@example.com", full_name="Staff", role="admin")
        db.add(staff)
        db.commit()

        # no code is issued for them in the first place
        client.post("/auth/otp/send", json={"email": staff.email})
        r = client.post("/auth/otp/verify", json={"email": staff.email, "otp": "123456"})
        assert r.status_code == 400

        code = app.state.otp_store.issue(staff.email)
        r = client.post("/auth/otp/verify", json={"email": staff.email, "otp": code})
        assert r.status_code == 403
        assert "access_token" not in r.json()


class TestDemoAndAdmin:
    def test_demo_login_records_visit(self, client, local_store):
        r = client.post("/auth/demo", json={"name": "Visitor"})
        assert r.status_code == 200
        user = r.json()["user"]
        assert user["is_demo"] is True
        assert user["id"] is None
        assert user["key"].startswith("demo-")
        assert [u["name"] for u in local_store.list_demo_users()] == ["Visitor"]

    def test_admin_login(self, client):
        r = client.post(
            "/auth/admin/login",
            json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD, "passcode": ADMIN_PASSCODE},
        )
        assert r.status_code == 200
        assert r.json()["user"]["role"] == "admin"

    def test_admin_login_wrong_passcode(self, client):
        r = client.post(
            "/auth/admin/login",
            json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD, "passcode": "0000"},
        )
        assert r.status_code == 401
