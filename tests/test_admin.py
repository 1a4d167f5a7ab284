import io
from datetime import timedelta

import pandas as pd

from conftest import make_student, make_submitted_attempt, student_headers
from rapid_steno.admin import crud as admin_crud
from rapid_steno.admin import maintenance
from rapid_steno.admin.models import AdminActivityLog
from rapid_steno.auth.models import SecretKey, User
from rapid_steno.shared.database import utcnow
from rapid_steno.subscriptions import crud as subscription_crud


class TestStudents:
    def test_create_search_and_duplicate(self, client, admin_headers):
        r = client.post("/admin/students", json={"email": "New@Example.com", "full_name": "New Student"}, headers=admin_headers)
        assert r.status_code == 200
        assert r.json()["email"] == "new@example.com"

        r = client.post("/admin/students", json={"email": "new@example.com", "full_name": "Again"}, headers=admin_headers)
        assert r.status_code == 409

        found = client.get("/admin/students", params={"search": "new stu"}, headers=admin_headers).json()
        assert [s["full_name"] for s in found] == ["New Student"]

    def test_update_and_delete(self, client, db, admin_headers, student):
        r = client.put(f"/admin/students/{student.id}", json={"is_active": False}, headers=admin_headers)
        assert r.status_code == 200
        assert r.json()["is_active"] is False
        assert r.json()["email"] == student.email

        assert client.delete(f"/admin/students/{student.id}", headers=admin_headers).json() == {"deleted": True}
        assert client.delete(f"/admin/students/{student.id}", headers=admin_headers).status_code == 404

    def test_update_rejects_taken_email(self, client, db, admin_headers, student):
        make_student(db, email="taken@example.com")
        r = client.put(f"/admin/students/{student.id}", json={"email": "taken@example.com"}, headers=admin_headers)
        assert r.status_code == 409

    def test_students_cannot_manage_students(self, client, student):
        assert client.get("/admin/students", headers=student_headers(student)).status_code == 403


class TestStudentImport:
    def test_csv_import_creates_skips_and_reports(self, client, db, admin_headers, student):
        content = (
            "Email,Name\n"
            "fresh@example.com,Fresh Face\n"
            f"{student.email},Already Here\n"
            "not-an-email,Broken\n"
        ).encode()
        r = client.post(
            "/admin/students/import",
            files={"file": ("students.csv", content, "text/csv")},
            headers=admin_headers,
        )
        assert r.status_code == 200
        data = r.json()
        assert data["created"] == ["fresh@example.com"]
        assert data["skipped"] == [student.email]
        assert data["errors"] == ["Row 4: invalid email 'not-an-email'"]

        db.expire_all()
        assert db.query(User).filter(User.email == "fresh@example.com").one().full_name == "Fresh Face"
        log = db.query(AdminActivityLog).filter(AdminActivityLog.action == "bulk_import_students").one()
        assert log.details == {"created": 1, "skipped": 1, "errors": 1}
        assert log.performed_by == "admin@rapidsteno.com"

    def test_excel_sheet_is_read(self):
        buf = io.BytesIO()
        pd.DataFrame({"Email": ["a@example.com"], "Full Name": ["A Person"]}).to_excel(buf, index=False)
        df = admin_crud.read_student_sheet(buf.getvalue(), "students.xlsx")
        assert list(df["email"]) == ["a@example.com"]
        assert list(df["full_name"]) == ["A Person"]

    def test_unknown_extension_is_rejected(self, client, admin_headers):
        r = client.post(
            "/admin/students/import",
            files={"file": ("students.txt", b"email\nx@example.com\n", "text/plain")},
            headers=admin_headers,
        )
        assert r.status_code == 400

    def test_sheet_without_email_column_is_rejected(self, client, admin_headers):
        r = client.post(
            "/admin/students/import",
            files={"file": ("students.csv", b"name\nSomeone\n", "text/csv")},
            headers=admin_headers,
        )
        assert r.status_code == 400

    def test_export(self, client, admin_headers, student):
        r = client.get("/admin/students/export", headers=admin_headers)
        assert r.headers["content-type"].startswith("text/csv")
        lines = r.text.strip().splitlines()
        assert lines[0] == "Email,Full Name,Active,Last Login,Created At"
        assert lines[1].startswith(f"{student.email},{student.full_name},Yes,")


class TestAdminResults:
    def test_list_filter_and_export(self, client, db, admin_headers, student, sample_test):
        attempt = make_submitted_attempt(db, student, sample_test, correct=2)

        rows = client.get("/admin/results", params={"test_id": sample_test.id}, headers=admin_headers).json()
        assert [r["attempt_id"] for r in rows] == [attempt.id]
        assert rows[0]["percentage"] == 66.67
        assert rows[0]["time_spent_seconds"] == 300
        assert client.get("/admin/results", params={"test_id": 999}, headers=admin_headers).json() == []

        r = client.get("/admin/results/export", headers=admin_headers)
        header, row = r.text.strip().splitlines()
        assert header.startswith("Student,Email,Test,Category,Score")
        assert row.startswith(f"{student.full_name},{student.email},Sample Test 1,Sample Tests,")

    def test_detail_and_delete(self, client, db, admin_headers, student, sample_test):
        attempt = make_submitted_attempt(db, student, sample_test, correct=3)

        r = client.get(f"/admin/results/{attempt.id}", headers=admin_headers)
        assert r.json()["grade"] == "A"

        assert client.delete(f"/admin/results/{attempt.id}", headers=admin_headers).json() == {"deleted": True}
        assert client.get(f"/admin/results/{attempt.id}", headers=admin_headers).status_code == 404


class TestSecretKeys:
    def test_generated_keys_are_unique_codes(self, db):
        keys = admin_crud.generate_secret_keys(db, count=5, days=7)
        codes = {k.code for k in keys}
        assert len(codes) == 5
        for code in codes:
            assert len(code) == admin_crud.KEY_LENGTH
            assert set(code) <= set(admin_crud.KEY_ALPHABET)

    def test_status_labels(self, db):
        now = utcnow()
        used = SecretKey(code="USEDUSEDUSED", expires_at=now + timedelta(days=1), is_used=True)
        expired = SecretKey(code="EXPIREDEXPIR", expires_at=now - timedelta(seconds=1))
        fresh = SecretKey(code="FRESHFRESHFR", expires_at=now + timedelta(days=1))
        assert admin_crud.key_status(used, now) == "Used"
        assert admin_crud.key_status(expired, now) == "Expired"
        assert admin_crud.key_status(fresh, now) == "Available"

    def test_generate_list_and_export_unused(self, client, db, admin_headers):
        r = client.post("/admin/secret-keys", json={"count": 3}, headers=admin_headers)
        assert r.status_code == 200
        created = r.json()
        assert len(created) == 3
        assert {k["status"] for k in created} == {"Available"}

        # redeem one so it drops out of the export
        code = created[0]["code"]
        r = client.post(
            "/auth/register",
            json={"email": "keyed@example.com", "full_name": "Keyed", "secret_key": code},
        )
        assert r.status_code == 200

        listing = {k["code"]: k for k in client.get("/admin/secret-keys", headers=admin_headers).json()}
        assert listing[code]["status"] == "Used"
        assert listing[code]["used_by_email"] == "keyed@example.com"

        export = client.get("/admin/secret-keys/export", headers=admin_headers).text.strip().splitlines()
        assert export[0] == "Secret Key,Expires At,Created At"
        exported = {line.split(",")[0] for line in export[1:]}
        assert exported == {k["code"] for k in created[1:]}

    def test_count_is_bounded(self, client, admin_headers):
        r = client.post("/admin/secret-keys", json={"count": 0}, headers=admin_headers)
        assert r.status_code == 422


class TestMaintenance:
    def test_deactivates_idle_students_and_expires_subscriptions(self, db):
        now = utcnow()
        idle = make_student(db, email="idle@example.com", last_login_at=now - timedelta(days=120))
        never = make_student(db, email="never@example.com", created_at=now - timedelta(days=200))
        recent = make_student(db, email="recent@example.com", last_login_at=now - timedelta(days=5))

        subscription_crud.ensure_default_plans(db)
        lapsed, _ = subscription_crud.create_or_reactivate(db, recent.email, "gold", days=1)
        lapsed.expires_at = now - timedelta(hours=1)
        db.commit()

        details = maintenance.run(db, now)
        assert details == {"deactivated_count": 2, "expired_subscriptions": 1}

        db.expire_all()
        assert db.get(User, idle.id).is_active is False
        assert db.get(User, never.id).is_active is False
        assert db.get(User, recent.id).is_active is True

        db.refresh(lapsed)
        assert lapsed.status == "expired"
        assert lapsed.is_active is False
        assert lapsed.deactivation_reason == "Subscription expired"

        log = db.query(AdminActivityLog).filter(AdminActivityLog.action == "auto_deactivate_users").one()
        assert log.details == details
        assert log.performed_by == "system"

    def test_second_run_finds_nothing(self, db):
        make_student(db, email="idle@example.com", last_login_at=utcnow() - timedelta(days=120))
        maintenance.run(db)
        assert maintenance.run(db) == {"deactivated_count": 0, "expired_subscriptions": 0}
