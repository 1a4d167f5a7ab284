from datetime import timedelta

import pytest

from conftest import make_category, make_test, student_headers
from rapid_steno.shared.context import RequestUser
from rapid_steno.shared.database import utcnow
from rapid_steno.subscriptions import access
from rapid_steno.subscriptions.crud import create_or_reactivate, time_left_label, toggle_subscription
from rapid_steno.subscriptions.models import UserSubscription

GOLD = access.UserAccess(has_gold_plan=True)
AHC = access.UserAccess(has_ahc_plan=True)


class TestAccessRules:
    @pytest.mark.parametrize("name", ["Sample Tests", "Demo Papers", "AHC Sample"])
    def test_samples_are_open_to_everyone(self, name):
        assert access.can_access_category(access.NO_ACCESS, name)

    def test_no_plan_opens_nothing_else(self):
        assert not access.can_access_category(access.NO_ACCESS, "Stenography Speed")

    def test_gold_excludes_ahc_content(self):
        assert access.can_access_category(GOLD, "Stenography Speed")
        assert not access.can_access_category(GOLD, "Allahabad High Court")
        assert not access.can_access_category(GOLD, "AHC Dictation")

    def test_ahc_opens_everything(self):
        assert access.can_access_category(AHC, "Allahabad High Court")
        assert access.can_access_category(AHC, "Stenography Speed")

    def test_upgrade_message_names_plan(self):
        assert "AHC Plan" in access.upgrade_message("Allahabad High Court")
        assert "Gold Plan" in access.upgrade_message("Stenography Speed")

    def test_admin_has_full_access(self, db):
        admin = RequestUser(key="admin", role="admin")
        assert access.get_user_access(db, admin) == access.FULL_ACCESS

    def test_demo_has_no_plans(self, db):
        demo = RequestUser(key="demo-abc", role="student", is_demo=True)
        assert access.get_user_access(db, demo) == access.NO_ACCESS


class TestSubscriptions:
    def test_gold_subscription_grants_access(self, db, student):
        create_or_reactivate(db, student.email, "gold")
        user = RequestUser(key=str(student.id), role="student")
        assert access.get_user_access(db, user) == GOLD

    def test_expired_subscription_grants_nothing(self, db, student):
        sub, _ = create_or_reactivate(db, student.email, "gold")
        sub.expires_at = utcnow() - timedelta(days=1)
        db.commit()
        user = RequestUser(key=str(student.id), role="student")
        assert access.get_user_access(db, user) == access.NO_ACCESS

    def test_reactivation_reuses_subscription(self, db, student):
        sub, created = create_or_reactivate(db, student.email, "ahc")
        toggle_subscription(db, sub.id)
        again, created_again = create_or_reactivate(db, student.email, "ahc")
        assert created is True
        assert created_again is False
        assert again.id == sub.id
        assert again.is_active is True
        assert db.query(UserSubscription).count() == 1

    def test_toggle_off_cancels(self, db, student):
        sub, _ = create_or_reactivate(db, student.email, "gold")
        sub = toggle_subscription(db, sub.id)
        assert sub.is_active is False
        assert sub.status == "cancelled"
        assert sub.deactivated_at is not None

    def test_missing_user_is_lookup_error(self, db):
        with pytest.raises(LookupError):
            create_or_reactivate(db, "nobody@example.com", "gold")

    def test_time_left_labels(self):
        now = utcnow()
        assert time_left_label(None) == "No expiry"
        assert time_left_label(now - timedelta(hours=1), now) == "Expired"
        assert time_left_label(now + timedelta(days=30, hours=1), now) == "30 days left"
        assert time_left_label(now + timedelta(days=2, hours=3), now) == "2d 3h left"
        assert time_left_label(now + timedelta(hours=5, minutes=10), now) == "5h 10m left"

    def test_admin_creates_subscription_with_new_user(self, client, admin_headers):
        r = client.post(
            "/subscriptions/",
            json={"email": "fresh@example.com", "plan_name": "gold", "create_user_if_missing": True},
            headers=admin_headers,
        )
        assert r.status_code == 200
        data = r.json()
        assert data["plan_name"] == "gold"
        assert data["is_active"] is True
        assert data["time_left"].endswith("days left")

        listing = client.get("/subscriptions/", headers=admin_headers).json()
        assert [s["user_email"] for s in listing] == ["fresh@example.com"]

    def test_students_cannot_manage_subscriptions(self, client, student):
        r = client.get("/subscriptions/", headers=student_headers(student))
        assert r.status_code == 403

    def test_catalog_flags_locked_tests(self, client, db, student):
        gold = make_category(db, "Stenography Speed")
        make_test(db, title="Speed 1", category=gold)
        create_or_reactivate(db, student.email, "gold")
        ahc = make_category(db, "Allahabad High Court")
        make_test(db, title="AHC 1", category=ahc)

        listing = {c["name"]: c for c in client.get("/catalog/tests", headers=student_headers(student)).json()}
        assert listing["Stenography Speed"]["accessible"] is True
        assert listing["Allahabad High Court"]["accessible"] is False
        assert listing["Allahabad High Court"]["tests"][0]["accessible"] is False
