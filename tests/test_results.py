from datetime import datetime

from conftest import make_student, make_submitted_attempt, make_test, student_headers
from rapid_steno.exam.models import Attempt


class TestAttemptResult:
    def test_counts_grade_and_time_taken(self, client, db, student, sample_test):
        attempt = make_submitted_attempt(db, student, sample_test, correct=2, time_remaining=420)

        r = client.get(f"/results/attempts/{attempt.id}", headers=student_headers(student))
        assert r.status_code == 200
        data = r.json()
        assert (data["correct"], data["incorrect"], data["unanswered"]) == (2, 1, 0)
        assert data["score"] == 2
        assert data["max_score"] == 3
        assert data["percentage"] == 66.67
        assert data["grade"] == "D"
        assert data["time_taken_seconds"] == 10 * 60 - 420
        assert data["user_name"] == student.full_name
        assert [q["status"] for q in data["questions"]] == ["correct", "correct", "incorrect"]

    def test_mistakes_keep_only_wrong_answers(self, client, db, student, sample_test):
        attempt = make_submitted_attempt(db, student, sample_test, correct=1)
        headers = student_headers(student)

        mistakes = client.get(f"/results/attempts/{attempt.id}/mistakes", headers=headers).json()
        assert [q["text"] for q in mistakes["questions"]] == ["Red planet?", "2 + 2 = ?"]
        assert all(q["chosen_option_id"] != q["correct_option_id"] for q in mistakes["questions"])

        revision = client.get(f"/results/attempts/{attempt.id}/revision", headers=headers).json()
        assert len(revision["questions"]) == 3

    def test_blank_questions_are_unanswered(self, client, db, student, sample_test):
        attempt = Attempt(user_id=student.id, test_id=sample_test.id, status="submitted",
                          submitted_at=datetime(2024, 5, 1), total_score=0, time_remaining=0)
        db.add(attempt)
        db.commit()

        data = client.get(f"/results/attempts/{attempt.id}", headers=student_headers(student)).json()
        assert data["unanswered"] == 3
        assert data["percentage"] == 0
        assert data["grade"] == "F"

    def test_unsubmitted_attempt_is_conflict(self, client, db, student, sample_test):
        attempt = Attempt(user_id=student.id, test_id=sample_test.id, status="active")
        db.add(attempt)
        db.commit()

        r = client.get(f"/results/attempts/{attempt.id}", headers=student_headers(student))
        assert r.status_code == 409

    def test_missing_attempt_is_404(self, client, student):
        assert client.get("/results/attempts/999", headers=student_headers(student)).status_code == 404

    def test_admin_can_read_any_result(self, client, db, admin_headers, student, sample_test):
        attempt = make_submitted_attempt(db, student, sample_test, correct=3)
        r = client.get(f"/results/attempts/{attempt.id}", headers=admin_headers)
        assert r.status_code == 200
        assert r.json()["grade"] == "A"

    def test_unknown_demo_result_is_404(self, client, demo_headers):
        assert client.get("/results/demo/demo-missing", headers=demo_headers).status_code == 404


class TestMyAttempts:
    def test_stats_and_recent_activity(self, client, db, student, sample_test, sample_category):
        second = make_test(db, title="Sample Test 2", category=sample_category)
        make_submitted_attempt(db, student, sample_test, correct=3, submitted_at=datetime(2024, 4, 1))
        make_submitted_attempt(db, student, second, correct=0, submitted_at=datetime(2024, 4, 2))
        db.add(Attempt(user_id=student.id, test_id=sample_test.id, status="active"))
        db.commit()

        data = client.get("/results/me", headers=student_headers(student)).json()
        stats = data["stats"]
        assert stats["total_tests"] == 3
        assert stats["completed_tests"] == 2
        assert stats["average_percentage"] == 50
        assert stats["best_percentage"] == 100
        # two submissions at 300 seconds spent each
        assert stats["total_time_minutes"] == 10
        assert len(data["attempts"]) == 3
        assert {a["status"] for a in data["attempts"]} == {"submitted", "active"}

    def test_other_students_history_is_separate(self, client, db, student, sample_test):
        other = make_student(db, email="other@example.com", full_name="Other")
        make_submitted_attempt(db, other, sample_test, correct=3)

        data = client.get("/results/me", headers=student_headers(student)).json()
        assert data["attempts"] == []
        assert data["stats"]["completed_tests"] == 0


class TestReport:
    def test_report_lists_categories_and_history(self, client, db, student, sample_test):
        make_submitted_attempt(db, student, sample_test, correct=2, submitted_at=datetime(2024, 6, 3))

        r = client.get("/results/report", headers=student_headers(student))
        assert r.status_code == 200
        assert r.headers["content-type"].startswith("text/html")
        assert "Performance Report" in r.text
        assert "Sample Tests" in r.text
        assert "Sample Test 1" in r.text
        assert "03 Jun 2024" in r.text

    def test_admin_reads_student_report(self, client, db, admin_headers, student):
        r = client.get(f"/results/report/{student.id}", headers=admin_headers)
        assert r.status_code == 200
        assert "No completed tests yet." in r.text

    def test_students_cannot_read_other_reports(self, client, db, student):
        r = client.get(f"/results/report/{student.id}", headers=student_headers(student))
        assert r.status_code == 403
