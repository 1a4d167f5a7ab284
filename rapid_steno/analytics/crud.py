from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pandas as pd
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..auth.models import User
from ..catalog.models import Test
from ..exam.models import Attempt
from ..exam.scoring import letter_grade
from ..results.crud import AttemptSummary, attempt_summaries
from ..shared.local_store import LocalStore
from ..subscriptions.models import UserSubscription
from .placeholders import placeholder_entries

UNCATEGORIZED = "Uncategorized"


def _mean(values: list[float]) -> float:
    return round(sum(values) / len(values), 2) if values else 0.0


def category_breakdown(summaries: list[AttemptSummary]) -> list[dict[str, Any]]:
    """Per-category totals and an oldest-first score series for each category."""
    groups: dict[str, list[AttemptSummary]] = defaultdict(list)
    for s in summaries:
        if s.status == "submitted":
            groups[s.category_name or UNCATEGORIZED].append(s)

    out = []
    for name in sorted(groups):
        items = sorted(groups[name], key=lambda s: s.submitted_at or s.started_at)
        pcts = [s.percentage for s in items]
        out.append({
            "category_name": name,
            "total_tests": len(items),
            "average_percentage": _mean(pcts),
            "best_percentage": max(pcts),
            "series": [
                {
                    "attempt_id": s.attempt_id,
                    "date": (s.submitted_at or s.started_at).date(),
                    "test_title": s.test_title,
                    "percentage": s.percentage,
                    "correct": s.correct,
                    "wrong": s.incorrect,
                    "question_count": s.question_count,
                    "grade": s.grade,
                }
                for s in items
            ],
        })
    return out


def student_analytics(
    db: Session,
    user_id: int,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> dict[str, Any]:
    summaries = attempt_summaries(db, user_id=user_id, start=start, end=end)
    pcts = [s.percentage for s in summaries]
    overall = _mean(pcts)
    return {
        "total_tests": len(summaries),
        "average_percentage": overall,
        "best_percentage": max(pcts) if pcts else 0.0,
        "grade": letter_grade(overall),
        "categories": category_breakdown(summaries),
    }


# Leaderboard

def leaderboard_rows(db: Session) -> list[dict[str, Any]]:
    per_user: dict[int, list[AttemptSummary]] = defaultdict(list)
    for s in attempt_summaries(db):
        per_user[s.user_id].append(s)

    rows = []
    for user_id, items in per_user.items():
        pcts = [s.percentage for s in items]
        rows.append({
            "key": str(user_id),
            "user_id": user_id,
            "name": items[0].user_name or items[0].user_email,
            "best_percentage": max(pcts),
            "average_percentage": _mean(pcts),
            "tests_completed": len(items),
            "is_placeholder": False,
        })
    return rows


def placeholder_rows() -> list[dict[str, Any]]:
    return [
        {
            "key": p.key,
            "user_id": None,
            "name": p.name,
            "best_percentage": float(p.best_percentage),
            "average_percentage": float(p.average_percentage),
            "tests_completed": p.tests_completed,
            "is_placeholder": True,
        }
        for p in placeholder_entries
    ]


def build_leaderboard(db: Session, include_placeholders: bool, current_user_id: Optional[int] = None) -> dict[str, Any]:
    real = leaderboard_rows(db)
    entries = real + (placeholder_rows() if include_placeholders else [])
    entries.sort(key=lambda r: (-r["average_percentage"], -r["best_percentage"], r["name"]))
    for rank, row in enumerate(entries, start=1):
        row["rank"] = rank

    me = next((r for r in entries if current_user_id is not None and r["user_id"] == current_user_id), None)
    return {
        "entries": entries,
        "top": entries[:3],
        "current_user": me,
        "real_count": len(real),
        "placeholder_count": len(entries) - len(real),
    }


# Admin

def admin_overview(db: Session, recent_limit: int = 10) -> dict[str, Any]:
    total = db.query(func.count(Attempt.id)).scalar() or 0
    submitted = db.query(func.count(Attempt.id)).filter(Attempt.status == "submitted").scalar() or 0
    active = db.query(func.count(Attempt.id)).filter(Attempt.status == "active").scalar() or 0
    students = db.query(func.count(User.id)).filter(User.role == "student").scalar() or 0
    tests = db.query(func.count(Test.id)).scalar() or 0

    summaries = attempt_summaries(db)
    per_test: dict[int, list[AttemptSummary]] = defaultdict(list)
    for s in summaries:
        per_test[s.test_id].append(s)

    test_stats = []
    for t in db.query(Test).order_by(Test.title.asc()).all():
        items = per_test.get(t.id, [])
        test_stats.append({
            "test_id": t.id,
            "test_title": t.title,
            "total_attempts": len(items),
            "average_score": round(_mean([s.total_score for s in items]), 1),
            "average_percentage": _mean([s.percentage for s in items]),
        })

    return {
        "total_attempts": total,
        "submitted_attempts": submitted,
        "active_attempts": active,
        "completion_rate": round(submitted / total * 100, 1) if total else 0.0,
        "total_students": students,
        "total_tests": tests,
        "average_percentage": _mean([s.percentage for s in summaries]),
        "average_completion_minutes": round(_mean([s.time_spent_seconds for s in summaries]) / 60, 1),
        "tests": test_stats,
        "top_scores": sorted(summaries, key=lambda s: -s.percentage)[:recent_limit],
        "recent_submissions": summaries[:recent_limit],
    }


def dashboard_counts(db: Session) -> dict[str, int]:
    return {
        "users": db.query(func.count(User.id)).scalar() or 0,
        "tests": db.query(func.count(Test.id)).scalar() or 0,
        "attempts": db.query(func.count(Attempt.id)).scalar() or 0,
        "students": db.query(func.count(User.id)).filter(User.role == "student").scalar() or 0,
        "subscriptions": db.query(func.count(UserSubscription.id)).scalar() or 0,
    }


# Demo visits (local store)

def _parse_ts(raw: str) -> datetime:
    ts = datetime.fromisoformat(raw)
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


def demo_analytics(local_store: LocalStore, now: Optional[datetime] = None) -> dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    users = local_store.list_demo_users()
    stamps = [_parse_ts(u["timestamp"]) for u in users]

    def since(days: int) -> int:
        cutoff = now - timedelta(days=days)
        return sum(1 for ts in stamps if ts >= cutoff)

    return {
        "total": len(users),
        "last_1_day": since(1),
        "last_7_days": since(7),
        "last_30_days": since(30),
        "users": [{"id": u["id"], "name": u["name"], "timestamp": ts} for u, ts in zip(users, stamps)],
    }


def demo_users_csv(local_store: LocalStore) -> str:
    rows = []
    for u in local_store.list_demo_users():
        ts = _parse_ts(u["timestamp"])
        rows.append({
            "Name": u["name"],
            "Date": ts.strftime("%Y-%m-%d"),
            "Time": ts.strftime("%H:%M:%S"),
            "Demo ID": u["id"],
        })
    return pd.DataFrame(rows, columns=["Name", "Date", "Time", "Demo ID"]).to_csv(index=False)
