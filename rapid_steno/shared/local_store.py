import json
import os
import threading
from datetime import datetime, timezone
from typing import Any

EMPTY_STORE = {"demo_users": [], "demo_attempts": {}, "demo_results": {}}


class LocalStore:
    """JSON file for demo-mode bookkeeping. Nothing here is mirrored to the database."""

    def __init__(self, file_path: str):
        self.file_path = file_path
        self._lock = threading.Lock()
        if not os.path.exists(self.file_path):
            self._save(EMPTY_STORE)

    def _load(self) -> dict[str, Any]:
        with open(self.file_path, "r", encoding="utf-8") as f:
            data = json.load(f)
        for key, value in EMPTY_STORE.items():
            data.setdefault(key, type(value)())
        return data

    def _save(self, data: dict[str, Any]) -> None:
        with open(self.file_path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)

    # demo visits

    def record_demo_user(self, demo_id: str, name: str) -> dict[str, Any]:
        entry = {
            "id": demo_id,
            "name": name,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        with self._lock:
            data = self._load()
            data["demo_users"].append(entry)
            self._save(data)
        return entry

    def list_demo_users(self) -> list[dict[str, Any]]:
        with self._lock:
            users = self._load()["demo_users"]
        return sorted(users, key=lambda u: u["timestamp"], reverse=True)

    def clear_demo_users(self) -> int:
        with self._lock:
            data = self._load()
            count = len(data["demo_users"])
            data["demo_users"] = []
            self._save(data)
        return count

    # demo attempts and results

    def get_demo_attempt(self, attempt_id: str) -> dict[str, Any] | None:
        with self._lock:
            return self._load()["demo_attempts"].get(attempt_id)

    def find_demo_attempt(self, user_key: str, test_id: int, status: str) -> dict[str, Any] | None:
        with self._lock:
            attempts = self._load()["demo_attempts"]
        for attempt in attempts.values():
            if attempt["user_key"] == user_key and attempt["test_id"] == test_id and attempt["status"] == status:
                return attempt
        return None

    def save_demo_attempt(self, attempt: dict[str, Any]) -> None:
        with self._lock:
            data = self._load()
            data["demo_attempts"][attempt["id"]] = attempt
            self._save(data)

    def save_demo_result(self, attempt_id: str, result: dict[str, Any]) -> None:
        with self._lock:
            data = self._load()
            data["demo_results"][attempt_id] = result
            attempt = data["demo_attempts"].get(attempt_id)
            if attempt is not None:
                attempt["status"] = "submitted"
                attempt["submitted_at"] = result.get("submitted_at")
            self._save(data)

    def get_demo_result(self, attempt_id: str) -> dict[str, Any] | None:
        with self._lock:
            return self._load()["demo_results"].get(attempt_id)
