from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv


def _get_env(name: str, default: Optional[str] = None) -> str:
    val = os.getenv(name, default)
    if val is None or val.strip() == "":
        raise RuntimeError(f"Missing required environment variable: {name}")
    return val.strip()


def _parse_origins(raw: str) -> list[str]:
    raw = (raw or "").strip()
    if not raw:
        return ["*"]
    if raw == "*":
        return ["*"]
    return [o.strip() for o in raw.split(",") if o.strip()]


def _parse_bool(raw: str | None, default: bool = False) -> bool:
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    jwt_secret_key: str
    database_url: str = "sqlite:///./rapid_steno.db"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 12 * 60
    cors_origins: list[str] = field(default_factory=lambda: ["*"])

    # single administrator account, checked by /auth/admin/login
    admin_email: str = "admin@rapidsteno.com"
    admin_password_hash: str = ""
    admin_passcode: str = ""

    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_pass: str = ""
    mail_from: str = "info@rapidsteno.com"

    local_store_path: str = "./local_store.json"
    session_tick_seconds: float = 1.0
    leaderboard_placeholders: bool = True
    log_level: str = "INFO"

    @property
    def mail_enabled(self) -> bool:
        return bool(self.smtp_user and self.smtp_pass)


def load_settings() -> Settings:
    load_dotenv()

    return Settings(
        jwt_secret_key=_get_env("JWT_SECRET_KEY"),
        database_url=os.getenv("DATABASE_URL", "sqlite:///./rapid_steno.db").strip(),
        jwt_expire_minutes=int(os.getenv("JWT_EXPIRE_MINUTES", "720")),
        cors_origins=_parse_origins(os.getenv("CORS_ORIGINS", "*")),
        admin_email=os.getenv("ADMIN_EMAIL", "admin@rapidsteno.com").strip().lower(),
        admin_password_hash=os.getenv("ADMIN_PASSWORD_HASH", "").strip(),
        admin_passcode=os.getenv("ADMIN_PASSCODE", "").strip(),
        smtp_host=os.getenv("SMTP_HOST", "smtp.gmail.com").strip(),
        smtp_port=int(os.getenv("SMTP_PORT", "587")),
        smtp_user=os.getenv("SMTP_USER", "").strip(),
        smtp_pass=os.getenv("SMTP_PASS", "").strip(),
        mail_from=os.getenv("MAIL_FROM", "info@rapidsteno.com").strip(),
        local_store_path=os.getenv("LOCAL_STORE_PATH", "./local_store.json").strip(),
        session_tick_seconds=float(os.getenv("SESSION_TICK_SECONDS", "1")),
        leaderboard_placeholders=_parse_bool(os.getenv("LEADERBOARD_PLACEHOLDERS"), default=True),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
    )
