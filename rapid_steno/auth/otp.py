import secrets
import threading
import time
from dataclasses import dataclass
from typing import Callable

OTP_EXPIRY_SECONDS = 10 * 60
OTP_MAX_ATTEMPTS = 5


def generate_otp() -> str:
    return str(100000 + secrets.randbelow(900000))


@dataclass
class OtpRecord:
    otp: str
    created_at: float
    attempts: int = 0


class OtpStore:
    """Process-local one-time codes keyed by lower-cased email."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._records: dict[str, OtpRecord] = {}
        self._lock = threading.Lock()

    def issue(self, email: str) -> str:
        otp = generate_otp()
        with self._lock:
            self._records[email.lower()] = OtpRecord(otp=otp, created_at=self._clock())
        return otp

    def verify(self, email: str, code: str) -> tuple[bool, str]:
        key = email.lower()
        with self._lock:
            record = self._records.get(key)
            if record is None:
                return False, "OTP not found. Please request a new one."

            if self._clock() - record.created_at > OTP_EXPIRY_SECONDS:
                del self._records[key]
                return False, "OTP has expired. Please request a new one."

            record.attempts += 1
            if record.attempts > OTP_MAX_ATTEMPTS:
                del self._records[key]
                return False, "Too many failed attempts. Please request a new OTP."

            if not secrets.compare_digest(record.otp, code.strip()):
                return False, f"Invalid OTP. {OTP_MAX_ATTEMPTS - record.attempts} attempts remaining."

            del self._records[key]
            return True, "OTP verified successfully"

    def clear(self, email: str) -> None:
        with self._lock:
            self._records.pop(email.lower(), None)
