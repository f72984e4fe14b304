# eduhash/storage/otp.py
import secrets
import threading
import time
from typing import Callable, Dict, Tuple

from eduhash.common.utils import constant_time_compare


class OtpStore:
    """
    Short-lived one-time codes keyed by pending transaction id.

    consume() is atomic per store: a correct code is deleted as it is
    accepted, so the same code can never confirm twice.
    """

    def __init__(self, ttl_seconds: int = 300, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._codes: Dict[str, Tuple[str, float]] = {}
        self._lock = threading.Lock()

    def issue(self, key: str) -> str:
        code = f"{secrets.randbelow(900000) + 100000}"
        self.purge_expired()
        with self._lock:
            self._codes[key] = (code, self._clock() + self.ttl_seconds)
        return code

    def consume(self, key: str, code: str) -> bool:
        with self._lock:
            entry = self._codes.get(key)
            if entry is None:
                return False
            expected, expires_at = entry
            if self._clock() >= expires_at:
                del self._codes[key]
                return False
            if not constant_time_compare(expected, str(code)):
                return False
            del self._codes[key]
            return True

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [k for k, (_, exp) in self._codes.items() if now >= exp]
            for k in expired:
                del self._codes[k]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._codes)
