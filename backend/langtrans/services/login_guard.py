import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone

from langtrans.exceptions import LoginLocked

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoginAttempts:
    consecutive_failures: int = 0
    locked_until: datetime | None = None
    last_failure_at: datetime | None = None

    def is_stale(self, now: datetime, window: timedelta) -> bool:
        """True once the entry no longer affects any login decision."""
        if self.locked_until is not None:
            return now >= self.locked_until
        return self.last_failure_at is None or now - self.last_failure_at >= window


class LoginGuard:
    """In-memory per-IP lockout for admin login.

    State lives in this process only; a restart clears every lockout.
    Failure counts that see no new failure for a whole lockout window are
    forgotten, so the map only holds IPs active within the last window.
    """

    def __init__(
        self,
        max_failures: int = 5,
        lockout_seconds: int = 30 * 60,
        clock: Callable[[], datetime] | None = None,
    ):
        self.max_failures = max_failures
        self.lockout = timedelta(seconds=lockout_seconds)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._attempts: dict[str, LoginAttempts] = {}
        self._lock = threading.Lock()

    def check(self, ip: str) -> None:
        """Raise LoginLocked if ``ip`` is inside its lockout window."""
        now = self._clock()
        with self._lock:
            entry = self._attempts.get(ip)
            if entry is None or entry.locked_until is None:
                return
            if now < entry.locked_until:
                raise LoginLocked(retry_after=entry.locked_until - now)
            # Window over: back to a clean slate
            del self._attempts[ip]

    def record_failure(self, ip: str) -> None:
        now = self._clock()
        with self._lock:
            entry = self._attempts.get(ip, LoginAttempts())
            if entry.locked_until is not None and now < entry.locked_until:
                return  # window is fixed from the first trip

            self._purge_stale(now)
            entry = self._attempts.get(ip, LoginAttempts())

            failures = entry.consecutive_failures + 1
            entry = replace(entry, consecutive_failures=failures, last_failure_at=now)
            if failures >= self.max_failures:
                entry = replace(entry, locked_until=now + self.lockout)
                logger.warning(
                    "Admin login locked for %s after %d failed attempts",
                    ip, failures,
                )
            self._attempts[ip] = entry

    def record_success(self, ip: str) -> None:
        with self._lock:
            self._attempts.pop(ip, None)

    def attempts(self, ip: str) -> LoginAttempts:
        with self._lock:
            return self._attempts.get(ip, LoginAttempts())

    def __len__(self) -> int:
        with self._lock:
            return len(self._attempts)

    def _purge_stale(self, now: datetime) -> None:
        stale = [ip for ip, e in self._attempts.items() if e.is_stale(now, self.lockout)]
        for ip in stale:
            del self._attempts[ip]
