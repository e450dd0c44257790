"""
Download rate limiting.

Downloads go through the operator's YouTube access, so they're capped per
requester and per client IP. The IP cap stops one client from rotating
requester keys. Counters live in memory; a restart resets them.
"""

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Optional

from ..core.errors import PipelineError

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60 * 60


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimitExceeded(PipelineError):
    """A requester or IP has used up its downloads for the current window."""

    stage = "rate-limit"
    status_code = 429

    def __init__(self, limit_type: str, wait_minutes: int) -> None:
        super().__init__(
            f"Download limit reached. Please try again in {wait_minutes} minutes",
            details={"limit_type": limit_type, "wait_minutes": wait_minutes},
        )
        self.limit_type = limit_type
        self.wait_minutes = wait_minutes


class DownloadRateLimiter:
    """
    Fixed-window counters keyed by requester and by IP.

    A window opens on the first download for a key and lasts an hour.
    Both caps are checked before either counter moves, so a rejected
    request costs nothing. Expired windows are dropped on every check,
    which keeps the tables bounded by what was admitted within the hour.
    """

    def __init__(
        self,
        max_per_key: int = 10,
        max_per_ip: int = 20,
        window_seconds: float = WINDOW_SECONDS,
    ) -> None:
        self._max_per_key = max_per_key
        self._max_per_ip = max_per_ip
        self._window = window_seconds
        self._by_key: dict[str, _Window] = {}
        self._by_ip: dict[str, _Window] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _prune(table: dict[str, _Window], now: float) -> None:
        for identifier in [k for k, w in table.items() if now > w.reset_at]:
            del table[identifier]

    def _reject_if_full(
        self,
        window: Optional[_Window],
        identifier: str,
        limit: int,
        limit_type: str,
        now: float,
    ) -> None:
        if window is None or window.count < limit:
            return
        wait_minutes = max(1, math.ceil((window.reset_at - now) / 60))
        logger.warning(
            "Download rate limit exceeded",
            extra={"limit_type": limit_type, "identifier": identifier, "wait_minutes": wait_minutes}
        )
        raise RateLimitExceeded(limit_type, wait_minutes)

    def _count(self, table: dict[str, _Window], identifier: str, now: float) -> None:
        window = table.get(identifier)
        if window is None:
            table[identifier] = _Window(count=1, reset_at=now + self._window)
        else:
            window.count += 1

    def check(self, requester_key: Optional[str], client_ip: str, now: Optional[float] = None) -> None:
        """Count one download. Raises RateLimitExceeded when either cap is hit."""
        now = time.time() if now is None else now
        key = requester_key or client_ip
        with self._lock:
            self._prune(self._by_key, now)
            self._prune(self._by_ip, now)

            self._reject_if_full(self._by_key.get(key), key, self._max_per_key, "account", now)
            self._reject_if_full(self._by_ip.get(client_ip), client_ip, self._max_per_ip, "ip", now)

            self._count(self._by_key, key, now)
            self._count(self._by_ip, client_ip, now)

    @property
    def tracked_windows(self) -> int:
        """Open windows across both tables."""
        with self._lock:
            return len(self._by_key) + len(self._by_ip)
