"""Fixed-window per-caller rate limiting"""

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict


@dataclass
class RateLimitEntry:
    count: int
    reset_at: float


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after: int = 0  # seconds until the window resets; 0 when allowed


class FixedWindowRateLimiter:
    """
    Approximate per-caller throttle: at most `max_requests` per window.

    The first request from a caller (or the first after the window elapsed)
    opens a fresh window. Bursts across a window boundary are possible.

    Counters live in process memory only. A restart resets every caller, and
    separate worker processes keep separate counters.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._entries: Dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()

    def check(self, caller_id: str) -> RateLimitDecision:
        """Count one request for `caller_id`; denied requests are not counted"""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(caller_id)

            if entry is None or now >= entry.reset_at:
                self._entries[caller_id] = RateLimitEntry(count=1, reset_at=now + self.window_seconds)
                return RateLimitDecision(allowed=True)

            if entry.count >= self.max_requests:
                retry_after = max(1, math.ceil(entry.reset_at - now))
                return RateLimitDecision(allowed=False, retry_after=retry_after)

            entry.count += 1
            return RateLimitDecision(allowed=True)

    def reset(self) -> None:
        with self._lock:
            self._entries.clear()
