"""
Fixed-window rate limiter keyed by client.
"""

from dataclasses import dataclass
from typing import Callable
import threading
import time


@dataclass
class RateLimitResult:
    success: bool
    remaining: int
    reset: float  # epoch seconds when the window ends


class RateLimiter:
    """Allows `limit` hits per key in each window of `window_seconds`."""

    def __init__(self, limit: int, window_seconds: float, clock: Callable[[], float] = time.time):
        self.limit = limit
        self.window_seconds = window_seconds
        self.clock = clock
        self._windows: dict[str, list] = {}  # key -> [count, expires_at]
        self._lock = threading.Lock()

    def consume(self, key: str) -> RateLimitResult:
        now = self.clock()
        with self._lock:
            window = self._windows.get(key)
            if window is None or window[1] <= now:
                self._windows[key] = [1, now + self.window_seconds]
                return RateLimitResult(True, self.limit - 1, now + self.window_seconds)

            if window[0] >= self.limit:
                return RateLimitResult(False, 0, window[1])

            window[0] += 1
            return RateLimitResult(True, self.limit - window[0], window[1])

    def reset(self, key: str) -> None:
        with self._lock:
            self._windows.pop(key, None)
