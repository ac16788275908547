"""In-process fixed-window rate limiter keyed by client identity."""

import math
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    # Seconds until the current window closes (rounded up).
    reset_after: int


class FixedWindowRateLimiter:
    """
    Count hits per key in fixed windows of window_seconds.

    The first hit for a key opens its window; hits beyond max_requests inside
    that window are rejected until it closes. One lock guards every counter,
    so concurrent requests for the same key never lose an increment.
    """

    # Prune stale windows once this many keys are tracked.
    PRUNE_THRESHOLD = 10_000

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        # key -> (window_start, count)
        self._windows: dict[str, tuple[float, int]] = {}

    def check(self, key: str) -> RateLimitResult:
        """Record one hit for key and report whether it is within the limit."""
        with self._lock:
            now = self._clock()
            start, count = self._windows.get(key, (now, 0))
            if now - start >= self.window_seconds:
                start, count = now, 0
            count += 1
            self._windows[key] = (start, count)
            if len(self._windows) > self.PRUNE_THRESHOLD:
                self._prune(now)

        reset_after = max(1, math.ceil(start + self.window_seconds - now))
        return RateLimitResult(
            allowed=count <= self.max_requests,
            limit=self.max_requests,
            remaining=max(0, self.max_requests - count),
            reset_after=reset_after,
        )

    def reset(self, key: str) -> None:
        with self._lock:
            self._windows.pop(key, None)

    def _prune(self, now: float) -> None:
        expired = [k for k, (start, _) in self._windows.items() if now - start >= self.window_seconds]
        for k in expired:
            del self._windows[k]
