"""Fixed-window request throttling."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

LOGGER = logging.getLogger(__name__)

Clock = Callable[[], float]


class RateLimiter:
    """Allows at most `max_requests` calls per fixed window.

    The window restarts on the first call made `window_seconds` or more after
    it opened. Rejected calls do not count towards the limit.
    """

    def __init__(
        self,
        max_requests: int = 10,
        window_seconds: float = 60.0,
        clock: Clock = time.monotonic,
    ) -> None:
        self._max_requests = max_requests
        self._window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._count = 0
        self._window_start = clock()

    @property
    def count(self) -> int:
        return self._count

    def try_acquire(self) -> bool:
        with self._lock:
            now = self._clock()
            if self._is_refusing(now):
                return False
            if now - self._window_start >= self._window_seconds:
                self._count = 0
                self._window_start = now
            if self._count >= self._max_requests:
                self._on_limit(now)
                LOGGER.warning("Rate limit reached: %d/%d", self._count + 1, self._max_requests)
                return False
            self._count += 1
            return True

    def _is_refusing(self, now: float) -> bool:
        return False

    def _on_limit(self, now: float) -> None:
        pass


class CooldownRateLimiter(RateLimiter):
    """Fixed-window limiter that also refuses everything for `cooldown_seconds`
    after the limit is hit, even if a new window has started meanwhile."""

    def __init__(
        self,
        max_requests: int = 10,
        window_seconds: float = 60.0,
        cooldown_seconds: float = 60.0,
        clock: Clock = time.monotonic,
    ) -> None:
        super().__init__(max_requests, window_seconds, clock)
        self._cooldown_seconds = cooldown_seconds
        self._cooldown_until = float("-inf")

    def _is_refusing(self, now: float) -> bool:
        return now < self._cooldown_until

    def _on_limit(self, now: float) -> None:
        self._cooldown_until = now + self._cooldown_seconds


def build_rate_limiter(
    max_requests: int,
    window_ms: int,
    cooldown_ms: int = 0,
    clock: Clock = time.monotonic,
) -> RateLimiter:
    """Return the cooldown variant when a cooldown is configured."""

    if cooldown_ms > 0:
        return CooldownRateLimiter(max_requests, window_ms / 1000, cooldown_ms / 1000, clock)
    return RateLimiter(max_requests, window_ms / 1000, clock)
