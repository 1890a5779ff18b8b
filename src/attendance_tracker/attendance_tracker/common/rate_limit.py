from __future__ import annotations

import time
from typing import Callable

from ..core.exceptions import RateLimitError
from .cache import TTLCache


class SlidingWindowRateLimiter:
    """Allow at most ``max_attempts`` hits per key within ``window_seconds``."""

    def __init__(
        self,
        *,
        max_attempts: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        message: str = "Too many attempts. Please try again later.",
    ):
        self._max_attempts = int(max_attempts)
        self._window = float(window_seconds)
        self._clock = clock
        self._message = message
        self._hits: TTLCache[tuple[float, ...]] = TTLCache(ttl_seconds=window_seconds, clock=clock)

    def hit(self, key: str) -> None:
        """Record an attempt for ``key`` or raise RateLimitError when the window is full."""
        now = self._clock()
        blocked = False

        def _record(current):
            nonlocal blocked
            recent = tuple(t for t in (current or ()) if now - t < self._window)
            if len(recent) >= self._max_attempts:
                blocked = True
                return recent
            return recent + (now,)

        self._hits.update(key, _record, refresh=True)
        if blocked:
            raise RateLimitError(self._message)

    def reset(self, key: str) -> None:
        self._hits.delete(key)
