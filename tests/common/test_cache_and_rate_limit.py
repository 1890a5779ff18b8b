from __future__ import annotations

import pytest

from src.attendance_tracker.attendance_tracker.common.cache import TTLCache, cache_key
from src.attendance_tracker.attendance_tracker.common.locks import KeyedLocks
from src.attendance_tracker.attendance_tracker.common.rate_limit import SlidingWindowRateLimiter
from src.attendance_tracker.attendance_tracker.core.exceptions import RateLimitError


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def test_cache_entries_expire():
    clock = FakeClock()
    cache = TTLCache(ttl_seconds=10, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2, ttl_seconds=30)

    clock.advance(9)
    assert cache.get("a") == 1
    clock.advance(1)
    assert cache.get("a") is None
    assert cache.get("b") == 2
    assert len(cache) == 1


def test_cache_update_keeps_expiry():
    clock = FakeClock()
    cache = TTLCache(ttl_seconds=10, clock=clock)
    assert cache.update("k", lambda v: (v or 0) + 1) == 1
    clock.advance(5)
    assert cache.update("k", lambda v: (v or 0) + 1) == 2
    clock.advance(5)
    assert cache.get("k") is None

    cache.update("r", lambda v: 1)
    clock.advance(8)
    cache.update("r", lambda v: v + 1, refresh=True)
    clock.advance(8)
    assert cache.get("r") == 2


def test_cache_never_exceeds_max_entries():
    clock = FakeClock()
    cache = TTLCache(ttl_seconds=60, clock=clock, max_entries=3)
    for i in range(10):
        clock.advance(1)
        cache.set(f"k{i}", i)

    assert len(cache) == 3
    assert [cache.get(f"k{i}") for i in (7, 8, 9)] == [7, 8, 9]
    assert cache.get("k0") is None


def test_cache_evicts_soonest_expiring_first():
    clock = FakeClock()
    cache = TTLCache(ttl_seconds=60, clock=clock, max_entries=2)
    cache.set("long", 1, ttl_seconds=600)
    cache.set("short", 2, ttl_seconds=5)
    cache.update("new", lambda v: 3)

    assert cache.get("short") is None
    assert cache.get("long") == 1
    assert cache.get("new") == 3

    cache.set("long", 4)
    assert len(cache) == 2


def test_cache_key_joins_parts():
    assert cache_key("send", 7) == "send:7"


def test_rate_limiter_blocks_within_window():
    clock = FakeClock()
    limiter = SlidingWindowRateLimiter(max_attempts=3, window_seconds=60, clock=clock, message="slow down")
    for _ in range(3):
        limiter.hit("1.2.3.4")
    with pytest.raises(RateLimitError, match="slow down"):
        limiter.hit("1.2.3.4")

    limiter.hit("5.6.7.8")


def test_rate_limiter_window_slides():
    clock = FakeClock()
    limiter = SlidingWindowRateLimiter(max_attempts=2, window_seconds=60, clock=clock)
    limiter.hit("k")
    clock.advance(30)
    limiter.hit("k")
    clock.advance(31)
    limiter.hit("k")
    with pytest.raises(RateLimitError):
        limiter.hit("k")


def test_rate_limiter_reset():
    limiter = SlidingWindowRateLimiter(max_attempts=1, window_seconds=60, clock=FakeClock())
    limiter.hit("k")
    limiter.reset("k")
    limiter.hit("k")


def test_keyed_locks_are_released():
    locks = KeyedLocks()
    with locks.hold(1):
        with locks.hold(2):
            pass
    assert locks._locks == {}
