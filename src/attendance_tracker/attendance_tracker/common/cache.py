from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

V = TypeVar("V")


@dataclass
class _Entry(Generic[V]):
    value: V
    expires_at: float


class TTLCache(Generic[V]):
    """Process-local key/value store whose entries expire after a fixed time-to-live.

    Not a source of truth: contents are lost on restart. The clock is injectable
    so tests can move time forward without sleeping.
    """

    def __init__(self, *, ttl_seconds: float, clock: Callable[[], float] = time.monotonic, max_entries: int = 10_000):
        self._ttl = float(ttl_seconds)
        self._clock = clock
        self._max_entries = int(max_entries)
        self._entries: Dict[str, _Entry[V]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[V]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.expires_at <= self._clock():
                del self._entries[key]
                return None
            return entry.value

    def set(self, key: str, value: V, *, ttl_seconds: float | None = None) -> None:
        ttl = self._ttl if ttl_seconds is None else float(ttl_seconds)
        with self._lock:
            if key not in self._entries:
                self._make_room()
            self._entries[key] = _Entry(value=value, expires_at=self._clock() + ttl)

    def update(self, key: str, fn: Callable[[Optional[V]], V], *, refresh: bool = False) -> V:
        """Atomically replace the value under ``key`` with ``fn(current)``.

        The entry keeps its expiry unless ``refresh`` restarts the time-to-live.
        """
        with self._lock:
            now = self._clock()
            entry = self._entries.get(key)
            if entry is not None and entry.expires_at <= now:
                entry = None
            value = fn(entry.value if entry else None)
            if key not in self._entries:
                self._make_room()
            expires_at = entry.expires_at if entry and not refresh else now + self._ttl
            self._entries[key] = _Entry(value=value, expires_at=expires_at)
            return value

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            self._evict_expired()
            return len(self._entries)

    def _evict_expired(self) -> None:
        now = self._clock()
        for key in [k for k, e in self._entries.items() if e.expires_at <= now]:
            del self._entries[key]

    def _make_room(self) -> None:
        if len(self._entries) < self._max_entries:
            return
        self._evict_expired()
        overflow = len(self._entries) - self._max_entries + 1
        if overflow > 0:
            soonest = sorted(self._entries, key=lambda k: self._entries[k].expires_at)[:overflow]
            for key in soonest:
                del self._entries[key]


def cache_key(*parts: Any) -> str:
    return ":".join(str(p) for p in parts)
