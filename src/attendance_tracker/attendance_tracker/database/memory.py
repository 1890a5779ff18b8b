from __future__ import annotations

import itertools
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Sequence, TypeVar

T = TypeVar("T")


@dataclass
class MemoryStore:
    """Shared in-process tables backing the memory repositories.

    Used by the ``testing`` settings and the test-suite. ``lock`` is re-entrant so a
    repository can hold it across a read-decide-write sequence.
    """

    organizations: Dict[int, Any] = field(default_factory=dict)
    users: Dict[int, Any] = field(default_factory=dict)
    events: Dict[int, Any] = field(default_factory=dict)
    lock: threading.RLock = field(default_factory=threading.RLock)
    _sequences: Dict[str, Iterator[int]] = field(default_factory=dict)

    def next_id(self, table: str) -> int:
        with self.lock:
            seq = self._sequences.setdefault(table, itertools.count(1))
            return next(seq)


def paginate(items: Sequence[T], page: int, limit: int) -> list[T]:
    page = max(1, int(page))
    limit = max(1, int(limit))
    start = (page - 1) * limit
    return list(items[start:start + limit])
