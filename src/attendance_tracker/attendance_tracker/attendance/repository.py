from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional, Protocol, Sequence

from .model import AttendanceEvent, EventQuery, NewAttendanceEvent

# Receives the user's events inside the append window and raises if the
# append is no longer legal.
AppendGuard = Callable[[Sequence[AttendanceEvent]], None]


class AttendanceRepository(Protocol):
    def get_by_id(self, event_id: int) -> Optional[AttendanceEvent]:
        raise NotImplementedError

    def list_for_user_between(self, user_id: int, start: datetime, end: datetime) -> Sequence[AttendanceEvent]:
        """Events whose ``check_in_time`` lies in [start, end), oldest first."""
        raise NotImplementedError

    def append(
        self,
        draft: NewAttendanceEvent,
        *,
        window: tuple[datetime, datetime],
        guard: AppendGuard,
    ) -> AttendanceEvent:
        """Insert ``draft`` only if ``guard`` accepts the user's current events in ``window``.

        The read and the insert happen atomically with respect to other appends
        for the same user.
        """
        raise NotImplementedError

    def update(self, event_id: int, **fields) -> Optional[AttendanceEvent]:
        raise NotImplementedError

    def delete(self, event_id: int) -> bool:
        raise NotImplementedError

    def search(self, query: EventQuery) -> tuple[Sequence[AttendanceEvent], int]:
        """Newest first, paginated."""
        raise NotImplementedError

    def list_between(
        self,
        *,
        start: datetime,
        end: datetime,
        organization_id: Optional[int] = None,
        user_ids: Optional[Sequence[int]] = None,
    ) -> Sequence[AttendanceEvent]:
        """Unpaginated read for reporting, oldest first."""
        raise NotImplementedError

    def count(self, *, organization_id: Optional[int] = None, user_id: Optional[int] = None) -> int:
        raise NotImplementedError
