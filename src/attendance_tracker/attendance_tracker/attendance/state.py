from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from ..common.datetime_utils import minutes_between
from ..core.enums import EventType
from .model import AttendanceEvent


@dataclass(frozen=True)
class DayState:
    """Open/closed state of one user's day, derived from the day's events.

    A session is open when there is a check-in and no check-out at or after it.
    Equal timestamps count as closed.
    """

    last_check_in: Optional[datetime] = None
    last_check_out: Optional[datetime] = None
    last_break_start: Optional[datetime] = None
    last_break_end: Optional[datetime] = None
    session_break_minutes: int = 0

    @classmethod
    def from_events(cls, events: Iterable[AttendanceEvent]) -> "DayState":
        events = sorted(events, key=lambda e: (e.occurred_at, e.event_id))

        def _latest(kind: EventType) -> Optional[datetime]:
            moments = [e.occurred_at for e in events if e.event_type == kind]
            return max(moments) if moments else None

        last_in = _latest(EventType.CHECK_IN)
        breaks = 0
        if last_in is not None:
            for e in events:
                if e.event_type == EventType.BREAK_END and e.check_out_time and e.check_in_time >= last_in:
                    breaks += minutes_between(e.check_in_time, e.check_out_time)

        return cls(
            last_check_in=last_in,
            last_check_out=_latest(EventType.CHECK_OUT),
            last_break_start=_latest(EventType.BREAK_START),
            last_break_end=_latest(EventType.BREAK_END),
            session_break_minutes=breaks,
        )

    @property
    def is_checked_in(self) -> bool:
        if self.last_check_in is None:
            return False
        return self.last_check_out is None or self.last_check_out < self.last_check_in

    @property
    def is_on_break(self) -> bool:
        if not self.is_checked_in or self.last_break_start is None:
            return False
        if self.last_break_start < self.last_check_in:
            return False
        return self.last_break_end is None or self.last_break_end < self.last_break_start

    @property
    def status(self) -> str:
        if self.last_check_in is None:
            return "absent"
        return "checked-in" if self.is_checked_in else "checked-out"
