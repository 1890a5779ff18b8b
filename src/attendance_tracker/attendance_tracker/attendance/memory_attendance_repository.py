from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Optional, Sequence

from ..database.memory import MemoryStore, paginate
from .model import AttendanceEvent, EventQuery, NewAttendanceEvent
from .repository import AppendGuard, AttendanceRepository


class MemoryAttendanceRepository(AttendanceRepository):
    def __init__(self, store: MemoryStore):
        self._store = store

    def get_by_id(self, event_id: int) -> Optional[AttendanceEvent]:
        return self._store.events.get(event_id)

    def list_for_user_between(self, user_id: int, start: datetime, end: datetime) -> Sequence[AttendanceEvent]:
        with self._store.lock:
            items = [
                e for e in self._store.events.values()
                if e.user_id == user_id and start <= e.check_in_time < end
            ]
        return sorted(items, key=lambda e: (e.occurred_at, e.event_id))

    def append(
        self,
        draft: NewAttendanceEvent,
        *,
        window: tuple[datetime, datetime],
        guard: AppendGuard,
    ) -> AttendanceEvent:
        with self._store.lock:
            guard(self.list_for_user_between(draft.user_id, *window))
            event = AttendanceEvent(event_id=self._store.next_id("events"), **vars(draft))
            self._store.events[event.event_id] = event
            return event

    def update(self, event_id: int, **fields) -> Optional[AttendanceEvent]:
        with self._store.lock:
            event = self._store.events.get(event_id)
            if event is None:
                return None
            event = replace(event, **fields)
            self._store.events[event_id] = event
            return event

    def delete(self, event_id: int) -> bool:
        with self._store.lock:
            return self._store.events.pop(event_id, None) is not None

    def _matching(
        self,
        *,
        organization_id: Optional[int],
        user_ids: Optional[Sequence[int]],
        start: Optional[datetime],
        end: Optional[datetime],
    ) -> list[AttendanceEvent]:
        with self._store.lock:
            items = list(self._store.events.values())
        if organization_id is not None:
            items = [e for e in items if e.organization_id == organization_id]
        if user_ids is not None:
            wanted = set(user_ids)
            items = [e for e in items if e.user_id in wanted]
        if start is not None:
            items = [e for e in items if e.check_in_time >= start]
        if end is not None:
            items = [e for e in items if e.check_in_time < end]
        return items

    def search(self, query: EventQuery) -> tuple[Sequence[AttendanceEvent], int]:
        user_ids = query.user_ids
        if query.user_id is not None:
            user_ids = (query.user_id,) if user_ids is None else tuple(u for u in user_ids if u == query.user_id)
        items = self._matching(
            organization_id=query.organization_id,
            user_ids=user_ids,
            start=query.start,
            end=query.end,
        )
        if query.event_type is not None:
            items = [e for e in items if e.event_type == query.event_type]
        if query.status is not None:
            items = [e for e in items if e.status == query.status]
        items.sort(key=lambda e: (e.occurred_at, e.event_id), reverse=True)
        return paginate(items, query.page, query.limit), len(items)

    def list_between(
        self,
        *,
        start: datetime,
        end: datetime,
        organization_id: Optional[int] = None,
        user_ids: Optional[Sequence[int]] = None,
    ) -> Sequence[AttendanceEvent]:
        items = self._matching(organization_id=organization_id, user_ids=user_ids, start=start, end=end)
        return sorted(items, key=lambda e: (e.occurred_at, e.event_id))

    def count(self, *, organization_id: Optional[int] = None, user_id: Optional[int] = None) -> int:
        items = self._matching(
            organization_id=organization_id,
            user_ids=None if user_id is None else (user_id,),
            start=None,
            end=None,
        )
        return len(items)
