from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional, Sequence

from ..core.enums import ApprovalStatus, EventType, Punctuality, RecognitionMethod
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, where_clause
from .model import AttendanceEvent, EventQuery, Location, NewAttendanceEvent
from .repository import AppendGuard, AttendanceRepository

_COLUMNS = """
    event_id, user_id, organization_id, work_date, event_type, check_in_time, check_out_time,
    recognition_method, face_confidence, latitude, longitude, address, status, approved_by,
    approved_date, rejection_reason, working_minutes, break_minutes, overtime_minutes,
    punctuality, is_offline_entry, synced_at, notes, admin_notes, face_image_url, device_id,
    ip_address, user_agent, modified_by, modified_at, created_at
"""

_ENUM_COLUMNS = {"event_type", "recognition_method", "status", "punctuality"}


def _to_event(row: Dict[str, Any]) -> AttendanceEvent:
    location = None
    if row.get("latitude") is not None or row.get("longitude") is not None or row.get("address"):
        location = Location(latitude=row.get("latitude"), longitude=row.get("longitude"), address=row.get("address"))
    return AttendanceEvent(
        event_id=int(row["event_id"]),
        user_id=int(row["user_id"]),
        organization_id=int(row["organization_id"]),
        work_date=row["work_date"],
        event_type=EventType(row["event_type"]),
        check_in_time=row["check_in_time"],
        check_out_time=row.get("check_out_time"),
        recognition_method=RecognitionMethod(row["recognition_method"]),
        face_confidence=row.get("face_confidence"),
        location=location,
        status=ApprovalStatus(row["status"]),
        approved_by=row.get("approved_by"),
        approved_date=row.get("approved_date"),
        rejection_reason=row.get("rejection_reason"),
        working_minutes=int(row["working_minutes"] or 0),
        break_minutes=int(row["break_minutes"] or 0),
        overtime_minutes=int(row["overtime_minutes"] or 0),
        punctuality=Punctuality(row["punctuality"]),
        is_offline_entry=bool(row["is_offline_entry"]),
        synced_at=row.get("synced_at"),
        notes=row.get("notes"),
        admin_notes=row.get("admin_notes"),
        face_image_url=row.get("face_image_url"),
        device_id=row.get("device_id"),
        ip_address=row.get("ip_address"),
        user_agent=row.get("user_agent"),
        modified_by=row.get("modified_by"),
        modified_at=row.get("modified_at"),
        created_at=row.get("created_at"),
    )


def _column_values(fields: Dict[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key, value in fields.items():
        if key == "location":
            loc = value or Location()
            out["latitude"] = loc.latitude
            out["longitude"] = loc.longitude
            out["address"] = loc.address
        elif key in _ENUM_COLUMNS:
            out[key] = value.value
        elif key == "is_offline_entry":
            out[key] = int(value)
        elif key == "created_at" and value is None:
            continue
        else:
            out[key] = value
    return out


def _order_key(e: AttendanceEvent):
    return (e.occurred_at, e.event_id)


class MySQLAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, event_id: int) -> Optional[AttendanceEvent]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM attendance_events WHERE event_id=%s", (event_id,))
            row = fetchone(cur)
            return _to_event(row) if row else None

    @staticmethod
    def _select_user_window(cur, user_id: int, start: datetime, end: datetime) -> list[AttendanceEvent]:
        cur.execute(
            f"""
            SELECT {_COLUMNS} FROM attendance_events
            WHERE user_id=%s AND check_in_time >= %s AND check_in_time < %s
            """,
            (user_id, start, end),
        )
        return sorted((_to_event(r) for r in fetchall(cur)), key=_order_key)

    def list_for_user_between(self, user_id: int, start: datetime, end: datetime) -> Sequence[AttendanceEvent]:
        with db_cursor(self._conn_factory) as (_, cur):
            return self._select_user_window(cur, user_id, start, end)

    def append(
        self,
        draft: NewAttendanceEvent,
        *,
        window: tuple[datetime, datetime],
        guard: AppendGuard,
    ) -> AttendanceEvent:
        values = _column_values(vars(draft))
        columns = ", ".join(values)
        placeholders = ", ".join(["%s"] * len(values))
        with db_cursor(self._conn_factory) as (_, cur):
            # Row lock on the owning user serializes concurrent appends for that user.
            cur.execute("SELECT user_id FROM users WHERE user_id=%s FOR UPDATE", (draft.user_id,))
            fetchall(cur)
            guard(self._select_user_window(cur, draft.user_id, *window))
            cur.execute(
                f"INSERT INTO attendance_events ({columns}) VALUES ({placeholders})",
                tuple(values.values()),
            )
            event_id = int(cur.lastrowid)
            cur.execute(f"SELECT {_COLUMNS} FROM attendance_events WHERE event_id=%s", (event_id,))
            return _to_event(fetchone(cur))

    def update(self, event_id: int, **fields) -> Optional[AttendanceEvent]:
        values = _column_values(fields)
        if values:
            assignments = ", ".join(f"{col}=%s" for col in values)
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    f"UPDATE attendance_events SET {assignments} WHERE event_id=%s",
                    (*values.values(), event_id),
                )
        return self.get_by_id(event_id)

    def delete(self, event_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM attendance_events WHERE event_id=%s", (event_id,))
            return cur.rowcount > 0

    @staticmethod
    def _filters(
        *,
        organization_id: Optional[int] = None,
        user_ids: Optional[Sequence[int]] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> tuple[list[str], list[Any]]:
        conditions: list[str] = []
        params: list[Any] = []
        if organization_id is not None:
            conditions.append("organization_id=%s")
            params.append(organization_id)
        if user_ids is not None:
            if not user_ids:
                conditions.append("1=0")
            else:
                conditions.append(f"user_id IN ({', '.join(['%s'] * len(user_ids))})")
                params.extend(user_ids)
        if start is not None:
            conditions.append("check_in_time >= %s")
            params.append(start)
        if end is not None:
            conditions.append("check_in_time < %s")
            params.append(end)
        return conditions, params

    def search(self, query: EventQuery) -> tuple[Sequence[AttendanceEvent], int]:
        user_ids = list(query.user_ids) if query.user_ids is not None else None
        if query.user_id is not None:
            user_ids = [query.user_id] if user_ids is None else [u for u in user_ids if u == query.user_id]
        conditions, params = self._filters(
            organization_id=query.organization_id,
            user_ids=user_ids,
            start=query.start,
            end=query.end,
        )
        if query.event_type is not None:
            conditions.append("event_type=%s")
            params.append(query.event_type.value)
        if query.status is not None:
            conditions.append("status=%s")
            params.append(query.status.value)
        where = where_clause(conditions)
        offset = (max(1, query.page) - 1) * query.limit

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS n FROM attendance_events{where}", tuple(params))
            total = int(fetchone(cur)["n"])
            cur.execute(
                f"""
                SELECT {_COLUMNS} FROM attendance_events{where}
                ORDER BY COALESCE(check_out_time, check_in_time) DESC, event_id DESC
                LIMIT %s OFFSET %s
                """,
                (*params, query.limit, offset),
            )
            rows = fetchall(cur)
        return [_to_event(r) for r in rows], total

    def list_between(
        self,
        *,
        start: datetime,
        end: datetime,
        organization_id: Optional[int] = None,
        user_ids: Optional[Sequence[int]] = None,
    ) -> Sequence[AttendanceEvent]:
        conditions, params = self._filters(
            organization_id=organization_id,
            user_ids=list(user_ids) if user_ids is not None else None,
            start=start,
            end=end,
        )
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM attendance_events{where_clause(conditions)}", tuple(params))
            return sorted((_to_event(r) for r in fetchall(cur)), key=_order_key)

    def count(self, *, organization_id: Optional[int] = None, user_id: Optional[int] = None) -> int:
        conditions, params = self._filters(
            organization_id=organization_id,
            user_ids=None if user_id is None else [user_id],
        )
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS n FROM attendance_events{where_clause(conditions)}", tuple(params))
            return int(fetchone(cur)["n"])
