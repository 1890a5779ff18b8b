from __future__ import annotations

import csv
import io
from collections import Counter, defaultdict
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Optional, Sequence

from ..attendance.model import AttendanceEvent
from ..attendance.repository import AttendanceRepository
from ..attendance.state import DayState
from ..common.datetime_utils import day_bounds, format_minutes, month_bounds
from ..common.validators import require_int_range
from ..core.enums import EventType, Role
from ..core.exceptions import NotFoundError, ValidationError
from ..organizations.repository import OrganizationRepository
from ..users.access import (
    ADMIN_ROLES,
    MANAGER_ROLES,
    ensure_role,
    ensure_same_organization,
    organization_scope,
)
from ..users.model import User
from ..users.repository import UserRepository

TIMESHEET_COLUMNS = [
    "work_date",
    "user_id",
    "full_name",
    "employee_id",
    "department",
    "check_in",
    "check_out",
    "break_hours",
    "worked_hours",
    "overtime_hours",
    "punctuality",
    "status",
    "notes",
]


@dataclass(frozen=True)
class TimesheetData:
    rows: list[dict]
    summary: list[dict]


def _count_types(events: Iterable[AttendanceEvent]) -> Counter:
    return Counter(e.event_type for e in events)


def _matches(user: User, needle: str) -> bool:
    return any(needle in (v or "").lower() for v in (user.first_name, user.last_name, user.employee_id, user.department))


class ReportingService:
    """Read-only aggregations over the ledger, scoped to the caller's organization unless super-admin."""

    def __init__(
        self,
        attendance: AttendanceRepository,
        users: UserRepository,
        organizations: OrganizationRepository,
    ):
        self._attendance = attendance
        self._users = users
        self._organizations = organizations

    def _scope(self, actor: User, requested: Optional[int] = None, roles=MANAGER_ROLES) -> Optional[int]:
        ensure_role(actor, roles)
        if requested is not None:
            ensure_same_organization(actor, requested)
            return requested
        return organization_scope(actor)

    def attendance_stats(self, actor: User, filters: dict, *, now: datetime | None = None) -> dict:
        now = now or datetime.now()
        scope = self._scope(actor)
        year = require_int_range(filters.get("year") or now.year, "Year", min_value=1970, max_value=9999)
        month = filters.get("month")
        month = require_int_range(month, "Month", min_value=1, max_value=12) if month not in (None, "") else None
        department = (filters.get("department") or "").strip() or None
        user_id = filters.get("user_id")

        members = {u.user_id: u for u in self._users.list_for_organization(scope)}
        if department:
            members = {uid: u for uid, u in members.items() if u.department == department}
        user_ids: Optional[list[int]] = list(members) if department else None
        if user_id not in (None, ""):
            user_id = require_int_range(user_id, "userId", min_value=1, max_value=2**31)
            user_ids = [uid for uid in (user_ids if user_ids is not None else members) if uid == user_id]

        start, end = month_bounds(year, month)
        events = self._attendance.list_between(start=start, end=end, organization_id=scope, user_ids=user_ids)

        types = _count_types(events)
        overview = {
            "total_records": len(events),
            "check_ins": types[EventType.CHECK_IN],
            "check_outs": types[EventType.CHECK_OUT],
            "offline_records": sum(1 for e in events if e.is_offline_entry),
        }

        daily: dict[date, Counter] = defaultdict(Counter)
        for e in events:
            daily[e.check_in_time.date()][e.event_type] += 1
        daily_rows = [
            {"date": d, "check_ins": c[EventType.CHECK_IN], "check_outs": c[EventType.CHECK_OUT]}
            for d, c in sorted(daily.items())
        ]

        departments: list[dict] = []
        if not department:
            grouped: dict[str, list[AttendanceEvent]] = defaultdict(list)
            for e in events:
                owner = members.get(e.user_id)
                grouped[owner.department if owner else "-"].append(e)
            departments = sorted(
                (
                    {
                        "department": name,
                        "total_records": len(items),
                        "check_ins": _count_types(items)[EventType.CHECK_IN],
                        "unique_users": len({e.user_id for e in items}),
                    }
                    for name, items in grouped.items()
                ),
                key=lambda row: row["total_records"],
                reverse=True,
            )

        return {"overview": overview, "daily": daily_rows, "departments": departments, "year": year, "month": month}

    def today_summary(self, actor: User, *, now: datetime | None = None) -> dict:
        now = now or datetime.now()
        scope = self._scope(actor)
        start, end = day_bounds(now.date())
        events = self._attendance.list_between(start=start, end=end, organization_id=scope)

        by_user: dict[int, list[AttendanceEvent]] = defaultdict(list)
        for e in events:
            by_user[e.user_id].append(e)

        roster = {u.user_id: u for u in self._users.list_for_organization(scope) if u.is_active and u.is_approved}
        people = dict(roster)
        people.update(self._users.get_many(uid for uid in by_user if uid not in people))

        rows = []
        for user in sorted(people.values(), key=lambda u: (u.first_name.lower(), u.user_id)):
            own = by_user.get(user.user_id, [])
            state = DayState.from_events(own)
            first_in = min((e.check_in_time for e in own if e.event_type == EventType.CHECK_IN), default=None)
            last_out = state.last_check_out
            hours = round((last_out - first_in).total_seconds() / 3600, 2) if first_in and last_out else 0
            rows.append(
                {
                    "user": user,
                    "status": state.status,
                    "check_ins": sum(1 for e in own if e.event_type == EventType.CHECK_IN),
                    "check_outs": sum(1 for e in own if e.event_type == EventType.CHECK_OUT),
                    "first_check_in": first_in,
                    "last_check_out": last_out,
                    "total_hours": hours,
                }
            )

        total = len(roster)
        present = sum(1 for uid in roster if any(e.event_type == EventType.CHECK_IN for e in by_user.get(uid, [])))
        return {
            "summary": {
                "total_users": total,
                "present_users": present,
                "absent_users": total - present,
                "attendance_rate": round(present / total * 100, 1) if total else 0,
            },
            "attendance": rows,
        }

    def events_by_date(self, actor: User, day: Optional[date], search: Optional[str] = None) -> list[dict]:
        if day is None:
            raise ValidationError("Date parameter is required")
        scope = self._scope(actor)
        start, end = day_bounds(day)
        events = self._attendance.list_between(start=start, end=end, organization_id=scope)
        owners = self._users.get_many(e.user_id for e in events)
        needle = (search or "").strip().lower()

        rows = []
        for e in sorted(events, key=lambda ev: (ev.occurred_at, ev.event_id), reverse=True):
            owner = owners.get(e.user_id)
            if owner is None or (needle and not _matches(owner, needle)):
                continue
            rows.append({"event": e, "user": owner})
        return rows

    def _department_breakdown(self, users: Sequence[User]) -> list[dict]:
        grouped: dict[str, list[User]] = defaultdict(list)
        for u in users:
            grouped[u.department or "-"].append(u)
        return sorted(
            (
                {
                    "department": name,
                    "count": len(items),
                    "active": sum(1 for u in items if u.is_active),
                    "approved": sum(1 for u in items if u.is_approved),
                    "face_enrolled": sum(1 for u in items if u.face_enrolled),
                }
                for name, items in grouped.items()
            ),
            key=lambda row: row["count"],
            reverse=True,
        )

    def _today_by_type(self, organization_id: Optional[int], now: datetime) -> dict[str, int]:
        start, end = day_bounds(now.date())
        counts = _count_types(self._attendance.list_between(start=start, end=end, organization_id=organization_id))
        return {t.value: counts[t] for t in EventType}

    def user_stats(self, actor: User, *, now: datetime | None = None) -> dict:
        now = now or datetime.now()
        scope = self._scope(actor)
        users = self._users.list_for_organization(scope)
        return {
            "user_stats": {
                "total": len(users),
                "approved": sum(1 for u in users if u.is_approved),
                "pending": sum(1 for u in users if not u.is_approved),
                "active": sum(1 for u in users if u.is_active),
                "face_enrolled": sum(1 for u in users if u.face_enrolled),
                "aadhaar_verified": sum(1 for u in users if u.aadhaar_verified),
            },
            "roles": self._users.count_by_role(scope),
            "departments": self._department_breakdown(users),
            "today_attendance": self._today_by_type(scope, now),
        }

    def organization_stats(self, actor: User, organization_id: int, *, now: datetime | None = None) -> dict:
        now = now or datetime.now()
        org = self._organizations.get_by_id(int(organization_id))
        if org is None:
            raise NotFoundError("Organization not found")
        scope = self._scope(actor, org.organization_id, roles=ADMIN_ROLES)
        users = self._users.list_for_organization(scope)
        today = self._today_by_type(scope, now)
        return {
            "organization": org.with_stats(self._organizations.compute_stats(org.organization_id)),
            "users": {
                "total": len(users),
                "active": sum(1 for u in users if u.is_active),
                "approved": sum(1 for u in users if u.is_approved),
                "pending": sum(1 for u in users if not u.is_approved),
            },
            "today": {
                "check_ins": today[EventType.CHECK_IN.value],
                "check_outs": today[EventType.CHECK_OUT.value],
            },
            "departments": self._department_breakdown(users),
        }

    def global_stats(self, actor: User, *, now: datetime | None = None) -> dict:
        now = now or datetime.now()
        ensure_role(actor, (Role.SUPER_ADMIN,))
        totals = self._organizations.count_all()
        return {
            "total_organizations": totals["organizations"],
            "active_organizations": totals["active_organizations"],
            "total_users": totals["users"],
            "total_attendance": totals["events"],
            "today_attendance": self._today_by_type(None, now)[EventType.CHECK_IN.value],
        }

    def build_timesheet(
        self,
        actor: User,
        *,
        start: date,
        end: date,
        user_id: Optional[int] = None,
        department: Optional[str] = None,
    ) -> TimesheetData:
        """Per-session rows and per-user totals for [start, end] inclusive.

        Employees only ever see their own sessions.
        """
        if end < start:
            raise ValidationError("End date must not be before start date")
        if actor.role in MANAGER_ROLES:
            scope = organization_scope(actor)
            members = {u.user_id: u for u in self._users.list_for_organization(scope)}
        else:
            scope = actor.organization_id
            members = {actor.user_id: actor}
            user_id = actor.user_id
        if department:
            members = {uid: u for uid, u in members.items() if u.department == department}
        user_ids = [uid for uid in members if user_id is None or uid == user_id]

        range_start, _ = day_bounds(start)
        _, range_end = day_bounds(end)
        events = self._attendance.list_between(
            start=range_start, end=range_end, organization_id=scope, user_ids=user_ids
        )

        closed = {(e.user_id, e.check_in_time) for e in events if e.event_type == EventType.CHECK_OUT}
        sessions = [
            e for e in events
            if e.event_type == EventType.CHECK_OUT
            or (e.event_type == EventType.CHECK_IN and (e.user_id, e.check_in_time) not in closed)
        ]

        rows: list[dict] = []
        summary_map: dict[int, dict] = {}
        for e in sorted(sessions, key=lambda ev: (ev.work_date, ev.user_id, ev.check_in_time)):
            owner = members[e.user_id]
            rows.append(
                {
                    "work_date": e.work_date.strftime("%Y-%m-%d"),
                    "user_id": e.user_id,
                    "full_name": owner.full_name,
                    "employee_id": owner.employee_id,
                    "department": owner.department or "-",
                    "check_in": e.check_in_time.strftime("%H:%M"),
                    "check_out": e.check_out_time.strftime("%H:%M") if e.check_out_time else "-",
                    "break_hours": format_minutes(e.break_minutes),
                    "worked_hours": format_minutes(e.working_minutes),
                    "overtime_hours": format_minutes(e.overtime_minutes),
                    "punctuality": e.punctuality.value,
                    "status": e.status.value,
                    "notes": e.notes or "",
                }
            )
            s = summary_map.setdefault(
                e.user_id,
                {
                    "user_id": e.user_id,
                    "full_name": owner.full_name,
                    "employee_id": owner.employee_id,
                    "sessions": 0,
                    "total_minutes": 0,
                    "overtime_minutes": 0,
                },
            )
            s["sessions"] += 1
            s["total_minutes"] += e.working_minutes
            s["overtime_minutes"] += e.overtime_minutes

        summary = sorted(summary_map.values(), key=lambda s: s["total_minutes"], reverse=True)
        for s in summary:
            s["total_hours"] = format_minutes(s["total_minutes"])
        return TimesheetData(rows=rows, summary=summary)


def timesheet_csv(data: TimesheetData) -> str:
    out = io.StringIO()
    writer = csv.DictWriter(out, fieldnames=TIMESHEET_COLUMNS)
    writer.writeheader()
    for row in data.rows:
        writer.writerow(row)
    return out.getvalue()
