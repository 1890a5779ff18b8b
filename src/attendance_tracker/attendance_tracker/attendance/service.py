from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Any, Optional, Sequence

from ..common.datetime_utils import day_bounds, minutes_between, month_bounds, parse_iso_date, parse_iso_datetime
from ..common.locks import KeyedLocks
from ..common.validators import (
    optional_text,
    parse_bool,
    require_enum,
    require_float_range,
    require_int_range,
)
from ..core.constants import MAX_PAGE_SIZE, NOTE_MAX_LENGTH
from ..core.enums import ApprovalStatus, EventType, Punctuality, RecognitionMethod
from ..core.exceptions import (
    AlreadyCheckedIn,
    AuthorizationError,
    DependencyError,
    DomainError,
    NoOpenCheckIn,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from ..integrations.images import ImageStore
from ..organizations.model import Organization
from ..organizations.repository import OrganizationRepository
from ..users.access import (
    ADMIN_ROLES,
    MANAGER_ROLES,
    ensure_can_record_attendance,
    ensure_role,
    ensure_same_organization,
    organization_scope,
    require_face_enrollment,
)
from ..users.model import User
from .calculator.base import WorkingTimeCalculator
from .calculator.standard_calculator import StandardWorkingTimeCalculator
from .factory import PunctualityStrategyFactory
from .model import AttendanceEvent, EventQuery, Location, NewAttendanceEvent
from .repository import AttendanceRepository
from .state import DayState

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("notes", "status", "rejection_reason", "admin_notes")


@dataclass(frozen=True)
class MarkRequest:
    """A validated request to append one event to the caller's ledger."""

    event_type: EventType
    recognition_method: RecognitionMethod = RecognitionMethod.FACE_RECOGNITION
    face_confidence: Optional[float] = None
    location: Optional[Location] = None
    notes: Optional[str] = None
    is_offline: bool = False
    offline_timestamp: Optional[datetime] = None
    device_id: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    image: Optional[str] = None


def _parse_location(value: Any) -> Optional[Location]:
    if not value:
        return None
    if not isinstance(value, dict):
        raise ValidationError("Location must be an object")
    lat = value.get("latitude")
    lng = value.get("longitude")
    return Location(
        latitude=None if lat in (None, "") else require_float_range(lat, "Latitude", min_value=-90, max_value=90),
        longitude=None if lng in (None, "") else require_float_range(lng, "Longitude", min_value=-180, max_value=180),
        address=optional_text(value.get("address"), "Address", max_len=255),
    )


def parse_mark_request(data: dict, *, image: Optional[str] = None, **client) -> MarkRequest:
    event_type = require_enum(EventType, data.get("type"), "Type")
    is_offline = parse_bool(data.get("is_offline"), "isOffline")
    offline_ts = None
    if is_offline:
        raw = data.get("offline_timestamp")
        if not raw:
            raise ValidationError("offlineTimestamp is required for offline entries")
        try:
            offline_ts = parse_iso_datetime(str(raw))
        except ValueError:
            raise ValidationError("offlineTimestamp must be an ISO-8601 timestamp")
    confidence = data.get("face_confidence")
    return MarkRequest(
        event_type=event_type,
        recognition_method=require_enum(
            RecognitionMethod,
            data.get("recognition_method") or RecognitionMethod.FACE_RECOGNITION.value,
            "Recognition method",
        ),
        face_confidence=None if confidence in (None, "") else require_float_range(
            confidence, "Face confidence", min_value=0, max_value=1
        ),
        location=_parse_location(data.get("location")),
        notes=optional_text(data.get("notes", data.get("note")), "Notes", max_len=NOTE_MAX_LENGTH),
        is_offline=is_offline,
        offline_timestamp=offline_ts,
        device_id=optional_text(data.get("device_id"), "Device ID", max_len=100),
        ip_address=client.get("ip_address"),
        user_agent=optional_text(client.get("user_agent"), "User agent", max_len=255),
        image=image,
    )


class AttendanceService:
    """The attendance ledger: validates transitions and appends events.

    Decisions for one user are serialized by a process-local keyed lock, and the
    repository re-checks the same decision atomically when appending.
    """

    def __init__(
        self,
        attendance: AttendanceRepository,
        organizations: OrganizationRepository,
        *,
        image_store: ImageStore,
        strategy_factory: PunctualityStrategyFactory | None = None,
        calculator: WorkingTimeCalculator | None = None,
        locks: KeyedLocks | None = None,
    ):
        self._attendance = attendance
        self._organizations = organizations
        self._images = image_store
        self._factory = strategy_factory or PunctualityStrategyFactory()
        self._calculator = calculator or StandardWorkingTimeCalculator()
        self._locks = locks or KeyedLocks()

    # ---- transitions ---------------------------------------------------

    def mark(self, user: User, request: MarkRequest, *, now: datetime | None = None) -> AttendanceEvent:
        now = (now or datetime.now()).replace(microsecond=0)
        ensure_can_record_attendance(user)
        org = self._organization_for(user)
        self._apply_policy(user, org, request)

        at = now
        if request.is_offline:
            if request.offline_timestamp is None:
                raise ValidationError("offlineTimestamp is required for offline entries")
            at = request.offline_timestamp.replace(microsecond=0)
            if at > now:
                raise ValidationError("Offline timestamp cannot be in the future")

        window = day_bounds(at.date())
        image_url = self._store_image(user, request)

        def guard(events: Sequence[AttendanceEvent]) -> None:
            self._decide(user, org, request, events, at=at, now=now)

        try:
            with self._locks.hold(user.user_id):
                current = self._attendance.list_for_user_between(user.user_id, *window)
                draft = self._decide(user, org, request, current, at=at, now=now)
                if image_url:
                    draft = replace(draft, face_image_url=image_url)
                event = self._attendance.append(draft, window=window, guard=guard)
        except DomainError:
            self._discard_image(image_url)
            raise

        logger.info(
            "User %s %s at %s (%s%s)",
            user.user_id,
            event.event_type.value,
            event.occurred_at.isoformat(timespec="seconds"),
            event.status.value,
            ", offline" if event.is_offline_entry else "",
        )
        return event

    def check_in(self, user: User, *, now: datetime | None = None, **fields) -> AttendanceEvent:
        return self.mark(user, MarkRequest(event_type=EventType.CHECK_IN, **fields), now=now)

    def check_out(self, user: User, *, now: datetime | None = None, **fields) -> AttendanceEvent:
        return self.mark(user, MarkRequest(event_type=EventType.CHECK_OUT, **fields), now=now)

    def break_start(self, user: User, *, now: datetime | None = None, **fields) -> AttendanceEvent:
        return self.mark(user, MarkRequest(event_type=EventType.BREAK_START, **fields), now=now)

    def break_end(self, user: User, *, now: datetime | None = None, **fields) -> AttendanceEvent:
        return self.mark(user, MarkRequest(event_type=EventType.BREAK_END, **fields), now=now)

    def _organization_for(self, user: User) -> Organization:
        org = self._organizations.get_by_id(user.organization_id)
        if org is None or not org.is_active:
            raise AuthorizationError("Organization not found or inactive")
        return org

    @staticmethod
    def _apply_policy(user: User, org: Organization, request: MarkRequest) -> None:
        if request.is_offline and not org.settings.allow_offline_mode:
            raise ValidationError("Offline attendance is not allowed for this organization")
        if (
            org.settings.require_face_recognition
            and request.recognition_method == RecognitionMethod.FACE_RECOGNITION
            and not require_face_enrollment(user)
        ):
            raise AuthorizationError("Face enrollment required. Please complete face registration first.")

    def _decide(
        self,
        user: User,
        org: Organization,
        request: MarkRequest,
        events: Sequence[AttendanceEvent],
        *,
        at: datetime,
        now: datetime,
    ) -> NewAttendanceEvent:
        """Validate the transition against the day's events and build the event to append."""

        state = DayState.from_events(events)
        latest = max((e.occurred_at for e in events), default=None)

        def ensure_chronological() -> None:
            if latest is not None and at < latest:
                raise StateConflictError("Attendance time cannot be earlier than the last recorded event")

        base = NewAttendanceEvent(
            user_id=user.user_id,
            organization_id=org.organization_id,
            work_date=at.date(),
            event_type=request.event_type,
            check_in_time=at,
            recognition_method=request.recognition_method,
            face_confidence=request.face_confidence,
            location=request.location,
            status=ApprovalStatus.PENDING if request.is_offline else ApprovalStatus.AUTO_APPROVED,
            is_offline_entry=request.is_offline,
            synced_at=now if request.is_offline else None,
            notes=request.notes,
            device_id=request.device_id,
            ip_address=request.ip_address,
            user_agent=request.user_agent,
            created_at=now,
        )

        if request.event_type == EventType.CHECK_IN:
            if state.is_checked_in:
                raise AlreadyCheckedIn()
            ensure_chronological()
            if state.last_check_out is not None and at <= state.last_check_out:
                raise StateConflictError("Check-in time must be after the last check-out")
            decision = self._factory.for_checkin(now=at, settings=org.settings).decide_checkin(
                now=at, settings=org.settings
            )
            return replace(base, punctuality=decision.punctuality, notes=base.notes or decision.note)

        if request.event_type == EventType.CHECK_OUT:
            if not state.is_checked_in:
                raise NoOpenCheckIn()
            if state.is_on_break:
                raise StateConflictError("You are on a break. End your break before checking out.")
            ensure_chronological()
            opened_at = state.last_check_in
            opening = self._opening_punctuality(events, opened_at)
            worked = self._calculator.compute(
                check_in=opened_at,
                check_out=at,
                break_minutes=state.session_break_minutes,
            )
            decision = self._factory.for_checkout(now=at, settings=org.settings, opening=opening).decide_checkout(
                now=at, settings=org.settings, opening=opening
            )
            return replace(
                base,
                work_date=opened_at.date(),
                check_in_time=opened_at,
                check_out_time=at,
                working_minutes=worked.working_minutes,
                break_minutes=worked.break_minutes,
                overtime_minutes=worked.overtime_minutes,
                punctuality=decision.punctuality,
                notes=base.notes or decision.note,
            )

        if request.event_type == EventType.BREAK_START:
            if not state.is_checked_in:
                raise NoOpenCheckIn("You need to check in before starting a break.")
            if state.is_on_break:
                raise StateConflictError("You are already on a break.")
            ensure_chronological()
            return base

        if not state.is_on_break:
            raise StateConflictError("No break in progress.")
        ensure_chronological()
        started = state.last_break_start
        return replace(
            base,
            work_date=started.date(),
            check_in_time=started,
            check_out_time=at,
            break_minutes=max(minutes_between(started, at), 0),
        )

    @staticmethod
    def _opening_punctuality(events: Sequence[AttendanceEvent], opened_at: datetime) -> Punctuality:
        for e in reversed(events):
            if e.event_type == EventType.CHECK_IN and e.check_in_time == opened_at:
                return e.punctuality
        return Punctuality.UNKNOWN

    def _store_image(self, user: User, request: MarkRequest) -> Optional[str]:
        if not request.image:
            return None
        try:
            return self._images.save(request.image, folder="attendance")
        except DependencyError as exc:
            logger.warning("Attendance photo for user %s not stored: %s", user.user_id, exc)
            return None

    def _discard_image(self, image_url: Optional[str]) -> None:
        if not image_url:
            return
        try:
            self._images.delete(image_url)
        except DependencyError as exc:
            logger.warning("Could not remove orphaned photo %s: %s", image_url, exc)

    # ---- admin edits ---------------------------------------------------

    def _get_scoped(self, actor: User, event_id: int) -> AttendanceEvent:
        ensure_role(actor, ADMIN_ROLES)
        event = self._attendance.get_by_id(int(event_id))
        if event is None:
            raise NotFoundError("Attendance record not found")
        ensure_same_organization(actor, event.organization_id)
        return event

    def update_event(self, actor: User, event_id: int, patch: dict, *, now: datetime | None = None) -> AttendanceEvent:
        now = now or datetime.now()
        event = self._get_scoped(actor, event_id)

        unknown = sorted(set(patch) - set(EDITABLE_FIELDS))
        if unknown:
            raise ValidationError(
                "Only notes, status, rejectionReason and adminNotes can be updated",
                errors=[f"{key} is not editable" for key in unknown],
            )

        changes: dict[str, Any] = {"modified_by": actor.user_id, "modified_at": now}
        if "notes" in patch:
            changes["notes"] = optional_text(patch["notes"], "Notes", max_len=NOTE_MAX_LENGTH)
        if "admin_notes" in patch:
            changes["admin_notes"] = optional_text(patch["admin_notes"], "Admin notes", max_len=NOTE_MAX_LENGTH)
        if "rejection_reason" in patch:
            changes["rejection_reason"] = optional_text(patch["rejection_reason"], "Rejection reason", max_len=NOTE_MAX_LENGTH)
        if patch.get("status") is not None:
            status = require_enum(ApprovalStatus, patch["status"], "Status")
            changes["status"] = status
            if status in (ApprovalStatus.APPROVED, ApprovalStatus.REJECTED):
                changes["approved_by"] = actor.user_id
                changes["approved_date"] = now
            if status != ApprovalStatus.REJECTED and "rejection_reason" not in patch:
                changes["rejection_reason"] = None

        updated = self._attendance.update(event.event_id, **changes)
        if updated is None:
            raise NotFoundError("Attendance record not found")
        logger.info("Admin %s updated attendance %s", actor.user_id, event.event_id)
        return updated

    def delete_event(self, actor: User, event_id: int) -> None:
        event = self._get_scoped(actor, event_id)
        self._attendance.delete(event.event_id)
        logger.info("Admin %s deleted attendance %s", actor.user_id, event.event_id)

    # ---- queries -------------------------------------------------------

    def today_state(self, user: User, *, now: datetime | None = None) -> DayState:
        now = now or datetime.now()
        return DayState.from_events(self._attendance.list_for_user_between(user.user_id, *day_bounds(now.date())))

    def my_history(self, user: User, filters: dict, *, now: datetime | None = None) -> dict:
        now = now or datetime.now()
        year = require_int_range(filters.get("year") or now.year, "Year", min_value=1970, max_value=9999)
        month = filters.get("month")
        month = require_int_range(month, "Month", min_value=1, max_value=12) if month not in (None, "") else None
        event_type = require_enum(EventType, filters["type"], "Type") if filters.get("type") else None
        page = require_int_range(filters.get("page", 1), "Page", min_value=1, max_value=1_000_000)
        limit = require_int_range(filters.get("limit", 10), "Limit", min_value=1, max_value=MAX_PAGE_SIZE)

        start, end = month_bounds(year, month)
        events, total = self._attendance.search(
            EventQuery(user_id=user.user_id, event_type=event_type, start=start, end=end, page=page, limit=limit)
        )
        period = self._attendance.list_between(start=start, end=end, user_ids=[user.user_id])
        return {
            "events": events,
            "total": total,
            "page": page,
            "limit": limit,
            "daily": summarize_days(period),
        }

    def list_events(
        self,
        actor: User,
        filters: dict,
        *,
        user_ids: Optional[Sequence[int]] = None,
    ) -> tuple[Sequence[AttendanceEvent], int]:
        """Org-scoped event listing; ``user_ids`` narrows to users matched by department/search."""
        ensure_role(actor, MANAGER_ROLES)
        start = end = None
        try:
            if filters.get("start_date"):
                start, _ = day_bounds(parse_iso_date(str(filters["start_date"])))
            if filters.get("end_date"):
                _, end = day_bounds(parse_iso_date(str(filters["end_date"])))
        except ValueError:
            raise ValidationError("Dates must use YYYY-MM-DD format")
        user_id = filters.get("user_id")
        query = EventQuery(
            organization_id=organization_scope(actor),
            user_id=None if user_id in (None, "") else require_int_range(user_id, "userId", min_value=1, max_value=2**31),
            user_ids=tuple(user_ids) if user_ids is not None else None,
            event_type=require_enum(EventType, filters["type"], "Type") if filters.get("type") else None,
            status=require_enum(ApprovalStatus, filters["status"], "Status") if filters.get("status") else None,
            start=start,
            end=end,
            page=require_int_range(filters.get("page", 1), "Page", min_value=1, max_value=1_000_000),
            limit=require_int_range(filters.get("limit", 20), "Limit", min_value=1, max_value=MAX_PAGE_SIZE),
        )
        return self._attendance.search(query)


def summarize_days(events: Sequence[AttendanceEvent]) -> list[dict]:
    """Per-day totals over approved and auto-approved events, oldest day first."""

    days: dict[date, dict] = {}
    for e in sorted(events, key=lambda ev: (ev.occurred_at, ev.event_id)):
        if not e.counts_toward_summary:
            continue
        day = days.setdefault(
            e.work_date,
            {
                "date": e.work_date,
                "working_minutes": 0,
                "break_minutes": 0,
                "overtime_minutes": 0,
                "first_check_in": None,
                "last_check_out": None,
                "events": 0,
            },
        )
        day["events"] += 1
        if e.event_type == EventType.CHECK_IN and day["first_check_in"] is None:
            day["first_check_in"] = e.check_in_time
        if e.event_type == EventType.CHECK_OUT:
            day["working_minutes"] += e.working_minutes
            day["break_minutes"] += e.break_minutes
            day["overtime_minutes"] += e.overtime_minutes
            day["last_check_out"] = e.check_out_time
    return [days[d] for d in sorted(days)]
