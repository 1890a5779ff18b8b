from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from ..core.enums import ApprovalStatus, EventType, Punctuality, RecognitionMethod

CLOSING_EVENTS = (EventType.CHECK_OUT, EventType.BREAK_END)


@dataclass(frozen=True)
class Location:
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address: Optional[str] = None


@dataclass(frozen=True)
class AttendanceEvent:
    """One immutable entry of the attendance ledger.

    Closing events (check-out, break-end) carry the opening moment in
    ``check_in_time`` and their own moment in ``check_out_time``.
    """

    event_id: int
    user_id: int
    organization_id: int
    work_date: date
    event_type: EventType
    check_in_time: datetime
    check_out_time: Optional[datetime] = None
    recognition_method: RecognitionMethod = RecognitionMethod.FACE_RECOGNITION
    face_confidence: Optional[float] = None
    location: Optional[Location] = None
    status: ApprovalStatus = ApprovalStatus.PENDING
    approved_by: Optional[int] = None
    approved_date: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    working_minutes: int = 0
    break_minutes: int = 0
    overtime_minutes: int = 0
    punctuality: Punctuality = Punctuality.UNKNOWN
    is_offline_entry: bool = False
    synced_at: Optional[datetime] = None
    notes: Optional[str] = None
    admin_notes: Optional[str] = None
    face_image_url: Optional[str] = None
    device_id: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    modified_by: Optional[int] = None
    modified_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @property
    def occurred_at(self) -> datetime:
        if self.event_type in CLOSING_EVENTS and self.check_out_time is not None:
            return self.check_out_time
        return self.check_in_time

    @property
    def counts_toward_summary(self) -> bool:
        return self.status in (ApprovalStatus.APPROVED, ApprovalStatus.AUTO_APPROVED)


@dataclass(frozen=True)
class NewAttendanceEvent:
    user_id: int
    organization_id: int
    work_date: date
    event_type: EventType
    check_in_time: datetime
    check_out_time: Optional[datetime] = None
    recognition_method: RecognitionMethod = RecognitionMethod.FACE_RECOGNITION
    face_confidence: Optional[float] = None
    location: Optional[Location] = None
    status: ApprovalStatus = ApprovalStatus.PENDING
    approved_date: Optional[datetime] = None
    working_minutes: int = 0
    break_minutes: int = 0
    overtime_minutes: int = 0
    punctuality: Punctuality = Punctuality.UNKNOWN
    is_offline_entry: bool = False
    synced_at: Optional[datetime] = None
    notes: Optional[str] = None
    face_image_url: Optional[str] = None
    device_id: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def occurred_at(self) -> datetime:
        if self.event_type in CLOSING_EVENTS and self.check_out_time is not None:
            return self.check_out_time
        return self.check_in_time


@dataclass(frozen=True)
class EventQuery:
    organization_id: Optional[int] = None
    user_id: Optional[int] = None
    user_ids: Optional[tuple[int, ...]] = None
    event_type: Optional[EventType] = None
    status: Optional[ApprovalStatus] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    page: int = 1
    limit: int = 20
