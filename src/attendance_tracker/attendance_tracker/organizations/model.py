from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, time
from typing import Optional

from ..core.constants import DEFAULT_LATE_THRESHOLD_MINUTES, DEFAULT_MAX_USERS, DEFAULT_TIMEZONE
from ..core.enums import OrganizationType, SubscriptionPlan, WEEKDAYS


@dataclass(frozen=True)
class OrganizationSettings:
    working_hours_start: time = time(9, 0)
    working_hours_end: time = time(17, 0)
    working_days: tuple[str, ...] = WEEKDAYS[:5]
    timezone: str = DEFAULT_TIMEZONE
    late_threshold_minutes: int = DEFAULT_LATE_THRESHOLD_MINUTES
    require_face_recognition: bool = True
    allow_offline_mode: bool = True

    def to_dict(self) -> dict:
        return {
            "working_hours_start": self.working_hours_start.strftime("%H:%M"),
            "working_hours_end": self.working_hours_end.strftime("%H:%M"),
            "working_days": list(self.working_days),
            "timezone": self.timezone,
            "late_threshold_minutes": self.late_threshold_minutes,
            "require_face_recognition": self.require_face_recognition,
            "allow_offline_mode": self.allow_offline_mode,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "OrganizationSettings":
        if not data:
            return cls()
        default = cls()

        def _time(key: str, fallback: time) -> time:
            raw = data.get(key)
            if not raw:
                return fallback
            hh, mm = str(raw).split(":")[:2]
            return time(int(hh), int(mm))

        return cls(
            working_hours_start=_time("working_hours_start", default.working_hours_start),
            working_hours_end=_time("working_hours_end", default.working_hours_end),
            working_days=tuple(data.get("working_days") or default.working_days),
            timezone=str(data.get("timezone") or default.timezone),
            late_threshold_minutes=int(data.get("late_threshold_minutes", default.late_threshold_minutes)),
            require_face_recognition=bool(data.get("require_face_recognition", default.require_face_recognition)),
            allow_offline_mode=bool(data.get("allow_offline_mode", default.allow_offline_mode)),
        )


@dataclass(frozen=True)
class Subscription:
    plan: SubscriptionPlan = SubscriptionPlan.FREE
    max_users: int = DEFAULT_MAX_USERS
    is_active: bool = True
    expires_at: Optional[datetime] = None

    def is_current(self, now: datetime) -> bool:
        if not self.is_active:
            return False
        return self.expires_at is None or self.expires_at > now


@dataclass(frozen=True)
class OrganizationStats:
    """Counts recomputed from users and events on read; never authoritative."""

    total_users: int = 0
    active_users: int = 0
    total_attendance_records: int = 0


@dataclass(frozen=True)
class Organization:
    organization_id: int
    name: str
    org_type: OrganizationType
    invite_code: str
    description: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    settings: OrganizationSettings = field(default_factory=OrganizationSettings)
    subscription: Subscription = field(default_factory=Subscription)
    is_active: bool = True
    created_by: Optional[int] = None
    stats: OrganizationStats = field(default_factory=OrganizationStats)
    created_at: Optional[datetime] = None

    def with_stats(self, stats: OrganizationStats) -> "Organization":
        return replace(self, stats=stats)


@dataclass(frozen=True)
class NewOrganization:
    """Validated input for creating an organization; the invite code is assigned at persistence time."""

    name: str
    org_type: OrganizationType
    description: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    settings: OrganizationSettings = field(default_factory=OrganizationSettings)
    subscription: Subscription = field(default_factory=Subscription)
    created_by: Optional[int] = None


@dataclass(frozen=True)
class OrganizationQuery:
    org_type: Optional[OrganizationType] = None
    is_active: Optional[bool] = None
    plan: Optional[SubscriptionPlan] = None
    search: Optional[str] = None
    page: int = 1
    limit: int = 20
