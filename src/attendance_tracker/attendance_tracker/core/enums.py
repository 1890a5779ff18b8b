from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """User roles used for authorization."""

    EMPLOYEE = "employee"
    ADMIN = "admin"
    HR = "hr"
    SUPER_ADMIN = "super-admin"


class OrganizationType(str, Enum):
    SCHOOL = "school"
    OFFICE = "office"
    HOTEL = "hotel"
    HOSPITAL = "hospital"
    FACTORY = "factory"
    RETAIL = "retail"
    OTHER = "other"


class SubscriptionPlan(str, Enum):
    FREE = "free"
    BASIC = "basic"
    PREMIUM = "premium"
    ENTERPRISE = "enterprise"


class EventType(str, Enum):
    """Kinds of entries in the attendance ledger."""

    CHECK_IN = "check-in"
    CHECK_OUT = "check-out"
    BREAK_START = "break-start"
    BREAK_END = "break-end"


class RecognitionMethod(str, Enum):
    FACE_RECOGNITION = "face-recognition"
    MANUAL = "manual"
    AADHAAR_ASSISTED = "aadhaar-assisted"


class ApprovalStatus(str, Enum):
    """Review state of an attendance event."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    AUTO_APPROVED = "auto-approved"


class Punctuality(str, Enum):
    """Punctuality of an event measured against the organization's working hours."""

    ON_TIME = "on-time"
    LATE = "late"
    EARLY_LEAVE = "early-leave"
    UNKNOWN = "unknown"


class AdminAction(str, Enum):
    """Closed set of account actions an administrator may perform on a user."""

    APPROVE = "approve"
    REJECT = "reject"
    ACTIVATE = "activate"
    DEACTIVATE = "deactivate"
    RESET_FACE = "reset-face"


WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
