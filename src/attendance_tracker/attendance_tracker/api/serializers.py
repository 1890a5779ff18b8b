"""JSON shaping for the HTTP boundary.

Services speak snake_case Python objects; clients speak camelCase JSON.
Secrets (password hashes, reset tokens, face descriptors) never leave here.
"""

from __future__ import annotations

from dataclasses import asdict, is_dataclass
from datetime import date, datetime, time
from enum import Enum
from typing import Any, Optional

from ..attendance.model import AttendanceEvent
from ..attendance.state import DayState
from ..organizations.model import Organization
from ..users.model import User


def to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def to_snake(name: str) -> str:
    out = []
    for ch in name:
        if ch.isupper():
            out.append("_")
            out.append(ch.lower())
        else:
            out.append(ch)
    return "".join(out).lstrip("_")


def camelize(value: Any) -> Any:
    """Recursively convert to JSON-ready values with camelCase keys."""
    if isinstance(value, dict):
        return {to_camel(str(k)): camelize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [camelize(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat(timespec="seconds")
    if isinstance(value, (date, time)):
        return value.isoformat()
    if is_dataclass(value) and not isinstance(value, type):
        return camelize(asdict(value))
    return value


def snakeize(value: Any) -> Any:
    """Recursively convert incoming camelCase keys to snake_case."""
    if isinstance(value, dict):
        return {to_snake(str(k)): snakeize(v) for k, v in value.items()}
    if isinstance(value, list):
        return [snakeize(v) for v in value]
    return value


def user_brief(user: Optional[User]) -> Optional[dict]:
    if user is None:
        return None
    return {
        "id": user.user_id,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "full_name": user.full_name,
        "email": user.email,
        "employee_id": user.employee_id,
        "department": user.department,
        "designation": user.designation,
    }


def user_to_dict(user: User) -> dict:
    data = user_brief(user) or {}
    data.update(
        {
            "role": user.role,
            "organization_id": user.organization_id,
            "phone_number": user.phone_number,
            "is_active": user.is_active,
            "is_approved": user.is_approved,
            "approved_by": user.approved_by,
            "approved_date": user.approved_date,
            "face_enrolled": user.face_enrolled,
            "face_enrollment_attempts": user.face_enrollment_attempts,
            "face_images": [{"url": i.url, "uploaded_at": i.uploaded_at} for i in user.face_images],
            "aadhaar_verified": user.aadhaar_verified,
            "aadhaar_verification_date": user.aadhaar_verification_date,
            "last_login": user.last_login,
            "created_at": user.created_at,
        }
    )
    return data


def organization_brief(org: Optional[Organization]) -> Optional[dict]:
    if org is None:
        return None
    return {"id": org.organization_id, "name": org.name, "type": org.org_type, "invite_code": org.invite_code}


def organization_to_dict(org: Organization) -> dict:
    data = organization_brief(org) or {}
    data.update(
        {
            "description": org.description,
            "address": org.address,
            "contact_info": {"phone": org.phone, "email": org.email, "website": org.website},
            "settings": org.settings.to_dict(),
            "subscription": {
                "plan": org.subscription.plan,
                "max_users": org.subscription.max_users,
                "is_active": org.subscription.is_active,
                "expires_at": org.subscription.expires_at,
            },
            "stats": org.stats,
            "is_active": org.is_active,
            "created_by": org.created_by,
            "created_at": org.created_at,
        }
    )
    return data


def event_to_dict(event: AttendanceEvent, user: Optional[User] = None) -> dict:
    data = {
        "id": event.event_id,
        "user_id": event.user_id,
        "organization_id": event.organization_id,
        "date": event.work_date,
        "type": event.event_type,
        "check_in_time": event.check_in_time,
        "check_out_time": event.check_out_time,
        "timestamp": event.occurred_at,
        "recognition_method": event.recognition_method,
        "face_confidence": event.face_confidence,
        "location": event.location,
        "status": event.status,
        "approved_by": event.approved_by,
        "approved_date": event.approved_date,
        "rejection_reason": event.rejection_reason,
        "working_hours": round(event.working_minutes / 60, 2),
        "break_time": event.break_minutes,
        "overtime": round(event.overtime_minutes / 60, 2),
        "punctuality": event.punctuality,
        "is_offline_entry": event.is_offline_entry,
        "synced_at": event.synced_at,
        "notes": event.notes,
        "admin_notes": event.admin_notes,
        "face_image_url": event.face_image_url,
        "device_id": event.device_id,
        "modified_by": event.modified_by,
        "modified_at": event.modified_at,
        "created_at": event.created_at,
    }
    if user is not None:
        data["user"] = user_brief(user)
    return data


def day_state_to_dict(state: DayState) -> dict:
    return {
        "status": state.status,
        "is_checked_in": state.is_checked_in,
        "is_on_break": state.is_on_break,
        "last_check_in": state.last_check_in,
        "last_check_out": state.last_check_out,
        "break_minutes": state.session_break_minutes,
    }
