from __future__ import annotations

import re
from enum import Enum
from typing import Any, Optional, TypeVar

from ..core.exceptions import ValidationError

E = TypeVar("E", bound=Enum)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_HHMM_RE = re.compile(r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$")


def require_non_empty(value: str, field_name: str) -> str:
    if not value or not str(value).strip():
        raise ValidationError(f"{field_name} is required")
    return str(value).strip()


def require_min_length(value: str, field_name: str, min_len: int) -> str:
    if value is None or len(value) < min_len:
        raise ValidationError(f"{field_name} must be at least {min_len} characters long")
    return value


def require_length(value: Any, field_name: str, *, min_len: int = 0, max_len: int | None = None) -> str:
    text = require_non_empty(value, field_name) if min_len else str(value or "").strip()
    if len(text) < min_len:
        raise ValidationError(f"{field_name} must be at least {min_len} characters long")
    if max_len is not None and len(text) > max_len:
        raise ValidationError(f"{field_name} must be at most {max_len} characters long")
    return text


def optional_text(value: Any, field_name: str, *, max_len: int) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if len(text) > max_len:
        raise ValidationError(f"{field_name} must be at most {max_len} characters long")
    return text


def require_email(value: Any, field_name: str = "Email") -> str:
    email = require_non_empty(value, field_name).lower()
    if not _EMAIL_RE.match(email):
        raise ValidationError(f"{field_name} is not a valid email address")
    return email


def require_digits(value: Any, field_name: str, *, length: int) -> str:
    text = require_non_empty(value, field_name)
    if len(text) != length or not text.isdigit():
        raise ValidationError(f"{field_name} must be exactly {length} digits")
    return text


def require_hhmm(value: Any, field_name: str) -> str:
    text = require_non_empty(value, field_name)
    if not _HHMM_RE.match(text):
        raise ValidationError(f"{field_name} must use HH:MM format")
    return text


def require_enum(enum_cls: type[E], value: Any, field_name: str) -> E:
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"{field_name} must be one of: {allowed}")


def require_int_range(value: Any, field_name: str, *, min_value: int, max_value: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a number")
    if number < min_value or number > max_value:
        raise ValidationError(f"{field_name} must be between {min_value} and {max_value}")
    return number


def require_float_range(value: Any, field_name: str, *, min_value: float, max_value: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a number")
    if number < min_value or number > max_value:
        raise ValidationError(f"{field_name} must be between {min_value} and {max_value}")
    return number


def parse_bool(value: Any, field_name: str, *, default: bool = False) -> bool:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "on"}:
        return True
    if text in {"0", "false", "no", "off"}:
        return False
    raise ValidationError(f"{field_name} must be a boolean")


def require_passwords_match(password: str, confirm: str) -> None:
    if password != confirm:
        raise ValidationError("Passwords do not match")

