from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import Role


@dataclass(frozen=True)
class FaceImage:
    url: str
    uploaded_at: datetime


@dataclass(frozen=True)
class User:
    """Domain entity for an account.

    Plain data only: persistence lives in the repositories.
    """

    user_id: int
    first_name: str
    last_name: str
    email: str
    employee_id: str
    department: str
    designation: str
    password_hash: str
    role: Role
    organization_id: Optional[int]
    phone_number: Optional[str] = None
    is_active: bool = True
    is_approved: bool = False
    approved_by: Optional[int] = None
    approved_date: Optional[datetime] = None
    face_descriptors: tuple[tuple[float, ...], ...] = ()
    face_images: tuple[FaceImage, ...] = ()
    face_enrolled: bool = False
    face_enrollment_attempts: int = 0
    aadhaar_number: Optional[str] = None
    aadhaar_verified: bool = False
    aadhaar_verification_date: Optional[datetime] = None
    login_attempts: int = 0
    lock_until: Optional[datetime] = None
    last_login: Optional[datetime] = None
    reset_token_hash: Optional[str] = None
    reset_token_expires: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_super_admin(self) -> bool:
        return self.role == Role.SUPER_ADMIN

    def is_locked(self, now: datetime) -> bool:
        return self.lock_until is not None and self.lock_until > now


@dataclass(frozen=True)
class NewUser:
    first_name: str
    last_name: str
    email: str
    employee_id: str
    department: str
    designation: str
    password_hash: str
    role: Role
    organization_id: Optional[int]
    phone_number: Optional[str] = None
    is_active: bool = True
    is_approved: bool = False
    approved_by: Optional[int] = None
    approved_date: Optional[datetime] = None
    aadhaar_number: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class UserQuery:
    organization_id: Optional[int] = None
    role: Optional[Role] = None
    department: Optional[str] = None
    is_active: Optional[bool] = None
    is_approved: Optional[bool] = None
    search: Optional[str] = None
    page: int = 1
    limit: int = 20
