from __future__ import annotations

import hashlib
import logging
import secrets
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any, Callable, Optional, Sequence

from werkzeug.security import check_password_hash, generate_password_hash

from ..attendance.repository import AttendanceRepository
from ..attendance.state import DayState
from ..common.datetime_utils import day_bounds
from ..common.validators import (
    optional_text,
    parse_bool,
    require_digits,
    require_email,
    require_enum,
    require_int_range,
    require_length,
    require_non_empty,
    require_passwords_match,
)
from ..core.constants import (
    LOCK_DURATION_HOURS,
    MAX_FACE_ENROLLMENT_ATTEMPTS,
    MAX_LOGIN_ATTEMPTS,
    MAX_PAGE_SIZE,
    PASSWORD_MIN_LENGTH,
    PASSWORD_RESET_TTL_MINUTES,
)
from ..core.enums import AdminAction, Role
from ..core.exceptions import (
    AccountLocked,
    AuthenticationError,
    AuthorizationError,
    DependencyError,
    InvalidCredentials,
    NotFoundError,
    SelfActionForbidden,
    UpstreamUnavailable,
    ValidationError,
)
from ..integrations.email import Notifier
from ..integrations.images import ImageStore
from ..organizations.model import Organization
from ..organizations.service import OrganizationService, parse_new_organization
from .access import ADMIN_ROLES, MANAGER_ROLES, authorize_owner_or_resource, ensure_role, ensure_same_organization, organization_scope
from .model import FaceImage, NewUser, User, UserQuery
from .repository import UserRepository

logger = logging.getLogger(__name__)


def hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _check_password(user: User, password: str) -> bool:
    try:
        return check_password_hash(user.password_hash, password or "")
    except (TypeError, ValueError):
        # Unusable hash (e.g. placeholder values in seeded rows)
        return False


def _validate_new_password(password: str, confirm: str, field_name: str = "Password") -> str:
    require_non_empty(password, field_name)
    require_passwords_match(password, confirm)
    return require_length(password, field_name, min_len=PASSWORD_MIN_LENGTH, max_len=128)


class AuthService:
    """Use cases: login with lockout, password lifecycle and bearer resolution."""

    def __init__(
        self,
        users: UserRepository,
        *,
        notifier: Notifier,
        max_attempts: int = MAX_LOGIN_ATTEMPTS,
        lock_duration: timedelta = timedelta(hours=LOCK_DURATION_HOURS),
        reset_ttl: timedelta = timedelta(minutes=PASSWORD_RESET_TTL_MINUTES),
    ):
        self._users = users
        self._notifier = notifier
        self._max_attempts = int(max_attempts)
        self._lock_duration = lock_duration
        self._reset_ttl = reset_ttl

    def authenticate(self, email: str, password: str, *, now: datetime | None = None) -> User:
        now = now or datetime.now()
        email = require_email(email)
        require_non_empty(password, "Password")

        user = self._users.get_by_email(email)
        if user is None:
            raise InvalidCredentials()
        if user.is_locked(now):
            raise AccountLocked()

        if not _check_password(user, password):
            lock_expired = user.lock_until is not None and user.lock_until <= now
            attempts = 1 if lock_expired else user.login_attempts + 1
            lock_until = now + self._lock_duration if attempts >= self._max_attempts else None
            self._users.update(user.user_id, login_attempts=attempts, lock_until=lock_until)
            if lock_until is not None:
                logger.warning("Account %s locked until %s after %d failed logins", user.user_id, lock_until, attempts)
                raise AccountLocked()
            raise InvalidCredentials()

        updated = self._users.update(user.user_id, login_attempts=0, lock_until=None, last_login=now)
        return updated or user

    def resolve_user(self, user_id: int, *, now: datetime | None = None) -> User:
        """Load the caller behind a valid bearer token; inactive or locked accounts are rejected."""
        now = now or datetime.now()
        user = self._users.get_by_id(user_id)
        if user is None:
            raise AuthenticationError("Invalid token. User not found.")
        if not user.is_active:
            raise AuthenticationError("Account is deactivated.")
        if user.is_locked(now):
            raise AuthenticationError("Account is temporarily locked.")
        return user

    def forgot_password(self, email: str, *, now: datetime | None = None) -> bool:
        """Store a fresh reset token and email it. Returns whether the email went out."""
        now = now or datetime.now()
        user = self._users.get_by_email(require_email(email))
        if user is None:
            raise NotFoundError("No user found with that email address")

        token = secrets.token_hex(32)
        self._users.update(
            user.user_id,
            reset_token_hash=hash_reset_token(token),
            reset_token_expires=now + self._reset_ttl,
        )
        sent = self._notifier.send_password_reset(
            to=user.email,
            name=user.full_name,
            token=token,
            ttl_minutes=int(self._reset_ttl.total_seconds() // 60),
        )
        if not sent:
            logger.warning("Password reset email for user %s was not delivered", user.user_id)
        return sent

    def reset_password(self, token: str, password: str, confirm: str, *, now: datetime | None = None) -> User:
        now = now or datetime.now()
        if not password or not confirm:
            raise ValidationError("Password and confirm password are required")
        password = _validate_new_password(password, confirm)

        user = self._users.get_by_reset_token_hash(hash_reset_token(token or ""))
        if user is None or user.reset_token_expires is None or user.reset_token_expires <= now:
            raise ValidationError("Token is invalid or has expired")

        updated = self._users.update(
            user.user_id,
            password_hash=generate_password_hash(password),
            reset_token_hash=None,
            reset_token_expires=None,
            login_attempts=0,
            lock_until=None,
        )
        logger.info("Password reset for user %s", user.user_id)
        return updated or user

    def change_password(self, user: User, current: str, new: str, confirm: str) -> None:
        if not current or not new or not confirm:
            raise ValidationError("Current password, new password, and confirm password are required")
        new = _validate_new_password(new, confirm, "New password")
        if not _check_password(user, current):
            raise ValidationError("Current password is incorrect")
        self._users.update(user.user_id, password_hash=generate_password_hash(new))


# One handler per AdminAction; each returns the field changes for the target.
AdminHandler = Callable[[User, User, Optional[str], datetime], dict]


def _approve(actor: User, target: User, reason: Optional[str], now: datetime) -> dict:
    return {"is_approved": True, "approved_by": actor.user_id, "approved_date": now}


def _reject(actor: User, target: User, reason: Optional[str], now: datetime) -> dict:
    return {"is_approved": False, "is_active": False}


def _activate(actor: User, target: User, reason: Optional[str], now: datetime) -> dict:
    return {"is_active": True}


def _deactivate(actor: User, target: User, reason: Optional[str], now: datetime) -> dict:
    return {"is_active": False}


def _reset_face(actor: User, target: User, reason: Optional[str], now: datetime) -> dict:
    return {
        "face_descriptors": (),
        "face_images": (),
        "face_enrolled": False,
        "face_enrollment_attempts": 0,
    }


ADMIN_ACTION_HANDLERS: dict[AdminAction, AdminHandler] = {
    AdminAction.APPROVE: _approve,
    AdminAction.REJECT: _reject,
    AdminAction.ACTIVATE: _activate,
    AdminAction.DEACTIVATE: _deactivate,
    AdminAction.RESET_FACE: _reset_face,
}

ADMIN_ACTION_MESSAGES = {
    AdminAction.APPROVE: "User approved successfully",
    AdminAction.REJECT: "User rejected successfully",
    AdminAction.ACTIVATE: "User activated successfully",
    AdminAction.DEACTIVATE: "User deactivated successfully",
    AdminAction.RESET_FACE: "Face data reset successfully",
}

SELF_FORBIDDEN_ACTIONS = (AdminAction.REJECT, AdminAction.DEACTIVATE)

PROFILE_FIELDS = {
    "first_name": ("First name", 2, 50),
    "last_name": ("Last name", 2, 50),
    "department": ("Department", 2, 100),
    "designation": ("Designation", 2, 100),
    "phone_number": ("Phone number", 10, 15),
}


def _parse_account_fields(data: dict, *, require_job: bool = True) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "first_name": require_length(data.get("first_name"), "First name", min_len=2, max_len=50),
        "last_name": require_length(data.get("last_name"), "Last name", min_len=2, max_len=50),
        "email": require_email(data.get("email")),
        "employee_id": require_length(data.get("employee_id"), "Employee ID", min_len=3, max_len=20),
    }
    if require_job:
        fields["department"] = require_length(data.get("department"), "Department", min_len=2, max_len=100)
        fields["designation"] = require_length(data.get("designation"), "Designation", min_len=2, max_len=100)
    phone = optional_text(data.get("phone_number"), "Phone number", max_len=15)
    if phone is not None and len(phone) < 10:
        raise ValidationError("Phone number must be at least 10 characters long")
    fields["phone_number"] = phone
    aadhaar = data.get("aadhaar_number")
    fields["aadhaar_number"] = require_digits(aadhaar, "Aadhaar number", length=12) if aadhaar else None
    return fields


class UserService:
    """Use cases: registration, profiles, face enrollment and account administration."""

    def __init__(
        self,
        users: UserRepository,
        organizations: OrganizationService,
        attendance: AttendanceRepository,
        *,
        notifier: Notifier,
        image_store: ImageStore,
        max_face_attempts: int = MAX_FACE_ENROLLMENT_ATTEMPTS,
    ):
        self._users = users
        self._organizations = organizations
        self._attendance = attendance
        self._notifier = notifier
        self._images = image_store
        self._max_face_attempts = int(max_face_attempts)

    # ---- helpers -------------------------------------------------------

    def _get_or_404(self, user_id: int) -> User:
        user = self._users.get_by_id(int(user_id))
        if user is None:
            raise NotFoundError("User not found")
        return user

    def _ensure_unique(self, *, email: str, employee_id: str, aadhaar_number: Optional[str]) -> None:
        if self._users.get_by_email(email) or self._users.get_by_employee_id(employee_id):
            raise ValidationError("User with this email or employee ID already exists")
        if aadhaar_number and self._users.get_by_aadhaar(aadhaar_number):
            raise ValidationError("This Aadhaar number is already registered")

    def _warn_if_full(self, org: Organization) -> None:
        if not self._organizations.can_add_user(org):
            logger.warning(
                "Organization %s is at its user limit (%d); registration accepted",
                org.organization_id,
                org.subscription.max_users,
            )

    def _create_member(self, data: dict, *, org: Organization, role: Role, now: datetime) -> User:
        fields = _parse_account_fields(data)
        password = require_length(data.get("password"), "Password", min_len=PASSWORD_MIN_LENGTH, max_len=128)
        self._ensure_unique(
            email=fields["email"],
            employee_id=fields["employee_id"],
            aadhaar_number=fields["aadhaar_number"],
        )
        self._warn_if_full(org)
        user = self._users.create(
            NewUser(
                **fields,
                password_hash=generate_password_hash(password),
                role=role,
                organization_id=org.organization_id,
                created_at=now,
            )
        )
        logger.info("Registered user %s in organization %s (pending approval)", user.user_id, org.organization_id)
        self._notifier.send_registration_received(to=user.email, name=user.full_name, organization_name=org.name)
        return user

    def _delete_images(self, images: Sequence[FaceImage]) -> None:
        for image in images:
            try:
                self._images.delete(image.url)
            except DependencyError as exc:
                logger.warning("Could not delete face image %s: %s", image.url, exc)

    # ---- registration --------------------------------------------------

    def register(self, data: dict, *, now: datetime | None = None) -> tuple[User, Organization]:
        """Self-registration through an organization invite code; the account stays pending."""
        now = now or datetime.now()
        org = self._organizations.resolve_invite(require_non_empty(data.get("invite_code"), "Invite code"))
        return self._create_member(data, org=org, role=Role.EMPLOYEE, now=now), org

    def register_with_organization(self, data: dict, *, now: datetime | None = None) -> tuple[User, Organization]:
        now = now or datetime.now()
        role = require_enum(Role, data.get("role") or Role.EMPLOYEE.value, "Role")
        if role not in (Role.EMPLOYEE, Role.HR):
            raise ValidationError("Role must be one of: employee, hr")
        organization_id = data.get("organization_id")
        if organization_id in (None, ""):
            raise ValidationError("Organization is required")
        org = self._organizations.get_active(require_int_range(organization_id, "Organization", min_value=1, max_value=2**31))
        return self._create_member(data, org=org, role=role, now=now), org

    def register_organization(
        self,
        org_data: Optional[dict],
        manager_data: Optional[dict],
        *,
        now: datetime | None = None,
    ) -> tuple[Organization, User, bool]:
        """Create an organization with its auto-approved admin. Returns (org, admin, email_sent)."""
        now = now or datetime.now()
        if not org_data or not manager_data:
            raise ValidationError("Organization and manager data are required")

        draft = parse_new_organization(org_data)
        fields = _parse_account_fields(manager_data, require_job=False)
        password = _validate_new_password(manager_data.get("password"), manager_data.get("confirm_password"))
        self._ensure_unique(
            email=fields["email"],
            employee_id=fields["employee_id"],
            aadhaar_number=fields["aadhaar_number"],
        )

        org = self._organizations.create(draft)
        try:
            manager = self._users.create(
                NewUser(
                    **fields,
                    department="Management",
                    designation="Manager/Admin",
                    password_hash=generate_password_hash(password),
                    role=Role.ADMIN,
                    organization_id=org.organization_id,
                    is_active=True,
                    is_approved=True,
                    approved_date=now,
                    created_at=now,
                )
            )
        except Exception:
            logger.exception("Admin creation failed; removing organization %s", org.organization_id)
            self._organizations.discard(org.organization_id)
            raise

        self._organizations.set_created_by(org.organization_id, manager.user_id)
        org = replace(org, created_by=manager.user_id)
        email_sent = self._notifier.send_organization_welcome(
            to=manager.email,
            name=manager.full_name,
            organization_name=org.name,
            invite_code=org.invite_code,
            employee_id=manager.employee_id,
        )
        return org, manager, email_sent

    # ---- profile -------------------------------------------------------

    def get_profile(self, actor: User, user_id: int) -> User:
        if not authorize_owner_or_resource(actor, int(user_id), ADMIN_ROLES):
            raise AuthorizationError("Access denied. You can only access your own data.")
        user = self._get_or_404(user_id)
        if user.user_id != actor.user_id:
            ensure_same_organization(actor, user.organization_id)
        return user

    def update_profile(self, actor: User, user_id: int, data: dict) -> User:
        user = self.get_profile(actor, user_id)
        changes: dict[str, Any] = {}
        for key, (label, min_len, max_len) in PROFILE_FIELDS.items():
            if data.get(key):
                changes[key] = require_length(data[key], label, min_len=min_len, max_len=max_len)
        if not changes:
            return user
        return self._users.update(user.user_id, **changes) or user

    def enroll_face(self, user: User, descriptor: Any, image: Optional[str], *, now: datetime | None = None) -> User:
        now = now or datetime.now()
        if not image:
            raise ValidationError("Face image is required")
        if not isinstance(descriptor, (list, tuple)) or not descriptor:
            raise ValidationError("Face descriptors are required")
        try:
            vector = tuple(float(x) for x in descriptor)
        except (TypeError, ValueError):
            raise ValidationError("Face descriptors must be numbers")

        current = self._get_or_404(user.user_id)
        if current.face_enrollment_attempts >= self._max_face_attempts:
            raise ValidationError(
                "Maximum face enrollment attempts reached. Ask an administrator to reset your face data."
            )
        try:
            url = self._images.save(image, folder="faces")
        except DependencyError as exc:
            logger.error("Face image upload failed for user %s: %s", user.user_id, exc)
            raise UpstreamUnavailable("Failed to upload face image")

        descriptors = current.face_descriptors + (vector,)
        updated = self._users.update(
            current.user_id,
            face_descriptors=descriptors,
            face_images=current.face_images + (FaceImage(url=url, uploaded_at=now),),
            face_enrolled=len(descriptors) >= 1,
            face_enrollment_attempts=current.face_enrollment_attempts + 1,
        )
        return updated or current

    # ---- administration ------------------------------------------------

    def perform_admin_action(
        self,
        actor: User,
        target_id: int,
        action: AdminAction | str,
        reason: Optional[str] = None,
        *,
        now: datetime | None = None,
    ) -> User:
        now = now or datetime.now()
        ensure_role(actor, ADMIN_ROLES)
        action = require_enum(AdminAction, action, "Action")
        reason = optional_text(reason, "Reason", max_len=500)

        target = self._get_or_404(target_id)
        ensure_same_organization(actor, target.organization_id)
        if target.user_id == actor.user_id and action in SELF_FORBIDDEN_ACTIONS:
            raise SelfActionForbidden()

        changes = ADMIN_ACTION_HANDLERS[action](actor, target, reason, now)
        updated = self._users.update(target.user_id, **changes) or target
        if action == AdminAction.RESET_FACE:
            self._delete_images(target.face_images)
        logger.info(
            "Admin %s performed %s on user %s%s",
            actor.user_id,
            action.value,
            target.user_id,
            f" ({reason})" if reason else "",
        )
        return updated

    def list_users(self, actor: User, filters: dict, *, now: datetime | None = None) -> tuple[list[dict], int]:
        """Org-scoped user listing with each user's attendance status for today."""
        now = now or datetime.now()
        ensure_role(actor, MANAGER_ROLES)
        scope = organization_scope(actor)
        requested_org = filters.get("organization_id")
        if requested_org not in (None, ""):
            requested_org = require_int_range(requested_org, "Organization", min_value=1, max_value=2**31)
            ensure_same_organization(actor, requested_org)
            scope = requested_org

        role = filters.get("role")
        is_active = filters.get("is_active")
        query = UserQuery(
            organization_id=scope,
            role=require_enum(Role, role, "Role") if role and role != "all" else None,
            department=(filters.get("department") or "").strip() or None,
            is_active=None if is_active in (None, "") else parse_bool(is_active, "isActive"),
            search=(filters.get("search") or "").strip() or None,
            page=require_int_range(filters.get("page", 1), "Page", min_value=1, max_value=1_000_000),
            limit=require_int_range(filters.get("limit", 20), "Limit", min_value=1, max_value=MAX_PAGE_SIZE),
        )
        users, total = self._users.search(query)
        start, end = day_bounds(now.date())
        events = self._attendance.list_between(start=start, end=end, user_ids=[u.user_id for u in users])
        rows = []
        for user in users:
            state = DayState.from_events(e for e in events if e.user_id == user.user_id)
            rows.append({"user": user, "today": state})
        return rows, total

    def member_ids(self, actor: User, *, department: Optional[str] = None, search: Optional[str] = None) -> Optional[list[int]]:
        """Ids of in-scope users matching ``department`` and ``search``; ``None`` when neither is given."""
        department = (department or "").strip()
        needle = (search or "").strip().lower()
        if not department and not needle:
            return None
        ensure_role(actor, MANAGER_ROLES)
        matched = []
        for user in self._users.list_for_organization(organization_scope(actor)):
            if department and user.department != department:
                continue
            haystack = (user.first_name, user.last_name, user.email, user.employee_id)
            if needle and not any(needle in (v or "").lower() for v in haystack):
                continue
            matched.append(user.user_id)
        return matched

    def pending_approval(self, actor: User) -> Sequence[User]:
        ensure_role(actor, MANAGER_ROLES)
        users, _ = self._users.search(
            UserQuery(organization_id=organization_scope(actor), is_approved=False, is_active=True, limit=MAX_PAGE_SIZE)
        )
        return users

    def list_departments(self, actor: User) -> list[str]:
        ensure_role(actor, MANAGER_ROLES)
        return self._users.list_departments(organization_scope(actor))

    def delete_user(self, actor: User, user_id: int) -> None:
        ensure_role(actor, ADMIN_ROLES)
        target = self._get_or_404(user_id)
        ensure_same_organization(actor, target.organization_id)
        if target.user_id == actor.user_id:
            raise SelfActionForbidden("Cannot delete your own account")
        self._users.delete(target.user_id)
        self._delete_images(target.face_images)
        logger.info("Admin %s deleted user %s", actor.user_id, target.user_id)


def ensure_super_admin(
    users: UserRepository,
    *,
    email: str,
    password: str,
    now: datetime | None = None,
) -> Optional[User]:
    """Create the platform super-admin unless an account already uses ``email``."""
    now = now or datetime.now()
    email = require_email(email)
    if users.get_by_email(email):
        return None
    user = users.create(
        NewUser(
            first_name="Super",
            last_name="Admin",
            email=email,
            employee_id="SUPERADMIN",
            department="Platform",
            designation="Super Administrator",
            password_hash=generate_password_hash(require_length(password, "Password", min_len=PASSWORD_MIN_LENGTH)),
            role=Role.SUPER_ADMIN,
            organization_id=None,
            is_active=True,
            is_approved=True,
            approved_date=now,
            created_at=now,
        )
    )
    logger.info("Created super-admin account %s", email)
    return user
