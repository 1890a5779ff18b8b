"""Authorization predicates and guards shared by the services.

Predicates (``authorize``, ``require_approval``...) return a bool; the
``ensure_*`` helpers raise the matching domain error instead.
"""

from __future__ import annotations

from typing import Iterable, Optional

from ..core.enums import Role
from ..core.exceptions import (
    AccountInactive,
    AuthorizationError,
    CrossOrganizationAccess,
    NotApproved,
)
from .model import User

ADMIN_ROLES = (Role.ADMIN, Role.SUPER_ADMIN)
MANAGER_ROLES = (Role.ADMIN, Role.HR, Role.SUPER_ADMIN)


def authorize(user: Optional[User], allowed_roles: Iterable[Role]) -> bool:
    return user is not None and user.role in tuple(allowed_roles)


def authorize_owner_or_resource(
    user: Optional[User],
    resource_owner_id: Optional[int],
    admin_roles: Iterable[Role] = ADMIN_ROLES,
) -> bool:
    """Owner of the resource, or one of ``admin_roles``. Organization scoping is checked separately."""
    if user is None:
        return False
    return user.user_id == resource_owner_id or user.role in tuple(admin_roles)


def require_approval(user: User) -> bool:
    return bool(user.is_approved)


def require_face_enrollment(user: User) -> bool:
    return bool(user.face_enrolled)


def organization_scope(user: User) -> Optional[int]:
    """Organization a caller's queries are restricted to; ``None`` means global (super-admin)."""
    if user.is_super_admin:
        return None
    return user.organization_id


def same_organization(actor: User, organization_id: Optional[int]) -> bool:
    if actor.is_super_admin:
        return True
    return actor.organization_id is not None and actor.organization_id == organization_id


def ensure_role(user: User, allowed_roles: Iterable[Role], message: str = "Insufficient permissions.") -> None:
    if not authorize(user, allowed_roles):
        raise AuthorizationError(message)


def ensure_same_organization(actor: User, organization_id: Optional[int]) -> None:
    if not same_organization(actor, organization_id):
        raise CrossOrganizationAccess()


def ensure_can_record_attendance(user: User) -> None:
    if not require_approval(user):
        raise NotApproved()
    if not user.is_active:
        raise AccountInactive()
    if user.organization_id is None:
        raise AuthorizationError("User is not associated with any organization")
