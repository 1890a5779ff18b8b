from __future__ import annotations

import logging
import secrets
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Optional, Sequence

from ..common.validators import (
    optional_text,
    parse_bool,
    require_email,
    require_enum,
    require_hhmm,
    require_int_range,
    require_length,
)
from ..common.datetime_utils import parse_hhmm
from ..core.constants import INVITE_CODE_ALPHABET, INVITE_CODE_LENGTH, INVITE_CODE_MAX_RETRIES, MAX_PAGE_SIZE
from ..core.enums import OrganizationType, Role, SubscriptionPlan, WEEKDAYS
from ..core.exceptions import (
    AuthorizationError,
    DuplicateInviteCode,
    DuplicateName,
    InvalidInviteCode,
    NotFoundError,
    OrganizationNotEmpty,
    ValidationError,
)
from ..users.access import ensure_role, same_organization
from ..users.model import User
from .model import NewOrganization, Organization, OrganizationQuery, OrganizationSettings, Subscription
from .repository import OrganizationRepository

logger = logging.getLogger(__name__)


def generate_invite_code() -> str:
    return "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(INVITE_CODE_LENGTH))


def _address_text(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        parts = [str(value.get(k) or "").strip() for k in ("street", "city", "state", "country", "zip_code")]
        value = ", ".join(p for p in parts if p)
    return optional_text(value, "Address", max_len=255)


def parse_settings(data: Optional[dict], base: Optional[OrganizationSettings] = None) -> OrganizationSettings:
    """Validate a (partial) settings payload on top of ``base``."""

    settings = base or OrganizationSettings()
    if not data:
        return settings
    changes: dict[str, Any] = {}

    hours = data.get("working_hours") or {}
    start = hours.get("start", data.get("working_hours_start"))
    end = hours.get("end", data.get("working_hours_end"))
    if start is not None:
        changes["working_hours_start"] = parse_hhmm(require_hhmm(start, "Working hours start"))
    if end is not None:
        changes["working_hours_end"] = parse_hhmm(require_hhmm(end, "Working hours end"))

    if data.get("working_days") is not None:
        days = data["working_days"]
        if not isinstance(days, (list, tuple)) or any(d not in WEEKDAYS for d in days):
            raise ValidationError(f"Working days must be a list of: {', '.join(WEEKDAYS)}")
        changes["working_days"] = tuple(days)
    if data.get("timezone"):
        changes["timezone"] = require_length(data["timezone"], "Timezone", min_len=1, max_len=64)

    threshold = data.get("late_threshold", data.get("late_threshold_minutes"))
    if threshold is not None:
        changes["late_threshold_minutes"] = require_int_range(threshold, "Late threshold", min_value=0, max_value=120)
    if "require_face_recognition" in data:
        changes["require_face_recognition"] = parse_bool(data["require_face_recognition"], "Require face recognition")
    if "allow_offline_mode" in data:
        changes["allow_offline_mode"] = parse_bool(data["allow_offline_mode"], "Allow offline mode")

    settings = replace(settings, **changes)
    if settings.working_hours_end <= settings.working_hours_start:
        raise ValidationError("Working hours end must be after start")
    return settings


def parse_subscription(data: Optional[dict], base: Optional[Subscription] = None) -> Subscription:
    subscription = base or Subscription()
    if not data:
        return subscription
    changes: dict[str, Any] = {}
    if data.get("plan") is not None:
        changes["plan"] = require_enum(SubscriptionPlan, data["plan"], "Plan")
    if data.get("max_users") is not None:
        changes["max_users"] = require_int_range(data["max_users"], "Max users", min_value=1, max_value=10000)
    if "is_active" in data:
        changes["is_active"] = parse_bool(data["is_active"], "Subscription active", default=True)
    return replace(subscription, **changes)


def _contact_fields(data: dict) -> dict[str, Any]:
    contact = data.get("contact_info")
    if isinstance(contact, dict):
        data = {**contact, **{k: v for k, v in data.items() if k != "contact_info"}}
    fields: dict[str, Any] = {}
    if "description" in data:
        fields["description"] = optional_text(data["description"], "Description", max_len=500)
    if "address" in data:
        fields["address"] = _address_text(data["address"])
    if "phone" in data:
        fields["phone"] = optional_text(data["phone"], "Phone", max_len=32)
    if data.get("email"):
        fields["email"] = require_email(data["email"], "Organization email")
    if "website" in data:
        website = optional_text(data["website"], "Website", max_len=255)
        if website and not website.startswith(("http://", "https://")):
            raise ValidationError("Website must be a valid URL")
        fields["website"] = website
    return fields


def parse_new_organization(data: dict, *, created_by: Optional[int] = None) -> NewOrganization:
    return NewOrganization(
        name=require_length(data.get("name"), "Organization name", min_len=2, max_len=100),
        org_type=require_enum(OrganizationType, data.get("type", data.get("org_type")), "Organization type"),
        settings=parse_settings(data.get("settings")),
        subscription=parse_subscription(data.get("subscription")),
        created_by=created_by,
        **_contact_fields(data),
    )


class OrganizationService:
    """Use cases of the tenant directory."""

    def __init__(
        self,
        organizations: OrganizationRepository,
        *,
        code_generator: Callable[[], str] = generate_invite_code,
        max_code_retries: int = INVITE_CODE_MAX_RETRIES,
    ):
        self._organizations = organizations
        self._code_generator = code_generator
        self._max_code_retries = int(max_code_retries)

    def _get_or_404(self, organization_id: int) -> Organization:
        org = self._organizations.get_by_id(int(organization_id))
        if org is None:
            raise NotFoundError("Organization not found")
        return org

    def create(self, draft: NewOrganization) -> Organization:
        """Persist ``draft`` with a fresh invite code, retrying on code collisions."""

        if self._organizations.find_active_by_name(draft.name):
            raise DuplicateName()
        for attempt in range(1, self._max_code_retries + 1):
            code = self._code_generator()
            try:
                org = self._organizations.create(draft, invite_code=code)
            except DuplicateInviteCode:
                logger.warning("Invite code collision on attempt %d/%d", attempt, self._max_code_retries)
                continue
            logger.info("Created organization %s (%s)", org.organization_id, org.name)
            return org
        raise ValidationError("Could not generate a unique invite code, please retry")

    def create_organization(self, data: dict, creator: User) -> Organization:
        ensure_role(creator, (Role.SUPER_ADMIN,))
        return self.create(parse_new_organization(data, created_by=creator.user_id))

    def resolve_invite(self, code: str) -> Organization:
        code = (code or "").strip().upper()
        org = self._organizations.get_by_invite_code(code) if code else None
        if org is None or not org.is_active:
            raise InvalidInviteCode()
        return org

    def get_active(self, organization_id: int) -> Organization:
        org = self._organizations.get_by_id(int(organization_id))
        if org is None or not org.is_active:
            raise NotFoundError("Organization not found or inactive")
        return org

    def refresh_stats(self, org: Organization) -> Organization:
        return org.with_stats(self._organizations.compute_stats(org.organization_id))

    def can_add_user(self, org: Organization) -> bool:
        """Advisory capacity check against the subscription's user limit."""
        stats = self._organizations.compute_stats(org.organization_id)
        return stats.total_users < org.subscription.max_users

    def get_organization(self, actor: User, organization_id: int) -> Organization:
        org = self._get_or_404(organization_id)
        if not same_organization(actor, org.organization_id):
            raise AuthorizationError("Access denied")
        return self.refresh_stats(org)

    def list_organizations(self, actor: User, filters: dict) -> tuple[Sequence[Organization], int]:
        ensure_role(actor, (Role.SUPER_ADMIN,))
        is_active = filters.get("is_active")
        query = OrganizationQuery(
            org_type=require_enum(OrganizationType, filters["type"], "Type") if filters.get("type") else None,
            is_active=None if is_active in (None, "") else parse_bool(is_active, "isActive"),
            plan=require_enum(SubscriptionPlan, filters["plan"], "Plan") if filters.get("plan") else None,
            search=(filters.get("search") or "").strip() or None,
            page=require_int_range(filters.get("page", 1), "Page", min_value=1, max_value=1_000_000),
            limit=require_int_range(filters.get("limit", 20), "Limit", min_value=1, max_value=MAX_PAGE_SIZE),
        )
        orgs, total = self._organizations.search(query)
        return [self.refresh_stats(o) for o in orgs], total

    def update_organization(self, actor: User, organization_id: int, data: dict) -> Organization:
        ensure_role(actor, (Role.SUPER_ADMIN,))
        org = self._get_or_404(organization_id)

        fields = _contact_fields(data)
        if data.get("name") is not None:
            name = require_length(data["name"], "Organization name", min_len=2, max_len=100)
            clash = self._organizations.find_active_by_name(name)
            if clash is not None and clash.organization_id != org.organization_id:
                raise DuplicateName()
            fields["name"] = name
        if data.get("type", data.get("org_type")) is not None:
            fields["org_type"] = require_enum(OrganizationType, data.get("type", data.get("org_type")), "Organization type")
        if data.get("settings") is not None:
            fields["settings"] = parse_settings(data["settings"], org.settings)
        if data.get("subscription") is not None:
            fields["subscription"] = parse_subscription(data["subscription"], org.subscription)
        if "is_active" in data:
            fields["is_active"] = parse_bool(data["is_active"], "isActive", default=org.is_active)

        updated = self._organizations.update(org.organization_id, **fields)
        if updated is None:
            raise NotFoundError("Organization not found")
        return self.refresh_stats(updated)

    def delete_organization(self, actor: User, organization_id: int) -> None:
        ensure_role(actor, (Role.SUPER_ADMIN,))
        org = self._get_or_404(organization_id)
        users = self._organizations.count_users(org.organization_id)
        if users > 0:
            raise OrganizationNotEmpty(
                f"Cannot delete organization with {users} users. Please transfer or delete users first."
            )
        self._organizations.delete(org.organization_id)
        logger.info("Deleted organization %s", org.organization_id)

    def discard(self, organization_id: int) -> None:
        """Remove a just-created organization whose setup failed."""
        self._organizations.delete(organization_id)

    def set_created_by(self, organization_id: int, user_id: int) -> None:
        self._organizations.set_created_by(organization_id, user_id)

