from __future__ import annotations

from datetime import time
from itertools import repeat

import pytest

from src.attendance_tracker.attendance_tracker.core.enums import OrganizationType
from src.attendance_tracker.attendance_tracker.core.exceptions import (
    AuthorizationError,
    DuplicateName,
    InvalidInviteCode,
    NotFoundError,
    OrganizationNotEmpty,
    ValidationError,
)
from src.attendance_tracker.attendance_tracker.database.memory import MemoryStore
from src.attendance_tracker.attendance_tracker.organizations.memory_organization_repository import (
    MemoryOrganizationRepository,
)
from src.attendance_tracker.attendance_tracker.organizations.service import (
    OrganizationService,
    generate_invite_code,
    parse_new_organization,
    parse_settings,
)
from src.attendance_tracker.attendance_tracker.users.service import ensure_super_admin
from tests.factories import at


@pytest.fixture
def root(container):
    return ensure_super_admin(container.users_repo, email="root@example.com", password="rootpass123", now=at(8, 0))


def test_invite_codes_are_eight_uppercase_alphanumerics():
    code = generate_invite_code()
    assert len(code) == 8
    assert code.isalnum() and code.upper() == code


def test_invite_code_collision_is_retried():
    codes = iter(["TAKEN001", "TAKEN001", "FRESH002"])
    service = OrganizationService(MemoryOrganizationRepository(MemoryStore()), code_generator=lambda: next(codes))

    first = service.create(parse_new_organization({"name": "First", "type": "school"}))
    second = service.create(parse_new_organization({"name": "Second", "type": "school"}))

    assert first.invite_code == "TAKEN001"
    assert second.invite_code == "FRESH002"


def test_invite_code_retries_are_bounded():
    codes = repeat("SAMECODE")
    service = OrganizationService(
        MemoryOrganizationRepository(MemoryStore()), code_generator=lambda: next(codes), max_code_retries=3
    )
    service.create(parse_new_organization({"name": "First", "type": "school"}))
    with pytest.raises(ValidationError):
        service.create(parse_new_organization({"name": "Second", "type": "school"}))


def test_active_names_are_unique(container, root):
    service = container.organization_service
    service.create_organization({"name": "Harbor Hotel", "type": "hotel"}, root)
    with pytest.raises(DuplicateName):
        service.create_organization({"name": "Harbor Hotel", "type": "hotel"}, root)


def test_only_super_admin_manages_organizations(container, tenant):
    with pytest.raises(AuthorizationError):
        container.organization_service.create_organization({"name": "Nope", "type": "office"}, tenant.admin)
    with pytest.raises(AuthorizationError):
        container.organization_service.list_organizations(tenant.admin, {})


def test_resolve_invite(container, tenant):
    service = container.organization_service
    assert service.resolve_invite(f"  {tenant.org.invite_code.lower()} ").organization_id == tenant.org.organization_id

    container.organizations_repo.update(tenant.org.organization_id, is_active=False)
    with pytest.raises(InvalidInviteCode):
        service.resolve_invite(tenant.org.invite_code)
    with pytest.raises(InvalidInviteCode):
        service.resolve_invite("")


def test_get_organization_is_scoped(container, tenant, root):
    service = container.organization_service
    org = service.get_organization(tenant.admin, tenant.org.organization_id)
    assert org.stats.total_users == 2

    other = service.create_organization({"name": "Other Place", "type": "factory"}, root)
    with pytest.raises(AuthorizationError):
        service.get_organization(tenant.admin, other.organization_id)
    with pytest.raises(NotFoundError):
        service.get_organization(root, 999)


def test_update_merges_settings(container, tenant, root):
    updated = container.organization_service.update_organization(
        root,
        tenant.org.organization_id,
        {
            "settings": {"working_hours": {"start": "08:30"}, "late_threshold": 5},
            "contact_info": {"phone": "0123456789", "website": "https://acme.example.com"},
            "type": "factory",
        },
    )
    assert updated.settings.working_hours_start == time(8, 30)
    assert updated.settings.working_hours_end == time(17, 0)
    assert updated.settings.late_threshold_minutes == 5
    assert updated.phone == "0123456789"
    assert updated.org_type == OrganizationType.FACTORY


def test_settings_validation():
    with pytest.raises(ValidationError):
        parse_settings({"working_hours": {"start": "18:00", "end": "09:00"}})
    with pytest.raises(ValidationError):
        parse_settings({"working_days": ["Funday"]})
    with pytest.raises(ValidationError):
        parse_settings({"late_threshold": 500})
    with pytest.raises(ValidationError):
        parse_new_organization({"name": "X", "type": "office"})
    with pytest.raises(ValidationError):
        parse_new_organization({"name": "Valid Name", "type": "castle"})


def test_delete_requires_empty_organization(container, tenant, root):
    service = container.organization_service
    with pytest.raises(OrganizationNotEmpty):
        service.delete_organization(root, tenant.org.organization_id)

    empty = service.create_organization({"name": "Empty Co", "type": "other"}, root)
    service.delete_organization(root, empty.organization_id)
    assert container.organizations_repo.get_by_id(empty.organization_id) is None


def test_list_organizations_filters(container, tenant, root):
    service = container.organization_service
    service.create_organization({"name": "City School", "type": "school"}, root)

    orgs, total = service.list_organizations(root, {"type": "school"})
    assert total == 1
    assert orgs[0].name == "City School"

    orgs, total = service.list_organizations(root, {"search": "acme"})
    assert [o.organization_id for o in orgs] == [tenant.org.organization_id]
    assert orgs[0].stats.total_users == 2


def test_update_of_concurrently_deleted_organization_is_not_found(container, tenant, root, monkeypatch):
    monkeypatch.setattr(container.organizations_repo, "update", lambda organization_id, **fields: None)
    with pytest.raises(NotFoundError, match="Organization not found"):
        container.organization_service.update_organization(root, tenant.org.organization_id, {"description": "HQ"})
