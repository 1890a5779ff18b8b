from __future__ import annotations

import pytest

from src.attendance_tracker.attendance_tracker.core.enums import AdminAction, Role
from src.attendance_tracker.attendance_tracker.core.exceptions import (
    AuthorizationError,
    CrossOrganizationAccess,
    InvalidInviteCode,
    SelfActionForbidden,
    UpstreamUnavailable,
    ValidationError,
)
from src.attendance_tracker.attendance_tracker.users.service import (
    ADMIN_ACTION_HANDLERS,
    ADMIN_ACTION_MESSAGES,
    ensure_super_admin,
)
from tests.factories import (
    OTHER_ADMIN_DATA,
    OTHER_ORG_DATA,
    add_employee,
    at,
    create_tenant,
    employee_data,
)


def test_every_admin_action_has_a_handler_and_message():
    assert set(ADMIN_ACTION_HANDLERS) == set(AdminAction)
    assert set(ADMIN_ACTION_MESSAGES) == set(AdminAction)


def test_register_organization_creates_approved_admin(container, tenant):
    admin = tenant.admin
    assert admin.role == Role.ADMIN
    assert admin.is_approved and admin.is_active
    assert admin.organization_id == tenant.org.organization_id
    assert container.organizations_repo.get_by_id(tenant.org.organization_id).created_by == admin.user_id
    assert container.email_sender.outbox[0]["subject"].startswith("Welcome to Acme Works")


def test_self_registration_is_pending(container, tenant):
    user, org = container.user_service.register(employee_data(tenant.org.invite_code.lower(), 5), now=at(8, 0))
    assert org.organization_id == tenant.org.organization_id
    assert user.role == Role.EMPLOYEE
    assert not user.is_approved


def test_registration_rejects_bad_invite_and_duplicates(container, tenant):
    with pytest.raises(InvalidInviteCode):
        container.user_service.register(employee_data("NOPE1234", 5))
    with pytest.raises(ValidationError):
        container.user_service.register(employee_data(tenant.org.invite_code, 1))


def test_register_with_organization_limits_roles(container, tenant):
    data = employee_data("", 6, organization_id=tenant.org.organization_id, role="admin")
    with pytest.raises(ValidationError):
        container.user_service.register_with_organization(data)
    user, _ = container.user_service.register_with_organization({**data, "role": "hr"})
    assert user.role == Role.HR


def test_admin_actions(container, tenant):
    users = container.user_service
    target = tenant.employee.user_id

    deactivated = users.perform_admin_action(tenant.admin, target, "deactivate", "left the team", now=at(9, 0))
    assert not deactivated.is_active
    activated = users.perform_admin_action(tenant.admin, target, AdminAction.ACTIVATE, now=at(9, 1))
    assert activated.is_active

    reset = users.perform_admin_action(tenant.admin, target, "reset-face", now=at(9, 2))
    assert not reset.face_enrolled
    assert reset.face_enrollment_attempts == 0
    assert reset.face_images == ()
    assert container.image_store.images == {}

    rejected = users.perform_admin_action(tenant.admin, target, "reject", now=at(9, 3))
    assert not rejected.is_approved and not rejected.is_active


def test_unknown_admin_action_is_rejected(container, tenant):
    with pytest.raises(ValidationError):
        container.user_service.perform_admin_action(tenant.admin, tenant.employee.user_id, "promote")


@pytest.mark.parametrize("action", ["reject", "deactivate"])
def test_admin_cannot_reject_or_deactivate_self(container, tenant, action):
    with pytest.raises(SelfActionForbidden):
        container.user_service.perform_admin_action(tenant.admin, tenant.admin.user_id, action)


def test_admin_actions_are_organization_scoped(container, tenant):
    other = create_tenant(container, OTHER_ORG_DATA, OTHER_ADMIN_DATA)
    with pytest.raises(CrossOrganizationAccess):
        container.user_service.perform_admin_action(other.admin, tenant.employee.user_id, "deactivate")
    with pytest.raises(AuthorizationError):
        container.user_service.perform_admin_action(tenant.employee, tenant.admin.user_id, "deactivate")


def test_super_admin_acts_across_organizations(container, tenant):
    root = ensure_super_admin(container.users_repo, email="root@example.com", password="rootpass123", now=at(8, 0))
    assert root.role == Role.SUPER_ADMIN
    assert ensure_super_admin(container.users_repo, email="root@example.com", password="rootpass123") is None

    updated = container.user_service.perform_admin_action(root, tenant.employee.user_id, "deactivate", now=at(9, 0))
    assert not updated.is_active


def test_face_enrollment_attempts_are_capped(container, tenant):
    users = container.user_service
    user = tenant.employee
    assert user.face_enrolled and user.face_enrollment_attempts == 1

    users.enroll_face(user, [0.4], "aGVsbG8=", now=at(9, 0))
    users.enroll_face(user, [0.5], "aGVsbG8=", now=at(9, 1))
    with pytest.raises(ValidationError, match="Maximum face enrollment attempts"):
        users.enroll_face(user, [0.6], "aGVsbG8=", now=at(9, 2))

    stored = container.users_repo.get_by_id(user.user_id)
    assert len(stored.face_descriptors) == 3
    assert len(stored.face_images) == 3


def test_face_enrollment_validation_and_store_failure(container, tenant):
    users = container.user_service
    with pytest.raises(ValidationError):
        users.enroll_face(tenant.admin, [], "aGVsbG8=")
    with pytest.raises(ValidationError):
        users.enroll_face(tenant.admin, ["a"], "aGVsbG8=")
    with pytest.raises(ValidationError):
        users.enroll_face(tenant.admin, [0.1], None)

    container.image_store.fail = True
    with pytest.raises(UpstreamUnavailable):
        users.enroll_face(tenant.admin, [0.1], "aGVsbG8=")
    assert container.users_repo.get_by_id(tenant.admin.user_id).face_enrollment_attempts == 0


def test_profile_access(container, tenant):
    users = container.user_service
    assert users.get_profile(tenant.employee, tenant.employee.user_id).user_id == tenant.employee.user_id
    with pytest.raises(AuthorizationError):
        users.get_profile(tenant.employee, tenant.admin.user_id)

    updated = users.update_profile(tenant.admin, tenant.employee.user_id, {"department": "Operations", "role": "admin"})
    assert updated.department == "Operations"
    assert updated.role == Role.EMPLOYEE


def test_member_ids_filters_by_department_and_search(container, tenant):
    sales = add_employee(container, tenant, 2, department="Sales", first_name="Sam")
    users = container.user_service
    assert users.member_ids(tenant.admin) is None
    assert users.member_ids(tenant.admin, department="Sales") == [sales.user_id]
    assert users.member_ids(tenant.admin, search="sam") == [sales.user_id]
    assert users.member_ids(tenant.admin, department="Sales", search="emp1") == []


def test_delete_user_removes_their_events(container, tenant):
    container.attendance_service.check_in(tenant.employee, now=at(9, 0))
    with pytest.raises(SelfActionForbidden):
        container.user_service.delete_user(tenant.admin, tenant.admin.user_id)

    container.user_service.delete_user(tenant.admin, tenant.employee.user_id)
    assert container.users_repo.get_by_id(tenant.employee.user_id) is None
    assert container.attendance_repo.count(user_id=tenant.employee.user_id) == 0
