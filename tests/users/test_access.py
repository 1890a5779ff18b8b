from __future__ import annotations

from dataclasses import replace

from src.attendance_tracker.attendance_tracker.core.enums import Role
from src.attendance_tracker.attendance_tracker.users.access import (
    ADMIN_ROLES,
    MANAGER_ROLES,
    authorize,
    authorize_owner_or_resource,
    require_approval,
    require_face_enrollment,
)


def test_authorize_checks_role_membership(tenant):
    assert authorize(tenant.admin, ADMIN_ROLES)
    assert not authorize(tenant.employee, ADMIN_ROLES)
    assert authorize(replace(tenant.employee, role=Role.HR), MANAGER_ROLES)
    assert not authorize(None, MANAGER_ROLES)


def test_owner_or_admin_may_reach_a_resource(tenant):
    employee = tenant.employee
    assert authorize_owner_or_resource(employee, employee.user_id)
    assert not authorize_owner_or_resource(employee, tenant.admin.user_id)
    assert authorize_owner_or_resource(tenant.admin, employee.user_id)
    assert not authorize_owner_or_resource(tenant.admin, employee.user_id, admin_roles=[Role.SUPER_ADMIN])
    assert not authorize_owner_or_resource(None, employee.user_id)


def test_require_approval(tenant):
    assert require_approval(tenant.employee)
    assert not require_approval(replace(tenant.employee, is_approved=False))


def test_require_face_enrollment(tenant):
    assert require_face_enrollment(tenant.employee)
    assert not require_face_enrollment(tenant.admin)
