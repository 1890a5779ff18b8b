from __future__ import annotations

import pytest

from src.attendance_tracker.attendance_tracker.core.enums import ApprovalStatus
from src.attendance_tracker.attendance_tracker.core.exceptions import (
    AuthorizationError,
    CrossOrganizationAccess,
    NotFoundError,
    ValidationError,
)
from tests.factories import OTHER_ADMIN_DATA, OTHER_ORG_DATA, at, create_tenant


@pytest.fixture
def offline_event(container, tenant):
    return container.attendance_service.check_in(
        tenant.employee, now=at(10, 0), is_offline=True, offline_timestamp=at(9, 0)
    )


def test_admin_approves_offline_entry(container, tenant, offline_event):
    updated = container.attendance_service.update_event(
        tenant.admin, offline_event.event_id, {"status": "approved", "admin_notes": "Badge reader down"}, now=at(11, 0)
    )
    assert updated.status == ApprovalStatus.APPROVED
    assert updated.approved_by == tenant.admin.user_id
    assert updated.approved_date == at(11, 0)
    assert updated.modified_by == tenant.admin.user_id
    assert updated.admin_notes == "Badge reader down"


def test_update_of_concurrently_deleted_event_is_not_found(container, tenant, offline_event, monkeypatch):
    monkeypatch.setattr(container.attendance_repo, "update", lambda event_id, **fields: None)
    with pytest.raises(NotFoundError, match="Attendance record not found"):
        container.attendance_service.update_event(tenant.admin, offline_event.event_id, {"notes": "late bus"})


def test_only_annotation_fields_are_editable(container, tenant, offline_event):
    with pytest.raises(ValidationError) as exc:
        container.attendance_service.update_event(
            tenant.admin, offline_event.event_id, {"working_minutes": 600}
        )
    assert exc.value.errors == ["working_minutes is not editable"]


def test_employee_cannot_edit_events(container, tenant, offline_event):
    with pytest.raises(AuthorizationError):
        container.attendance_service.update_event(tenant.employee, offline_event.event_id, {"notes": "x"})


def test_admin_of_other_organization_is_rejected(container, tenant, offline_event):
    other = create_tenant(container, OTHER_ORG_DATA, OTHER_ADMIN_DATA)
    with pytest.raises(CrossOrganizationAccess):
        container.attendance_service.update_event(other.admin, offline_event.event_id, {"status": "rejected"})
    with pytest.raises(CrossOrganizationAccess):
        container.attendance_service.delete_event(other.admin, offline_event.event_id)


def test_delete_event(container, tenant, offline_event):
    container.attendance_service.delete_event(tenant.admin, offline_event.event_id)
    assert container.attendance_repo.get_by_id(offline_event.event_id) is None
    with pytest.raises(NotFoundError):
        container.attendance_service.delete_event(tenant.admin, offline_event.event_id)


def test_history_daily_summary_skips_pending_entries(container, tenant):
    svc = container.attendance_service
    svc.check_in(tenant.employee, now=at(9, 0))
    svc.check_out(tenant.employee, now=at(17, 30))
    svc.check_in(tenant.employee, now=at(12, 0, day=4), is_offline=True, offline_timestamp=at(9, 0, day=4))

    history = svc.my_history(tenant.employee, {"year": "2025", "month": "3"}, now=at(12, 0, day=4))

    assert history["total"] == 3
    assert [e.occurred_at for e in history["events"]] == [at(9, 0, day=4), at(17, 30), at(9, 0)]
    assert len(history["daily"]) == 1
    day = history["daily"][0]
    assert day["working_minutes"] == 510
    assert day["overtime_minutes"] == 30
    assert day["first_check_in"] == at(9, 0)
    assert day["last_check_out"] == at(17, 30)


def test_event_listing_is_scoped_to_organization(container, tenant):
    other = create_tenant(container, OTHER_ORG_DATA, OTHER_ADMIN_DATA)
    svc = container.attendance_service
    svc.check_in(tenant.employee, now=at(9, 0))
    svc.check_in(other.employee, now=at(9, 5))

    events, total = svc.list_events(tenant.admin, {})
    assert total == 1
    assert events[0].user_id == tenant.employee.user_id

    with pytest.raises(AuthorizationError):
        svc.list_events(tenant.employee, {})
    with pytest.raises(ValidationError):
        svc.list_events(tenant.admin, {"start_date": "03/03/2025"})
