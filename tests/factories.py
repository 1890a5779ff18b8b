from __future__ import annotations

from datetime import datetime
from types import SimpleNamespace

# Monday
MONDAY = datetime(2025, 3, 3, 8, 0)

ORG_DATA = {"name": "Acme Works", "type": "office"}
ADMIN_DATA = {
    "first_name": "Alice",
    "last_name": "Admin",
    "email": "alice@acme.example.com",
    "employee_id": "ACM001",
    "password": "secret123",
    "confirm_password": "secret123",
}

OTHER_ORG_DATA = {"name": "Globex Retail", "type": "retail"}
OTHER_ADMIN_DATA = {
    "first_name": "Oscar",
    "last_name": "Owner",
    "email": "oscar@globex.example.com",
    "employee_id": "GLX001",
    "password": "secret123",
    "confirm_password": "secret123",
}


def memory_settings(**overrides):
    values = {
        "SECRET_KEY": "test-secret",
        "STORAGE_BACKEND": "memory",
        "TOKEN_TTL_SECONDS": 3600,
        "LOGIN_RATE_LIMIT": 5,
        "LOGIN_RATE_WINDOW_SECONDS": 60,
        "AADHAAR_VERIFIER": "mock",
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def employee_data(invite_code: str, n: int = 1, **overrides) -> dict:
    data = {
        "invite_code": invite_code,
        "first_name": f"Emp{n}",
        "last_name": "Worker",
        "email": f"emp{n}.{invite_code.lower()}@example.com",
        "employee_id": f"EMP{n:03d}-{invite_code}",
        "department": "Engineering",
        "designation": "Developer",
        "password": "secret123",
    }
    data.update(overrides)
    return data


def create_tenant(container, org_data=None, admin_data=None):
    """An organization with its admin and one approved, face-enrolled employee."""
    users = container.user_service
    org, admin, _ = users.register_organization(dict(org_data or ORG_DATA), dict(admin_data or ADMIN_DATA), now=MONDAY)
    tenant = SimpleNamespace(org=org, admin=admin, employee=None)
    tenant.employee = add_employee(container, tenant, 1)
    return tenant


def add_employee(container, tenant, n: int, **overrides):
    users = container.user_service
    employee, _ = users.register(employee_data(tenant.org.invite_code, n, **overrides), now=MONDAY)
    users.perform_admin_action(tenant.admin, employee.user_id, "approve", now=MONDAY)
    approved = container.users_repo.get_by_id(employee.user_id)
    return users.enroll_face(approved, [0.1, 0.2, 0.3], "aGVsbG8=", now=MONDAY)


def at(hour: int, minute: int = 0, *, day: int = 3) -> datetime:
    return datetime(2025, 3, day, hour, minute)
