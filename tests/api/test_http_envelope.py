from __future__ import annotations

import pytest

from src.attendance_tracker.attendance_tracker.main import create_app

ORGANIZATION = {
    "organizationData": {"name": "Acme Works", "type": "office", "settings": {"requireFaceRecognition": False}},
    "managerData": {
        "firstName": "Alice",
        "lastName": "Admin",
        "email": "alice@acme.example.com",
        "employeeId": "ACM001",
        "password": "secret123",
        "confirmPassword": "secret123",
    },
}


@pytest.fixture
def client():
    app = create_app("config.testing")
    return app.test_client()


def _auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def _register_organization(client) -> dict:
    resp = client.post("/api/auth/register-organization", json=ORGANIZATION)
    assert resp.status_code == 201
    return resp.get_json()["data"]


def _register_employee(client, invite_code: str) -> dict:
    resp = client.post(
        "/api/auth/register",
        json={
            "inviteCode": invite_code,
            "firstName": "Eve",
            "lastName": "Worker",
            "email": "eve@acme.example.com",
            "employeeId": "EMP001",
            "department": "Engineering",
            "designation": "Developer",
            "password": "secret123",
        },
    )
    assert resp.status_code == 201
    return resp.get_json()["data"]


def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.get_json() == {"success": True, "data": {"status": "OK", "storage": "memory"}}


def test_unknown_route_uses_error_envelope(client):
    resp = client.get("/api/does-not-exist")
    assert resp.status_code == 404
    assert resp.get_json() == {"success": False, "message": "Route not found"}


def test_missing_or_bad_token_is_401(client):
    assert client.get("/api/auth/me").status_code == 401
    resp = client.get("/api/auth/me", headers=_auth("garbage"))
    assert resp.status_code == 401
    assert resp.get_json()["success"] is False


def test_register_organization_returns_camel_case(client):
    data = _register_organization(client)
    assert data["user"]["role"] == "admin"
    assert data["user"]["isApproved"] is True
    assert "passwordHash" not in data["user"]
    assert len(data["organization"]["inviteCode"]) == 8
    assert data["emailSent"] is True
    assert data["token"]


def test_login_and_me(client):
    _register_organization(client)
    resp = client.post("/api/auth/login", json={"email": "alice@acme.example.com", "password": "secret123"})
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["message"] == "Login successful"

    me = client.get("/api/auth/me", headers=_auth(body["data"]["token"]))
    assert me.get_json()["data"]["user"]["email"] == "alice@acme.example.com"

    wrong = client.post("/api/auth/login", json={"email": "alice@acme.example.com", "password": "nope12"})
    assert wrong.status_code == 401
    assert wrong.get_json()["message"] == "Invalid credentials"


def test_login_is_rate_limited_per_client(client):
    for _ in range(5):
        client.post("/api/auth/login", json={"email": "x@example.com", "password": "whatever"})
    resp = client.post("/api/auth/login", json={"email": "x@example.com", "password": "whatever"})
    assert resp.status_code == 429

    other = client.post(
        "/api/auth/login",
        json={"email": "x@example.com", "password": "whatever"},
        headers={"X-Forwarded-For": "10.0.0.9"},
    )
    assert other.status_code == 401


def test_super_admin_is_seeded(client):
    resp = client.post("/api/auth/login", json={"email": "root@example.com", "password": "rootpass123"})
    assert resp.status_code == 200
    assert resp.get_json()["data"]["user"]["role"] == "super-admin"


def test_attendance_flow(client):
    org = _register_organization(client)
    admin_token = org["token"]
    employee = _register_employee(client, org["organization"]["inviteCode"])
    employee_token = employee["token"]

    pending = client.post("/api/attendance/mark", json={"type": "check-in"}, headers=_auth(employee_token))
    assert pending.status_code == 403

    approve = client.post(
        f"/api/users/{employee['user']['id']}/admin-action",
        json={"action": "approve"},
        headers=_auth(admin_token),
    )
    assert approve.status_code == 200
    assert approve.get_json()["message"] == "User approved successfully"

    mark = client.post(
        "/api/attendance/mark",
        json={"type": "check-in", "recognitionMethod": "manual", "notes": "front door"},
        headers=_auth(employee_token),
    )
    assert mark.status_code == 201
    body = mark.get_json()
    assert body["message"] == "Check in recorded successfully"
    assert body["data"]["attendance"]["type"] == "check-in"
    assert body["data"]["attendance"]["recognitionMethod"] == "manual"
    assert body["data"]["today"]["isCheckedIn"] is True

    again = client.post(
        "/api/attendance/mark", json={"type": "check-in", "recognitionMethod": "manual"}, headers=_auth(employee_token)
    )
    assert again.status_code == 400
    assert again.get_json()["message"] == "You are already checked in. Please check out first."

    listing = client.get("/api/attendance/all", headers=_auth(admin_token))
    assert listing.status_code == 200
    rows = listing.get_json()["data"]["attendance"]
    assert len(rows) == 1
    assert rows[0]["user"]["employeeId"] == "EMP001"

    assert client.get("/api/attendance/all", headers=_auth(employee_token)).status_code == 403


def test_validation_errors_are_400(client):
    org = _register_organization(client)
    resp = client.post("/api/attendance/mark", json={"type": "teleport"}, headers=_auth(org["token"]))
    assert resp.status_code == 400
    assert resp.get_json()["success"] is False


def test_timesheet_csv_download(client):
    org = _register_organization(client)
    resp = client.get("/api/attendance/report?format=csv", headers=_auth(org["token"]))
    assert resp.status_code == 200
    assert resp.mimetype == "text/csv"
    assert resp.data.decode("utf-8-sig").startswith("work_date,user_id,full_name")


def test_aadhaar_otp_over_http(client):
    org = _register_organization(client)
    headers = _auth(org["token"])
    sent = client.post("/api/aadhaar/send-otp", json={"aadhaarNumber": "123412341234"}, headers=headers)
    assert sent.status_code == 200
    assert sent.get_json()["data"]["requestId"].startswith("mock_request_")

    verified = client.post(
        "/api/aadhaar/verify-otp", json={"aadhaarNumber": "123412341234", "otp": "654321"}, headers=headers
    )
    assert verified.status_code == 200
    assert verified.get_json()["data"]["aadhaarVerified"] is True

    status = client.get("/api/aadhaar/status", headers=headers).get_json()["data"]
    assert status["aadhaarNumber"] == "123412341234"
    assert status["aadhaarVerified"] is True
    assert status["hasAadhaar"] is True
