from __future__ import annotations

from datetime import timedelta

import pytest
import requests

from src.attendance_tracker.attendance_tracker.aadhaar.service import AadhaarService
from src.attendance_tracker.attendance_tracker.aadhaar.verifier import (
    HttpOtpVerifier,
    MockOtpVerifier,
    OtpResult,
)
from src.attendance_tracker.attendance_tracker.core.exceptions import (
    AuthorizationError,
    DependencyError,
    RateLimitError,
    UpstreamUnavailable,
    ValidationError,
)
from tests.factories import add_employee, at

NUMBER = "123412341234"


class RejectingVerifier(MockOtpVerifier):
    def verify_otp(self, aadhaar_number, otp, request_id):
        return OtpResult(verified=False, message="Invalid OTP")


class BrokenVerifier:
    def send_otp(self, aadhaar_number):
        raise DependencyError("provider down")

    def verify_otp(self, aadhaar_number, otp, request_id):
        raise DependencyError("provider down")


def test_send_and_verify(container, tenant):
    svc = container.aadhaar_service
    sent = svc.send_otp(tenant.employee, NUMBER, now=at(9, 0))
    assert sent["request_id"].startswith("mock_request_")
    assert sent["expires_in"] == 600

    result = svc.verify_otp(tenant.employee, NUMBER, "123456", now=at(9, 2))
    assert result["aadhaar_verified"] is True
    assert result["verification_date"] == at(9, 2)

    user = container.users_repo.get_by_id(tenant.employee.user_id)
    assert user.aadhaar_number == NUMBER
    assert user.aadhaar_verified
    assert AadhaarService.status(user)["has_aadhaar"] is True

    # the session is consumed
    with pytest.raises(ValidationError, match="Invalid OTP request"):
        svc.verify_otp(tenant.employee, NUMBER, "123456", now=at(9, 3))


def test_input_formats(container, tenant):
    svc = container.aadhaar_service
    with pytest.raises(ValidationError):
        svc.send_otp(tenant.employee, "1234", now=at(9, 0))
    svc.send_otp(tenant.employee, NUMBER, now=at(9, 0))
    with pytest.raises(ValidationError):
        svc.verify_otp(tenant.employee, NUMBER, "12ab56", now=at(9, 1))


def test_resend_cooldown(container, tenant):
    svc = container.aadhaar_service
    svc.send_otp(tenant.employee, NUMBER, now=at(9, 0))
    with pytest.raises(RateLimitError):
        svc.send_otp(tenant.employee, NUMBER, now=at(9, 1))
    svc.send_otp(tenant.employee, NUMBER, now=at(9, 2))


def test_send_is_rate_limited_per_user(container, tenant):
    svc = container.aadhaar_service
    for minute in (0, 3, 6):
        svc.send_otp(tenant.employee, NUMBER, now=at(9, minute))
    with pytest.raises(RateLimitError, match="Too many OTP requests"):
        svc.send_otp(tenant.employee, NUMBER, now=at(9, 9))


def test_session_belongs_to_requesting_user(container, tenant):
    svc = container.aadhaar_service
    other = add_employee(container, tenant, 2)
    svc.send_otp(tenant.employee, NUMBER, now=at(9, 0))
    with pytest.raises(ValidationError, match="Invalid OTP request"):
        svc.verify_otp(other, NUMBER, "123456", now=at(9, 1))


def test_number_verified_by_someone_else_is_refused(container, tenant):
    svc = container.aadhaar_service
    svc.send_otp(tenant.employee, NUMBER, now=at(9, 0))
    svc.verify_otp(tenant.employee, NUMBER, "123456", now=at(9, 1))

    other = add_employee(container, tenant, 2)
    with pytest.raises(ValidationError, match="already verified"):
        svc.send_otp(other, NUMBER, now=at(9, 5))


def test_expired_otp(container, tenant):
    svc = container.aadhaar_service
    svc.send_otp(tenant.employee, NUMBER, now=at(9, 0))
    with pytest.raises(ValidationError, match="expired"):
        svc.verify_otp(tenant.employee, NUMBER, "123456", now=at(9, 0) + timedelta(minutes=10, seconds=1))
    with pytest.raises(ValidationError, match="Invalid OTP request"):
        svc.verify_otp(tenant.employee, NUMBER, "123456", now=at(9, 11))


def test_wrong_otp_attempts_are_capped(container, tenant):
    svc = AadhaarService(container.users_repo, verifier=RejectingVerifier())
    svc.send_otp(tenant.employee, NUMBER, now=at(9, 0))

    remaining = []
    for minute in (1, 2, 3):
        with pytest.raises(ValidationError) as exc:
            svc.verify_otp(tenant.employee, NUMBER, "000000", now=at(9, minute))
        remaining.append(exc.value.errors)
    assert remaining == [["attemptsRemaining: 2"], ["attemptsRemaining: 1"], ["attemptsRemaining: 0"]]

    with pytest.raises(ValidationError, match="Maximum OTP verification attempts"):
        svc.verify_otp(tenant.employee, NUMBER, "000000", now=at(9, 4))
    assert not container.users_repo.get_by_id(tenant.employee.user_id).aadhaar_verified


def test_provider_failure_is_unavailable(container, tenant):
    svc = AadhaarService(container.users_repo, verifier=BrokenVerifier())
    with pytest.raises(UpstreamUnavailable):
        svc.send_otp(tenant.employee, NUMBER, now=at(9, 0))


def test_unlink_requires_admin(container, tenant):
    svc = container.aadhaar_service
    container.users_repo.update(tenant.employee.user_id, aadhaar_number=NUMBER, aadhaar_verified=True)
    employee = container.users_repo.get_by_id(tenant.employee.user_id)
    with pytest.raises(AuthorizationError):
        svc.unlink(employee)

    with pytest.raises(ValidationError):
        svc.unlink(tenant.admin)

    container.users_repo.update(tenant.admin.user_id, aadhaar_number="999988887777", aadhaar_verified=True)
    cleared = svc.unlink(container.users_repo.get_by_id(tenant.admin.user_id))
    assert cleared.aadhaar_number is None
    assert not cleared.aadhaar_verified


def test_mock_verifier_rejects_malformed_otp():
    result = MockOtpVerifier().verify_otp(NUMBER, "12", "mock_request_x")
    assert not result.verified
    assert result.message == "Invalid OTP format"


def test_http_verifier_wraps_transport_errors(monkeypatch):
    def fail(*args, **kwargs):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(requests, "post", fail)
    verifier = HttpOtpVerifier(base_url="https://otp.example.com/", client_id="id", client_secret="secret")
    with pytest.raises(DependencyError):
        verifier.send_otp(NUMBER)


def test_http_verifier_parses_verification(monkeypatch):
    calls = []

    class Response:
        def raise_for_status(self):
            pass

        def json(self):
            return {"success": True, "verified": True, "message": "ok", "user_info": {"name": "A"}}

    def post(url, json, timeout):
        calls.append((url, json))
        return Response()

    monkeypatch.setattr(requests, "post", post)
    verifier = HttpOtpVerifier(base_url="https://otp.example.com/", client_id="id", client_secret="secret")
    result = verifier.verify_otp(NUMBER, "123456", "req-1")

    assert result.verified and result.user_info == {"name": "A"}
    assert calls[0][0] == "https://otp.example.com/verify-otp"
    assert calls[0][1]["client_id"] == "id"
