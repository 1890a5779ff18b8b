from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from typing import Optional, Protocol

import requests

from ..core.exceptions import DependencyError

logger = logging.getLogger(__name__)

_OTP_RE = re.compile(r"^\d{6}$")


@dataclass(frozen=True)
class OtpResult:
    verified: bool
    message: str
    user_info: Optional[dict] = None


class OtpVerifier(Protocol):
    def send_otp(self, aadhaar_number: str) -> str:
        """Ask the provider to text an OTP; returns the provider's request id."""
        raise NotImplementedError

    def verify_otp(self, aadhaar_number: str, otp: str, request_id: str) -> OtpResult:
        raise NotImplementedError


class HttpOtpVerifier:
    """Client for an external OTP provider exposing ``/send-otp`` and ``/verify-otp``."""

    def __init__(self, *, base_url: str, client_id: str, client_secret: str, timeout: float = 15):
        self._base_url = base_url.rstrip("/")
        self._client_id = client_id
        self._client_secret = client_secret
        self._timeout = timeout

    def _post(self, path: str, payload: dict) -> dict:
        payload = dict(payload, client_id=self._client_id, client_secret=self._client_secret)
        try:
            resp = requests.post(f"{self._base_url}{path}", json=payload, timeout=self._timeout)
            resp.raise_for_status()
            return resp.json()
        except (requests.RequestException, ValueError) as exc:
            raise DependencyError(f"OTP provider call to {path} failed: {exc}") from exc

    def send_otp(self, aadhaar_number: str) -> str:
        data = self._post("/send-otp", {"aadhaar_number": aadhaar_number})
        request_id = data.get("request_id")
        if not request_id:
            raise DependencyError("OTP provider did not return a request id")
        return str(request_id)

    def verify_otp(self, aadhaar_number: str, otp: str, request_id: str) -> OtpResult:
        data = self._post(
            "/verify-otp",
            {"aadhaar_number": aadhaar_number, "otp": otp, "request_id": request_id},
        )
        verified = bool(data.get("success")) and bool(data.get("verified"))
        return OtpResult(
            verified=verified,
            message=data.get("message") or ("Verified" if verified else "OTP verification failed"),
            user_info=data.get("user_info"),
        )


class MockOtpVerifier:
    """Development verifier: no message is sent and any six-digit OTP is accepted."""

    def send_otp(self, aadhaar_number: str) -> str:
        request_id = f"mock_request_{uuid.uuid4().hex[:12]}"
        logger.info("Mock OTP issued for Aadhaar ending %s (request %s)", aadhaar_number[-4:], request_id)
        return request_id

    def verify_otp(self, aadhaar_number: str, otp: str, request_id: str) -> OtpResult:
        if not _OTP_RE.match(otp or ""):
            return OtpResult(verified=False, message="Invalid OTP format")
        return OtpResult(
            verified=True,
            message="Aadhaar verified successfully (Mock)",
            user_info={"name": "Mock User", "dob": "1990-01-01", "gender": "M", "address": "Mock Address"},
        )
