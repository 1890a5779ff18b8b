from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Optional

from ..common.cache import TTLCache
from ..common.rate_limit import SlidingWindowRateLimiter
from ..common.validators import require_digits
from ..core import constants
from ..core.enums import Role
from ..core.exceptions import (
    DependencyError,
    RateLimitError,
    UpstreamUnavailable,
    ValidationError,
)
from ..users.access import ensure_role
from ..users.model import User
from ..users.repository import UserRepository
from .verifier import OtpVerifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OtpSession:
    request_id: str
    user_id: int
    sent_at: datetime
    attempts: int = 0


class AadhaarService:
    """OTP-based linking of an Aadhaar number to an account.

    Pending OTP sessions are kept in a TTL cache keyed by Aadhaar number;
    they are lost on restart and the user simply requests a new OTP.
    """

    def __init__(
        self,
        users: UserRepository,
        *,
        verifier: OtpVerifier,
        sessions: TTLCache[OtpSession] | None = None,
        send_limiter: SlidingWindowRateLimiter | None = None,
        verify_limiter: SlidingWindowRateLimiter | None = None,
        otp_ttl_seconds: int = constants.OTP_TTL_SECONDS,
        resend_cooldown_seconds: int = constants.OTP_RESEND_COOLDOWN_SECONDS,
        max_attempts: int = constants.OTP_MAX_ATTEMPTS,
    ):
        self._users = users
        self._verifier = verifier
        self._sessions = sessions or TTLCache(ttl_seconds=otp_ttl_seconds * 2)
        self._send_limiter = send_limiter or SlidingWindowRateLimiter(
            max_attempts=3, window_seconds=15 * 60, message="Too many OTP requests. Please try again later."
        )
        self._verify_limiter = verify_limiter or SlidingWindowRateLimiter(
            max_attempts=5, window_seconds=15 * 60, message="Too many verification attempts. Please try again later."
        )
        self._otp_ttl = timedelta(seconds=otp_ttl_seconds)
        self._cooldown = timedelta(seconds=resend_cooldown_seconds)
        self._max_attempts = max_attempts

    def send_otp(self, user: User, aadhaar_number, *, now: datetime | None = None) -> dict:
        now = now or datetime.now()
        number = require_digits(aadhaar_number, "Aadhaar number", length=12)
        self._send_limiter.hit(f"send:{user.user_id}")

        if user.aadhaar_number != number:
            holder = self._users.get_by_aadhaar(number)
            if holder is not None and holder.user_id != user.user_id and holder.aadhaar_verified:
                raise ValidationError("This Aadhaar number is already verified by another user")

        previous = self._sessions.get(number)
        if previous is not None and now - previous.sent_at < self._cooldown:
            raise RateLimitError("Please wait before requesting another OTP")

        try:
            request_id = self._verifier.send_otp(number)
        except DependencyError as exc:
            logger.error("Aadhaar OTP send failed for user %s: %s", user.user_id, exc)
            raise UpstreamUnavailable("Failed to send OTP") from exc

        self._sessions.set(number, OtpSession(request_id=request_id, user_id=user.user_id, sent_at=now))
        return {"request_id": request_id, "expires_in": int(self._otp_ttl.total_seconds())}

    def verify_otp(self, user: User, aadhaar_number, otp, *, now: datetime | None = None) -> dict:
        now = now or datetime.now()
        number = require_digits(aadhaar_number, "Aadhaar number", length=12)
        code = require_digits(otp, "OTP", length=6)
        self._verify_limiter.hit(f"verify:{user.user_id}")

        session = self._sessions.get(number)
        if session is None or session.user_id != user.user_id:
            raise ValidationError("Invalid OTP request. Please request a new OTP.")
        if now - session.sent_at > self._otp_ttl:
            self._sessions.delete(number)
            raise ValidationError("OTP has expired. Please request a new OTP.")
        if session.attempts >= self._max_attempts:
            self._sessions.delete(number)
            raise ValidationError("Maximum OTP verification attempts exceeded")

        try:
            result = self._verifier.verify_otp(number, code, session.request_id)
        except DependencyError as exc:
            logger.error("Aadhaar OTP verify failed for user %s: %s", user.user_id, exc)
            raise UpstreamUnavailable("Failed to verify OTP") from exc

        session = replace(session, attempts=session.attempts + 1)
        if not result.verified:
            self._sessions.set(number, session)
            remaining = max(0, self._max_attempts - session.attempts)
            raise ValidationError(result.message, errors=[f"attemptsRemaining: {remaining}"])

        self._sessions.delete(number)
        updated = self._users.update(
            user.user_id,
            aadhaar_number=number,
            aadhaar_verified=True,
            aadhaar_verification_date=now,
        )
        logger.info("Aadhaar verified for user %s", user.user_id)
        return {
            "aadhaar_verified": True,
            "verification_date": updated.aadhaar_verification_date if updated else now,
            "user_info": result.user_info,
        }

    @staticmethod
    def status(user: User) -> dict:
        return {
            "aadhaar_number": user.aadhaar_number,
            "aadhaar_verified": user.aadhaar_verified,
            "verification_date": user.aadhaar_verification_date,
            "has_aadhaar": bool(user.aadhaar_number),
        }

    def unlink(self, user: User) -> Optional[User]:
        if not user.aadhaar_number:
            raise ValidationError("No Aadhaar number linked to this account")
        ensure_role(user, (Role.ADMIN, Role.SUPER_ADMIN), "Aadhaar unlinking requires admin privileges")
        return self._users.update(
            user.user_id,
            aadhaar_number=None,
            aadhaar_verified=False,
            aadhaar_verification_date=None,
        )
