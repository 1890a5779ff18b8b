from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from .aadhaar.service import AadhaarService
from .aadhaar.verifier import HttpOtpVerifier, MockOtpVerifier, OtpVerifier
from .attendance.factory import PunctualityStrategyFactory
from .attendance.memory_attendance_repository import MemoryAttendanceRepository
from .attendance.mysql_attendance_repository import MySQLAttendanceRepository
from .attendance.repository import AttendanceRepository
from .attendance.service import AttendanceService
from .common.rate_limit import SlidingWindowRateLimiter
from .database.connection import DBConfig, DatabaseConnection
from .database.memory import MemoryStore
from .integrations.email import EmailSender, MailgunEmailSender, Notifier, OutboxEmailSender
from .integrations.images import ImageStore, LocalImageStore, MemoryImageStore
from .organizations.memory_organization_repository import MemoryOrganizationRepository
from .organizations.mysql_organization_repository import MySQLOrganizationRepository
from .organizations.repository import OrganizationRepository
from .organizations.service import OrganizationService
from .reporting.service import ReportingService
from .users.memory_user_repository import MemoryUserRepository
from .users.mysql_user_repository import MySQLUserRepository
from .users.repository import UserRepository
from .users.service import AuthService, UserService
from .users.tokens import TokenService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Container:
    conn: Optional[DatabaseConnection]
    store: Optional[MemoryStore]

    organizations_repo: OrganizationRepository
    users_repo: UserRepository
    attendance_repo: AttendanceRepository

    email_sender: EmailSender
    image_store: ImageStore
    otp_verifier: OtpVerifier

    token_service: TokenService
    login_limiter: SlidingWindowRateLimiter
    organization_service: OrganizationService
    auth_service: AuthService
    user_service: UserService
    attendance_service: AttendanceService
    reporting_service: ReportingService
    aadhaar_service: AadhaarService


def _setting(settings: Any, name: str, default: Any = None) -> Any:
    return getattr(settings, name, default)


def _email_sender(settings: Any) -> EmailSender:
    api_key = _setting(settings, "MAILGUN_API_KEY")
    domain = _setting(settings, "MAILGUN_DOMAIN")
    if api_key and domain:
        return MailgunEmailSender(api_key=api_key, domain=domain, sender=_setting(settings, "MAILGUN_FROM", ""))
    logger.info("Mailgun not configured; emails are kept in the in-memory outbox")
    return OutboxEmailSender()


def _otp_verifier(settings: Any) -> OtpVerifier:
    if str(_setting(settings, "AADHAAR_VERIFIER", "mock")).lower() == "http":
        base_url = _setting(settings, "AADHAAR_API_URL")
        if not base_url:
            raise RuntimeError("AADHAAR_VERIFIER=http requires AADHAAR_API_URL")
        return HttpOtpVerifier(
            base_url=base_url,
            client_id=_setting(settings, "AADHAAR_CLIENT_ID", ""),
            client_secret=_setting(settings, "AADHAAR_CLIENT_SECRET", ""),
        )
    return MockOtpVerifier()


def build_container(settings: Any) -> Container:
    backend = str(_setting(settings, "STORAGE_BACKEND", "mysql")).lower()
    conn: Optional[DatabaseConnection] = None
    store: Optional[MemoryStore] = None

    if backend == "memory":
        store = MemoryStore()
        organizations_repo: OrganizationRepository = MemoryOrganizationRepository(store)
        users_repo: UserRepository = MemoryUserRepository(store)
        attendance_repo: AttendanceRepository = MemoryAttendanceRepository(store)
        image_store: ImageStore = MemoryImageStore()
    elif backend == "mysql":
        conn = DatabaseConnection.get_instance(DBConfig.from_dict(_setting(settings, "DB_CONFIG", {})))
        organizations_repo = MySQLOrganizationRepository(conn)
        users_repo = MySQLUserRepository(conn)
        attendance_repo = MySQLAttendanceRepository(conn)
        image_store = LocalImageStore(
            _setting(settings, "UPLOAD_DIR", "uploads"),
            base_url=_setting(settings, "UPLOAD_BASE_URL", "/uploads"),
        )
    else:
        raise RuntimeError(f"Unknown STORAGE_BACKEND: {backend!r}")

    email_sender = _email_sender(settings)
    otp_verifier = _otp_verifier(settings)
    notifier = Notifier(email_sender, frontend_url=_setting(settings, "FRONTEND_URL", "http://localhost:3000"))

    token_service = TokenService(
        _setting(settings, "SECRET_KEY"),
        ttl_seconds=int(_setting(settings, "TOKEN_TTL_SECONDS", 7 * 24 * 3600)),
    )
    login_limiter = SlidingWindowRateLimiter(
        max_attempts=int(_setting(settings, "LOGIN_RATE_LIMIT", 10)),
        window_seconds=int(_setting(settings, "LOGIN_RATE_WINDOW_SECONDS", 15 * 60)),
        message="Too many login attempts. Please try again later.",
    )

    organization_service = OrganizationService(organizations_repo)
    auth_service = AuthService(users_repo, notifier=notifier)
    user_service = UserService(
        users_repo,
        organization_service,
        attendance_repo,
        notifier=notifier,
        image_store=image_store,
    )
    attendance_service = AttendanceService(
        attendance_repo,
        organizations_repo,
        image_store=image_store,
        strategy_factory=PunctualityStrategyFactory(),
    )
    reporting_service = ReportingService(attendance_repo, users_repo, organizations_repo)
    aadhaar_service = AadhaarService(users_repo, verifier=otp_verifier)

    return Container(
        conn=conn,
        store=store,
        organizations_repo=organizations_repo,
        users_repo=users_repo,
        attendance_repo=attendance_repo,
        email_sender=email_sender,
        image_store=image_store,
        otp_verifier=otp_verifier,
        token_service=token_service,
        login_limiter=login_limiter,
        organization_service=organization_service,
        auth_service=auth_service,
        user_service=user_service,
        attendance_service=attendance_service,
        reporting_service=reporting_service,
        aadhaar_service=aadhaar_service,
    )
