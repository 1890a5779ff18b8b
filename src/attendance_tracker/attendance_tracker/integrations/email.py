from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol

import requests

from ..core.exceptions import DependencyError

logger = logging.getLogger(__name__)


class EmailSender(Protocol):
    def send(self, *, to: str, subject: str, body: str) -> None:
        """Deliver one plain-text message; raise DependencyError on failure."""
        raise NotImplementedError


class MailgunEmailSender:
    def __init__(self, *, api_key: str, domain: str, sender: str, timeout: float = 30):
        self._api_key = api_key
        self._domain = domain
        self._sender = sender
        self._timeout = timeout

    def send(self, *, to: str, subject: str, body: str) -> None:
        try:
            resp = requests.post(
                f"https://api.mailgun.net/v3/{self._domain}/messages",
                auth=("api", self._api_key),
                data={"from": self._sender, "to": to, "subject": subject, "text": body},
                timeout=self._timeout,
            )
            if resp.status_code != 200:
                raise DependencyError(f"Mailgun returned {resp.status_code}: {resp.text}")
            message_id = resp.json().get("id", "")
        except (requests.RequestException, ValueError) as exc:
            raise DependencyError(f"Mailgun request failed: {exc}") from exc
        logger.info("Email sent to %s - msg_id: %s", to, message_id)


@dataclass
class OutboxEmailSender:
    """Keeps messages in memory and logs them; used in development and tests."""

    outbox: list[dict] = field(default_factory=list)
    fail: bool = False

    def send(self, *, to: str, subject: str, body: str) -> None:
        if self.fail:
            raise DependencyError("Email delivery disabled")
        self.outbox.append({"to": to, "subject": subject, "body": body})
        logger.info("Email queued for %s: %s", to, subject)


class Notifier:
    """Best-effort account emails: delivery failures are logged, never raised."""

    def __init__(self, sender: EmailSender, *, frontend_url: str = "http://localhost:3000"):
        self._sender = sender
        self._frontend_url = frontend_url.rstrip("/")

    def _deliver(self, *, to: str, subject: str, body: str) -> bool:
        try:
            self._sender.send(to=to, subject=subject, body=body)
            return True
        except Exception:
            logger.exception("Failed to send email to %s", to)
            return False

    def reset_url(self, token: str) -> str:
        return f"{self._frontend_url}/reset-password/{token}"

    def send_password_reset(self, *, to: str, name: str, token: str, ttl_minutes: int) -> bool:
        body = (
            f"Hello {name},\n\n"
            "We received a request to reset your password. Use the link below to choose a new one:\n\n"
            f"{self.reset_url(token)}\n\n"
            f"The link expires in {ttl_minutes} minutes. If you did not request this, ignore this email."
        )
        return self._deliver(to=to, subject="Password Reset Request", body=body)

    def send_organization_welcome(
        self,
        *,
        to: str,
        name: str,
        organization_name: str,
        invite_code: str,
        employee_id: Optional[str] = None,
    ) -> bool:
        body = (
            f"Hello {name},\n\n"
            f"{organization_name} is ready. Employees can join with invite code {invite_code}.\n"
            + (f"Your employee ID is {employee_id}.\n" if employee_id else "")
            + f"\nSign in at {self._frontend_url}/login"
        )
        return self._deliver(to=to, subject=f"Welcome to {organization_name} - Your Organization is Ready!", body=body)

    def send_registration_received(self, *, to: str, name: str, organization_name: str) -> bool:
        body = (
            f"Hello {name},\n\n"
            f"Your registration with {organization_name} has been received. "
            "An administrator will review and approve your account."
        )
        return self._deliver(to=to, subject=f"Welcome to {organization_name} - Registration Received!", body=body)
