from __future__ import annotations

from datetime import timedelta

import pytest

from src.attendance_tracker.attendance_tracker.core.exceptions import (
    AccountLocked,
    AuthenticationError,
    InvalidCredentials,
    ValidationError,
)
from src.attendance_tracker.attendance_tracker.users.service import hash_reset_token
from src.attendance_tracker.attendance_tracker.users.tokens import TokenService
from tests.factories import ADMIN_DATA, at

EMAIL = ADMIN_DATA["email"]
PASSWORD = ADMIN_DATA["password"]


def test_login_success_resets_counters(container, tenant):
    auth = container.auth_service
    with pytest.raises(InvalidCredentials):
        auth.authenticate(EMAIL, "wrong-password", now=at(9, 0))
    user = auth.authenticate(EMAIL.upper(), PASSWORD, now=at(9, 1))
    assert user.login_attempts == 0
    assert user.last_login == at(9, 1)


def test_unknown_email_is_invalid_credentials(container, tenant):
    with pytest.raises(InvalidCredentials):
        container.auth_service.authenticate("nobody@example.com", PASSWORD, now=at(9, 0))


def test_fifth_failure_locks_account_for_two_hours(container, tenant):
    auth = container.auth_service
    for minute in range(4):
        with pytest.raises(InvalidCredentials):
            auth.authenticate(EMAIL, "wrong-password", now=at(9, minute))
    with pytest.raises(AccountLocked):
        auth.authenticate(EMAIL, "wrong-password", now=at(9, 4))

    locked = container.users_repo.get_by_email(EMAIL)
    assert locked.login_attempts == 5
    assert locked.lock_until == at(9, 4) + timedelta(hours=2)

    # the right password does not help while locked, and no attempt is consumed
    with pytest.raises(AccountLocked):
        auth.authenticate(EMAIL, PASSWORD, now=at(10, 0))
    assert container.users_repo.get_by_email(EMAIL).login_attempts == 5


def test_lock_expires(container, tenant):
    auth = container.auth_service
    for minute in range(5):
        with pytest.raises((InvalidCredentials, AccountLocked)):
            auth.authenticate(EMAIL, "wrong-password", now=at(9, minute))

    user = auth.authenticate(EMAIL, PASSWORD, now=at(11, 5))
    assert user.lock_until is None
    assert user.login_attempts == 0


def test_failure_after_expired_lock_starts_a_new_count(container, tenant):
    auth = container.auth_service
    for minute in range(5):
        with pytest.raises((InvalidCredentials, AccountLocked)):
            auth.authenticate(EMAIL, "wrong-password", now=at(9, minute))

    with pytest.raises(InvalidCredentials):
        auth.authenticate(EMAIL, "wrong-password", now=at(12, 0))
    assert container.users_repo.get_by_email(EMAIL).login_attempts == 1


def test_locked_or_inactive_users_cannot_use_tokens(container, tenant):
    auth = container.auth_service
    container.users_repo.update(tenant.employee.user_id, is_active=False)
    with pytest.raises(AuthenticationError):
        auth.resolve_user(tenant.employee.user_id, now=at(9, 0))

    container.users_repo.update(tenant.admin.user_id, lock_until=at(10, 0))
    with pytest.raises(AuthenticationError):
        auth.resolve_user(tenant.admin.user_id, now=at(9, 0))
    assert auth.resolve_user(tenant.admin.user_id, now=at(10, 0)).user_id == tenant.admin.user_id


def test_token_round_trip_and_tampering():
    tokens = TokenService("secret", ttl_seconds=60)
    token = tokens.issue(42)
    assert tokens.resolve(token) == 42

    with pytest.raises(AuthenticationError):
        tokens.resolve(token + "x")
    with pytest.raises(AuthenticationError):
        TokenService("other-secret", ttl_seconds=60).resolve(token)
    with pytest.raises(AuthenticationError):
        tokens.resolve("")


def test_expired_token_is_rejected():
    tokens = TokenService("secret", ttl_seconds=-1)
    with pytest.raises(AuthenticationError, match="expired"):
        tokens.resolve(tokens.issue(1))


def test_password_reset_token_is_single_use(container, tenant):
    auth = container.auth_service
    assert auth.forgot_password(EMAIL, now=at(9, 0)) is True

    body = container.email_sender.outbox[-1]["body"]
    token = body.split("/reset-password/")[1].split()[0]
    stored = container.users_repo.get_by_email(EMAIL)
    assert stored.reset_token_hash == hash_reset_token(token)
    assert stored.reset_token_hash != token

    auth.reset_password(token, "newpass99", "newpass99", now=at(9, 5))
    assert auth.authenticate(EMAIL, "newpass99", now=at(9, 6)).user_id == tenant.admin.user_id

    with pytest.raises(ValidationError):
        auth.reset_password(token, "another1", "another1", now=at(9, 7))


def test_password_reset_token_expires_after_ten_minutes(container, tenant):
    auth = container.auth_service
    auth.forgot_password(EMAIL, now=at(9, 0))
    token = container.email_sender.outbox[-1]["body"].split("/reset-password/")[1].split()[0]

    with pytest.raises(ValidationError, match="expired"):
        auth.reset_password(token, "newpass99", "newpass99", now=at(9, 10))


def test_change_password_checks_current(container, tenant):
    auth = container.auth_service
    with pytest.raises(ValidationError):
        auth.change_password(tenant.admin, "not-it", "newpass99", "newpass99")
    with pytest.raises(ValidationError):
        auth.change_password(tenant.admin, PASSWORD, "newpass99", "mismatch9")
    auth.change_password(tenant.admin, PASSWORD, "newpass99", "newpass99")
    assert auth.authenticate(EMAIL, "newpass99", now=at(9, 0))
