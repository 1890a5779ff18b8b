from __future__ import annotations


class DomainError(Exception):
    """Base exception for business rule violations."""

    status_code = 500

    def __init__(self, message: str = "", *, errors: list[str] | None = None):
        super().__init__(message)
        self.message = message
        self.errors = list(errors or [])


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""

    status_code = 400


class AuthenticationError(DomainError):
    """Raised when a credential is missing, invalid or expired."""

    status_code = 401


class InvalidCredentials(AuthenticationError):
    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message)


class AccountLocked(AuthenticationError):
    def __init__(self, message: str = "Account temporarily locked due to too many failed login attempts"):
        super().__init__(message)


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""

    status_code = 403


class CrossOrganizationAccess(AuthorizationError):
    def __init__(self, message: str = "You can only manage resources in your organization"):
        super().__init__(message)


class SelfActionForbidden(AuthorizationError):
    def __init__(self, message: str = "Cannot perform this action on your own account"):
        super().__init__(message)


class NotApproved(AuthorizationError):
    def __init__(self, message: str = "Account not approved yet. Please contact your admin."):
        super().__init__(message)


class AccountInactive(AuthorizationError):
    def __init__(self, message: str = "Account is inactive. Please contact your admin."):
        super().__init__(message)


class StateConflictError(DomainError):
    """Raised when a request is illegal in the current state of the record."""

    status_code = 400


class AlreadyCheckedIn(StateConflictError):
    def __init__(self, message: str = "You are already checked in. Please check out first."):
        super().__init__(message)


class NoOpenCheckIn(StateConflictError):
    def __init__(self, message: str = "You need to check in first before checking out."):
        super().__init__(message)


class OrganizationNotEmpty(StateConflictError):
    pass


class RateLimitError(DomainError):
    status_code = 429


class NotFoundError(DomainError):
    status_code = 404


class InvalidInviteCode(NotFoundError):
    def __init__(self, message: str = "Invalid invite code or organization not found"):
        super().__init__(message)


class DuplicateName(ValidationError):
    def __init__(self, message: str = "Organization with this name already exists"):
        super().__init__(message)


class DuplicateInviteCode(Exception):
    """Raised by repositories when a generated invite code collides with an existing one."""


class DependencyError(Exception):
    """Raised by collaborators (email, image store, OTP provider) when they fail."""


class DuplicateValue(ValidationError):
    """Raised when a unique user field (email, employee ID, Aadhaar number) is already taken."""


class UpstreamUnavailable(DomainError):
    """Raised when an operation cannot complete because a required collaborator failed."""

    status_code = 503
