from __future__ import annotations

from typing import Iterable, Optional, Protocol, Sequence

from .model import NewUser, User, UserQuery


class UserRepository(Protocol):
    """Persistence interface for users.

    Services depend on this protocol, never on a concrete store. Emails are
    stored lower-case; lookups expect an already normalized value.
    """

    def get_by_id(self, user_id: int) -> Optional[User]:
        raise NotImplementedError

    def get_many(self, user_ids: Iterable[int]) -> dict[int, User]:
        raise NotImplementedError

    def get_by_email(self, email: str) -> Optional[User]:
        raise NotImplementedError

    def get_by_employee_id(self, employee_id: str) -> Optional[User]:
        raise NotImplementedError

    def get_by_aadhaar(self, aadhaar_number: str) -> Optional[User]:
        raise NotImplementedError

    def get_by_reset_token_hash(self, token_hash: str) -> Optional[User]:
        raise NotImplementedError

    def create(self, draft: NewUser) -> User:
        raise NotImplementedError

    def update(self, user_id: int, **fields) -> Optional[User]:
        raise NotImplementedError

    def delete(self, user_id: int) -> bool:
        """Delete the user and every attendance event it owns."""
        raise NotImplementedError

    def search(self, query: UserQuery) -> tuple[Sequence[User], int]:
        raise NotImplementedError

    def list_for_organization(self, organization_id: Optional[int]) -> Sequence[User]:
        """Every user of the organization (all users when ``None``), unpaginated."""
        raise NotImplementedError

    def list_departments(self, organization_id: Optional[int]) -> list[str]:
        raise NotImplementedError

    def count(
        self,
        *,
        organization_id: Optional[int] = None,
        is_active: Optional[bool] = None,
        is_approved: Optional[bool] = None,
    ) -> int:
        raise NotImplementedError

    def count_by_role(self, organization_id: Optional[int] = None) -> dict[str, int]:
        raise NotImplementedError
