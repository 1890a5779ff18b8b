from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import NewOrganization, Organization, OrganizationQuery, OrganizationStats


class OrganizationRepository(Protocol):
    """Persistence interface for organizations.

    ``create`` raises ``DuplicateInviteCode`` when ``invite_code`` is already taken
    so the caller can retry with a fresh code.
    """

    def get_by_id(self, organization_id: int) -> Optional[Organization]:
        raise NotImplementedError

    def get_by_invite_code(self, invite_code: str) -> Optional[Organization]:
        raise NotImplementedError

    def find_active_by_name(self, name: str) -> Optional[Organization]:
        raise NotImplementedError

    def create(self, draft: NewOrganization, *, invite_code: str) -> Organization:
        raise NotImplementedError

    def update(self, organization_id: int, **fields) -> Optional[Organization]:
        raise NotImplementedError

    def set_created_by(self, organization_id: int, user_id: int) -> None:
        raise NotImplementedError

    def delete(self, organization_id: int) -> bool:
        raise NotImplementedError

    def count_users(self, organization_id: int) -> int:
        raise NotImplementedError

    def compute_stats(self, organization_id: int) -> OrganizationStats:
        raise NotImplementedError

    def search(self, query: OrganizationQuery) -> tuple[Sequence[Organization], int]:
        raise NotImplementedError

    def count_all(self) -> dict:
        """Platform-wide counts: organizations/active_organizations/users/events."""
        raise NotImplementedError
