from __future__ import annotations

from dataclasses import replace
from typing import Optional, Sequence

from ..core.exceptions import DuplicateInviteCode
from ..database.memory import MemoryStore, paginate
from .model import NewOrganization, Organization, OrganizationQuery, OrganizationStats
from .repository import OrganizationRepository


class MemoryOrganizationRepository(OrganizationRepository):
    def __init__(self, store: MemoryStore):
        self._store = store

    def get_by_id(self, organization_id: int) -> Optional[Organization]:
        return self._store.organizations.get(organization_id)

    def get_by_invite_code(self, invite_code: str) -> Optional[Organization]:
        code = invite_code.strip().upper()
        with self._store.lock:
            return next((o for o in self._store.organizations.values() if o.invite_code == code), None)

    def find_active_by_name(self, name: str) -> Optional[Organization]:
        with self._store.lock:
            return next(
                (o for o in self._store.organizations.values() if o.is_active and o.name == name),
                None,
            )

    def create(self, draft: NewOrganization, *, invite_code: str) -> Organization:
        with self._store.lock:
            if any(o.invite_code == invite_code for o in self._store.organizations.values()):
                raise DuplicateInviteCode(invite_code)
            org = Organization(
                organization_id=self._store.next_id("organizations"),
                name=draft.name,
                org_type=draft.org_type,
                invite_code=invite_code,
                description=draft.description,
                address=draft.address,
                phone=draft.phone,
                email=draft.email,
                website=draft.website,
                settings=draft.settings,
                subscription=draft.subscription,
                created_by=draft.created_by,
            )
            self._store.organizations[org.organization_id] = org
            return org

    def update(self, organization_id: int, **fields) -> Optional[Organization]:
        with self._store.lock:
            org = self._store.organizations.get(organization_id)
            if org is None:
                return None
            org = replace(org, **fields)
            self._store.organizations[organization_id] = org
            return org

    def set_created_by(self, organization_id: int, user_id: int) -> None:
        self.update(organization_id, created_by=user_id)

    def delete(self, organization_id: int) -> bool:
        with self._store.lock:
            return self._store.organizations.pop(organization_id, None) is not None

    def count_users(self, organization_id: int) -> int:
        with self._store.lock:
            return sum(1 for u in self._store.users.values() if u.organization_id == organization_id)

    def compute_stats(self, organization_id: int) -> OrganizationStats:
        with self._store.lock:
            members = [u for u in self._store.users.values() if u.organization_id == organization_id]
            records = sum(1 for e in self._store.events.values() if e.organization_id == organization_id)
            return OrganizationStats(
                total_users=len(members),
                active_users=sum(1 for u in members if u.is_active),
                total_attendance_records=records,
            )

    def search(self, query: OrganizationQuery) -> tuple[Sequence[Organization], int]:
        with self._store.lock:
            items = list(self._store.organizations.values())
        if query.org_type is not None:
            items = [o for o in items if o.org_type == query.org_type]
        if query.is_active is not None:
            items = [o for o in items if o.is_active == query.is_active]
        if query.plan is not None:
            items = [o for o in items if o.subscription.plan == query.plan]
        if query.search:
            needle = query.search.lower()
            items = [
                o for o in items
                if needle in o.name.lower() or needle in (o.description or "").lower()
            ]
        items.sort(key=lambda o: o.organization_id, reverse=True)
        return paginate(items, query.page, query.limit), len(items)

    def count_all(self) -> dict:
        with self._store.lock:
            orgs = list(self._store.organizations.values())
            return {
                "organizations": len(orgs),
                "active_organizations": sum(1 for o in orgs if o.is_active),
                "users": len(self._store.users),
                "events": len(self._store.events),
            }
