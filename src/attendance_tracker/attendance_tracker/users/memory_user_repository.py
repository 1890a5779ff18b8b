from __future__ import annotations

from dataclasses import replace
from typing import Iterable, Optional, Sequence

from ..core.exceptions import DuplicateValue
from ..database.memory import MemoryStore, paginate
from .model import NewUser, User, UserQuery
from .repository import UserRepository


class MemoryUserRepository(UserRepository):
    def __init__(self, store: MemoryStore):
        self._store = store

    def get_by_id(self, user_id: int) -> Optional[User]:
        return self._store.users.get(user_id)

    def get_many(self, user_ids: Iterable[int]) -> dict[int, User]:
        with self._store.lock:
            return {uid: self._store.users[uid] for uid in set(user_ids) if uid in self._store.users}

    def _find(self, predicate) -> Optional[User]:
        with self._store.lock:
            return next((u for u in self._store.users.values() if predicate(u)), None)

    def get_by_email(self, email: str) -> Optional[User]:
        return self._find(lambda u: u.email == email)

    def get_by_employee_id(self, employee_id: str) -> Optional[User]:
        return self._find(lambda u: u.employee_id == employee_id)

    def get_by_aadhaar(self, aadhaar_number: str) -> Optional[User]:
        return self._find(lambda u: u.aadhaar_number == aadhaar_number)

    def get_by_reset_token_hash(self, token_hash: str) -> Optional[User]:
        return self._find(lambda u: u.reset_token_hash == token_hash)

    def _check_unique(self, user_id: Optional[int], **values) -> None:
        for field_name, value in values.items():
            if value is None:
                continue
            clash = self._find(lambda u: getattr(u, field_name) == value and u.user_id != user_id)
            if clash is not None:
                raise DuplicateValue(f"User with this {field_name.replace('_', ' ')} already exists")

    def create(self, draft: NewUser) -> User:
        with self._store.lock:
            self._check_unique(
                None,
                email=draft.email,
                employee_id=draft.employee_id,
                aadhaar_number=draft.aadhaar_number,
            )
            user = User(user_id=self._store.next_id("users"), **draft.__dict__)
            self._store.users[user.user_id] = user
            return user

    def update(self, user_id: int, **fields) -> Optional[User]:
        with self._store.lock:
            user = self._store.users.get(user_id)
            if user is None:
                return None
            unique = {k: fields[k] for k in ("email", "employee_id", "aadhaar_number") if k in fields}
            self._check_unique(user_id, **unique)
            user = replace(user, **fields)
            self._store.users[user_id] = user
            return user

    def delete(self, user_id: int) -> bool:
        with self._store.lock:
            if self._store.users.pop(user_id, None) is None:
                return False
            for event_id in [eid for eid, e in self._store.events.items() if e.user_id == user_id]:
                del self._store.events[event_id]
            return True

    def _filtered(
        self,
        *,
        organization_id: Optional[int] = None,
        is_active: Optional[bool] = None,
        is_approved: Optional[bool] = None,
    ) -> list[User]:
        with self._store.lock:
            items = list(self._store.users.values())
        if organization_id is not None:
            items = [u for u in items if u.organization_id == organization_id]
        if is_active is not None:
            items = [u for u in items if u.is_active == is_active]
        if is_approved is not None:
            items = [u for u in items if u.is_approved == is_approved]
        return items

    def search(self, query: UserQuery) -> tuple[Sequence[User], int]:
        items = self._filtered(
            organization_id=query.organization_id,
            is_active=query.is_active,
            is_approved=query.is_approved,
        )
        if query.role is not None:
            items = [u for u in items if u.role == query.role]
        if query.department:
            items = [u for u in items if u.department == query.department]
        if query.search:
            needle = query.search.lower()
            items = [
                u for u in items
                if any(needle in v.lower() for v in (u.first_name, u.last_name, u.email, u.employee_id))
            ]
        items.sort(key=lambda u: u.user_id, reverse=True)
        return paginate(items, query.page, query.limit), len(items)

    def list_for_organization(self, organization_id: Optional[int]) -> Sequence[User]:
        return sorted(self._filtered(organization_id=organization_id), key=lambda u: u.user_id)

    def list_departments(self, organization_id: Optional[int]) -> list[str]:
        return sorted({u.department for u in self._filtered(organization_id=organization_id) if u.department})

    def count(
        self,
        *,
        organization_id: Optional[int] = None,
        is_active: Optional[bool] = None,
        is_approved: Optional[bool] = None,
    ) -> int:
        return len(self._filtered(organization_id=organization_id, is_active=is_active, is_approved=is_approved))

    def count_by_role(self, organization_id: Optional[int] = None) -> dict[str, int]:
        counts: dict[str, int] = {}
        for u in self._filtered(organization_id=organization_id):
            counts[u.role.value] = counts.get(u.role.value, 0) + 1
        return counts
