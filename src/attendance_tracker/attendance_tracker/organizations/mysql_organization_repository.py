from __future__ import annotations

from typing import Any, Dict, Optional, Sequence

import mysql.connector

from ..core.enums import OrganizationType, SubscriptionPlan
from ..core.exceptions import DuplicateInviteCode, NotFoundError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, from_json, is_duplicate_key, to_json, where_clause
from .model import (
    NewOrganization,
    Organization,
    OrganizationQuery,
    OrganizationSettings,
    OrganizationStats,
    Subscription,
)
from .repository import OrganizationRepository

_COLUMNS = """
    organization_id, name, org_type, description, address, phone, email, website, settings,
    subscription_plan, max_users, subscription_active, subscription_expires_at,
    invite_code, is_active, created_by, created_at
"""


def _to_organization(row: Dict[str, Any]) -> Organization:
    return Organization(
        organization_id=int(row["organization_id"]),
        name=row["name"],
        org_type=OrganizationType(row["org_type"]),
        invite_code=row["invite_code"],
        description=row.get("description"),
        address=row.get("address"),
        phone=row.get("phone"),
        email=row.get("email"),
        website=row.get("website"),
        settings=OrganizationSettings.from_dict(from_json(row.get("settings"), {})),
        subscription=Subscription(
            plan=SubscriptionPlan(row["subscription_plan"]),
            max_users=int(row["max_users"]),
            is_active=bool(row["subscription_active"]),
            expires_at=row.get("subscription_expires_at"),
        ),
        is_active=bool(row["is_active"]),
        created_by=row.get("created_by"),
        created_at=row.get("created_at"),
    )


def _column_values(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten domain fields into column/value pairs."""

    out: Dict[str, Any] = {}
    for key, value in fields.items():
        if key == "settings":
            out["settings"] = to_json(value.to_dict())
        elif key == "subscription":
            out["subscription_plan"] = value.plan.value
            out["max_users"] = value.max_users
            out["subscription_active"] = int(value.is_active)
            out["subscription_expires_at"] = value.expires_at
        elif key == "org_type":
            out["org_type"] = value.value
        elif key == "is_active":
            out["is_active"] = int(value)
        elif key == "stats":
            continue
        else:
            out[key] = value
    return out


class MySQLOrganizationRepository(OrganizationRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def _get_one(self, condition: str, params: tuple) -> Optional[Organization]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM organizations WHERE {condition} LIMIT 1", params)
            row = fetchone(cur)
            return _to_organization(row) if row else None

    def get_by_id(self, organization_id: int) -> Optional[Organization]:
        return self._get_one("organization_id=%s", (organization_id,))

    def get_by_invite_code(self, invite_code: str) -> Optional[Organization]:
        return self._get_one("invite_code=%s", (invite_code.strip().upper(),))

    def find_active_by_name(self, name: str) -> Optional[Organization]:
        return self._get_one("name=%s AND is_active=1", (name,))

    def create(self, draft: NewOrganization, *, invite_code: str) -> Organization:
        values = _column_values(
            {
                "name": draft.name,
                "org_type": draft.org_type,
                "description": draft.description,
                "address": draft.address,
                "phone": draft.phone,
                "email": draft.email,
                "website": draft.website,
                "settings": draft.settings,
                "subscription": draft.subscription,
                "invite_code": invite_code,
                "created_by": draft.created_by,
            }
        )
        columns = ", ".join(values)
        placeholders = ", ".join(["%s"] * len(values))
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    f"INSERT INTO organizations ({columns}) VALUES ({placeholders})",
                    tuple(values.values()),
                )
                organization_id = int(cur.lastrowid)
        except mysql.connector.IntegrityError as exc:
            if is_duplicate_key(exc, "uq_organizations_invite_code"):
                raise DuplicateInviteCode(invite_code) from exc
            raise
        org = self.get_by_id(organization_id)
        if org is None:
            raise NotFoundError("Organization not found")
        return org

    def update(self, organization_id: int, **fields) -> Optional[Organization]:
        values = _column_values(fields)
        if values:
            assignments = ", ".join(f"{col}=%s" for col in values)
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    f"UPDATE organizations SET {assignments} WHERE organization_id=%s",
                    (*values.values(), organization_id),
                )
        return self.get_by_id(organization_id)

    def set_created_by(self, organization_id: int, user_id: int) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE organizations SET created_by=%s WHERE organization_id=%s",
                (user_id, organization_id),
            )

    def delete(self, organization_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM organizations WHERE organization_id=%s", (organization_id,))
            return cur.rowcount > 0

    def count_users(self, organization_id: int) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT COUNT(*) AS n FROM users WHERE organization_id=%s", (organization_id,))
            return int(fetchone(cur)["n"])

    def compute_stats(self, organization_id: int) -> OrganizationStats:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT COUNT(*) AS total_users, COALESCE(SUM(is_active), 0) AS active_users
                FROM users WHERE organization_id=%s
                """,
                (organization_id,),
            )
            users = fetchone(cur) or {}
            cur.execute(
                "SELECT COUNT(*) AS n FROM attendance_events WHERE organization_id=%s",
                (organization_id,),
            )
            events = fetchone(cur) or {}
        return OrganizationStats(
            total_users=int(users.get("total_users") or 0),
            active_users=int(users.get("active_users") or 0),
            total_attendance_records=int(events.get("n") or 0),
        )

    def search(self, query: OrganizationQuery) -> tuple[Sequence[Organization], int]:
        conditions: list[str] = []
        params: list[Any] = []
        if query.org_type is not None:
            conditions.append("org_type=%s")
            params.append(query.org_type.value)
        if query.is_active is not None:
            conditions.append("is_active=%s")
            params.append(int(query.is_active))
        if query.plan is not None:
            conditions.append("subscription_plan=%s")
            params.append(query.plan.value)
        if query.search:
            conditions.append("(name LIKE %s OR description LIKE %s)")
            params.extend([f"%{query.search}%"] * 2)
        where = where_clause(conditions)
        offset = (max(1, query.page) - 1) * query.limit

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS n FROM organizations{where}", tuple(params))
            total = int(fetchone(cur)["n"])
            cur.execute(
                f"SELECT {_COLUMNS} FROM organizations{where} ORDER BY organization_id DESC LIMIT %s OFFSET %s",
                (*params, query.limit, offset),
            )
            rows = fetchall(cur)
        return [_to_organization(r) for r in rows], total

    def count_all(self) -> dict:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT
                    (SELECT COUNT(*) FROM organizations) AS organizations,
                    (SELECT COUNT(*) FROM organizations WHERE is_active=1) AS active_organizations,
                    (SELECT COUNT(*) FROM users) AS users,
                    (SELECT COUNT(*) FROM attendance_events) AS events
                """
            )
            row = fetchone(cur) or {}
        return {key: int(row.get(key) or 0) for key in ("organizations", "active_organizations", "users", "events")}
