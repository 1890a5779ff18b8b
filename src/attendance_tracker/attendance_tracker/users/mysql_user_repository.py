from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, Optional, Sequence

import mysql.connector

from ..core.enums import Role
from ..core.exceptions import DuplicateValue, NotFoundError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, from_json, is_duplicate_key, to_json, where_clause
from .model import FaceImage, NewUser, User, UserQuery
from .repository import UserRepository

_COLUMNS = """
    user_id, first_name, last_name, email, employee_id, department, designation, phone_number,
    password_hash, role, organization_id, is_active, is_approved, approved_by, approved_date,
    face_descriptors, face_images, face_enrolled, face_enrollment_attempts,
    aadhaar_number, aadhaar_verified, aadhaar_verification_date,
    login_attempts, lock_until, last_login, reset_token_hash, reset_token_expires, created_at
"""

_BOOL_COLUMNS = {"is_active", "is_approved", "face_enrolled", "aadhaar_verified"}

_UNIQUE_KEYS = {
    "uq_users_email": "email",
    "uq_users_employee_id": "employee ID",
    "uq_users_aadhaar": "Aadhaar number",
}


def _to_user(row: Dict[str, Any]) -> User:
    images = from_json(row.get("face_images"), [])
    return User(
        user_id=int(row["user_id"]),
        first_name=row["first_name"],
        last_name=row["last_name"],
        email=row["email"],
        employee_id=row["employee_id"],
        department=row["department"],
        designation=row["designation"],
        phone_number=row.get("phone_number"),
        password_hash=row["password_hash"],
        role=Role(row["role"]),
        organization_id=row.get("organization_id"),
        is_active=bool(row["is_active"]),
        is_approved=bool(row["is_approved"]),
        approved_by=row.get("approved_by"),
        approved_date=row.get("approved_date"),
        face_descriptors=tuple(tuple(float(x) for x in d) for d in from_json(row.get("face_descriptors"), [])),
        face_images=tuple(
            FaceImage(url=i["url"], uploaded_at=datetime.fromisoformat(i["uploaded_at"])) for i in images
        ),
        face_enrolled=bool(row["face_enrolled"]),
        face_enrollment_attempts=int(row["face_enrollment_attempts"] or 0),
        aadhaar_number=row.get("aadhaar_number"),
        aadhaar_verified=bool(row["aadhaar_verified"]),
        aadhaar_verification_date=row.get("aadhaar_verification_date"),
        login_attempts=int(row["login_attempts"] or 0),
        lock_until=row.get("lock_until"),
        last_login=row.get("last_login"),
        reset_token_hash=row.get("reset_token_hash"),
        reset_token_expires=row.get("reset_token_expires"),
        created_at=row.get("created_at"),
    )


def _column_values(fields: Dict[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key, value in fields.items():
        if key == "role":
            out[key] = value.value
        elif key in _BOOL_COLUMNS:
            out[key] = int(value)
        elif key == "face_descriptors":
            out[key] = to_json([list(d) for d in value])
        elif key == "face_images":
            out[key] = to_json([{"url": i.url, "uploaded_at": i.uploaded_at.isoformat()} for i in value])
        else:
            out[key] = value
    return out


def _raise_duplicate(exc: mysql.connector.IntegrityError) -> None:
    for key, label in _UNIQUE_KEYS.items():
        if is_duplicate_key(exc, key):
            raise DuplicateValue(f"User with this {label} already exists") from exc


class MySQLUserRepository(UserRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def _get_one(self, condition: str, params: tuple) -> Optional[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM users WHERE {condition} LIMIT 1", params)
            row = fetchone(cur)
            return _to_user(row) if row else None

    def get_by_id(self, user_id: int) -> Optional[User]:
        return self._get_one("user_id=%s", (user_id,))

    def get_many(self, user_ids: Iterable[int]) -> dict[int, User]:
        ids = sorted(set(user_ids))
        if not ids:
            return {}
        placeholders = ", ".join(["%s"] * len(ids))
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM users WHERE user_id IN ({placeholders})", tuple(ids))
            return {int(r["user_id"]): _to_user(r) for r in fetchall(cur)}

    def get_by_email(self, email: str) -> Optional[User]:
        return self._get_one("email=%s", (email,))

    def get_by_employee_id(self, employee_id: str) -> Optional[User]:
        return self._get_one("employee_id=%s", (employee_id,))

    def get_by_aadhaar(self, aadhaar_number: str) -> Optional[User]:
        return self._get_one("aadhaar_number=%s", (aadhaar_number,))

    def get_by_reset_token_hash(self, token_hash: str) -> Optional[User]:
        return self._get_one("reset_token_hash=%s", (token_hash,))

    def create(self, draft: NewUser) -> User:
        values = _column_values({k: v for k, v in vars(draft).items() if k != "created_at" or v is not None})
        columns = ", ".join(values)
        placeholders = ", ".join(["%s"] * len(values))
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(f"INSERT INTO users ({columns}) VALUES ({placeholders})", tuple(values.values()))
                user_id = int(cur.lastrowid)
        except mysql.connector.IntegrityError as exc:
            _raise_duplicate(exc)
            raise
        user = self.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    def update(self, user_id: int, **fields) -> Optional[User]:
        values = _column_values(fields)
        if values:
            assignments = ", ".join(f"{col}=%s" for col in values)
            try:
                with db_cursor(self._conn_factory) as (_, cur):
                    cur.execute(f"UPDATE users SET {assignments} WHERE user_id=%s", (*values.values(), user_id))
            except mysql.connector.IntegrityError as exc:
                _raise_duplicate(exc)
                raise
        return self.get_by_id(user_id)

    def delete(self, user_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM attendance_events WHERE user_id=%s", (user_id,))
            cur.execute("DELETE FROM users WHERE user_id=%s", (user_id,))
            return cur.rowcount > 0

    @staticmethod
    def _filters(
        *,
        organization_id: Optional[int] = None,
        is_active: Optional[bool] = None,
        is_approved: Optional[bool] = None,
    ) -> tuple[list[str], list[Any]]:
        conditions: list[str] = []
        params: list[Any] = []
        if organization_id is not None:
            conditions.append("organization_id=%s")
            params.append(organization_id)
        if is_active is not None:
            conditions.append("is_active=%s")
            params.append(int(is_active))
        if is_approved is not None:
            conditions.append("is_approved=%s")
            params.append(int(is_approved))
        return conditions, params

    def search(self, query: UserQuery) -> tuple[Sequence[User], int]:
        conditions, params = self._filters(
            organization_id=query.organization_id,
            is_active=query.is_active,
            is_approved=query.is_approved,
        )
        if query.role is not None:
            conditions.append("role=%s")
            params.append(query.role.value)
        if query.department:
            conditions.append("department=%s")
            params.append(query.department)
        if query.search:
            conditions.append("(first_name LIKE %s OR last_name LIKE %s OR email LIKE %s OR employee_id LIKE %s)")
            params.extend([f"%{query.search}%"] * 4)
        where = where_clause(conditions)
        offset = (max(1, query.page) - 1) * query.limit

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS n FROM users{where}", tuple(params))
            total = int(fetchone(cur)["n"])
            cur.execute(
                f"SELECT {_COLUMNS} FROM users{where} ORDER BY user_id DESC LIMIT %s OFFSET %s",
                (*params, query.limit, offset),
            )
            rows = fetchall(cur)
        return [_to_user(r) for r in rows], total

    def list_for_organization(self, organization_id: Optional[int]) -> Sequence[User]:
        conditions, params = self._filters(organization_id=organization_id)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM users{where_clause(conditions)} ORDER BY user_id", tuple(params))
            return [_to_user(r) for r in fetchall(cur)]

    def list_departments(self, organization_id: Optional[int]) -> list[str]:
        conditions, params = self._filters(organization_id=organization_id)
        conditions.append("department <> ''")
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT DISTINCT department FROM users{where_clause(conditions)} ORDER BY department",
                tuple(params),
            )
            return [r["department"] for r in fetchall(cur)]

    def count(
        self,
        *,
        organization_id: Optional[int] = None,
        is_active: Optional[bool] = None,
        is_approved: Optional[bool] = None,
    ) -> int:
        conditions, params = self._filters(
            organization_id=organization_id, is_active=is_active, is_approved=is_approved
        )
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS n FROM users{where_clause(conditions)}", tuple(params))
            return int(fetchone(cur)["n"])

    def count_by_role(self, organization_id: Optional[int] = None) -> dict[str, int]:
        conditions, params = self._filters(organization_id=organization_id)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT role, COUNT(*) AS n FROM users{where_clause(conditions)} GROUP BY role",
                tuple(params),
            )
            return {r["role"]: int(r["n"]) for r in fetchall(cur)}
