from __future__ import annotations

import json
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

from .connection import DatabaseConnection


@contextmanager
def db_cursor(conn_factory: DatabaseConnection, *, dictionary: bool = True):
    conn = conn_factory.connect()
    try:
        cur = conn.cursor(dictionary=dictionary)
        try:
            yield conn, cur
            conn.commit()
        finally:
            cur.close()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def fetchone(cur) -> Optional[Dict[str, Any]]:
    row = cur.fetchone()
    return row if row else None


def fetchall(cur) -> List[Dict[str, Any]]:
    rows = cur.fetchall()
    return list(rows or [])


def to_json(value: Any) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value)


def from_json(value: Any, default: Any = None) -> Any:
    """Decode a JSON column; mysql-connector may hand back str, bytes or already-decoded data."""

    if value is None:
        return default
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8")
    if isinstance(value, str):
        if not value:
            return default
        return json.loads(value)
    return value


def is_duplicate_key(exc: Exception, key_name: str | None = None) -> bool:
    # MySQL error 1062 = ER_DUP_ENTRY
    if getattr(exc, "errno", None) != 1062:
        return False
    return key_name is None or key_name in str(exc)


def where_clause(conditions: List[str]) -> str:
    return (" WHERE " + " AND ".join(conditions)) if conditions else ""
