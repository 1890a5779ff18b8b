from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterable, Iterator

from .connection import DatabaseConnection
from .mysql_base import db_cursor

logger = logging.getLogger(__name__)


def _strip_database_statements(sql: str) -> str:
    # The target database comes from DB_CONFIG, not from the script.
    sql = re.sub(r"(?im)^\s*CREATE\s+DATABASE\b.*?;\s*$", "", sql)
    return re.sub(r"(?im)^\s*USE\b.*?;\s*$", "", sql)


def _strip_comments(sql: str) -> str:
    return "\n".join(line for line in sql.splitlines() if not line.lstrip().startswith("--"))


def split_sql_statements(sql: str) -> Iterator[str]:
    """Split a script on ';' while leaving quoted semicolons alone."""

    buf: list[str] = []
    quote: str | None = None
    escape = False

    for ch in sql:
        buf.append(ch)
        if escape:
            escape = False
        elif ch == "\\":
            escape = True
        elif quote:
            if ch == quote:
                quote = None
        elif ch in ("'", '"'):
            quote = ch
        elif ch == ";":
            stmt = "".join(buf[:-1]).strip()
            buf.clear()
            if stmt:
                yield stmt

    tail = "".join(buf).strip()
    if tail:
        yield tail


def _execute_all(cur, statements: Iterable[str]) -> int:
    count = 0
    for stmt in statements:
        cur.execute(stmt)
        count += 1
    return count


def ensure_database_exists(conn_factory: DatabaseConnection) -> None:
    name = conn_factory.config.database
    conn = conn_factory.connect(with_database=False)
    try:
        cur = conn.cursor()
        cur.execute(
            f"CREATE DATABASE IF NOT EXISTS `{name}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
        )
        conn.commit()
    finally:
        conn.close()


def apply_schema(conn_factory: DatabaseConnection, *, schema_path: str | Path) -> int:
    ensure_database_exists(conn_factory)
    sql = _strip_comments(_strip_database_statements(Path(schema_path).read_text(encoding="utf-8")))
    with db_cursor(conn_factory, dictionary=False) as (_, cur):
        count = _execute_all(cur, split_sql_statements(sql))
    logger.info("Applied %d schema statements to %s", count, conn_factory.config.database)
    return count


def list_tables(conn_factory: DatabaseConnection) -> list[str]:
    with db_cursor(conn_factory, dictionary=False) as (_, cur):
        cur.execute("SHOW TABLES")
        return [row[0] for row in cur.fetchall()]

