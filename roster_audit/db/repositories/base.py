"""
Base repository providing shared SQLite execution helpers.

Repositories receive an open ``sqlite3.Connection`` (usually from
``get_connection()``); the caller owns commit/rollback.  No ORM; SQL is
explicit and lives in repository methods, and repositories speak pydantic
models rather than raw rows.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from typing import Any, Optional

logger = logging.getLogger(__name__)

Params = tuple[Any, ...] | dict[str, Any]


class BaseRepository:
    """Shared SQL execution helpers for all repository classes.

    Attributes:
        conn: The active ``sqlite3.Connection``.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def execute(self, sql: str, params: Params = ()) -> sqlite3.Cursor:
        logger.debug("SQL: %s | params: %s", sql.strip(), params)
        return self.conn.execute(sql, params)

    def fetchone(self, sql: str, params: Params = ()) -> Optional[sqlite3.Row]:
        return self.execute(sql, params).fetchone()

    def fetchall(self, sql: str, params: Params = ()) -> list[sqlite3.Row]:
        return self.execute(sql, params).fetchall()

    def last_insert_rowid(self) -> int:
        row = self.fetchone("SELECT last_insert_rowid() AS rowid;")
        assert row is not None
        return int(row["rowid"])


def to_iso(value: Optional[datetime]) -> Optional[str]:
    """Serialize an optional datetime for a TEXT column."""
    return value.isoformat() if value is not None else None


def from_iso(value: Optional[str]) -> Optional[datetime]:
    """Parse an optional ISO-8601 TEXT column back into a datetime."""
    return datetime.fromisoformat(value) if value else None
