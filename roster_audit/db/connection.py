"""
SQLite connection management.

``get_connection()`` yields a configured connection that:
  - Enables foreign key enforcement (OFF by default in SQLite).
  - Enables WAL journal mode so reads are not blocked while sync workers
    write character rows.
  - Sets a busy timeout so concurrent per-character writes wait instead of
    failing immediately on lock contention.
  - Uses ``sqlite3.Row`` so rows behave like dicts.
  - Commits on clean exit, rolls back on exception.

Connections are not shared between threads.  Sync workers call
``get_connection()`` inside ``asyncio.to_thread`` for every write, so each
write gets its own short-lived connection.

Usage::

    from roster_audit.db.connection import get_connection

    with get_connection("data/db/roster_audit.db") as conn:
        CharacterRepository(conn).list_all()
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

logger = logging.getLogger(__name__)


@contextmanager
def get_connection(
    db_path: str,
    wal_mode: bool = True,
    busy_timeout_ms: int = 5000,
) -> Generator[sqlite3.Connection, None, None]:
    """Context manager yielding a configured SQLite connection.

    The database file (and any parent directories) are created if they do
    not already exist.

    Args:
        db_path: Path to the SQLite database file, or ``":memory:"``.
        wal_mode: If ``True``, enable WAL journal mode.
        busy_timeout_ms: Milliseconds to wait on a locked database before
            raising ``OperationalError``.

    Yields:
        An open, configured ``sqlite3.Connection``.

    Raises:
        sqlite3.OperationalError: If the database cannot be opened or stays locked.
    """
    if db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path, timeout=busy_timeout_ms / 1000)
    conn.row_factory = sqlite3.Row

    try:
        conn.execute("PRAGMA foreign_keys = ON;")
        conn.execute(f"PRAGMA busy_timeout = {busy_timeout_ms};")
        if wal_mode and db_path != ":memory:":
            conn.execute("PRAGMA journal_mode = WAL;")

        yield conn
        conn.commit()

    except Exception:
        conn.rollback()
        raise

    finally:
        conn.close()
