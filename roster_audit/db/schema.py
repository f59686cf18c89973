"""
SQLite schema DDL for the roster store.

All statements use ``IF NOT EXISTS`` so ``apply_schema()`` is idempotent.

Tables:
  1. characters     — roster entries plus their enriched JSON and the time
                      of the last completed enrichment
  2. configuration  — small key/value store (JSON values); holds the
                      ``current_raid`` definition for log queries
  3. sync_runs      — one audit row per sync pass (status + summary counts)

The character natural key is (name, realm), case-insensitive.
"""

from __future__ import annotations

import logging
import sqlite3

logger = logging.getLogger(__name__)

# ── DDL statements ─────────────────────────────────────────────────────────────

_DDL_CHARACTERS = """
CREATE TABLE IF NOT EXISTS characters (
    character_id      INTEGER PRIMARY KEY AUTOINCREMENT,
    character_name    TEXT    NOT NULL COLLATE NOCASE,
    realm             TEXT    NOT NULL COLLATE NOCASE,
    player_name       TEXT,
    role              TEXT,
    enriched_data     TEXT,
    last_enriched_at  TEXT,
    created_at        TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
    UNIQUE (character_name, realm)
);
"""

_DDL_CHARACTERS_INDEXES = """
CREATE INDEX IF NOT EXISTS idx_characters_last_enriched
    ON characters(last_enriched_at);
"""

_DDL_CONFIGURATION = """
CREATE TABLE IF NOT EXISTS configuration (
    key         TEXT    NOT NULL PRIMARY KEY,
    value       TEXT    NOT NULL,
    updated_at  TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);
"""

_DDL_SYNC_RUNS = """
CREATE TABLE IF NOT EXISTS sync_runs (
    run_id          INTEGER PRIMARY KEY AUTOINCREMENT,
    run_slug        TEXT    NOT NULL UNIQUE,
    pipeline_stage  TEXT    NOT NULL,
    status          TEXT    NOT NULL DEFAULT 'started',
    config_snapshot TEXT    NOT NULL,
    rows_processed  INTEGER NOT NULL DEFAULT 0,
    rows_failed     INTEGER NOT NULL DEFAULT 0,
    rows_total      INTEGER NOT NULL DEFAULT 0,
    error_message   TEXT,
    started_at      TEXT    NOT NULL,
    finished_at     TEXT
);
"""

_ALL_DDL = [
    _DDL_CHARACTERS,
    _DDL_CHARACTERS_INDEXES,
    _DDL_CONFIGURATION,
    _DDL_SYNC_RUNS,
]

# Table names for introspection / tests
ALL_TABLE_NAMES = [
    "characters",
    "configuration",
    "sync_runs",
]


def apply_schema(conn: sqlite3.Connection) -> None:
    """Apply all DDL statements to ``conn``.

    Idempotent: safe to call on an already-initialized database.

    Args:
        conn: An open ``sqlite3.Connection``.
    """
    logger.debug("Applying schema to database...")

    for ddl in _ALL_DDL:
        for statement in _split_ddl(ddl):
            conn.execute(statement)

    conn.commit()
    logger.info("Schema applied: %d tables verified.", len(ALL_TABLE_NAMES))


def _split_ddl(ddl: str) -> list[str]:
    """Split a multi-statement DDL block on semicolons."""
    return [s.strip() for s in ddl.split(";") if s.strip()]


def get_existing_tables(conn: sqlite3.Connection) -> list[str]:
    """Return the table names present in the database, sorted."""
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name;"
    ).fetchall()
    return [row["name"] for row in rows]
