"""
Repository for sync pass audit records (``sync_runs``).
"""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import Optional

from roster_audit.db.repositories.base import BaseRepository, from_iso, to_iso
from roster_audit.models.meta import RunMetadata

logger = logging.getLogger(__name__)


class SyncRunRepository(BaseRepository):
    """Read/write access to ``sync_runs``."""

    def insert_run(self, run: RunMetadata) -> int:
        """Insert a new run record and return its ``run_id``."""
        self.execute(
            """
            INSERT INTO sync_runs (
                run_slug, pipeline_stage, status, config_snapshot,
                rows_processed, rows_failed, rows_total,
                error_message, started_at, finished_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                run.run_slug,
                run.pipeline_stage,
                run.status,
                json.dumps(run.config_snapshot, default=str),
                run.rows_processed,
                run.rows_failed,
                run.rows_total,
                run.error_message,
                run.started_at.isoformat(),
                to_iso(run.finished_at),
            ),
        )
        return self.last_insert_rowid()

    def update_run(self, run: RunMetadata) -> None:
        """Update the mutable fields of an existing run record.

        Raises:
            ValueError: If ``run.run_id`` is ``None``.
        """
        if run.run_id is None:
            raise ValueError("Cannot update RunMetadata without a run_id.")
        self.execute(
            """
            UPDATE sync_runs SET
                status         = ?,
                rows_processed = ?,
                rows_failed    = ?,
                rows_total     = ?,
                error_message  = ?,
                finished_at    = ?
            WHERE run_id = ?;
            """,
            (
                run.status,
                run.rows_processed,
                run.rows_failed,
                run.rows_total,
                run.error_message,
                to_iso(run.finished_at),
                run.run_id,
            ),
        )

    def get_run_by_slug(self, run_slug: str) -> Optional[RunMetadata]:
        row = self.fetchone("SELECT * FROM sync_runs WHERE run_slug = ?;", (run_slug,))
        return _row_to_run(row) if row else None

    def get_recent_runs(self, limit: int = 20) -> list[RunMetadata]:
        """Fetch recent runs, newest first."""
        rows = self.fetchall(
            "SELECT * FROM sync_runs ORDER BY started_at DESC, run_id DESC LIMIT ?;",
            (limit,),
        )
        return [_row_to_run(r) for r in rows]


def _row_to_run(row: sqlite3.Row) -> RunMetadata:
    return RunMetadata(
        run_id=row["run_id"],
        run_slug=row["run_slug"],
        pipeline_stage=row["pipeline_stage"],
        status=row["status"],
        config_snapshot=json.loads(row["config_snapshot"]),
        rows_processed=row["rows_processed"],
        rows_failed=row["rows_failed"],
        rows_total=row["rows_total"],
        error_message=row["error_message"],
        started_at=from_iso(row["started_at"]),
        finished_at=from_iso(row["finished_at"]),
    )
