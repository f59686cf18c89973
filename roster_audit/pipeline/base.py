"""
Abstract base class for pipeline stages.

Every stage follows the same contract:
  1. Receive ``AppConfig`` at construction.
  2. ``run(**kwargs)`` is the sole public API.
  3. ``run()`` creates a ``RunMetadata`` record, calls ``_execute()``,
     and persists the run record with final status.
  4. ``_execute()`` is the stage-specific implementation (overridden by subclasses).

This design ensures:
  - Every sync pass is auditable (a ``sync_runs`` row per run).
  - Status transitions (started → success/failed) are consistent.
  - Pass-level errors are recorded, then re-raised to the caller.

Usage::

    class MyStage(PipelineStage):
        stage_name = "sync_roster"

        def _execute(self, run: RunMetadata, **kwargs) -> int:
            run.rows_total = 3
            return 3

    run = MyStage(config=app_config).run()
    run.summary()   # {"synced": 3, "failed": 0, "total": 3}
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from uuid import uuid4

from roster_audit.config import AppConfig
from roster_audit.models.meta import RunMetadata
from roster_audit.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


class PipelineStage(ABC):
    """Abstract base for pipeline stages.

    Subclasses must:
      1. Set ``stage_name`` class variable.
      2. Implement ``_execute(run, **kwargs) -> int``.

    Attributes:
        stage_name: String identifier matching a valid ``RunMetadata.pipeline_stage``.
        config: The application configuration for this run.
        db_path: Path to the SQLite database (defaults to ``config.database.db_path``).
    """

    stage_name: str  # Override in subclass

    def __init__(
        self,
        config: AppConfig,
        db_path: str | None = None,
    ) -> None:
        self.config = config
        self.db_path = db_path or config.database.db_path

    def run(self, **kwargs) -> RunMetadata:
        """Execute this stage and return the finalized run record.

        Args:
            **kwargs: Stage-specific keyword arguments passed to ``_execute()``.

        Returns:
            ``RunMetadata`` with ``status='success'``, counters and
            ``finished_at`` set.

        Raises:
            Exception: Re-raises any exception from ``_execute()`` after
                recording ``status='failed'`` in the run record.
        """
        run = RunMetadata(
            run_slug=str(uuid4()),
            pipeline_stage=self.stage_name,
            config_snapshot=self.config.model_dump(),
            started_at=utcnow(),
        )
        logger.info(
            "Stage [%s] starting | run_slug=%s", self.stage_name, run.run_slug
        )

        try:
            rows = self._execute(run=run, **kwargs)
            run.status = "success"
            run.rows_processed = rows
            run.finished_at = utcnow()
            logger.info(
                "Stage [%s] completed | synced=%d failed=%d total=%d | run_slug=%s",
                self.stage_name, rows, run.rows_failed, run.rows_total, run.run_slug,
            )

        except Exception as exc:
            run.status = "failed"
            run.error_message = str(exc)
            run.finished_at = utcnow()
            logger.error(
                "Stage [%s] FAILED: %s | run_slug=%s",
                self.stage_name, exc, run.run_slug,
            )
            self._persist_run(run)
            raise

        self._persist_run(run)
        return run

    @abstractmethod
    def _execute(self, run: RunMetadata, **kwargs) -> int:
        """Stage-specific implementation.

        Args:
            run: The in-progress ``RunMetadata`` record (mutable).
            **kwargs: Stage-specific parameters.

        Returns:
            Integer count of records processed successfully.
        """
        ...

    def _persist_run(self, run: RunMetadata) -> None:
        """Write or update the run record.

        Logs errors rather than raising, so a persistence failure never
        masks the original stage error.
        """
        try:
            from roster_audit.db.connection import get_connection
            from roster_audit.db.repositories.sync_run_repo import SyncRunRepository

            with get_connection(
                self.db_path,
                wal_mode=self.config.database.wal_mode,
                busy_timeout_ms=self.config.database.busy_timeout_ms,
            ) as conn:
                repo = SyncRunRepository(conn)
                if run.run_id is None:
                    run.run_id = repo.insert_run(run)
                else:
                    repo.update_run(run)
        except Exception as exc:
            logger.error(
                "Failed to persist RunMetadata for run_slug=%s: %s",
                run.run_slug, exc,
            )
