"""
Run metadata: the sync pass audit log.

``RunMetadata`` records one invocation of a pipeline stage: when it ran,
the ``AppConfig`` it ran with, and its outcome.  For a roster sync pass the
counters carry the pass summary: ``rows_processed`` = characters synced,
``rows_failed`` = characters that raised, ``rows_total`` = due set size
(left at 0 on a dry run, where nothing is processed).

``RunMetadata`` is the only model in the system that is NOT frozen; its
``status``, counters, ``error_message`` and ``finished_at`` are updated as
the stage executes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator

VALID_PIPELINE_STAGES = frozenset({"sync_roster"})
VALID_RUN_STATUSES = frozenset({"started", "success", "failed"})


class RunMetadata(BaseModel):
    """Pipeline execution audit record.

    Attributes:
        run_id: Auto-assigned DB PK; ``None`` before insertion.
        run_slug: UUID4 string uniquely identifying this run.
        pipeline_stage: Which stage produced this run record.
        status: Current execution status.
        config_snapshot: Full ``AppConfig.model_dump()`` at run start time.
        rows_processed: Records processed successfully.
        rows_failed: Records whose processing raised.
        rows_total: Records selected for processing.
        error_message: Error description if ``status == "failed"``.
        started_at: UTC datetime when the run began.
        finished_at: UTC datetime when the run completed or failed.
    """

    model_config = ConfigDict(frozen=False)

    run_id: Optional[int] = None
    run_slug: str
    pipeline_stage: str
    status: str = "started"
    config_snapshot: dict[str, Any]
    rows_processed: int = 0
    rows_failed: int = 0
    rows_total: int = 0
    error_message: Optional[str] = None
    started_at: datetime
    finished_at: Optional[datetime] = None

    @field_validator("pipeline_stage")
    @classmethod
    def validate_pipeline_stage(cls, v: str) -> str:
        if v not in VALID_PIPELINE_STAGES:
            raise ValueError(
                f"Unknown pipeline_stage '{v}'. Must be one of {sorted(VALID_PIPELINE_STAGES)}."
            )
        return v

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: str) -> str:
        if v not in VALID_RUN_STATUSES:
            raise ValueError(
                f"Unknown status '{v}'. Must be one of {sorted(VALID_RUN_STATUSES)}."
            )
        return v

    def summary(self) -> dict[str, int]:
        """``{"synced", "failed", "total"}`` view of the counters."""
        return {
            "synced": self.rows_processed,
            "failed": self.rows_failed,
            "total": self.rows_total,
        }
