"""
Repository for the ``configuration`` key/value table.

Values are JSON documents.  The one key the sync pass reads is
``current_raid``; when it is absent (or invalid) the caller falls back to
``AppConfig.raid``.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from pydantic import ValidationError

from roster_audit.config import RaidConfig
from roster_audit.db.repositories.base import BaseRepository

logger = logging.getLogger(__name__)

CURRENT_RAID_KEY = "current_raid"


class ConfigurationRepository(BaseRepository):
    """Read/write access to the ``configuration`` table."""

    def get_value(self, key: str) -> Optional[Any]:
        row = self.fetchone("SELECT value FROM configuration WHERE key = ?;", (key,))
        return json.loads(row["value"]) if row else None

    def set_value(self, key: str, value: Any) -> None:
        self.execute(
            """
            INSERT INTO configuration (key, value) VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value      = excluded.value,
                updated_at = strftime('%Y-%m-%dT%H:%M:%SZ', 'now');
            """,
            (key, json.dumps(value)),
        )

    def get_raid_config(self, default: RaidConfig) -> RaidConfig:
        """Return the stored current raid, or ``default`` if unset or invalid."""
        raw = self.get_value(CURRENT_RAID_KEY)
        if raw is None:
            return default
        try:
            return RaidConfig(**raw)
        except (TypeError, ValidationError) as exc:
            logger.warning("Stored %s is invalid, using default: %s", CURRENT_RAID_KEY, exc)
            return default

    def set_raid_config(self, raid: RaidConfig) -> None:
        self.set_value(CURRENT_RAID_KEY, raid.model_dump())
