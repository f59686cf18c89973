"""
Per-character enrichment: concurrent fan-out to every source, then
diff and merge.

Order per character:
  prior state (read by the caller) → all source fetches in parallel →
  lifetime counters merged → weekly diff → field-by-field merge.

The weekly diff runs only when Blizzard reports lifetime counters this
pass; otherwise the stored counters and baseline carry over.

A source that soft-fails (or raises anyway) contributes nothing; it never
blocks or nulls the others.  If every source comes back empty the prior
record is returned unchanged, or a bare record on first sync.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any, Optional

from roster_audit.config import ResetConfig
from roster_audit.enrichment.baseline import WeeklyKillResult, compute_weekly_kills
from roster_audit.enrichment.merge import merge_boss_kills, merge_character
from roster_audit.ingestion.base import SourceClient
from roster_audit.ingestion.tokens import PassTokens
from roster_audit.models.character import BossKillCount, CharacterIdentity, EnrichedCharacter
from roster_audit.models.sources import SourceRecords
from roster_audit.utils.time_utils import reset_date, utcnow

logger = logging.getLogger(__name__)


class CharacterEnricher:
    """Builds an ``EnrichedCharacter`` from all sources for one pass.

    Args:
        blizzard, raiderio, warcraftlogs: Source clients.  Any may be
            ``None`` to leave that source out entirely.
        tokens: Bearer tokens fetched once for the pass.
        reset: Weekly reset cutover.
        clock: Returns the current UTC time; injectable for tests.
    """

    def __init__(
        self,
        blizzard: Optional[SourceClient] = None,
        raiderio: Optional[SourceClient] = None,
        warcraftlogs: Optional[SourceClient] = None,
        tokens: Optional[PassTokens] = None,
        reset: ResetConfig = ResetConfig(),
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.clients: dict[str, Optional[SourceClient]] = {
            "blizzard": blizzard,
            "raiderio": raiderio,
            "warcraftlogs": warcraftlogs,
        }
        self.tokens = tokens or PassTokens()
        self.reset = reset
        self.clock = clock

    async def fetch_all(self, identity: CharacterIdentity) -> SourceRecords:
        """Fetch every configured source concurrently and wait for all of them."""
        names = [name for name, client in self.clients.items() if client is not None]
        results = await asyncio.gather(
            *(self._fetch_one(name, identity) for name in names),
            return_exceptions=True,
        )
        records: dict[str, Any] = {}
        for name, result in zip(names, results):
            if isinstance(result, Exception):
                logger.warning(
                    "%s raised for %s, ignoring it this pass: %s",
                    name, identity.key, result,
                    extra={"character": identity.key},
                )
                continue
            records[name] = result
        return SourceRecords(**records)

    async def _fetch_one(self, name: str, identity: CharacterIdentity) -> Any:
        client = self.clients[name]
        token = self.tokens.get(name)
        if client.requires_token and not token:
            return None
        return await client.fetch(identity, token)

    async def enrich(
        self,
        identity: CharacterIdentity,
        prior: Optional[EnrichedCharacter] = None,
    ) -> EnrichedCharacter:
        """Return the merged record for ``identity``.

        Never raises because of a source.  Exceptions from the merge itself
        propagate to the caller (the worker pool counts them as failures).
        """
        records = await self.fetch_all(identity)
        if not records.any_present:
            logger.warning(
                "No source returned data for %s; keeping prior record.", identity.key,
                extra={"character": identity.key},
            )
            return prior or EnrichedCharacter(name=identity.name, realm=identity.realm)

        boss_kills, weekly = self._raid_kills(records, prior)
        merged = merge_character(identity, records, prior, boss_kills, weekly)
        logger.debug(
            "Enriched %s from %s: ilvl=%.1f weekly_kills=%d",
            identity.key, records.present_sources, merged.item_level,
            merged.weekly_raid_boss_kills,
        )
        return merged

    def _raid_kills(
        self,
        records: SourceRecords,
        prior: Optional[EnrichedCharacter],
    ) -> tuple[dict[str, BossKillCount], WeeklyKillResult]:
        """Merged counters and the weekly diff for this pass.

        Only Blizzard reports lifetime counters; Warcraft Logs tallies cover
        this week's reports.  Without lifetime counters the stored counters
        stand in and the baseline is left untouched, so a Blizzard outage
        never shrinks the floor the next pass diffs against.
        """
        log_tallies = records.warcraftlogs.raid_boss_kills if records.warcraftlogs else None
        lifetime = records.blizzard.raid_boss_kills if records.blizzard else None

        if lifetime is None:
            stored = prior.raid_boss_kills if prior else None
            return merge_boss_kills(stored, log_tallies), WeeklyKillResult()

        boss_kills = merge_boss_kills(lifetime, log_tallies)
        weekly = compute_weekly_kills(
            boss_kills,
            prior.raid_kill_baseline if prior else None,
            reset_date(self.clock(), self.reset.weekday, self.reset.hour),
        )
        return boss_kills, weekly
