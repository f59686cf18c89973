"""
Roster sync stage: one enrichment pass over every due character.

Pass flow:
  1. Read the roster and the current raid from the store (failure here is
     pass-level and propagates).
  2. Select due characters (never enriched, or older than the threshold).
  3. Fetch one token per authenticated source; they are shared read-only by
     every worker for this pass.
  4. Run the bounded worker pool.  Each worker enriches one character from
     its prior state and writes the result back in a worker thread.
  5. Record ``{synced, failed, total}`` on the run record.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from datetime import datetime, timedelta
from typing import Optional

import httpx

from roster_audit.config import AppConfig, RaidConfig
from roster_audit.db.connection import get_connection
from roster_audit.db.repositories.character_repo import CharacterRepository
from roster_audit.db.repositories.config_repo import ConfigurationRepository
from roster_audit.enrichment.enricher import CharacterEnricher
from roster_audit.ingestion.blizzard_client import BlizzardProfileClient
from roster_audit.ingestion.raiderio_client import RaiderIOClient
from roster_audit.ingestion.tokens import (
    ClientCredentials,
    PassTokens,
    TokenProvider,
    load_credentials,
)
from roster_audit.ingestion.warcraftlogs_client import WarcraftLogsClient
from roster_audit.models.character import EnrichedCharacter, RosterEntry
from roster_audit.models.meta import RunMetadata
from roster_audit.pipeline.base import PipelineStage
from roster_audit.pipeline.selector import select_due
from roster_audit.pipeline.worker_pool import PoolResult, run_bounded
from roster_audit.utils.time_utils import utcnow

logger = logging.getLogger(__name__)

EnricherFactory = Callable[[httpx.AsyncClient, RaidConfig, PassTokens], CharacterEnricher]


class SyncRosterStage(PipelineStage):
    """Enrich every due roster character from all upstream sources.

    Args:
        config: Application configuration.
        db_path: Override for ``config.database.db_path``.
        credentials: Provider credentials; read from the environment if omitted.
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``).
        enricher_factory: Builds the per-pass enricher; defaults to the three
            real source clients.
        clock: Returns the current UTC time.
    """

    stage_name = "sync_roster"

    def __init__(
        self,
        config: AppConfig,
        db_path: str | None = None,
        credentials: Optional[Mapping[str, ClientCredentials]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        enricher_factory: Optional[EnricherFactory] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        super().__init__(config, db_path)
        self.credentials = credentials if credentials is not None else load_credentials()
        self.transport = transport
        self.enricher_factory = enricher_factory or self.build_enricher
        self.clock = clock
        self.due: list[RosterEntry] = []

    def _execute(
        self,
        run: RunMetadata,
        threshold_minutes: Optional[int] = None,
        concurrency: Optional[int] = None,
        dry_run: bool = False,
        **kwargs,
    ) -> int:
        threshold = timedelta(
            minutes=(
                threshold_minutes
                if threshold_minutes is not None
                else self.config.sync.stale_threshold_minutes
            )
        )
        concurrency = concurrency or self.config.sync.concurrency

        entries, raid = self._load_roster()
        due = select_due(entries, threshold, self.clock())
        self.due = due
        logger.info(
            "%d of %d character(s) due (threshold=%s, raid=%s)",
            len(due), len(entries), threshold, raid.raid_name,
        )

        if dry_run:
            for entry in due:
                logger.info("[dry-run] would sync %s", entry.identity)
            return 0
        run.rows_total = len(due)
        if not due:
            return 0

        result = asyncio.run(self._sync(due, raid, concurrency))
        run.rows_failed = result.failed
        return result.synced

    def _connect(self):
        return get_connection(
            self.db_path,
            wal_mode=self.config.database.wal_mode,
            busy_timeout_ms=self.config.database.busy_timeout_ms,
        )

    def _load_roster(self) -> tuple[list[RosterEntry], RaidConfig]:
        with self._connect() as conn:
            entries = CharacterRepository(conn).list_all()
            raid = ConfigurationRepository(conn).get_raid_config(self.config.raid)
        return entries, raid

    def _write(self, entry: RosterEntry, enriched: EnrichedCharacter) -> None:
        with self._connect() as conn:
            CharacterRepository(conn).update_enriched(entry.character_id, enriched, self.clock())

    async def _sync(
        self, due: list[RosterEntry], raid: RaidConfig, concurrency: int
    ) -> PoolResult:
        async with httpx.AsyncClient(
            transport=self.transport,
            timeout=self.config.sync.request_timeout_seconds,
        ) as http:
            provider = TokenProvider(
                http,
                self.credentials,
                region=self.config.sources.region,
                timeout=self.config.sync.request_timeout_seconds,
            )
            tokens = await provider.fetch_pass_tokens()
            enricher = self.enricher_factory(http, raid, tokens)

            async def process(entry: RosterEntry) -> None:
                enriched = await enricher.enrich(entry.identity, entry.enriched)
                await asyncio.to_thread(self._write, entry, enriched)

            return await run_bounded(
                due, process, concurrency, label=lambda e: str(e.identity)
            )

    def build_enricher(
        self, http: httpx.AsyncClient, raid: RaidConfig, tokens: PassTokens
    ) -> CharacterEnricher:
        timeout = self.config.sync.request_timeout_seconds
        sources = self.config.sources
        return CharacterEnricher(
            blizzard=BlizzardProfileClient(http, sources, raid, timeout),
            raiderio=RaiderIOClient(http, sources, raid, timeout),
            warcraftlogs=WarcraftLogsClient(
                http, sources, raid, self.config.reset, timeout, clock=self.clock
            ),
            tokens=tokens,
            reset=self.config.reset,
            clock=self.clock,
        )
