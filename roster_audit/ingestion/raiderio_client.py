"""
Raider.IO client.

Public API, no authentication.  One request per character:

  GET https://raider.io/api/v1/characters/profile
      ?region=eu&realm=draenor&name=thrall
      &fields=mythic_plus_scores_by_season:current,mythic_plus_recent_runs,...

Raider.IO's own raid progression is a per-difficulty "bosses killed" tally,
not a per-boss counter, so it never feeds the weekly kill diff.  Lifetime
counters come from the Blizzard encounters endpoint and Warcraft Logs.
"""

from __future__ import annotations

import logging
from typing import Any, ClassVar, Optional

import httpx

from roster_audit.config import RaidConfig, SourcesConfig
from roster_audit.ingestion.base import SourceClient
from roster_audit.ingestion.tokens import SOURCE_RAIDERIO
from roster_audit.models.character import CharacterIdentity, MythicPlusRun, RaidProgression
from roster_audit.models.sources import RaiderIORecord
from roster_audit.utils.coalesce import dig, positive_or_none

logger = logging.getLogger(__name__)

RECENT_RUNS_LIMIT = 10
WEEKLY_KEY_LEVEL = 10


class RaiderIOClient(SourceClient[RaiderIORecord]):
    """Raider.IO profile client producing ``RaiderIORecord``."""

    source = SOURCE_RAIDERIO
    requires_token = False

    PROFILE_URL: ClassVar[str] = "https://raider.io/api/v1/characters/profile"
    FIELDS: ClassVar[tuple[str, ...]] = (
        "mythic_plus_scores_by_season:current",
        "mythic_plus_recent_runs",
        "mythic_plus_weekly_highest_level_runs",
        "raid_progression",
        "gear",
        "mythic_plus_ranks",
    )

    def __init__(
        self,
        http: httpx.AsyncClient,
        sources: SourcesConfig,
        raid: RaidConfig,
        timeout: float = 15.0,
    ) -> None:
        super().__init__(http, sources, timeout)
        self.raid = raid

    async def _fetch(self, identity: CharacterIdentity, token: str) -> Optional[RaiderIORecord]:
        resp = await self.http.get(
            self.PROFILE_URL,
            params={
                "region": self.sources.region,
                "realm": identity.realm_slug,
                "name": identity.name,
                "fields": ",".join(self.FIELDS),
            },
            timeout=self.timeout,
        )
        if resp.status_code == 400 or resp.status_code == 404:
            logger.info("raiderio: character not found: %s", identity.key)
            return None
        resp.raise_for_status()

        payload = resp.json()
        if not isinstance(payload, dict):
            raise TypeError(f"Unexpected Raider.IO payload type: {type(payload).__name__}")
        return parse_profile(payload, self.raid.raid_slug)


def parse_profile(payload: dict[str, Any], raid_slug: str) -> RaiderIORecord:
    weekly = payload.get("mythic_plus_weekly_highest_level_runs")
    recent = payload.get("mythic_plus_recent_runs")
    return RaiderIORecord(
        item_level=positive_or_none(dig(payload, "gear", "item_level_equipped")),
        spec=payload.get("active_spec_name") or None,
        thumbnail_url=payload.get("thumbnail_url") or None,
        mplus_rating=_current_score(payload),
        weekly_ten_plus_count=(
            sum(1 for run in weekly if int(run.get("mythic_level") or 0) >= WEEKLY_KEY_LEVEL)
            if isinstance(weekly, list) else None
        ),
        recent_runs=(
            tuple(_parse_run(run) for run in recent[:RECENT_RUNS_LIMIT])
            if isinstance(recent, list) else None
        ),
        raid_progression=_parse_progression(dig(payload, "raid_progression", raid_slug)),
        mplus_ranks=payload.get("mythic_plus_ranks"),
    )


def _current_score(payload: dict[str, Any]) -> Optional[float]:
    seasons = payload.get("mythic_plus_scores_by_season")
    if not isinstance(seasons, list):
        return None
    score = dig(seasons, 0, "scores", "all")
    return float(score) if score is not None else 0.0


def _parse_run(run: dict[str, Any]) -> MythicPlusRun:
    return MythicPlusRun(
        dungeon=run.get("dungeon") or "",
        short_name=run.get("short_name"),
        mythic_level=int(run.get("mythic_level") or 0),
        completed_at=run.get("completed_at"),
        score=float(run.get("score") or 0.0),
        keystone_upgrades=int(run.get("num_keystone_upgrades") or 0),
    )


def _parse_progression(raw: Optional[dict[str, Any]]) -> Optional[RaidProgression]:
    if not raw:
        return None
    return RaidProgression(
        summary=raw.get("summary") or "",
        total_bosses=int(raw.get("total_bosses") or 0),
        normal_bosses_killed=int(raw.get("normal_bosses_killed") or 0),
        heroic_bosses_killed=int(raw.get("heroic_bosses_killed") or 0),
        mythic_bosses_killed=int(raw.get("mythic_bosses_killed") or 0),
    )
