"""
Warcraft Logs v2 (GraphQL) client.

Two queries per character:

  1. Character query: zone rankings for the tracked raid at each difficulty
     (aliased ``mythic`` / ``heroic`` / ``normal``) plus the most recent
     report headers.
  2. Fights query: kill fights of every report uploaded since the last
     weekly reset, batched into one request with one alias per report.

Weekly log kills are the distinct bosses killed since reset, one entry per
boss at the highest difficulty seen.  Per-difficulty kill tallies from the
same fights are reported as cumulative counters for the merger.

If the fights query fails, the record still carries the rankings summary and
simply reports no weekly kills.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any, ClassVar, Optional

import httpx

from roster_audit.config import RaidConfig, ResetConfig, SourcesConfig
from roster_audit.ingestion.base import SOFT_FAILURES, SourceClient
from roster_audit.ingestion.tokens import SOURCE_WARCRAFTLOGS
from roster_audit.models.character import (
    DIFFICULTY_PRIORITY,
    BossKillCount,
    CharacterIdentity,
    Difficulty,
    EncounterRanking,
    WarcraftLogsSummary,
    WeeklyKillDetail,
)
from roster_audit.models.sources import WarcraftLogsRecord
from roster_audit.utils.time_utils import reset_boundary, to_epoch_ms, utcnow

logger = logging.getLogger(__name__)

_REPORT_CODE = re.compile(r"^[A-Za-z0-9]+$")


class WarcraftLogsClient(SourceClient[WarcraftLogsRecord]):
    """GraphQL client producing ``WarcraftLogsRecord``.

    Args:
        http: Shared async HTTP client.
        sources: Region and recent-report limit.
        raid: Tracked raid; ``wcl_zone_id`` scopes rankings and reports.
        reset: Weekly reset cutover used to select this week's reports.
        timeout: Per-request timeout in seconds.
        clock: Returns the current UTC time; injectable for tests.
    """

    source = SOURCE_WARCRAFTLOGS

    API_URL: ClassVar[str] = "https://www.warcraftlogs.com/api/v2/client"

    def __init__(
        self,
        http: httpx.AsyncClient,
        sources: SourcesConfig,
        raid: RaidConfig,
        reset: ResetConfig,
        timeout: float = 15.0,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        super().__init__(http, sources, timeout)
        self.raid = raid
        self.reset = reset
        self.clock = clock

    async def _fetch(
        self, identity: CharacterIdentity, token: str
    ) -> Optional[WarcraftLogsRecord]:
        data = await self._query(
            token,
            build_character_query(self.raid.wcl_zone_id, self.sources.recent_report_limit),
            {
                "name": identity.name,
                "serverSlug": identity.realm_slug,
                "serverRegion": self.sources.region,
            },
        )
        character = (data.get("characterData") or {}).get("character")
        if not character:
            logger.info("warcraftlogs: character not found: %s", identity.key)
            return None

        boundary = reset_boundary(self.clock(), self.reset.weekday, self.reset.hour)
        reports = (character.get("recentReports") or {}).get("data") or []
        codes = weekly_report_codes(reports, to_epoch_ms(boundary), self.raid.wcl_zone_id)

        fights: list[dict[str, Any]] = []
        if codes:
            try:
                fights = await self._fetch_kill_fights(token, codes)
            except SOFT_FAILURES as exc:
                logger.warning(
                    "warcraftlogs: fights query failed for %s, no weekly kills: %s",
                    identity.key, exc,
                )

        weekly, counters = aggregate_kill_fights(fights)
        logger.debug(
            "warcraftlogs: %s has %d report(s) this week, %d boss(es) killed",
            identity.key, len(codes), len(weekly),
        )
        return WarcraftLogsRecord(
            summary=summarize_rankings(character),
            weekly_raid_kills=tuple(weekly),
            raid_boss_kills=counters,
        )

    async def _fetch_kill_fights(self, token: str, codes: list[str]) -> list[dict[str, Any]]:
        data = await self._query(token, build_fights_query(codes), {})
        fights: list[dict[str, Any]] = []
        for alias in sorted(data):
            fights.extend((data.get(alias) or {}).get("fights") or [])
        return fights

    async def _query(self, token: str, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        """POST a GraphQL query and return its ``data`` object.

        Raises:
            httpx.HTTPStatusError: On non-2xx responses.
            ValueError: If the response carries no ``data`` object.
        """
        resp = await self.http.post(
            self.API_URL,
            json={"query": query, "variables": variables},
            headers={"Authorization": f"Bearer {token}"},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        body = resp.json()
        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, dict):
            errors = body.get("errors") if isinstance(body, dict) else None
            raise ValueError(f"GraphQL response without data: {errors}")
        return data


# ── Query builders ────────────────────────────────────────────────────────────


def build_character_query(zone_id: Optional[int], report_limit: int) -> str:
    rankings = ""
    if zone_id is not None:
        rankings = "\n".join(
            f"      {d.name.lower()}: zoneRankings(zoneID: {int(zone_id)}, difficulty: {int(d)})"
            for d in DIFFICULTY_PRIORITY
        )
    return f"""
query($name: String!, $serverSlug: String!, $serverRegion: String!) {{
  characterData {{
    character(name: $name, serverSlug: $serverSlug, serverRegion: $serverRegion) {{
{rankings}
      recentReports(limit: {int(report_limit)}) {{
        data {{ code startTime endTime zone {{ id name }} }}
      }}
    }}
  }}
}}
"""


def build_fights_query(codes: Iterable[str]) -> str:
    """One aliased ``report`` lookup per code (``r0``, ``r1``, ...)."""
    parts = [
        f'  r{i}: report(code: "{code}") {{ fights(killType: Kills) {{ encounterID name difficulty kill }} }}'
        for i, code in enumerate(codes)
    ]
    return "query {\n" + "\n".join(parts) + "\n}\n"


# ── Normalization ─────────────────────────────────────────────────────────────


def weekly_report_codes(
    reports: Iterable[dict[str, Any]], boundary_ms: int, zone_id: Optional[int]
) -> list[str]:
    """Codes of reports that started at or after the reset boundary.

    When ``zone_id`` is set, reports tagged with a different zone are
    skipped; reports without a zone tag are kept.
    """
    codes: list[str] = []
    for report in reports:
        code = report.get("code") or ""
        if not _REPORT_CODE.match(code):
            continue
        if int(report.get("startTime") or 0) < boundary_ms:
            continue
        report_zone = (report.get("zone") or {}).get("id")
        if zone_id is not None and report_zone is not None and report_zone != zone_id:
            continue
        codes.append(code)
    return codes


def aggregate_kill_fights(
    fights: Iterable[dict[str, Any]],
) -> tuple[list[WeeklyKillDetail], dict[str, BossKillCount]]:
    """Reduce kill fights to (weekly details, per-boss per-difficulty tallies).

    Fights outside Normal/Heroic/Mythic or without an encounter are ignored.
    Details hold one entry per boss at its highest difficulty, sorted by
    difficulty descending then boss name.
    """
    tallies: dict[str, dict[Difficulty, int]] = {}
    for fight in fights:
        if fight.get("kill") is False or not fight.get("encounterID"):
            continue
        difficulty = Difficulty.from_id(int(fight.get("difficulty") or 0))
        if difficulty is None:
            continue
        boss = fight.get("name") or f"encounter-{fight['encounterID']}"
        per_boss = tallies.setdefault(boss, {})
        per_boss[difficulty] = per_boss.get(difficulty, 0) + 1

    details = [WeeklyKillDetail.at(boss, max(per_boss)) for boss, per_boss in tallies.items()]
    details.sort(key=lambda d: (-d.difficulty_id, d.boss_name))

    counters = {
        boss: BossKillCount(**{d.name.lower(): n for d, n in per_boss.items()})
        for boss, per_boss in tallies.items()
    }
    return details, counters


def _has_rankings(zone: Any) -> bool:
    if not isinstance(zone, dict):
        return False
    return any(int(r.get("totalKills") or 0) > 0 for r in zone.get("rankings") or [])


def summarize_rankings(character: dict[str, Any]) -> Optional[WarcraftLogsSummary]:
    """Performance summary from the highest difficulty with logged kills.

    Returns ``None`` when no difficulty has any ranked kill.
    """
    chosen: Optional[Difficulty] = next(
        (d for d in DIFFICULTY_PRIORITY if _has_rankings(character.get(d.name.lower()))),
        None,
    )
    if chosen is None:
        return None

    zone = character[chosen.name.lower()]
    rankings = [_parse_ranking(r, chosen) for r in zone.get("rankings") or []]
    logged = [r for r in rankings if r.total_kills > 0]
    parses = sorted(r.rank_percent for r in logged if r.rank_percent > 0)

    mythic_zone = character.get("mythic") if chosen is not Difficulty.MYTHIC else zone
    mythic_logged = [
        r for r in (mythic_zone or {}).get("rankings") or [] if int(r.get("totalKills") or 0) > 0
    ]

    all_stars = zone.get("allStars") or []
    return WarcraftLogsSummary(
        best_parse=round(parses[-1], 1) if parses else 0.0,
        median_performance=round(parses[len(parses) // 2], 1) if parses else 0.0,
        best_performance=round(float(zone.get("bestPerformanceAverage") or 0.0), 1),
        all_star_points=round(float(all_stars[0].get("points") or 0.0), 1) if all_stars else 0.0,
        bosses_logged=len(logged),
        total_kills=sum(r.total_kills for r in logged),
        mythic_bosses_logged=len(mythic_logged),
        mythic_total_kills=sum(int(r.get("totalKills") or 0) for r in mythic_logged),
        highest_difficulty=int(chosen),
        highest_difficulty_label=chosen.label,
        rankings=rankings,
    )


def _parse_ranking(raw: dict[str, Any], difficulty: Difficulty) -> EncounterRanking:
    return EncounterRanking(
        encounter=(raw.get("encounter") or {}).get("name") or "",
        difficulty=int(difficulty),
        rank_percent=round(float(raw.get("rankPercent") or 0.0), 1),
        total_kills=int(raw.get("totalKills") or 0),
        best_amount=round(float(raw.get("bestAmount") or 0.0), 1),
        spec=raw.get("spec") or "",
    )
