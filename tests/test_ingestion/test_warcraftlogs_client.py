"""
Tests for roster_audit/ingestion/warcraftlogs_client.py.

What we test
------------
weekly_report_codes():   reset boundary, zone filter, untagged reports kept,
                         malformed codes dropped.
build_fights_query():    one alias per report code.
aggregate_kill_fights(): highest difficulty per boss, tallies, ignored fights.
summarize_rankings():    difficulty choice, best/median parse, all-star points.
WarcraftLogsClient.fetch():
  - Character query + fights query against a mocked GraphQL endpoint.
  - Unknown character → None; GraphQL errors → None.
  - Fights query failure keeps the rankings summary with no weekly kills.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from roster_audit.config import ResetConfig
from roster_audit.ingestion.warcraftlogs_client import (
    WarcraftLogsClient,
    aggregate_kill_fights,
    build_character_query,
    build_fights_query,
    summarize_rankings,
    weekly_report_codes,
)
from roster_audit.models.character import BossKillCount, Difficulty
from roster_audit.utils.time_utils import to_epoch_ms

NOW = datetime(2025, 3, 12, 12, 0, tzinfo=timezone.utc)
BOUNDARY = datetime(2025, 3, 12, 8, 0, tzinfo=timezone.utc)
BOUNDARY_MS = to_epoch_ms(BOUNDARY)
API_PATH = "/api/v2/client"


def _report(code: str, start: datetime, zone_id=42) -> dict:
    report = {"code": code, "startTime": to_epoch_ms(start), "endTime": to_epoch_ms(start) + 1}
    if zone_id is not None:
        report["zone"] = {"id": zone_id, "name": "Liberation of Undermine"}
    return report


def _fight(name: str, difficulty: int, kill: bool = True, encounter_id: int = 3009) -> dict:
    return {"encounterID": encounter_id, "name": name, "difficulty": difficulty, "kill": kill}


def _ranking(name: str, percent: float, kills: int) -> dict:
    return {
        "encounter": {"id": 1, "name": name},
        "rankPercent": percent,
        "totalKills": kills,
        "bestAmount": 1234567.89,
        "spec": "Enhancement",
    }


CHARACTER = {
    "mythic": {"rankings": [_ranking("Vexie", 0.0, 0)], "allStars": []},
    "heroic": {
        "bestPerformanceAverage": 81.26,
        "allStars": [{"points": 412.345}],
        "rankings": [
            _ranking("Vexie", 95.0, 4),
            _ranking("Cauldron", 60.0, 2),
            _ranking("Rik", 75.0, 1),
            _ranking("Stix", 0.0, 0),
        ],
    },
    "normal": {"rankings": [_ranking("Vexie", 99.0, 8)]},
    "recentReports": {"data": [
        _report("thisWeekA", BOUNDARY + timedelta(hours=1)),
        _report("thisWeekB", BOUNDARY + timedelta(hours=2)),
        _report("lastWeek", BOUNDARY - timedelta(days=1)),
    ]},
}


# ── Report selection ──────────────────────────────────────────────────────────

class TestWeeklyReportCodes:
    def test_boundary_inclusive(self):
        reports = [_report("atBoundary", BOUNDARY), _report("before", BOUNDARY - timedelta(seconds=1))]
        assert weekly_report_codes(reports, BOUNDARY_MS, 42) == ["atBoundary"]

    def test_other_zone_skipped_untagged_kept(self):
        reports = [
            _report("other", BOUNDARY, zone_id=38),
            _report("untagged", BOUNDARY, zone_id=None),
            _report("tracked", BOUNDARY, zone_id=42),
        ]
        assert weekly_report_codes(reports, BOUNDARY_MS, 42) == ["untagged", "tracked"]

    def test_no_zone_configured_keeps_all(self):
        reports = [_report("a", BOUNDARY, zone_id=38), _report("b", BOUNDARY, zone_id=42)]
        assert weekly_report_codes(reports, BOUNDARY_MS, None) == ["a", "b"]

    def test_malformed_codes_dropped(self):
        reports = [_report('bad"code', BOUNDARY), _report("", BOUNDARY), _report("ok1", BOUNDARY)]
        assert weekly_report_codes(reports, BOUNDARY_MS, 42) == ["ok1"]


class TestQueryBuilders:
    def test_fights_query_aliases(self):
        query = build_fights_query(["abc", "def"])
        assert 'r0: report(code: "abc")' in query
        assert 'r1: report(code: "def")' in query
        assert "killType: Kills" in query

    def test_character_query_has_difficulty_aliases(self):
        query = build_character_query(42, 15)
        assert "mythic: zoneRankings(zoneID: 42, difficulty: 5)" in query
        assert "normal: zoneRankings(zoneID: 42, difficulty: 3)" in query
        assert "recentReports(limit: 15)" in query

    def test_character_query_without_zone(self):
        assert "zoneRankings" not in build_character_query(None, 10)


# ── Fight aggregation ─────────────────────────────────────────────────────────

class TestAggregateKillFights:
    def test_highest_difficulty_per_boss(self):
        details, counters = aggregate_kill_fights([
            _fight("Vexie", 4),
            _fight("Vexie", 5),
            _fight("Vexie", 4),
            _fight("Cauldron", 3),
        ])
        assert [(d.boss_name, d.difficulty) for d in details] == [
            ("Vexie", "Mythic"),
            ("Cauldron", "Normal"),
        ]
        assert counters["Vexie"] == BossKillCount(heroic=2, mythic=1)
        assert counters["Cauldron"] == BossKillCount(normal=1)

    def test_sorted_by_difficulty_then_name(self):
        details, _ = aggregate_kill_fights([
            _fight("Stix", 4), _fight("Rik", 4), _fight("Gallywix", 5),
        ])
        assert [d.boss_name for d in details] == ["Gallywix", "Rik", "Stix"]

    def test_ignored_fights(self):
        details, counters = aggregate_kill_fights([
            _fight("Wipe", 5, kill=False),
            _fight("Trash", 4, encounter_id=0),
            _fight("LFR boss", 1),
            _fight("Dungeon boss", 8),
        ])
        assert details == []
        assert counters == {}

    def test_missing_name_uses_encounter_id(self):
        details, _ = aggregate_kill_fights([{"encounterID": 3012, "difficulty": 4, "kill": True}])
        assert details[0].boss_name == "encounter-3012"

    def test_empty(self):
        assert aggregate_kill_fights([]) == ([], {})


# ── Rankings summary ──────────────────────────────────────────────────────────

class TestSummarizeRankings:
    def test_picks_highest_difficulty_with_kills(self):
        summary = summarize_rankings(CHARACTER)
        assert summary.highest_difficulty == int(Difficulty.HEROIC)
        assert summary.highest_difficulty_label == "Heroic"
        assert summary.bosses_logged == 3
        assert summary.total_kills == 7
        assert summary.mythic_bosses_logged == 0

    def test_parse_statistics(self):
        summary = summarize_rankings(CHARACTER)
        assert summary.best_parse == 95.0
        # sorted [60, 75, 95] → index 1
        assert summary.median_performance == 75.0
        assert summary.best_performance == 81.3
        assert summary.all_star_points == 412.3
        assert len(summary.rankings) == 4

    def test_mythic_counts(self):
        character = {"mythic": {"rankings": [_ranking("Vexie", 50.0, 2), _ranking("Stix", 40.0, 1)]}}
        summary = summarize_rankings(character)
        assert summary.highest_difficulty_label == "Mythic"
        assert summary.mythic_bosses_logged == 2
        assert summary.mythic_total_kills == 3

    def test_no_kills_anywhere(self):
        character = {"mythic": {"rankings": []}, "heroic": None, "normal": {"rankings": [
            _ranking("Vexie", 0.0, 0)]}}
        assert summarize_rankings(character) is None


# ── Client ────────────────────────────────────────────────────────────────────

def _graphql_route(character, fights_response=None, seen=None):
    """Answer the character query with ``character`` and the fights query with ``fights_response``."""

    def route(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        if seen is not None:
            seen.append(body)
        if "recentReports" in body["query"]:
            return httpx.Response(200, json={"data": {"characterData": {"character": character}}})
        if fights_response is None:
            return httpx.Response(500)
        return fights_response

    return route


@pytest.fixture
def client_for(sources, raid):
    def build(transport: httpx.MockTransport) -> tuple[httpx.AsyncClient, WarcraftLogsClient]:
        http = httpx.AsyncClient(transport=transport)
        return http, WarcraftLogsClient(http, sources, raid, ResetConfig(), clock=lambda: NOW)

    return build


class TestWarcraftLogsClient:
    @pytest.mark.asyncio
    async def test_fetch_rankings_and_weekly_kills(self, client_for, mock_transport, identity):
        fights = httpx.Response(200, json={"data": {
            "r0": {"fights": [_fight("Vexie", 4), _fight("Cauldron", 4)]},
            "r1": {"fights": [_fight("Vexie", 5), _fight("Wipe", 5, kill=False)]},
        }})
        seen: list[dict] = []
        transport = mock_transport({API_PATH: _graphql_route(CHARACTER, fights, seen)})
        http, client = client_for(transport)
        async with http:
            record = await client.fetch(identity, "tok")

        assert record.summary.highest_difficulty_label == "Heroic"
        assert [(d.boss_name, d.difficulty) for d in record.weekly_raid_kills] == [
            ("Vexie", "Mythic"),
            ("Cauldron", "Heroic"),
        ]
        assert record.raid_boss_kills["Vexie"] == BossKillCount(heroic=1, mythic=1)

        assert seen[0]["variables"] == {
            "name": "Thrall", "serverSlug": "draenor", "serverRegion": "eu",
        }
        assert 'report(code: "thisWeekA")' in seen[1]["query"]
        assert "lastWeek" not in seen[1]["query"]

    @pytest.mark.asyncio
    async def test_bearer_token_sent(self, client_for, identity):
        headers: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            headers.append(request.headers.get("Authorization"))
            return httpx.Response(200, json={"data": {"characterData": {"character": None}}})

        http, client = client_for(httpx.MockTransport(handler))
        async with http:
            await client.fetch(identity, "tok")
        assert headers == ["Bearer tok"]

    @pytest.mark.asyncio
    async def test_unknown_character(self, client_for, mock_transport, identity):
        http, client = client_for(mock_transport({API_PATH: _graphql_route(None)}))
        async with http:
            assert await client.fetch(identity, "tok") is None

    @pytest.mark.asyncio
    async def test_graphql_errors_are_soft(self, client_for, mock_transport, identity):
        route = httpx.Response(200, json={"errors": [{"message": "rate limited"}]})
        http, client = client_for(mock_transport({API_PATH: lambda r: route}))
        async with http:
            assert await client.fetch(identity, "tok") is None

    @pytest.mark.asyncio
    async def test_fights_failure_keeps_summary(self, client_for, mock_transport, identity):
        http, client = client_for(mock_transport({API_PATH: _graphql_route(CHARACTER)}))
        async with http:
            record = await client.fetch(identity, "tok")
        assert record.summary is not None
        assert record.summary.best_parse == 95.0
        assert record.weekly_raid_kills == ()
        assert record.raid_boss_kills == {}

    @pytest.mark.asyncio
    async def test_no_reports_this_week_skips_fights_query(self, client_for, mock_transport, identity):
        character = dict(CHARACTER, recentReports={"data": [
            _report("old", BOUNDARY - timedelta(days=2)),
        ]})
        seen: list[dict] = []
        http, client = client_for(mock_transport({API_PATH: _graphql_route(character, seen=seen)}))
        async with http:
            record = await client.fetch(identity, "tok")
        assert len(seen) == 1
        assert record.weekly_raid_kills == ()

    @pytest.mark.asyncio
    async def test_no_token(self, client_for, mock_transport, identity):
        http, client = client_for(mock_transport({}))
        async with http:
            assert await client.fetch(identity, "") is None
