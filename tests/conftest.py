"""
Shared pytest fixtures for the roster audit test suite.

Provides:
  - ``in_memory_db``: A fresh in-memory SQLite connection with the full
    schema applied. Created anew for each test that requests it.
  - ``file_db``: Path to a schema-initialized SQLite file under ``tmp_path``
    (for code that opens its own connections, like the sync stage).
  - Sample domain objects and an ``httpx.MockTransport`` router.
"""

from __future__ import annotations

import json
import sqlite3
from datetime import date, datetime, timezone
from typing import Any, Callable, Generator

import httpx
import pytest

from roster_audit.config import AppConfig, DatabaseConfig, RaidConfig, SourcesConfig
from roster_audit.db.connection import get_connection
from roster_audit.db.schema import apply_schema
from roster_audit.models.character import (
    BossKillCount,
    CharacterIdentity,
    EnrichedCharacter,
    WeeklyBaseline,
)

# Wednesday 2025-03-12 is a reset day; 12:00 UTC is after the 08:00 reset.
NOW = datetime(2025, 3, 12, 12, 0, tzinfo=timezone.utc)
RESET_DATE = date(2025, 3, 12)


# ── Database fixtures ─────────────────────────────────────────────────────────

@pytest.fixture
def in_memory_db() -> Generator[sqlite3.Connection, None, None]:
    """Yield a fresh in-memory SQLite connection with the full schema applied."""
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    apply_schema(conn)
    yield conn
    conn.close()


@pytest.fixture
def file_db(tmp_path) -> str:
    """Path to an initialized on-disk database."""
    db_path = str(tmp_path / "roster.db")
    with get_connection(db_path) as conn:
        apply_schema(conn)
    return db_path


@pytest.fixture
def app_config(file_db) -> AppConfig:
    return AppConfig(database=DatabaseConfig(db_path=file_db))


# ── Sample domain objects ─────────────────────────────────────────────────────

@pytest.fixture
def identity() -> CharacterIdentity:
    return CharacterIdentity(name="Thrall", realm="Draenor")


@pytest.fixture
def raid() -> RaidConfig:
    return RaidConfig(
        raid_name="Liberation of Undermine",
        raid_slug="liberation-of-undermine",
        wcl_zone_id=42,
        total_bosses=8,
    )


@pytest.fixture
def sources() -> SourcesConfig:
    return SourcesConfig(region="eu", locale="en_GB", recent_report_limit=15)


@pytest.fixture
def prior_record() -> EnrichedCharacter:
    """A previously persisted record with a same-week baseline."""
    return EnrichedCharacter(
        name="Thrall",
        realm="Draenor",
        item_level=630.0,
        spec="Enhancement",
        race="Orc",
        thumbnail_url="https://render.example/old.jpg",
        guild="Horde Council",
        mplus_rating=2500.0,
        raid_boss_kills={"Vexie and the Geargrinders": BossKillCount(heroic=4, mythic=3)},
        raid_kill_baseline=WeeklyBaseline(
            reset_date=RESET_DATE,
            bosses={"Vexie and the Geargrinders": BossKillCount(heroic=4, mythic=3)},
        ),
    )


# ── HTTP helpers ──────────────────────────────────────────────────────────────

def json_response(payload: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, content=json.dumps(payload).encode(),
                          headers={"Content-Type": "application/json"})


def make_transport(routes: dict[str, Any], default_status: int = 404) -> httpx.MockTransport:
    """MockTransport answering by ``host + path`` or by path alone.

    ``routes`` maps a path (e.g. ``"/profile/wow/character/draenor/thrall"``)
    to a JSON payload, an ``httpx.Response``, or a callable taking the
    request.  Unmatched paths answer ``default_status``.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        route = routes.get(request.url.host + request.url.path, routes.get(request.url.path))
        if route is None:
            return httpx.Response(default_status)
        if callable(route):
            return route(request)
        if isinstance(route, httpx.Response):
            return route
        return json_response(route)

    return httpx.MockTransport(handler)


@pytest.fixture
def mock_transport() -> Callable[..., httpx.MockTransport]:
    """Factory fixture for ``make_transport``."""
    return make_transport


@pytest.fixture
def now() -> datetime:
    return NOW
