"""Tests for repository round-trip operations using in-memory SQLite."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from roster_audit.config import RaidConfig
from roster_audit.db.repositories.character_repo import (
    CharacterNotFoundError,
    CharacterRepository,
)
from roster_audit.db.repositories.config_repo import CURRENT_RAID_KEY, ConfigurationRepository
from roster_audit.db.repositories.sync_run_repo import SyncRunRepository
from roster_audit.models.character import CharacterIdentity, RosterEntry
from roster_audit.models.meta import RunMetadata

NOW = datetime(2025, 3, 12, 12, 0, tzinfo=timezone.utc)


# ── Helpers ────────────────────────────────────────────────────────────────────

def _add(conn, name: str, realm: str = "Draenor", **kw) -> int:
    return CharacterRepository(conn).add(RosterEntry(name=name, realm=realm, **kw))


def _run(slug: str, started: datetime = NOW) -> RunMetadata:
    return RunMetadata(
        run_slug=slug,
        pipeline_stage="sync_roster",
        config_snapshot={"sync": {"concurrency": 5}},
        started_at=started,
    )


# ── CharacterRepository ───────────────────────────────────────────────────────

class TestCharacterRepository:
    def test_add_and_get(self, in_memory_db):
        char_id = _add(in_memory_db, "Thrall", player_name="Go'el", role="Tank")
        entry = CharacterRepository(in_memory_db).get_by_identity(
            CharacterIdentity(name="thrall", realm="DRAENOR")
        )
        assert entry.character_id == char_id
        assert entry.name == "Thrall"
        assert entry.player_name == "Go'el"
        assert entry.role == "tank"
        assert entry.enriched is None
        assert entry.last_enriched_at is None

    def test_duplicate_add_raises(self, in_memory_db):
        _add(in_memory_db, "Thrall")
        with pytest.raises(sqlite3.IntegrityError):
            _add(in_memory_db, "thrall", "draenor")

    def test_get_missing_raises(self, in_memory_db):
        with pytest.raises(CharacterNotFoundError):
            CharacterRepository(in_memory_db).get_by_identity(
                CharacterIdentity(name="Nobody", realm="Draenor")
            )

    def test_update_enriched_round_trip(self, in_memory_db, prior_record):
        char_id = _add(in_memory_db, "Thrall")
        repo = CharacterRepository(in_memory_db)
        repo.update_enriched(char_id, prior_record, NOW)
        entry = repo.get_by_identity(CharacterIdentity(name="Thrall", realm="Draenor"))
        assert entry.enriched == prior_record
        assert entry.last_enriched_at == NOW

    def test_update_replaces_wholesale(self, in_memory_db, prior_record):
        char_id = _add(in_memory_db, "Thrall")
        repo = CharacterRepository(in_memory_db)
        repo.update_enriched(char_id, prior_record, NOW)
        replacement = prior_record.model_copy(update={"guild": None, "item_level": 640.0})
        repo.update_enriched(char_id, replacement, NOW + timedelta(hours=1))
        entry = repo.get_by_identity(CharacterIdentity(name="Thrall", realm="Draenor"))
        assert entry.enriched.guild is None
        assert entry.enriched.item_level == 640.0
        assert entry.last_enriched_at == NOW + timedelta(hours=1)

    def test_update_missing_id_raises(self, in_memory_db, prior_record):
        with pytest.raises(CharacterNotFoundError):
            CharacterRepository(in_memory_db).update_enriched(999, prior_record, NOW)

    def test_list_all_never_synced_first(self, in_memory_db):
        _add(in_memory_db, "Recent", last_enriched_at=NOW)
        _add(in_memory_db, "Old", last_enriched_at=NOW - timedelta(days=1))
        _add(in_memory_db, "Never")
        names = [e.name for e in CharacterRepository(in_memory_db).list_all()]
        assert names == ["Never", "Old", "Recent"]

    def test_corrupt_enriched_json_treated_as_empty(self, in_memory_db):
        char_id = _add(in_memory_db, "Thrall")
        in_memory_db.execute(
            "UPDATE characters SET enriched_data = ? WHERE character_id = ?;",
            ('{"item_level": "not a number"}', char_id),
        )
        (entry,) = CharacterRepository(in_memory_db).list_all()
        assert entry.enriched is None

    def test_count(self, in_memory_db):
        repo = CharacterRepository(in_memory_db)
        assert repo.count() == 0
        _add(in_memory_db, "Thrall")
        _add(in_memory_db, "Jaina")
        assert repo.count() == 2


# ── ConfigurationRepository ───────────────────────────────────────────────────

class TestConfigurationRepository:
    def test_get_missing_value(self, in_memory_db):
        assert ConfigurationRepository(in_memory_db).get_value("nope") is None

    def test_set_and_overwrite_value(self, in_memory_db):
        repo = ConfigurationRepository(in_memory_db)
        repo.set_value("k", {"a": 1})
        repo.set_value("k", [1, 2])
        assert repo.get_value("k") == [1, 2]

    def test_raid_config_default_when_unset(self, in_memory_db, raid):
        assert ConfigurationRepository(in_memory_db).get_raid_config(raid) == raid

    def test_raid_config_round_trip(self, in_memory_db, raid):
        repo = ConfigurationRepository(in_memory_db)
        stored = RaidConfig(raid_name="Manaforge Omega", raid_slug="manaforge-omega", wcl_zone_id=44)
        repo.set_raid_config(stored)
        assert repo.get_raid_config(raid) == stored

    def test_invalid_raid_config_falls_back(self, in_memory_db, raid):
        repo = ConfigurationRepository(in_memory_db)
        repo.set_value(CURRENT_RAID_KEY, {"raid_name": "Broken", "total_bosses": "many"})
        assert repo.get_raid_config(raid) == raid


# ── SyncRunRepository ─────────────────────────────────────────────────────────

class TestSyncRunRepository:
    def test_insert_and_get(self, in_memory_db):
        repo = SyncRunRepository(in_memory_db)
        run_id = repo.insert_run(_run("abc"))
        stored = repo.get_run_by_slug("abc")
        assert stored.run_id == run_id
        assert stored.status == "started"
        assert stored.config_snapshot == {"sync": {"concurrency": 5}}

    def test_update_run(self, in_memory_db):
        repo = SyncRunRepository(in_memory_db)
        run = _run("abc")
        run.run_id = repo.insert_run(run)
        run.status = "success"
        run.rows_processed, run.rows_failed, run.rows_total = 9, 3, 12
        run.finished_at = NOW + timedelta(minutes=2)
        repo.update_run(run)
        stored = repo.get_run_by_slug("abc")
        assert stored.summary() == {"synced": 9, "failed": 3, "total": 12}
        assert stored.finished_at == NOW + timedelta(minutes=2)

    def test_update_without_id_raises(self, in_memory_db):
        with pytest.raises(ValueError):
            SyncRunRepository(in_memory_db).update_run(_run("abc"))

    def test_recent_runs_newest_first(self, in_memory_db):
        repo = SyncRunRepository(in_memory_db)
        for i in range(3):
            repo.insert_run(_run(f"run-{i}", NOW + timedelta(minutes=i)))
        assert [r.run_slug for r in repo.get_recent_runs(limit=2)] == ["run-2", "run-1"]

    def test_missing_slug(self, in_memory_db):
        assert SyncRunRepository(in_memory_db).get_run_by_slug("nope") is None
