"""
Per-provider partial records.

Each upstream client translates its provider's payload into one of these
typed records.  Every field is optional: ``None`` means "this provider did
not report it this pass", which the merger treats differently from a
reported zero.  No cross-source logic lives here.

  BlizzardProfileRecord  — profile, equipment, collections, PvP, reputations,
                           lifetime raid-encounter counters
  RaiderIORecord         — M+ score/runs, raid progression summary
  WarcraftLogsRecord     — log rankings and weekly log-derived kills

``SourceRecords`` is the tagged bundle the enricher hands to the merger.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Optional

from roster_audit.models.character import (
    BossKillCount,
    Collections,
    MythicPlusRun,
    Profession,
    PvpStats,
    RaidProgression,
    SecondaryStats,
    WarcraftLogsSummary,
    WeeklyKillDetail,
)


@dataclass(frozen=True)
class EquippedItem:
    """A single equipped item, already mapped to internal slot keys."""

    slot: str               # internal key: "head", "finger1", "mainhand", ...
    slot_type: str          # Blizzard slot type: "HEAD", "FINGER_1", ...
    name: str
    ilvl: int
    has_enchant: bool
    gems_count: int
    is_tier: bool
    is_enchantable: bool


@dataclass(frozen=True)
class BlizzardProfileRecord:
    source: ClassVar[str] = "blizzard"

    item_level: Optional[float] = None
    spec: Optional[str] = None
    race: Optional[str] = None
    guild: Optional[str] = None
    thumbnail_url: Optional[str] = None
    equipped_items: Optional[tuple[EquippedItem, ...]] = None
    stats: Optional[SecondaryStats] = None
    collections: Optional[Collections] = None
    pvp: Optional[PvpStats] = None
    reputations: Optional[dict[str, int]] = None
    completed_quest_ids: Optional[frozenset[int]] = None
    professions: Optional[tuple[Profession, ...]] = None
    raid_boss_kills: Optional[dict[str, BossKillCount]] = None


@dataclass(frozen=True)
class RaiderIORecord:
    source: ClassVar[str] = "raiderio"

    item_level: Optional[float] = None
    spec: Optional[str] = None
    thumbnail_url: Optional[str] = None
    mplus_rating: Optional[float] = None
    weekly_ten_plus_count: Optional[int] = None
    recent_runs: Optional[tuple[MythicPlusRun, ...]] = None
    raid_progression: Optional[RaidProgression] = None
    mplus_ranks: Optional[dict[str, Any]] = None


@dataclass(frozen=True)
class WarcraftLogsRecord:
    source: ClassVar[str] = "warcraftlogs"

    summary: Optional[WarcraftLogsSummary] = None
    weekly_raid_kills: tuple[WeeklyKillDetail, ...] = ()
    raid_boss_kills: dict[str, BossKillCount] = field(default_factory=dict)


@dataclass(frozen=True)
class SourceRecords:
    """Everything fetched for one character in one pass; ``None`` = soft failure."""

    blizzard: Optional[BlizzardProfileRecord] = None
    raiderio: Optional[RaiderIORecord] = None
    warcraftlogs: Optional[WarcraftLogsRecord] = None

    @property
    def any_present(self) -> bool:
        return any(r is not None for r in (self.blizzard, self.raiderio, self.warcraftlogs))

    @property
    def present_sources(self) -> list[str]:
        return [
            r.source
            for r in (self.blizzard, self.raiderio, self.warcraftlogs)
            if r is not None
        ]
