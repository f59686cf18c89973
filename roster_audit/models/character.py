"""
Character models: roster identity, raid-kill counters and the enriched record.

Layering:
  1. ``CharacterIdentity``  — natural key (name + realm), case-insensitive.
  2. ``BossKillCount`` / ``WeeklyBaseline`` / ``WeeklyKillDetail`` — the raid
     progress vocabulary shared by the diff engine and the log client.
  3. ``EnrichedCharacter`` — the full merged record persisted per character.
     It always replaces the previous value wholesale; the only prior state
     carried forward is what the merger explicitly falls back to.
  4. ``RosterEntry`` — one row of the roster store as read at pass start.

All models are frozen.  Build updated copies with ``model_copy(update=...)``.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import IntEnum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ── Identity ──────────────────────────────────────────────────────────────────


def slugify_realm(realm: str) -> str:
    """``"Twisting Nether"`` → ``"twisting-nether"`` (the form every API expects)."""
    return "-".join(realm.strip().lower().replace("'", "").split())


class CharacterIdentity(BaseModel):
    """Name + realm.  Compared case-insensitively through ``key``."""

    model_config = ConfigDict(frozen=True)

    name: str
    realm: str

    @field_validator("name", "realm")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Character name and realm must be non-empty.")
        return v

    @property
    def name_slug(self) -> str:
        return self.name.lower()

    @property
    def realm_slug(self) -> str:
        return slugify_realm(self.realm)

    @property
    def key(self) -> str:
        """Case-insensitive natural key, e.g. ``"thrall-draenor"``."""
        return f"{self.name_slug}-{self.realm_slug}"

    def __str__(self) -> str:
        return f"{self.name}-{self.realm}"


# ── Raid progress vocabulary ──────────────────────────────────────────────────


class Difficulty(IntEnum):
    """Raid difficulty IDs as used by Warcraft Logs (LFR is not tracked)."""

    NORMAL = 3
    HEROIC = 4
    MYTHIC = 5

    @property
    def label(self) -> str:
        return self.name.capitalize()

    @classmethod
    def from_id(cls, difficulty_id: int) -> Optional["Difficulty"]:
        try:
            return cls(difficulty_id)
        except ValueError:
            return None


# Highest first: the order weekly credit is assigned in.
DIFFICULTY_PRIORITY: tuple[Difficulty, ...] = (
    Difficulty.MYTHIC,
    Difficulty.HEROIC,
    Difficulty.NORMAL,
)


class BossKillCount(BaseModel):
    """Kill counts for one boss, one counter per tracked difficulty."""

    model_config = ConfigDict(frozen=True)

    normal: int = Field(default=0, ge=0)
    heroic: int = Field(default=0, ge=0)
    mythic: int = Field(default=0, ge=0)

    def get(self, difficulty: Difficulty) -> int:
        return getattr(self, difficulty.name.lower())

    @property
    def is_empty(self) -> bool:
        return self.normal == 0 and self.heroic == 0 and self.mythic == 0


# boss name → counts
BossKillCounters = dict[str, BossKillCount]


class WeeklyBaseline(BaseModel):
    """Cumulative counters snapshotted at (or after) a reset boundary."""

    model_config = ConfigDict(frozen=True)

    reset_date: date
    bosses: dict[str, BossKillCount] = Field(default_factory=dict)


class WeeklyKillDetail(BaseModel):
    """One boss newly killed this lockout week, at its highest difficulty."""

    model_config = ConfigDict(frozen=True)

    boss_name: str
    difficulty: str
    difficulty_id: int

    @classmethod
    def at(cls, boss_name: str, difficulty: Difficulty) -> "WeeklyKillDetail":
        return cls(
            boss_name=boss_name,
            difficulty=difficulty.label,
            difficulty_id=int(difficulty),
        )


# ── Enriched record parts ─────────────────────────────────────────────────────


class SlotAudit(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    ilvl: int = 0
    track: str = "Explorer"
    has_enchant: bool = False
    is_tier: bool = False
    gems_count: int = 0


class EnchantAudit(BaseModel):
    model_config = ConfigDict(frozen=True)

    cloak: bool = False
    chest: bool = False
    wrists: bool = False
    legs: bool = False
    feet: bool = False
    ring1: bool = False
    ring2: bool = False
    weapon: bool = False
    missing_count: int = 0


class SecondaryStats(BaseModel):
    """Secondary stat percentages from the character statistics endpoint."""

    model_config = ConfigDict(frozen=True)

    crit_pct: float = 0.0
    haste_pct: float = 0.0
    mastery_pct: float = 0.0
    vers_pct: float = 0.0


class VaultSlot(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str = "-"
    ilvl: int = 0


def _empty_vault() -> list[VaultSlot]:
    return [VaultSlot(), VaultSlot(), VaultSlot()]


class GearAudit(BaseModel):
    """Equipment summary: enchants, gems, tier pieces and upgrade tracks."""

    model_config = ConfigDict(frozen=True)

    sockets: int = 0
    enchantments: int = 0
    tier_count: int = 0
    upgrade_track: str = "Explorer"
    item_tracks: dict[str, int] = Field(default_factory=dict)
    slots: dict[str, SlotAudit] = Field(default_factory=dict)
    enchants: EnchantAudit = EnchantAudit()
    stats: SecondaryStats = SecondaryStats()
    raid_vault: list[VaultSlot] = Field(default_factory=_empty_vault)


class Collections(BaseModel):
    model_config = ConfigDict(frozen=True)

    mounts: int = 0
    pets: int = 0
    toys: int = 0
    achievements: int = 0
    titles: int = 0


class PvpRatings(BaseModel):
    model_config = ConfigDict(frozen=True)

    solo: int = 0
    v2: int = 0
    v3: int = 0
    rbg: int = 0


class PvpStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    honor_level: int = 0
    kills: int = 0
    ratings: PvpRatings = PvpRatings()
    season_games: int = 0
    weekly_games: int = 0


class Activities(BaseModel):
    """Weekly activity flags derived from completed quests and M+ runs."""

    model_config = ConfigDict(frozen=True)

    world_quests: int = 0
    theater: bool = False
    awakening: bool = False
    worldsoul: bool = False
    memories: bool = False
    mythic_dungeons: int = 0
    highest_mplus: int = 0


class Profession(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    rank: int = 0


class MythicPlusRun(BaseModel):
    model_config = ConfigDict(frozen=True)

    dungeon: str
    short_name: Optional[str] = None
    mythic_level: int = 0
    completed_at: Optional[str] = None
    score: float = 0.0
    keystone_upgrades: int = 0


class RaidProgression(BaseModel):
    """Raider.IO progression summary for a single raid, e.g. ``"6/8 H"``."""

    model_config = ConfigDict(frozen=True)

    summary: str = ""
    total_bosses: int = 0
    normal_bosses_killed: int = 0
    heroic_bosses_killed: int = 0
    mythic_bosses_killed: int = 0


class EncounterRanking(BaseModel):
    model_config = ConfigDict(frozen=True)

    encounter: str
    difficulty: int
    rank_percent: float = 0.0
    total_kills: int = 0
    best_amount: float = 0.0
    spec: str = ""


class WarcraftLogsSummary(BaseModel):
    """Log performance metrics for the configured raid zone."""

    model_config = ConfigDict(frozen=True)

    best_parse: float = 0.0
    median_performance: float = 0.0
    best_performance: float = 0.0
    all_star_points: float = 0.0
    bosses_logged: int = 0
    total_kills: int = 0
    mythic_bosses_logged: int = 0
    mythic_total_kills: int = 0
    highest_difficulty: Optional[int] = None
    highest_difficulty_label: str = ""
    rankings: list[EncounterRanking] = Field(default_factory=list)


# ── Enriched character ────────────────────────────────────────────────────────


class EnrichedCharacter(BaseModel):
    """The merged, denormalized view of one character; the unit of persistence.

    Attributes:
        name, realm: Identity as registered on the roster.
        item_level: Equipped item level (0 when never observed).
        raid_boss_kills: Merged cumulative kill counters for the tracked raid.
        raid_kill_baseline: Snapshot used to diff weekly kills; ``None`` until
            counters have been observed at least once.
        weekly_raid_boss_kills: Bosses killed since the last reset.
        weekly_raid_kill_details: One entry per boss killed since reset.
        mplus_ranks: Opaque Raider.IO rank payload, passed through as-is.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    realm: str
    item_level: float = 0.0
    spec: Optional[str] = None
    race: Optional[str] = None
    thumbnail_url: Optional[str] = None
    guild: Optional[str] = None

    mplus_rating: float = 0.0
    weekly_ten_plus_count: int = 0
    recent_runs: list[MythicPlusRun] = Field(default_factory=list)
    raid_progression: Optional[RaidProgression] = None
    mplus_ranks: Optional[dict[str, Any]] = None

    raid_boss_kills: dict[str, BossKillCount] = Field(default_factory=dict)
    raid_kill_baseline: Optional[WeeklyBaseline] = None
    weekly_raid_boss_kills: int = 0
    weekly_raid_kill_details: list[WeeklyKillDetail] = Field(default_factory=list)

    collections: Collections = Collections()
    pvp: PvpStats = PvpStats()
    reputations: dict[str, int] = Field(default_factory=dict)
    activities: Activities = Activities()
    professions: list[Profession] = Field(default_factory=list)
    warcraft_logs: Optional[WarcraftLogsSummary] = None
    gear_audit: GearAudit = GearAudit()

    @property
    def identity(self) -> CharacterIdentity:
        return CharacterIdentity(name=self.name, realm=self.realm)


# ── Roster store row ──────────────────────────────────────────────────────────

VALID_ROLES = frozenset({"tank", "healer", "dps"})


class RosterEntry(BaseModel):
    """A roster character as read from the store at the start of a pass.

    Attributes:
        character_id: DB primary key; ``None`` before insertion.
        name, realm: Identity.
        player_name: Owning player (display only).
        role: ``"tank"``, ``"healer"``, ``"dps"`` or ``None``.
        enriched: Last persisted enriched record, ``None`` if never synced.
        last_enriched_at: UTC time of the last completed enrichment.
    """

    model_config = ConfigDict(frozen=True)

    character_id: Optional[int] = None
    name: str
    realm: str
    player_name: Optional[str] = None
    role: Optional[str] = None
    enriched: Optional[EnrichedCharacter] = None
    last_enriched_at: Optional[datetime] = None

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.lower()
        if v not in VALID_ROLES:
            raise ValueError(f"Unknown role '{v}'. Must be one of {sorted(VALID_ROLES)}.")
        return v

    @property
    def identity(self) -> CharacterIdentity:
        return CharacterIdentity(name=self.name, realm=self.realm)

