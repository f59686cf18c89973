"""
Blizzard Profile API client.

Fetches every character sub-resource concurrently and normalizes the payloads
into one ``BlizzardProfileRecord``.

API base:  https://{region}.api.blizzard.com/profile/wow/character/{realm}/{name}
Namespace: profile-{region}
Auth:      Bearer token from ``TokenProvider`` (client credentials)

Sub-endpoints fetched per character:
  (summary)            item level, spec, race, guild, media link, titles
  /statistics          crit / haste / mastery / versatility percentages
  /achievements        total achievement count
  /professions         primary professions
  /equipment           equipped items (enchants, gems, tier set)
  /pvp-summary         honor level, honorable kills
  /pvp-bracket/*       solo shuffle, 2v2, 3v3 ratings and games played
  /reputations         tracked faction standings
  /quests/completed    completed quest IDs (weekly event flags)
  /collections/*       mounts, pets, toys
  /encounters/raids    lifetime per-boss kill counters for the tracked raid

Each sub-endpoint fails on its own: a 404 on ``/pvp-bracket/3v3`` (character
never played the bracket) leaves that field unreported without discarding
the rest.  The record is ``None`` only when every endpoint failed.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, ClassVar, Optional

import httpx

from roster_audit.config import RaidConfig, SourcesConfig
from roster_audit.ingestion.base import SourceClient
from roster_audit.ingestion.tokens import SOURCE_BLIZZARD
from roster_audit.models.character import (
    BossKillCount,
    CharacterIdentity,
    Collections,
    Profession,
    PvpRatings,
    PvpStats,
    SecondaryStats,
)
from roster_audit.models.sources import BlizzardProfileRecord, EquippedItem
from roster_audit.utils.coalesce import coalesce, dig, positive_or_none

logger = logging.getLogger(__name__)

# Blizzard slot type → internal slot key.  Shirt and tabard are not audited.
SLOT_MAP: dict[str, str] = {
    "HEAD": "head",
    "NECK": "neck",
    "SHOULDER": "shoulder",
    "BACK": "back",
    "CHEST": "chest",
    "WRIST": "wrist",
    "HANDS": "hands",
    "WAIST": "waist",
    "LEGS": "legs",
    "FEET": "feet",
    "FINGER_1": "finger1",
    "FINGER_2": "finger2",
    "TRINKET_1": "trinket1",
    "TRINKET_2": "trinket2",
    "MAIN_HAND": "mainhand",
    "OFF_HAND": "offhand",
}

ENCHANTABLE_TYPES: frozenset[str] = frozenset({
    "BACK", "CHEST", "WRIST", "LEGS", "FEET", "FINGER_1", "FINGER_2", "MAIN_HAND",
})

TIER_TYPES: frozenset[str] = frozenset({"HEAD", "SHOULDER", "CHEST", "HANDS", "LEGS"})

# Faction display name → reputation key.
REPUTATION_FACTIONS: dict[str, str] = {
    "Council of Dornogal": "dornogal",
    "Assembly of the Deeps": "deeps",
    "Hallowfall Arathi": "arathi",
    "The Severed Threads": "threads",
    "Beledar's Spawn": "karesh",
    "Brann Bronzebeard": "vandals",
    "Cartels of the Undermine": "undermine",
    "Gallagio Loyalty Rewards": "gallagio",
}

# Encounter-progress mode type → BossKillCount field.
_MODE_FIELDS: dict[str, str] = {
    "NORMAL": "normal",
    "HEROIC": "heroic",
    "MYTHIC": "mythic",
}


class BlizzardProfileClient(SourceClient[BlizzardProfileRecord]):
    """Profile API client producing ``BlizzardProfileRecord``.

    Args:
        http: Shared async HTTP client.
        sources: Region and locale.
        raid: Tracked raid; its ``raid_name`` selects the encounter counters.
        timeout: Per-request timeout in seconds.
    """

    source = SOURCE_BLIZZARD

    BASE_URL_TEMPLATE: ClassVar[str] = "https://{region}.api.blizzard.com"
    ENDPOINTS: ClassVar[dict[str, str]] = {
        "summary": "",
        "statistics": "/statistics",
        "achievements": "/achievements",
        "professions": "/professions",
        "equipment": "/equipment",
        "pvp_summary": "/pvp-summary",
        "pvp_shuffle": "/pvp-bracket/shuffle",
        "pvp_2v2": "/pvp-bracket/2v2",
        "pvp_3v3": "/pvp-bracket/3v3",
        "reputations": "/reputations",
        "quests": "/quests/completed",
        "mounts": "/collections/mounts",
        "pets": "/collections/pets",
        "toys": "/collections/toys",
        "raids": "/encounters/raids",
    }

    def __init__(
        self,
        http: httpx.AsyncClient,
        sources: SourcesConfig,
        raid: RaidConfig,
        timeout: float = 15.0,
    ) -> None:
        super().__init__(http, sources, timeout)
        self.raid = raid

    def character_url(self, identity: CharacterIdentity) -> str:
        base = self.BASE_URL_TEMPLATE.format(region=self.sources.region)
        return f"{base}/profile/wow/character/{identity.realm_slug}/{identity.name_slug}"

    async def _fetch(
        self, identity: CharacterIdentity, token: str
    ) -> Optional[BlizzardProfileRecord]:
        url = self.character_url(identity)
        params = {
            "namespace": f"profile-{self.sources.region}",
            "locale": self.sources.locale,
        }
        headers = {"Authorization": f"Bearer {token}"}

        names = list(self.ENDPOINTS)
        payloads = await asyncio.gather(
            *(self._get_json(url + path, params, headers) for path in self.ENDPOINTS.values())
        )
        data = dict(zip(names, payloads))

        if all(payload is None for payload in payloads):
            logger.info("blizzard: no profile data for %s", identity.key)
            return None

        missing = [name for name, payload in data.items() if payload is None]
        if missing:
            logger.debug("blizzard: %s missing endpoints %s", identity.key, missing)

        return build_profile_record(data, self.raid.raid_name)


# ── Normalization ─────────────────────────────────────────────────────────────


def build_profile_record(data: dict[str, Any], raid_name: str) -> BlizzardProfileRecord:
    """Assemble a record from the raw endpoint payloads (``None`` = endpoint failed)."""
    summary = data.get("summary")
    return BlizzardProfileRecord(
        item_level=positive_or_none(dig(summary, "equipped_item_level")),
        spec=dig(summary, "active_spec", "name"),
        race=dig(summary, "race", "name"),
        guild=dig(summary, "guild", "name"),
        thumbnail_url=dig(summary, "character_media", "href"),
        equipped_items=parse_equipment(data.get("equipment")),
        stats=parse_stats(data.get("statistics")),
        collections=parse_collections(
            summary, data.get("achievements"), data.get("mounts"),
            data.get("pets"), data.get("toys"),
        ),
        pvp=parse_pvp(
            data.get("pvp_summary"), data.get("pvp_shuffle"),
            data.get("pvp_2v2"), data.get("pvp_3v3"),
        ),
        reputations=parse_reputations(data.get("reputations")),
        completed_quest_ids=parse_completed_quests(data.get("quests")),
        professions=parse_professions(data.get("professions")),
        raid_boss_kills=parse_raid_encounters(data.get("raids"), raid_name),
    )


def parse_equipment(payload: Optional[dict[str, Any]]) -> Optional[tuple[EquippedItem, ...]]:
    if payload is None:
        return None
    items: list[EquippedItem] = []
    for raw in payload.get("equipped_items") or []:
        slot_type = dig(raw, "slot", "type")
        slot = SLOT_MAP.get(slot_type or "")
        if slot is None:
            continue
        sockets = raw.get("sockets") or []
        items.append(EquippedItem(
            slot=slot,
            slot_type=slot_type,
            name=raw.get("name") or "",
            ilvl=int(dig(raw, "level", "value") or 0),
            has_enchant=bool(raw.get("enchantments")),
            gems_count=sum(1 for s in sockets if s.get("item")),
            is_tier=slot_type in TIER_TYPES and raw.get("set") is not None,
            is_enchantable=slot_type in ENCHANTABLE_TYPES,
        ))
    return tuple(items)


def parse_stats(payload: Optional[dict[str, Any]]) -> Optional[SecondaryStats]:
    if payload is None:
        return None
    crit = coalesce(
        dig(payload, "melee_crit", "value"),
        dig(payload, "spell_crit", "value"),
        dig(payload, "ranged_crit", "value"),
        default=0.0,
    )
    haste = coalesce(
        dig(payload, "melee_haste", "value"),
        dig(payload, "spell_haste", "value"),
        dig(payload, "ranged_haste", "value"),
        default=0.0,
    )
    return SecondaryStats(
        crit_pct=round(float(crit), 2),
        haste_pct=round(float(haste), 2),
        mastery_pct=round(float(dig(payload, "mastery", "value") or 0.0), 2),
        vers_pct=round(float(payload.get("versatility_damage_done_bonus") or 0.0), 2),
    )


def parse_collections(
    summary: Optional[dict[str, Any]],
    achievements: Optional[dict[str, Any]],
    mounts: Optional[dict[str, Any]],
    pets: Optional[dict[str, Any]],
    toys: Optional[dict[str, Any]],
) -> Optional[Collections]:
    if all(p is None for p in (achievements, mounts, pets, toys)):
        return None
    return Collections(
        mounts=len(dig(mounts, "mounts") or []),
        pets=len(dig(pets, "pets") or []),
        toys=len(dig(toys, "toys") or []),
        achievements=int(dig(achievements, "total_quantity") or 0),
        titles=len(dig(summary, "titles") or []),
    )


def _bracket(payload: Optional[dict[str, Any]]) -> tuple[int, int, int]:
    """(rating, season games, weekly games) for one PvP bracket."""
    return (
        int(dig(payload, "rating") or 0),
        int(dig(payload, "season_match_statistics", "played") or 0),
        int(dig(payload, "weekly_match_statistics", "played") or 0),
    )


def parse_pvp(
    summary: Optional[dict[str, Any]],
    shuffle: Optional[dict[str, Any]],
    two: Optional[dict[str, Any]],
    three: Optional[dict[str, Any]],
) -> Optional[PvpStats]:
    if all(p is None for p in (summary, shuffle, two, three)):
        return None
    brackets = {"solo": _bracket(shuffle), "v2": _bracket(two), "v3": _bracket(three)}
    return PvpStats(
        honor_level=int(dig(summary, "honor_level") or 0),
        kills=int(dig(summary, "honorable_kills") or 0),
        ratings=PvpRatings(**{name: b[0] for name, b in brackets.items()}),
        season_games=sum(b[1] for b in brackets.values()),
        weekly_games=sum(b[2] for b in brackets.values()),
    )


def parse_reputations(payload: Optional[dict[str, Any]]) -> Optional[dict[str, int]]:
    """Tracked factions only; untracked or unseen factions report 0."""
    if payload is None:
        return None
    result = {key: 0 for key in REPUTATION_FACTIONS.values()}
    for rep in payload.get("reputations") or []:
        key = REPUTATION_FACTIONS.get(dig(rep, "faction", "name") or "")
        if key is None:
            continue
        standing = rep.get("standing") or {}
        result[key] = int(coalesce(standing.get("value"), standing.get("raw"), default=0))
    return result


def parse_completed_quests(payload: Optional[dict[str, Any]]) -> Optional[frozenset[int]]:
    if payload is None:
        return None
    return frozenset(
        int(q["id"]) for q in payload.get("quests") or [] if isinstance(q, dict) and "id" in q
    )


def parse_professions(payload: Optional[dict[str, Any]]) -> Optional[tuple[Profession, ...]]:
    if payload is None:
        return None
    result: list[Profession] = []
    for prof in payload.get("primaries") or []:
        name = dig(prof, "profession", "name")
        if not name:
            continue
        rank = coalesce(prof.get("rank"), dig(prof, "tiers", -1, "skill_points"), default=0)
        result.append(Profession(name=name, rank=int(rank)))
    return tuple(result)


def parse_raid_encounters(
    payload: Optional[dict[str, Any]], raid_name: str
) -> Optional[dict[str, BossKillCount]]:
    """Lifetime kill counters for ``raid_name``.

    Returns ``None`` when the endpoint failed, and ``{}`` when it answered but
    the character has never set foot in the raid.
    """
    if payload is None:
        return None
    wanted = raid_name.strip().lower()
    counters: dict[str, dict[str, int]] = {}
    for expansion in payload.get("expansions") or []:
        for instance in expansion.get("instances") or []:
            if (dig(instance, "instance", "name") or "").strip().lower() != wanted:
                continue
            for mode in instance.get("modes") or []:
                field_name = _MODE_FIELDS.get(dig(mode, "difficulty", "type") or "")
                if field_name is None:
                    continue
                for encounter in dig(mode, "progress", "encounters") or []:
                    boss = dig(encounter, "encounter", "name")
                    if not boss:
                        continue
                    kills = int(encounter.get("completed_count") or 0)
                    counters.setdefault(boss, {})[field_name] = kills
    return {boss: BossKillCount(**fields) for boss, fields in counters.items()}
