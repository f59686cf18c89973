"""
Cross-source reconciliation into one ``EnrichedCharacter``.

Field groups and their rules (documented once here, applied in
``merge_character``):

  Boss-kill counters      per boss, per difficulty maximum across sources
  Weekly kill details     counter-diff list, replaced by the log-derived list
                          only when the latter is strictly longer
  item_level              Blizzard → Raider.IO → prior → 0
  spec                    Raider.IO → Blizzard → prior
  thumbnail_url           Blizzard → Raider.IO → prior
  race, guild             Blizzard → prior
  M+ fields, raid summary Raider.IO → prior
  collections, pvp,
  reputations,
  professions             Blizzard → prior
  activities              quest flags from Blizzard, run stats from Raider.IO,
                          each half falling back to prior
  warcraft_logs           Warcraft Logs summary → prior
  gear_audit              see ``gear_audit.build_gear_audit``

"prior" is the previously persisted record: a value that no source reports
this pass never erases a known one.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Optional

from roster_audit.enrichment.baseline import WeeklyKillResult
from roster_audit.enrichment.gear_audit import build_gear_audit
from roster_audit.models.character import (
    Activities,
    BossKillCount,
    CharacterIdentity,
    EnrichedCharacter,
    MythicPlusRun,
    WeeklyKillDetail,
)
from roster_audit.models.sources import SourceRecords
from roster_audit.utils.coalesce import coalesce

WORLD_QUEST_CAP = 999

# Weekly event → quest IDs that mark it done (either counts).
EVENT_QUESTS: dict[str, tuple[int, ...]] = {
    "theater": (82946, 84042),
    "awakening": (82710, 82787),
    "worldsoul": (82458, 82459),
    "memories": (84488, 84489),
}


def merge_boss_kills(
    *sources: Optional[Mapping[str, BossKillCount]],
) -> dict[str, BossKillCount]:
    """Per boss, per difficulty maximum over every reporting source.

    >>> merge_boss_kills({"Gallywix": BossKillCount(heroic=2)},
    ...                  {"Gallywix": BossKillCount(heroic=1)})["Gallywix"].heroic
    2
    """
    merged: dict[str, BossKillCount] = {}
    for counters in sources:
        for boss, counts in (counters or {}).items():
            seen = merged.get(boss)
            if seen is None:
                merged[boss] = counts
                continue
            merged[boss] = BossKillCount(
                normal=max(seen.normal, counts.normal),
                heroic=max(seen.heroic, counts.heroic),
                mythic=max(seen.mythic, counts.mythic),
            )
    return merged


def pick_weekly_details(
    counter_diff: Sequence[WeeklyKillDetail],
    log_derived: Sequence[WeeklyKillDetail],
) -> list[WeeklyKillDetail]:
    """The longer of the two weekly lists; the counter diff wins ties.

    Known approximation: when both lists have the same length but name
    different bosses, the log-derived view is discarded.
    """
    if len(log_derived) > len(counter_diff):
        return list(log_derived)
    return list(counter_diff)


def build_activities(
    quest_ids: Optional[frozenset[int]],
    recent_runs: Optional[Sequence[MythicPlusRun]],
    prior: Activities,
) -> Activities:
    update: dict = {}
    if quest_ids is not None:
        update["world_quests"] = min(len(quest_ids), WORLD_QUEST_CAP)
        for event, ids in EVENT_QUESTS.items():
            update[event] = any(q in quest_ids for q in ids)
    if recent_runs is not None:
        update["mythic_dungeons"] = len(recent_runs)
        update["highest_mplus"] = max((r.mythic_level for r in recent_runs), default=0)
    return prior.model_copy(update=update)


def merge_character(
    identity: CharacterIdentity,
    records: SourceRecords,
    prior: Optional[EnrichedCharacter],
    boss_kills: Mapping[str, BossKillCount],
    weekly: WeeklyKillResult,
) -> EnrichedCharacter:
    """Reduce one pass's source records (plus prior state) to the merged record.

    Args:
        identity: Character being enriched.
        records: Per-source records; ``None`` entries are soft failures.
        prior: Last persisted record, ``None`` on first sync.
        boss_kills: Merged lifetime counters (``merge_boss_kills``).
        weekly: Diff of ``boss_kills`` against the stored baseline.
    """
    blizz = records.blizzard
    rio = records.raiderio
    wcl = records.warcraftlogs
    base = prior or EnrichedCharacter(name=identity.name, realm=identity.realm)

    details = pick_weekly_details(
        weekly.weekly_details,
        wcl.weekly_raid_kills if wcl else (),
    )
    item_level = float(coalesce(
        blizz and blizz.item_level,
        rio and rio.item_level,
        base.item_level,
        default=0.0,
    ))

    return EnrichedCharacter(
        name=identity.name,
        realm=identity.realm,
        item_level=item_level,
        spec=coalesce(rio and rio.spec, blizz and blizz.spec, base.spec),
        race=coalesce(blizz and blizz.race, base.race),
        thumbnail_url=coalesce(
            blizz and blizz.thumbnail_url, rio and rio.thumbnail_url, base.thumbnail_url
        ),
        guild=coalesce(blizz and blizz.guild, base.guild),
        mplus_rating=coalesce(rio and rio.mplus_rating, base.mplus_rating),
        weekly_ten_plus_count=coalesce(
            rio and rio.weekly_ten_plus_count, base.weekly_ten_plus_count
        ),
        recent_runs=list(coalesce(rio and rio.recent_runs, base.recent_runs)),
        raid_progression=coalesce(rio and rio.raid_progression, base.raid_progression),
        mplus_ranks=coalesce(rio and rio.mplus_ranks, base.mplus_ranks),
        raid_boss_kills=dict(boss_kills) or base.raid_boss_kills,
        raid_kill_baseline=weekly.new_baseline or base.raid_kill_baseline,
        weekly_raid_boss_kills=len(details),
        weekly_raid_kill_details=details,
        collections=coalesce(blizz and blizz.collections, base.collections),
        pvp=coalesce(blizz and blizz.pvp, base.pvp),
        reputations=coalesce(blizz and blizz.reputations, base.reputations),
        activities=build_activities(
            blizz.completed_quest_ids if blizz else None,
            rio.recent_runs if rio else None,
            base.activities,
        ),
        professions=list(coalesce(blizz and blizz.professions, base.professions)),
        warcraft_logs=coalesce(wcl and wcl.summary, base.warcraft_logs),
        gear_audit=build_gear_audit(
            item_level,
            blizz.equipped_items if blizz else None,
            blizz.stats if blizz else None,
            details,
            base.gear_audit,
        ),
    )
