"""
Gear audit: upgrade tracks, enchant and gem coverage, tier pieces, and
raid great-vault slots.

Equipment comes from the Blizzard profile only.  When a pass has no fresh
equipment the previous audit's per-item facts are kept, but the overall
upgrade track and the vault are always recomputed from this pass's item
level and weekly kills.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Optional

from roster_audit.models.character import (
    EnchantAudit,
    GearAudit,
    SecondaryStats,
    SlotAudit,
    VaultSlot,
    WeeklyKillDetail,
)
from roster_audit.models.sources import EquippedItem

# (minimum item level, track) checked top-down.
UPGRADE_TRACKS: tuple[tuple[int, str], ...] = (
    (639, "Mythic"),
    (626, "Heroic"),
    (613, "Champion"),
    (590, "Veteran"),
    (558, "Adventurer"),
)
DEFAULT_TRACK = "Explorer"

# Weekly boss kills needed to unlock each raid vault slot.
RAID_VAULT_THRESHOLDS: tuple[int, ...] = (2, 4, 6)

# EnchantAudit field → internal slot key.
_ENCHANT_SLOTS: dict[str, str] = {
    "cloak": "back",
    "chest": "chest",
    "wrists": "wrist",
    "legs": "legs",
    "feet": "feet",
    "ring1": "finger1",
    "ring2": "finger2",
    "weapon": "mainhand",
}


def determine_track(ilvl: float) -> str:
    """Upgrade track name for an item level.

    >>> determine_track(640)
    'Mythic'
    >>> determine_track(100)
    'Explorer'
    """
    for minimum, track in UPGRADE_TRACKS:
        if ilvl >= minimum:
            return track
    return DEFAULT_TRACK


def empty_item_tracks() -> dict[str, int]:
    return {track.lower(): 0 for _, track in UPGRADE_TRACKS} | {DEFAULT_TRACK.lower(): 0}


def raid_vault(details: Sequence[WeeklyKillDetail]) -> list[VaultSlot]:
    """Three raid vault slots from this week's kills.

    Slot *n* unlocks at the *n*-th threshold and is labelled with the
    difficulty of the kill at that rank, kills ordered hardest first.
    """
    ordered = sorted(details, key=lambda d: d.difficulty_id, reverse=True)
    slots: list[VaultSlot] = []
    for threshold in RAID_VAULT_THRESHOLDS:
        if len(ordered) >= threshold:
            slots.append(VaultSlot(label=ordered[threshold - 1].difficulty))
        else:
            slots.append(VaultSlot())
    return slots


def _audit_items(items: Sequence[EquippedItem]) -> dict:
    tracks = empty_item_tracks()
    slots: dict[str, SlotAudit] = {}
    sockets = enchanted = missing = tier = 0

    for item in items:
        track = determine_track(item.ilvl)
        tracks[track.lower()] += 1
        sockets += item.gems_count
        if item.is_enchantable:
            if item.has_enchant:
                enchanted += 1
            else:
                missing += 1
        if item.is_tier:
            tier += 1
        slots[item.slot] = SlotAudit(
            name=item.name,
            ilvl=item.ilvl,
            track=track,
            has_enchant=item.has_enchant,
            is_tier=item.is_tier,
            gems_count=item.gems_count,
        )

    fresh = {item.slot: item for item in items}
    enchants = EnchantAudit(
        missing_count=missing,
        **{
            name: bool(fresh.get(slot) and fresh[slot].has_enchant)
            for name, slot in _ENCHANT_SLOTS.items()
        },
    )
    return {
        "sockets": sockets,
        "enchantments": enchanted,
        "tier_count": tier,
        "item_tracks": tracks,
        "slots": slots,
        "enchants": enchants,
    }


def build_gear_audit(
    item_level: float,
    equipped_items: Optional[Sequence[EquippedItem]],
    stats: Optional[SecondaryStats],
    weekly_details: Sequence[WeeklyKillDetail],
    prior: Optional[GearAudit] = None,
) -> GearAudit:
    """Recompute the gear audit for this pass.

    Args:
        item_level: Merged equipped item level.
        equipped_items: Fresh equipment, or ``None`` to keep the prior items.
            Fresh equipment replaces every slot; an unlisted slot is empty.
        stats: Fresh secondary stats, or ``None`` to keep the prior stats.
        weekly_details: Final weekly kill list (drives the vault).
        prior: Previously persisted audit.
    """
    base = prior or GearAudit()
    update: dict = {
        "upgrade_track": determine_track(item_level),
        "raid_vault": raid_vault(weekly_details),
    }
    if equipped_items is not None:
        update.update(_audit_items(equipped_items))
    if stats is not None:
        update["stats"] = stats
    return base.model_copy(update=update)
