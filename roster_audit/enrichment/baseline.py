"""
Weekly kill diff against a reset-scoped baseline.

Lifetime boss-kill counters only ever grow, so "killed this week" is the
difference between the current counters and a snapshot taken at (or after)
the last weekly reset.

Algorithm for ``compute_weekly_kills(current, prior_baseline, reset_date)``:
  1. No current counters → nothing to diff, no new baseline.
  2. No prior baseline, or one from a different reset week → first
     observation this lockout: zero kills, baseline = current counters.
  3. Same week → for every boss, the highest difficulty whose count went up
     (Mythic, then Heroic, then Normal) yields exactly one weekly entry.
     Decreases count as no kill.
  4. The new baseline always carries the full current counters.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from typing import Optional

from roster_audit.models.character import (
    DIFFICULTY_PRIORITY,
    BossKillCount,
    WeeklyBaseline,
    WeeklyKillDetail,
)


@dataclass(frozen=True)
class WeeklyKillResult:
    weekly_count: int = 0
    weekly_details: tuple[WeeklyKillDetail, ...] = ()
    new_baseline: Optional[WeeklyBaseline] = None


def compute_weekly_kills(
    current: Mapping[str, BossKillCount],
    prior_baseline: Optional[WeeklyBaseline],
    reset_date: date,
) -> WeeklyKillResult:
    """Diff ``current`` lifetime counters against ``prior_baseline``.

    Args:
        current: Merged lifetime counters, boss name → counts.
        prior_baseline: Last persisted baseline, if any.
        reset_date: Date of the current reset boundary.

    Returns:
        ``WeeklyKillResult`` with the bosses newly killed since the baseline
        and the baseline to persist (``None`` only when ``current`` is empty).
    """
    if not current:
        return WeeklyKillResult()

    new_baseline = WeeklyBaseline(reset_date=reset_date, bosses=dict(current))

    if prior_baseline is None or prior_baseline.reset_date != reset_date:
        return WeeklyKillResult(new_baseline=new_baseline)

    details: list[WeeklyKillDetail] = []
    for boss, counts in current.items():
        before = prior_baseline.bosses.get(boss, BossKillCount())
        for difficulty in DIFFICULTY_PRIORITY:
            if counts.get(difficulty) - before.get(difficulty) > 0:
                details.append(WeeklyKillDetail.at(boss, difficulty))
                break

    return WeeklyKillResult(
        weekly_count=len(details),
        weekly_details=tuple(details),
        new_baseline=new_baseline,
    )
