"""
Time utilities for weekly-reset-aware progress tracking.

Key concepts:
  - Reset boundary: the fixed weekly UTC instant (weekday + hour) at which
    raid lockouts, the great vault, and every "this week" counter restart.
  - Reset date: the calendar date of that boundary, used as the identity of
    a lockout week when comparing stored baselines.

Every function here is pure given its ``now`` argument so weekly diffs are
reproducible in tests.  Naive datetimes are interpreted as UTC.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

# datetime.weekday(): Monday=0 ... Sunday=6
DEFAULT_RESET_WEEKDAY = 2   # Wednesday (EU)
DEFAULT_RESET_HOUR = 8      # 08:00 UTC


def utcnow() -> datetime:
    """Return the current UTC datetime with timezone info.

    Prefer this over ``datetime.utcnow()`` (which returns naive datetimes).
    """
    return datetime.now(tz=timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime (naive input is assumed UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def reset_boundary(
    now: datetime,
    weekday: int = DEFAULT_RESET_WEEKDAY,
    hour: int = DEFAULT_RESET_HOUR,
) -> datetime:
    """Return the most recent weekly reset at or before ``now``.

    On the reset weekday itself, before ``hour``, the boundary is the
    previous week's reset, not today's.  ``reset_boundary(b) == b`` for any
    boundary ``b``.

    Args:
        now: Reference instant.
        weekday: Reset weekday, ``datetime.weekday()`` numbering.
        hour: Reset hour in UTC.

    Returns:
        Aware UTC datetime on ``weekday`` at ``hour``:00:00.

    Raises:
        ValueError: If ``weekday`` or ``hour`` is out of range.
    """
    if not 0 <= weekday <= 6:
        raise ValueError(f"weekday must be in 0..6, got {weekday}.")
    if not 0 <= hour <= 23:
        raise ValueError(f"hour must be in 0..23, got {hour}.")

    now = ensure_utc(now)
    days_back = (now.weekday() - weekday) % 7
    candidate = now.replace(hour=hour, minute=0, second=0, microsecond=0) - timedelta(
        days=days_back
    )
    if candidate > now:
        candidate -= timedelta(days=7)
    return candidate


def reset_date(
    now: datetime,
    weekday: int = DEFAULT_RESET_WEEKDAY,
    hour: int = DEFAULT_RESET_HOUR,
) -> date:
    """Return the calendar date (UTC) of the current reset boundary."""
    return reset_boundary(now, weekday, hour).date()


def to_epoch_ms(value: datetime) -> int:
    """Convert a datetime to integer epoch milliseconds (log timestamps use ms)."""
    return int(ensure_utc(value).timestamp() * 1000)


def is_stale(
    last_enriched_at: datetime | None,
    now: datetime,
    threshold: timedelta,
) -> bool:
    """Return ``True`` if a record was never enriched or is older than ``threshold``."""
    if last_enriched_at is None:
        return True
    return ensure_utc(last_enriched_at) < ensure_utc(now) - threshold
