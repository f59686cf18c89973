"""
Stale-set selection: which roster characters are due for enrichment.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime, timedelta

from roster_audit.models.character import RosterEntry
from roster_audit.utils.time_utils import is_stale, utcnow

logger = logging.getLogger(__name__)

DEFAULT_STALE_THRESHOLD = timedelta(hours=1)


def select_due(
    characters: Iterable[RosterEntry],
    threshold: timedelta = DEFAULT_STALE_THRESHOLD,
    now: datetime | None = None,
) -> list[RosterEntry]:
    """Characters never enriched, or last enriched before ``now - threshold``.

    Input order is preserved.  Entries sharing an identity key (case and
    realm spelling folded, e.g. "Twisting Nether" and "twisting-nether") are
    dropped after the first, with a warning, so no two workers write the
    same record.
    """
    now = now or utcnow()
    seen: set[str] = set()
    due: list[RosterEntry] = []
    for entry in characters:
        key = entry.identity.key
        if key in seen:
            logger.warning(
                "Skipping %s-%s (id=%s): duplicate of roster entry %s.",
                entry.name, entry.realm, entry.character_id, key,
                extra={"character": key},
            )
            continue
        seen.add(key)
        if is_stale(entry.last_enriched_at, now, threshold):
            due.append(entry)
    return due
