"""
Repository for roster characters and their enriched state.

This is the roster store port used by a sync pass:
  - ``list_all()``          — every roster entry with its last enriched state
  - ``update_enriched()``   — replace one character's enriched JSON + timestamp

The enriched record is stored as a single JSON document and always replaced
wholesale.  Rows whose stored JSON no longer validates are returned with
``enriched=None`` (logged) so one corrupt row does not block the pass.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from typing import Optional

from pydantic import ValidationError

from roster_audit.db.repositories.base import BaseRepository, from_iso, to_iso
from roster_audit.models.character import CharacterIdentity, EnrichedCharacter, RosterEntry

logger = logging.getLogger(__name__)


class CharacterNotFoundError(LookupError):
    """Raised when a name/realm pair is not on the roster."""


class CharacterRepository(BaseRepository):
    """Read/write access to the ``characters`` table."""

    def add(self, entry: RosterEntry) -> int:
        """Register a character on the roster.

        Returns:
            The new ``character_id``.

        Raises:
            sqlite3.IntegrityError: If the name/realm pair already exists
                (case-insensitive).
        """
        self.execute(
            """
            INSERT INTO characters (
                character_name, realm, player_name, role,
                enriched_data, last_enriched_at
            ) VALUES (?, ?, ?, ?, ?, ?);
            """,
            (
                entry.name,
                entry.realm,
                entry.player_name,
                entry.role,
                entry.enriched.model_dump_json() if entry.enriched else None,
                to_iso(entry.last_enriched_at),
            ),
        )
        return self.last_insert_rowid()

    def get_by_identity(self, identity: CharacterIdentity) -> RosterEntry:
        """Fetch one character by case-insensitive name + realm.

        Raises:
            CharacterNotFoundError: If no such character is on the roster.
        """
        row = self.fetchone(
            "SELECT * FROM characters WHERE character_name = ? AND realm = ?;",
            (identity.name, identity.realm),
        )
        if row is None:
            raise CharacterNotFoundError(f"{identity} is not on the roster.")
        return _row_to_entry(row)

    def list_all(self) -> list[RosterEntry]:
        """Return every roster entry, oldest enrichment first (never-synced first)."""
        rows = self.fetchall(
            """
            SELECT * FROM characters
            ORDER BY last_enriched_at IS NOT NULL, last_enriched_at, character_id;
            """
        )
        return [_row_to_entry(r) for r in rows]

    def update_enriched(
        self,
        character_id: int,
        enriched: EnrichedCharacter,
        enriched_at: datetime,
    ) -> None:
        """Replace a character's enriched state and stamp ``last_enriched_at``.

        Raises:
            CharacterNotFoundError: If ``character_id`` does not exist.
        """
        cur = self.execute(
            """
            UPDATE characters SET
                enriched_data    = ?,
                last_enriched_at = ?
            WHERE character_id = ?;
            """,
            (enriched.model_dump_json(), to_iso(enriched_at), character_id),
        )
        if cur.rowcount == 0:
            raise CharacterNotFoundError(f"character_id={character_id} not found.")

    def count(self) -> int:
        row = self.fetchone("SELECT COUNT(*) AS n FROM characters;")
        return int(row["n"]) if row else 0


def _row_to_entry(row: sqlite3.Row) -> RosterEntry:
    enriched: Optional[EnrichedCharacter] = None
    if row["enriched_data"]:
        try:
            enriched = EnrichedCharacter.model_validate_json(row["enriched_data"])
        except ValidationError as exc:
            logger.warning(
                "Stored enriched data for %s-%s is invalid, treating as empty: %s",
                row["character_name"], row["realm"], exc,
            )
    return RosterEntry(
        character_id=row["character_id"],
        name=row["character_name"],
        realm=row["realm"],
        player_name=row["player_name"],
        role=row["role"],
        enriched=enriched,
        last_enriched_at=from_iso(row["last_enriched_at"]),
    )
