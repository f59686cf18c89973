"""
Roster Audit CLI entry point.

All commands follow this pattern:
  1. Load ``AppConfig`` via ``load_config()``.
  2. Configure logging.
  3. Validate inputs.
  4. Execute action (DB init, roster edit, sync pass, etc.).
  5. Report result to stdout.

Install and run::

    pip install -e .
    roster-audit --help
    roster-audit init-db
    roster-audit add-character Thrall Draenor --player Sam --role tank
    roster-audit sync-roster
    roster-audit start-scheduler --interval-minutes 15
"""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Optional

import typer

app = typer.Typer(
    name="roster-audit",
    help="WoW guild roster audit: multi-source character enrichment.",
    add_completion=False,
)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _load_config_or_exit(config_path: Optional[str] = None):
    """Load AppConfig, printing a friendly error and exiting on failure."""
    from roster_audit.config import load_config

    try:
        cfg_path = Path(config_path) if config_path else None
        return load_config(cfg_path)
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except Exception as exc:
        typer.echo(f"[ERROR] Config validation failed: {exc}", err=True)
        raise typer.Exit(code=1)


def _configure_logging(config):
    """Set up logging from config."""
    from roster_audit.utils.logging import configure_logging
    configure_logging(config.logging)


def _connect(config, db_path: Optional[str] = None):
    from roster_audit.db.connection import get_connection

    return get_connection(
        db_path or config.database.db_path,
        wal_mode=config.database.wal_mode,
        busy_timeout_ms=config.database.busy_timeout_ms,
    )


_DB_PATH_OPTION = typer.Option(None, "--db-path", help="Override DB path from config.")
_CONFIG_OPTION = typer.Option(None, "--config", help="Path to TOML config file.")


# ── Commands ──────────────────────────────────────────────────────────────────

@app.command("init-db")
def init_db(
    db_path: Optional[str] = _DB_PATH_OPTION,
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Initialize the SQLite database and apply the schema.

    Safe to run multiple times; all DDL uses IF NOT EXISTS.
    """
    from roster_audit.db.schema import ALL_TABLE_NAMES, apply_schema

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    target_path = db_path or config.database.db_path
    typer.echo(f"Initializing database at: {target_path}")

    with _connect(config, target_path) as conn:
        apply_schema(conn)

    typer.echo(f"  Tables: {len(ALL_TABLE_NAMES)} created/verified.")
    typer.echo("[OK] Database ready.")


@app.command("validate-config")
def validate_config(
    config_path: Optional[str] = _CONFIG_OPTION,
    show_full: bool = typer.Option(
        False,
        "--full",
        help="Print full config including all fields.",
    ),
) -> None:
    """Validate the configuration file and print parsed values.

    Exits with code 1 if the config fails validation.
    """
    from roster_audit.ingestion.tokens import load_credentials

    config = _load_config_or_exit(config_path)

    typer.echo("Configuration validated successfully.")
    typer.echo("")
    typer.echo(f"  Database path:    {config.database.db_path}")
    typer.echo(f"  Region:           {config.sources.region}")
    typer.echo(f"  Raid:             {config.raid.raid_name} (zone {config.raid.wcl_zone_id})")
    typer.echo(f"  Weekly reset:     weekday={config.reset.weekday} {config.reset.hour:02d}:00 UTC")
    typer.echo(f"  Stale threshold:  {config.sync.stale_threshold_minutes} min")
    typer.echo(f"  Concurrency:      {config.sync.concurrency}")
    typer.echo(f"  Log level:        {config.logging.level}")
    for source, creds in load_credentials().items():
        status = "configured" if creds.configured else "MISSING"
        typer.echo(f"  {source + ' creds:':<18}{status}")

    if show_full:
        typer.echo("")
        typer.echo("Full config (JSON):")
        typer.echo(json.dumps(config.model_dump(), indent=2, default=str))

    typer.echo("")
    typer.echo("[OK] Config valid.")


@app.command("add-character")
def add_character(
    name: str = typer.Argument(..., help="Character name."),
    realm: str = typer.Argument(..., help="Realm name, e.g. 'Twisting Nether'."),
    player: Optional[str] = typer.Option(None, "--player", help="Owning player."),
    role: Optional[str] = typer.Option(None, "--role", help="tank, healer or dps."),
    db_path: Optional[str] = _DB_PATH_OPTION,
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Register a character on the roster."""
    from pydantic import ValidationError

    from roster_audit.db.repositories.character_repo import CharacterRepository
    from roster_audit.models.character import RosterEntry

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    try:
        entry = RosterEntry(name=name, realm=realm, player_name=player, role=role)
    except ValidationError as exc:
        typer.echo(f"[ERROR] Invalid character: {exc}", err=True)
        raise typer.Exit(code=1)

    try:
        with _connect(config, db_path) as conn:
            character_id = CharacterRepository(conn).add(entry)
    except sqlite3.IntegrityError:
        typer.echo(f"[ERROR] {entry.identity} is already on the roster.", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"[OK] Added {entry.identity} (id={character_id}).")


@app.command("list-characters")
def list_characters(
    db_path: Optional[str] = _DB_PATH_OPTION,
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """List roster characters with last enrichment time and due flag."""
    from datetime import timedelta

    from roster_audit.db.repositories.character_repo import CharacterRepository
    from roster_audit.utils.time_utils import is_stale, utcnow

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _connect(config, db_path) as conn:
        entries = CharacterRepository(conn).list_all()

    if not entries:
        typer.echo("Roster is empty. Use 'roster-audit add-character'.")
        return

    now = utcnow()
    threshold = timedelta(minutes=config.sync.stale_threshold_minutes)
    typer.echo(f"{'Character':<32} {'Role':<7} {'iLvl':>6} {'Last enriched':<20} Due")
    typer.echo("-" * 72)
    for entry in entries:
        ilvl = f"{entry.enriched.item_level:.1f}" if entry.enriched else "-"
        last = (
            entry.last_enriched_at.strftime("%Y-%m-%d %H:%M")
            if entry.last_enriched_at else "never"
        )
        due = "yes" if is_stale(entry.last_enriched_at, now, threshold) else ""
        typer.echo(
            f"{str(entry.identity):<32} {entry.role or '-':<7} {ilvl:>6} {last:<20} {due}"
        )


@app.command("show-character")
def show_character(
    name: str = typer.Argument(..., help="Character name."),
    realm: str = typer.Argument(..., help="Realm name."),
    db_path: Optional[str] = _DB_PATH_OPTION,
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Print a character's enriched record as JSON."""
    from roster_audit.db.repositories.character_repo import (
        CharacterNotFoundError,
        CharacterRepository,
    )
    from roster_audit.models.character import CharacterIdentity

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    try:
        with _connect(config, db_path) as conn:
            entry = CharacterRepository(conn).get_by_identity(
                CharacterIdentity(name=name, realm=realm)
            )
    except CharacterNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    if entry.enriched is None:
        typer.echo(f"{entry.identity} has not been enriched yet.")
        return
    typer.echo(entry.enriched.model_dump_json(indent=2))


@app.command("set-raid")
def set_raid(
    raid_name: str = typer.Option(..., "--name", help="Raid display name."),
    raid_slug: str = typer.Option(..., "--slug", help="Raider.IO raid slug."),
    zone_id: Optional[int] = typer.Option(None, "--zone-id", help="Warcraft Logs zone ID."),
    total_bosses: int = typer.Option(8, "--total-bosses", help="Boss count."),
    db_path: Optional[str] = _DB_PATH_OPTION,
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Store the raid tracked by subsequent sync passes."""
    from roster_audit.config import RaidConfig
    from roster_audit.db.repositories.config_repo import ConfigurationRepository

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    raid = RaidConfig(
        raid_name=raid_name,
        raid_slug=raid_slug,
        wcl_zone_id=zone_id,
        total_bosses=total_bosses,
    )
    with _connect(config, db_path) as conn:
        ConfigurationRepository(conn).set_raid_config(raid)

    typer.echo(f"[OK] Current raid set to {raid.raid_name} ({raid.raid_slug}).")


@app.command("sync-roster")
def sync_roster(
    threshold_minutes: Optional[int] = typer.Option(
        None,
        "--threshold-minutes",
        help="Staleness threshold. Uses config default if omitted.",
    ),
    concurrency: Optional[int] = typer.Option(
        None,
        "--concurrency",
        help="Characters enriched in parallel. Uses config default if omitted.",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="List due characters without fetching anything.",
    ),
    db_path: Optional[str] = _DB_PATH_OPTION,
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Run one sync pass over every due character.

    Prints ``{synced, failed, total}``.  Exits with code 1 if the pass
    itself fails (e.g. the roster cannot be read).
    """
    from roster_audit.pipeline.sync import SyncRosterStage

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    if concurrency is not None and concurrency < 1:
        typer.echo("[ERROR] --concurrency must be >= 1.", err=True)
        raise typer.Exit(code=1)

    stage = SyncRosterStage(config=config, db_path=db_path)
    try:
        run = stage.run(
            threshold_minutes=threshold_minutes,
            concurrency=concurrency,
            dry_run=dry_run,
        )
    except Exception as exc:
        typer.echo(f"[ERROR] Sync pass failed: {exc}", err=True)
        raise typer.Exit(code=1)

    if dry_run:
        typer.echo(f"[DRY RUN] {len(stage.due)} character(s) due; nothing fetched.")
    typer.echo(json.dumps(run.summary()))


@app.command("sync-history")
def sync_history(
    limit: int = typer.Option(10, "--limit", help="Number of runs to show."),
    db_path: Optional[str] = _DB_PATH_OPTION,
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Show recent sync passes, newest first."""
    from roster_audit.db.repositories.sync_run_repo import SyncRunRepository

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _connect(config, db_path) as conn:
        runs = SyncRunRepository(conn).get_recent_runs(limit)

    if not runs:
        typer.echo("No sync runs recorded yet.")
        return
    for run in runs:
        s = run.summary()
        line = (
            f"{run.started_at:%Y-%m-%d %H:%M:%S}  {run.status:<8} "
            f"synced={s['synced']} failed={s['failed']} total={s['total']}"
        )
        if run.error_message:
            line += f"  error={run.error_message}"
        typer.echo(line)


@app.command("start-scheduler")
def start_scheduler(
    interval_minutes: int = typer.Option(
        15,
        "--interval-minutes",
        help="Minutes between sync passes.",
    ),
    skip_initial: bool = typer.Option(
        False,
        "--skip-initial",
        help="Wait one interval before the first pass.",
    ),
    db_path: Optional[str] = _DB_PATH_OPTION,
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Run sync passes on an interval until interrupted."""
    from roster_audit.scheduler import SchedulerDaemon

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    try:
        daemon = SchedulerDaemon(
            db_path=db_path or config.database.db_path,
            interval_minutes=interval_minutes,
            skip_initial=skip_initial,
            config_path=config_path,
        )
    except (ValueError, RuntimeError) as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    daemon.start()


# ── Entry point ───────────────────────────────────────────────────────────────

if __name__ == "__main__":
    app()
