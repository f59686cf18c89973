"""
Application configuration management.

Load order (each layer overrides the previous):
  1. ``config/default.toml``      — committed static defaults
  2. ``config/local.toml``        — optional local overrides (gitignored)
  3. ``.env``                     — local secrets and env overrides (gitignored)
  4. Environment variables        — ``ROSTER_AUDIT_*`` prefix

Entry point: ``load_config(config_path=None) -> AppConfig``

Upstream API credentials are NOT part of ``AppConfig``; they are read from
the environment by ``roster_audit.ingestion.tokens.load_credentials()``.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator

# ── Sub-config models ─────────────────────────────────────────────────────────


class DatabaseConfig(BaseModel):
    """SQLite database connection settings."""

    model_config = ConfigDict(frozen=True)

    db_path: str = "data/db/roster_audit.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000


class LoggingConfig(BaseModel):
    """Logging output settings."""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    log_file: str = "data/logs/roster_audit.log"
    json_format: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"Log level must be one of {sorted(valid)}, got '{v}'.")
        return v.upper()


class SyncConfig(BaseModel):
    """Roster sync pass parameters."""

    model_config = ConfigDict(frozen=True)

    stale_threshold_minutes: int = 60
    concurrency: int = 5
    request_timeout_seconds: float = 15.0

    @field_validator("concurrency")
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"concurrency must be >= 1, got {v}.")
        return v

    @field_validator("stale_threshold_minutes")
    @classmethod
    def validate_threshold(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"stale_threshold_minutes must be >= 0, got {v}.")
        return v


class ResetConfig(BaseModel):
    """Weekly reset cutover in UTC.

    ``weekday`` follows ``datetime.weekday()`` (Monday=0).  The EU reset is
    Wednesday 08:00 UTC.
    """

    model_config = ConfigDict(frozen=True)

    weekday: int = 2
    hour: int = 8

    @field_validator("weekday")
    @classmethod
    def validate_weekday(cls, v: int) -> int:
        if not 0 <= v <= 6:
            raise ValueError(f"weekday must be in 0..6, got {v}.")
        return v

    @field_validator("hour")
    @classmethod
    def validate_hour(cls, v: int) -> int:
        if not 0 <= v <= 23:
            raise ValueError(f"hour must be in 0..23, got {v}.")
        return v


class RaidConfig(BaseModel):
    """The raid tier currently tracked for weekly kills and log queries."""

    model_config = ConfigDict(frozen=True)

    raid_name: str = "Liberation of Undermine"
    raid_slug: str = "liberation-of-undermine"
    wcl_zone_id: Optional[int] = 42
    total_bosses: int = 8


class SourcesConfig(BaseModel):
    """Shared settings for the upstream data providers."""

    model_config = ConfigDict(frozen=True)

    region: str = "eu"
    locale: str = "en_GB"
    recent_report_limit: int = 15

    @field_validator("region")
    @classmethod
    def validate_region(cls, v: str) -> str:
        valid = {"us", "eu", "kr", "tw"}
        if v.lower() not in valid:
            raise ValueError(f"region must be one of {sorted(valid)}, got '{v}'.")
        return v.lower()


class AppConfig(BaseModel):
    """Complete application configuration."""

    model_config = ConfigDict(frozen=True)

    database: DatabaseConfig = DatabaseConfig()
    logging: LoggingConfig = LoggingConfig()
    sync: SyncConfig = SyncConfig()
    reset: ResetConfig = ResetConfig()
    raid: RaidConfig = RaidConfig()
    sources: SourcesConfig = SourcesConfig()
    debug: bool = False


# ── Loader ────────────────────────────────────────────────────────────────────

_PROJECT_ROOT = Path(__file__).parent.parent


def _find_project_root() -> Path:
    """Walk up from this file to find the project root (contains pyproject.toml)."""
    candidate = Path(__file__).parent
    for _ in range(5):
        if (candidate / "pyproject.toml").exists():
            return candidate
        candidate = candidate.parent
    return _PROJECT_ROOT


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load and merge application configuration.

    Args:
        config_path: Explicit path to a TOML config file. Defaults to
            ``<project_root>/config/default.toml``.

    Returns:
        Fully validated ``AppConfig`` instance.

    Raises:
        FileNotFoundError: If the specified ``config_path`` does not exist.
        pydantic.ValidationError: If merged config values fail validation.
    """
    root = _find_project_root()

    load_dotenv(dotenv_path=root / ".env", override=False)

    if config_path is None:
        config_path = root / "config" / "default.toml"

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {config_path}\n"
            "Create config/default.toml or pass --config."
        )

    with open(config_path, "rb") as f:
        raw: dict[str, Any] = tomllib.load(f)

    local_config_path = config_path.parent / "local.toml"
    if local_config_path.exists():
        with open(local_config_path, "rb") as f:
            local_raw: dict[str, Any] = tomllib.load(f)
        raw = _deep_merge(raw, local_raw)

    raw = _apply_env_overrides(raw)

    return _build_app_config(raw)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into ``base``."""
    result = dict(base)
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    """Apply ROSTER_AUDIT_* env vars to the raw config dict.

    Supported overrides:
      ROSTER_AUDIT_DB_PATH      → raw["database"]["db_path"]
      ROSTER_AUDIT_LOG_LEVEL    → raw["logging"]["level"]
      ROSTER_AUDIT_CONCURRENCY  → raw["sync"]["concurrency"]
      ROSTER_AUDIT_DEBUG        → raw["debug"]
    """
    if db_path := os.environ.get("ROSTER_AUDIT_DB_PATH"):
        raw.setdefault("database", {})["db_path"] = db_path

    if log_level := os.environ.get("ROSTER_AUDIT_LOG_LEVEL"):
        raw.setdefault("logging", {})["level"] = log_level

    if concurrency := os.environ.get("ROSTER_AUDIT_CONCURRENCY"):
        raw.setdefault("sync", {})["concurrency"] = int(concurrency)

    if debug := os.environ.get("ROSTER_AUDIT_DEBUG"):
        raw["debug"] = debug.lower() in ("1", "true", "yes")

    return raw


def _build_app_config(raw: dict[str, Any]) -> AppConfig:
    """Map raw TOML dict to ``AppConfig`` model structure."""
    project = raw.pop("project", {})

    return AppConfig(
        database=DatabaseConfig(**raw.get("database", {})),
        logging=LoggingConfig(**raw.get("logging", {})),
        sync=SyncConfig(**raw.get("sync", {})),
        reset=ResetConfig(**raw.get("reset", {})),
        raid=RaidConfig(**raw.get("raid", {})),
        sources=SourcesConfig(**raw.get("sources", {})),
        debug=raw.get("debug", project.get("debug", False)),
    )
