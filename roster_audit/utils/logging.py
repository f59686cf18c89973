"""
Logging setup for the roster audit CLI and scheduler.

Call ``configure_logging(config)`` once at CLI entry, before a sync pass
starts.  Library modules only ever use ``logging.getLogger(__name__)``.

With ``json_format = true`` under ``[logging]`` each record is one JSON
object per line::

    {"ts": "2026-10-14T08:00:03Z", "level": "WARNING",
     "logger": "roster_audit.ingestion.raiderio_client",
     "msg": "Raider.IO fetch failed for thrall-draenor: ...",
     "character": "thrall-draenor"}

Pass ``extra={"character": identity.key}`` on per-character log calls so the
JSON stream can be filtered by character.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from roster_audit.config import LoggingConfig

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime"}

_NOISY_LOGGERS = ("httpx", "httpcore", "asyncio")


class _JsonFormatter(logging.Formatter):
    """One JSON object per record; ``extra=`` keys are lifted to the top level."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).strftime(
                LOG_DATE_FORMAT
            ),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        for key, val in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                payload[key] = val
        return json.dumps(payload, default=str)


def _build_formatter(json_format: bool) -> logging.Formatter:
    if json_format:
        return _JsonFormatter()
    return logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)


def configure_logging(config: "LoggingConfig") -> None:
    """Configure the root logger from a ``LoggingConfig`` instance.

    Installs a stdout handler and, when ``config.log_file`` is set, a file
    handler (parent directories are created).  Existing root handlers are
    replaced so repeated CLI invocations in one process do not duplicate
    output.

    Args:
        config: Logging configuration section from ``AppConfig``.
    """
    level = getattr(logging, config.level.upper(), logging.INFO)
    formatter = _build_formatter(config.json_format)

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(formatter)
    handlers: list[logging.Handler] = [console]

    if config.log_file:
        log_path = Path(config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    logging.basicConfig(level=level, handlers=handlers, force=True)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
