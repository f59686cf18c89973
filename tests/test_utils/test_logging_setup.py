"""Tests for roster_audit/utils/logging.py."""

from __future__ import annotations

import json
import logging

import pytest

from roster_audit.config import LoggingConfig
from roster_audit.utils.logging import _JsonFormatter, configure_logging


@pytest.fixture(autouse=True)
def restore_root_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)


def _record(msg: str, **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        "roster_audit.ingestion.raiderio_client", logging.WARNING, __file__, 1, msg, (), None
    )
    for key, val in extra.items():
        setattr(record, key, val)
    return record


class TestJsonFormatter:
    def test_fields(self):
        payload = json.loads(_JsonFormatter().format(_record("fetch failed")))
        assert payload["level"] == "WARNING"
        assert payload["logger"] == "roster_audit.ingestion.raiderio_client"
        assert payload["msg"] == "fetch failed"
        assert payload["ts"].endswith("Z")

    def test_extra_lifted(self):
        payload = json.loads(_JsonFormatter().format(_record("x", character="thrall-draenor")))
        assert payload["character"] == "thrall-draenor"


class TestConfigureLogging:
    def test_file_handler_created(self, tmp_path):
        log_file = tmp_path / "logs" / "app.log"
        configure_logging(LoggingConfig(level="INFO", log_file=str(log_file)))
        logging.getLogger("roster_audit.test").info("hello file")
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "hello file" in log_file.read_text(encoding="utf-8")

    def test_level_applied(self, tmp_path):
        configure_logging(LoggingConfig(level="ERROR", log_file=str(tmp_path / "a.log")))
        assert logging.getLogger().level == logging.ERROR

    def test_no_duplicate_handlers(self, tmp_path):
        config = LoggingConfig(log_file=str(tmp_path / "a.log"))
        configure_logging(config)
        configure_logging(config)
        assert len(logging.getLogger().handlers) == 2

    def test_no_log_file(self):
        configure_logging(LoggingConfig(log_file=""))
        assert len(logging.getLogger().handlers) == 1

    def test_noisy_loggers_quieted(self, tmp_path):
        configure_logging(LoggingConfig(level="DEBUG", log_file=str(tmp_path / "a.log")))
        assert logging.getLogger("httpx").level == logging.WARNING
