"""Tests for logging setup."""

import json
import logging

from crmsync import logging_config
from crmsync.logging_config import JsonFormatter, setup_logging


def test_default_level_is_info(monkeypatch):
    monkeypatch.delenv("CRMSYNC_LOG_LEVEL", raising=False)
    setup_logging()

    logger = logging.getLogger("crmsync")
    assert logger.level == logging.INFO
    assert len(logger.handlers) == 1


def test_verbose_forces_debug(monkeypatch):
    monkeypatch.setenv("CRMSYNC_LOG_LEVEL", "WARNING")
    setup_logging(verbose=True)
    assert logging.getLogger("crmsync").level == logging.DEBUG


def test_configured_once(monkeypatch):
    monkeypatch.setenv("CRMSYNC_LOG_LEVEL", "WARNING")
    setup_logging()
    monkeypatch.setenv("CRMSYNC_LOG_LEVEL", "ERROR")
    setup_logging()
    assert logging.getLogger("crmsync").level == logging.WARNING

    setup_logging(force=True)
    assert logging.getLogger("crmsync").level == logging.ERROR
    assert logging_config._LOGGING_CONFIGURED


def test_json_lines(monkeypatch):
    monkeypatch.setenv("CRMSYNC_LOG_JSON", "true")
    setup_logging()

    [handler] = logging.getLogger("crmsync").handlers
    assert isinstance(handler.formatter, JsonFormatter)

    record = logging.LogRecord("crmsync.sync", logging.INFO, __file__, 1, "sent %d", (3,), None)
    payload = json.loads(handler.formatter.format(record))
    assert payload["message"] == "sent 3"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "crmsync.sync"
