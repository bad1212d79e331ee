"""Tests for logging setup."""

import json
import logging
import sys

import pytest

from termviz.logging_config import JSONFormatter, configure_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_logs_to_file(tmp_path, restore_root_logger, monkeypatch):
    monkeypatch.delenv("TERMVIZ_LOG_FORMAT", raising=False)
    monkeypatch.delenv("TERMVIZ_LOG_LEVEL", raising=False)
    log_file = tmp_path / "termviz.log"
    configure_logging(log_file=str(log_file))

    logging.getLogger("termviz.test").info("capture started")
    for handler in restore_root_logger.handlers:
        handler.flush()

    assert "capture started" in log_file.read_text()
    assert restore_root_logger.level == logging.INFO


def test_stderr_defaults_to_warning(restore_root_logger, monkeypatch):
    monkeypatch.delenv("TERMVIZ_LOG_FILE", raising=False)
    monkeypatch.delenv("TERMVIZ_LOG_LEVEL", raising=False)
    configure_logging()
    assert restore_root_logger.level == logging.WARNING
    assert len(restore_root_logger.handlers) == 1


def test_json_format(tmp_path, restore_root_logger, monkeypatch):
    monkeypatch.setenv("TERMVIZ_LOG_FORMAT", "json")
    log_file = tmp_path / "termviz.log"
    configure_logging("DEBUG", str(log_file))

    logging.getLogger("termviz.test").debug("frame skipped")
    for handler in restore_root_logger.handlers:
        handler.flush()

    record = json.loads(log_file.read_text().splitlines()[0])
    assert record["message"] == "frame skipped"
    assert record["level"] == "DEBUG"
    assert record["logger"] == "termviz.test"


def test_json_formatter_includes_exception():
    try:
        raise ValueError("bad")
    except ValueError:
        record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", None, sys.exc_info())
    data = json.loads(JSONFormatter().format(record))
    assert "ValueError" in data["exception"]
