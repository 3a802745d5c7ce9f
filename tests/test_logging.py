"""Test logging configuration and the log sink."""
from __future__ import annotations

import io
import json
import logging
import sys

from core.logging_config import (
    JSONFormatter,
    LogSink,
    _daily_file_namer,
    setup_logging,
    shutdown_logging,
)


def test_daily_file_namer():
    """Test that rotated files are named pos-log-YYYY-MM-DD.txt."""
    assert _daily_file_namer("/logs/pos-log.txt.2026-10-18") == "/logs/pos-log-2026-10-18.txt"
    assert _daily_file_namer("/logs/pos-log.txt") == "/logs/pos-log.txt"


def test_setup_logging_writes_file(tmp_path):
    """Test that a log directory gets a rolling log file."""
    log_dir = tmp_path / "logs"
    try:
        setup_logging(level="INFO", log_dir=log_dir, file_prefix="pos-log")
        logging.getLogger("tests.file").info("Database connection successful.")
    finally:
        shutdown_logging()

    content = (log_dir / "pos-log.txt").read_text(encoding="utf-8")
    assert "Database connection successful." in content


def test_setup_logging_is_repeatable(tmp_path):
    """Test that reconfiguring replaces, rather than duplicates, handlers."""
    try:
        setup_logging(level="INFO", log_dir=tmp_path)
        setup_logging(level="DEBUG", log_dir=tmp_path)
        file_handlers = [h for h in logging.getLogger().handlers if isinstance(h, logging.FileHandler)]
        assert len(file_handlers) == 1
        assert logging.getLogger().level == logging.DEBUG
    finally:
        shutdown_logging()


def test_json_formatter():
    """Test JSON output carries message, extra data and exception."""
    try:
        raise ValueError("bad revision")
    except ValueError as exc:
        record = logging.LogRecord(
            "tests", logging.ERROR, __file__, 1, "Migration failed", None,
            (type(exc), exc, exc.__traceback__),
        )
    record.extra_data = {"revision": "0002"}
    record.stage = "migration"

    data = json.loads(JSONFormatter().format(record))

    assert data["level"] == "ERROR"
    assert data["message"] == "Migration failed"
    assert data["extra"] == {"revision": "0002"}
    assert data["stage"] == "migration"
    assert "ValueError: bad revision" in data["exception"]


def test_bound_sink_tags_records(caplog):
    """Test that a bound sink stamps run_id and promotes the stage field."""
    sink = LogSink(logging.getLogger("tests.context")).bind(run_id="abc123")

    with caplog.at_level(logging.INFO, logger="tests.context"):
        sink.info("Database connection successful.", stage="connectivity")
        sink.bind(attempt=2).warning("Retrying")

    first, second = caplog.records
    assert first.run_id == "abc123"
    assert first.stage == "connectivity"
    assert second.run_id == "abc123"
    assert second.attempt == 2

    data = json.loads(JSONFormatter().format(first))
    assert data["run_id"] == "abc123"
    assert data["stage"] == "connectivity"


def test_bind_leaves_original_sink_untouched(caplog):
    sink = LogSink(logging.getLogger("tests.context"))
    sink.bind(run_id="abc123")

    with caplog.at_level(logging.INFO, logger="tests.context"):
        sink.info("Starting database initialization...")

    assert not hasattr(caplog.records[0], "run_id")


def test_log_sink_error_with_cause(caplog):
    """Test that the cause is appended to the message and kept as exc_info."""
    sink = LogSink(logging.getLogger("tests.sink"))
    cause = ConnectionRefusedError("refused")

    with caplog.at_level(logging.INFO, logger="tests.sink"):
        sink.error("Database connection test failed", cause, stage="connectivity")

    record = caplog.records[0]
    assert record.levelno == logging.ERROR
    assert record.getMessage() == "Database connection test failed: refused"
    assert record.exc_info[1] is cause
    assert record.extra_data == {"stage": "connectivity"}


def test_log_sink_fatal_is_critical(caplog):
    """Test that fatal() logs at CRITICAL."""
    sink = LogSink(logging.getLogger("tests.sink"))
    with caplog.at_level(logging.INFO, logger="tests.sink"):
        sink.fatal("Application startup failed")
    assert caplog.records[0].levelno == logging.CRITICAL


def test_log_sink_never_raises(capsys):
    """Test that a broken logger is reported on stderr instead of raising."""

    class BrokenLogger(logging.Logger):
        def log(self, *args, **kwargs):
            raise OSError("disk full")

    sink = LogSink(BrokenLogger("broken"))
    sink.info("Starting database initialization...")
    sink.error("Failed", RuntimeError("boom"))

    err = capsys.readouterr().err
    assert "[LOG ERROR]" in err
    assert "disk full" in err


def test_shutdown_logging_tolerates_closed_stream(tmp_path, monkeypatch):
    """Test that a console stream closed by its owner does not stop shutdown."""
    stream = io.StringIO()
    monkeypatch.setattr(sys, "stdout", stream)
    setup_logging(level="INFO", log_dir=tmp_path)
    file_handler = next(h for h in logging.getLogger().handlers if isinstance(h, logging.FileHandler))

    stream.close()
    shutdown_logging()

    assert file_handler.stream is None
    assert not [h for h in logging.getLogger().handlers if isinstance(h, logging.FileHandler)]
