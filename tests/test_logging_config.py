"""Tests for JSON logging configuration."""

import io
import json
import logging
import sys

import pytest

from certsync.logging_config import JsonFormatter, configure_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)


class TestJsonFormatter:
    """Tests for JsonFormatter."""

    def test_basic_fields(self):
        record = logging.LogRecord("certsync.test", logging.INFO, __file__, 1, "hello %s", ("world",), None)
        payload = json.loads(JsonFormatter().format(record))
        assert payload["level"] == "INFO"
        assert payload["logger"] == "certsync.test"
        assert payload["msg"] == "hello world"
        assert "ts" in payload

    def test_extra_fields_copied(self):
        record = logging.LogRecord("x", logging.WARNING, __file__, 1, "m", (), None)
        record.owner = "0xabc"
        record.content_address = "blob"
        record.unrelated = "dropped"
        payload = json.loads(JsonFormatter().format(record))
        assert payload["owner"] == "0xabc"
        assert payload["content_address"] == "blob"
        assert "unrelated" not in payload

    def test_exception_info(self):
        try:
            raise ValueError("bad")
        except ValueError:
            record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())
        payload = json.loads(JsonFormatter().format(record))
        assert "ValueError: bad" in payload["exc_info"]


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_stream_and_file_handlers(self, tmp_path, restore_root_logger):
        stream = io.StringIO()
        log_file = tmp_path / "certsync.log"

        configure_logging(log_file=str(log_file), log_level="debug", stream=stream)
        logging.getLogger("certsync.test").debug("configured", extra={"credential_id": "3"})

        root = restore_root_logger
        assert root.level == logging.DEBUG
        line = json.loads(stream.getvalue().strip().splitlines()[-1])
        assert line["msg"] == "configured"
        assert line["credential_id"] == "3"
        for handler in root.handlers:
            handler.flush()
        assert "configured" in log_file.read_text(encoding="utf-8")

    def test_env_defaults(self, tmp_path, monkeypatch, restore_root_logger):
        monkeypatch.setenv("CERTSYNC_LOG_FILE", str(tmp_path / "env.log"))
        monkeypatch.setenv("CERTSYNC_LOG_LEVEL", "warning")

        configure_logging(stream=io.StringIO())

        assert restore_root_logger.level == logging.WARNING
        assert (tmp_path / "env.log").exists()
