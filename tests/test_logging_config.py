"""Tests for structured logging configuration."""

import json
import logging
import sys

import pytest

from chorus.logging_config import (
    LogRecord,
    JSONFormatter,
    TextFormatter,
    StructuredLogger,
    LogContext,
    get_logger,
    configure_logging,
    get_context,
    clear_context,
    log_function,
)


@pytest.fixture
def restore_logging():
    """Put root and chorus logger state back after configure_logging."""
    root = logging.getLogger()
    chorus_logger = logging.getLogger("chorus")
    saved = (root.level, root.handlers[:], chorus_logger.level, chorus_logger.propagate)
    yield
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        if handler not in saved[1]:
            handler.close()
    for handler in saved[1]:
        root.addHandler(handler)
    root.setLevel(saved[0])
    chorus_logger.setLevel(saved[2])
    chorus_logger.propagate = saved[3]


def _record(msg="Test message", name="chorus.router", level=logging.INFO, exc_info=None):
    return logging.LogRecord(
        name=name,
        level=level,
        pathname="",
        lineno=0,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


class TestLogRecord:
    """Test LogRecord dataclass."""

    def test_record_with_fields(self):
        """Custom fields are merged into the dict form."""
        record = LogRecord(
            timestamp="2024-01-01T00:00:00Z",
            level="DEBUG",
            logger="test",
            message="Processing",
            fields={"hook": "message", "count": 2},
        )
        d = record.to_dict()
        assert d["hook"] == "message"
        assert d["count"] == 2

    def test_record_with_dispatch_context(self):
        record = LogRecord(
            timestamp="2024-01-01T00:00:00Z",
            level="INFO",
            logger="test",
            message="Executing command",
            context="group:100",
            command="roll",
            user_id=42,
        )
        d = record.to_dict()
        assert d["context"] == "group:100"
        assert d["command"] == "roll"
        assert d["user_id"] == 42

    def test_to_json(self):
        record = LogRecord(
            timestamp="2024-01-01T00:00:00Z",
            level="INFO",
            logger="test",
            message="Test",
            fields={"count": 42},
        )
        parsed = json.loads(record.to_json())
        assert parsed["level"] == "INFO"
        assert parsed["count"] == 42

    def test_to_text(self):
        record = LogRecord(
            timestamp="2024-01-01 00:00:00",
            level="INFO",
            logger="router",
            message="Hello",
            context="user:7",
            command="echo",
        )
        text = record.to_text()
        assert "[INFO]" in text
        assert "[user:7]" in text
        assert "[echo]" in text
        assert text.endswith("Hello")


class TestFormatters:
    """Test JSON and text formatters."""

    def test_json_basic(self):
        parsed = json.loads(JSONFormatter().format(_record()))
        assert parsed["level"] == "INFO"
        assert parsed["msg"] == "Test message"
        assert parsed["logger"] == "chorus.router"

    def test_json_structured_fields(self):
        record = _record()
        record.structured_fields = {"duration_ms": 1.5, "status": "ok"}
        parsed = json.loads(JSONFormatter().format(record))
        assert parsed["duration_ms"] == 1.5
        assert parsed["status"] == "ok"

    def test_json_exception(self):
        try:
            raise ValueError("Test error")
        except ValueError:
            exc_info = sys.exc_info()
        parsed = json.loads(JSONFormatter().format(_record(level=logging.ERROR, exc_info=exc_info)))
        assert parsed["exception"]["type"] == "ValueError"
        assert "Test error" in parsed["exception"]["message"]

    def test_json_picks_up_log_context(self):
        with LogContext(context="group:100", user_id=42, plugin="teach"):
            parsed = json.loads(JSONFormatter().format(_record()))
        assert parsed["context"] == "group:100"
        assert parsed["user_id"] == 42
        assert parsed["plugin"] == "teach"

    def test_text_short_name_and_fields(self):
        record = _record()
        record.structured_fields = {"items": 10}
        output = TextFormatter().format(record)
        assert "[router]" in output
        assert "items=10" in output


class TestStructuredLogger:
    """Test StructuredLogger wrapper."""

    def test_name(self):
        assert StructuredLogger("chorus.test").name == "chorus.test"

    def test_fields_reach_handlers(self, caplog):
        logger = StructuredLogger("chorus.test")
        with caplog.at_level(logging.INFO, logger="chorus.test"):
            logger.info("Registered command", command="roll")
        (record,) = caplog.records
        assert record.getMessage() == "Registered command"
        assert record.structured_fields == {"command": "roll"}

    def test_disabled_level_is_skipped(self, caplog):
        logger = StructuredLogger("chorus.test")
        with caplog.at_level(logging.WARNING, logger="chorus.test"):
            logger.debug("hidden")
        assert caplog.records == []

    def test_exception_logging(self, caplog):
        logger = StructuredLogger("chorus.test")
        with caplog.at_level(logging.ERROR, logger="chorus.test"):
            try:
                raise RuntimeError("Test error")
            except RuntimeError:
                logger.exception("Command failed", command="roll")
        assert caplog.records[0].exc_info is not None


class TestLogContext:
    """Test LogContext and context functions."""

    def test_nested_contexts(self):
        with LogContext(context="group:1"):
            with LogContext(command="roll"):
                assert get_context() == {"context": "group:1", "command": "roll"}
            assert get_context() == {"context": "group:1"}
        assert get_context() == {}

    def test_clear(self):
        with LogContext(a="1", b="2"):
            assert get_context() == {"a": "1", "b": "2"}
            clear_context()
            assert get_context() == {}

    def test_call_fields_override_scoped_ones(self):
        record = _record()
        record.structured_fields = {"command": "explicit"}
        with LogContext(command="scoped", user_id=7):
            parsed = json.loads(JSONFormatter().format(record))
        assert parsed["command"] == "explicit"
        assert parsed["user_id"] == 7


class TestGetLogger:
    """Test get_logger factory function."""

    def test_caches_loggers(self):
        assert get_logger("chorus.cached") is get_logger("chorus.cached")
        assert get_logger("chorus.one") is not get_logger("chorus.two")


class TestConfigureLogging:
    """Test logging configuration."""

    def test_configure_json(self, restore_logging):
        configure_logging(level="DEBUG", json_output=True)
        root = logging.getLogger()
        assert any(isinstance(h.formatter, JSONFormatter) for h in root.handlers)
        assert root.level == logging.DEBUG

    def test_configure_text(self, restore_logging):
        configure_logging(level="WARNING", json_output=False)
        root = logging.getLogger()
        assert any(isinstance(h.formatter, TextFormatter) for h in root.handlers)
        assert logging.getLogger("chorus").level == logging.WARNING

    def test_configure_file(self, restore_logging, tmp_path):
        log_file = tmp_path / "chorus.log"
        configure_logging(level="INFO", json_output=True, log_file=str(log_file))
        get_logger("chorus.test").info("Written to file", command="roll")
        for handler in logging.getLogger().handlers:
            handler.flush()
        line = log_file.read_text().strip().splitlines()[-1]
        assert json.loads(line)["command"] == "roll"


class TestLogFunctionDecorator:
    """Test log_function decorator."""

    def test_sync_function(self, caplog):
        @log_function(level="INFO")
        def sample_function():
            return 42

        with caplog.at_level(logging.INFO):
            assert sample_function() == 42
        assert "Function completed: sample_function" in caplog.text

    def test_function_error(self, caplog):
        @log_function(level="DEBUG")
        def failing_function():
            raise ValueError("Test error")

        with caplog.at_level(logging.ERROR), pytest.raises(ValueError):
            failing_function()
        assert "Function failed: failing_function" in caplog.text

    @pytest.mark.asyncio
    async def test_async_function(self):
        @log_function(level="DEBUG")
        async def async_operation():
            return "async result"

        assert await async_operation() == "async result"
