"""Unit tests for structured logging helpers."""
import json
import logging

import pytest

from app.core.logging import ContextLogger, JSONFormatter, LogTimer, get_logger


def _record(msg="hello", **extra):
    record = logging.LogRecord("app.test", logging.INFO, __file__, 10, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:

    def test_basic_fields(self):
        payload = json.loads(JSONFormatter().format(_record()))

        assert payload["level"] == "INFO"
        assert payload["logger"] == "app.test"
        assert payload["message"] == "hello"

    def test_context_fields(self):
        payload = json.loads(JSONFormatter().format(_record(user_id="u1", class_id="c1", duration_ms=3.5)))

        assert payload["user_id"] == "u1"
        assert payload["class_id"] == "c1"
        assert payload["duration_ms"] == 3.5


class TestContextLogger:

    def test_get_logger_with_context(self):
        logger = get_logger("app.test", {"service": "analytics"})

        assert isinstance(logger, ContextLogger)

    def test_context_merged_into_extra(self):
        logger = ContextLogger(logging.getLogger("app.test"), {"service": "analytics"})

        _, kwargs = logger.process("msg", {"extra": {"user_id": "u1"}})

        assert kwargs["extra"] == {"service": "analytics", "user_id": "u1"}


class TestLogTimer:

    def test_logs_completion(self, caplog):
        logger = logging.getLogger("app.timer")
        with caplog.at_level(logging.INFO, logger="app.timer"):
            with LogTimer(logger, "build_dashboard", user_id="u1"):
                pass

        record = caplog.records[-1]
        assert "build_dashboard completed" in record.getMessage()
        assert record.user_id == "u1"

    def test_logs_failure_and_reraises(self, caplog):
        logger = logging.getLogger("app.timer")
        with caplog.at_level(logging.INFO, logger="app.timer"):
            with pytest.raises(RuntimeError):
                with LogTimer(logger, "fetch"):
                    raise RuntimeError("boom")

        assert caplog.records[-1].levelname == "ERROR"
