"""
Unit Tests: Structured Logging
"""

import io
import json
import logging
import sys

import pytest

from redismap.observability.logging import (
    JsonFormatter,
    LogLevel,
    StructuredLogger,
    get_logger,
    setup_logging,
)


@pytest.fixture
def stream():
    buffer = io.StringIO()
    setup_logging(LogLevel.DEBUG, json_output=True, stream=buffer)
    yield buffer
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(logging.WARNING)


def _records(buffer):
    return [json.loads(line) for line in buffer.getvalue().splitlines()]


class TestStructuredLogger:
    """Keyword extras and scoped context fields."""

    def test_namespaced(self):
        assert get_logger("lease")._logger.name == "redismap.lease"
        assert get_logger("redismap.scan")._logger.name == "redismap.scan"

    def test_extras_in_json(self, stream):
        get_logger("redismap.test").info("Renewal started", identifier="redis-map:1", ttl_seconds=30)
        (record,) = _records(stream)
        assert record["message"] == "Renewal started"
        assert record["level"] == "INFO"
        assert record["logger"] == "redismap.test"
        assert record["identifier"] == "redis-map:1"
        assert record["ttl_seconds"] == 30

    def test_context_fields(self, stream):
        log = get_logger("redismap.test")
        with StructuredLogger.context(identifier="redis-map:2"):
            log.warning("inside")
        log.warning("outside")

        inside, outside = _records(stream)
        assert inside["identifier"] == "redis-map:2"
        assert "identifier" not in outside

    def test_with_extra(self, stream):
        log = get_logger("redismap.test").with_extra(identifier="redis-map:3")
        log.debug("retry", conflicts=2)
        (record,) = _records(stream)
        assert (record["identifier"], record["conflicts"]) == ("redis-map:3", 2)

    def test_level_filtering(self, stream):
        logging.getLogger().setLevel(logging.WARNING)
        log = get_logger("redismap.test")
        log.debug("hidden")
        assert not logging.getLogger("redismap.test").isEnabledFor(logging.DEBUG)
        assert _records(stream) == []

    def test_formatter_includes_exception(self):
        formatter = JsonFormatter()
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = logging.LogRecord(
                "redismap.test", logging.ERROR, __file__, 1, "failed", None, sys.exc_info()
            )
        payload = json.loads(formatter.format(record))
        assert "RuntimeError: boom" in payload["exception"]
