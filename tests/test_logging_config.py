"""Tests for structured logging."""

import json
import logging
import sys

import pytest

from waste_mcp.config import AppConfig
from waste_mcp.exceptions import ConfigurationError
from waste_mcp.logging_config import (
    LogContext,
    LogMetrics,
    StructuredFormatter,
    StructuredLogger,
    get_logger,
    log_request_context,
    setup_logging,
)


def make_record(message="hello", **extra):
    record = logging.LogRecord("waste.test", logging.INFO, __file__, 10, message, None, None, func="fn")
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


class TestStructuredFormatter:
    """Test JSON and human-readable output."""

    def test_json_format(self):
        formatter = StructuredFormatter(json_format=True)
        data = json.loads(formatter.format(make_record(sampling_id="sampling-1", blob=object())))

        assert data["level"] == "INFO"
        assert data["logger"] == "waste.test"
        assert data["message"] == "hello"
        assert data["function"] == "fn"
        assert data["timestamp"].endswith("Z")
        assert data["extra"]["sampling_id"] == "sampling-1"
        assert data["extra"]["blob"].startswith("<object object")

    def test_human_readable_format(self):
        line = StructuredFormatter().format(make_record(request_id="r-1"))

        assert "[INFO    ] waste.test: hello" in line
        assert line.endswith("| request_id=r-1")

    def test_extra_can_be_disabled(self):
        data = json.loads(StructuredFormatter(json_format=True, include_extra=False).format(make_record(k="v")))
        assert "extra" not in data

    def test_exception_info(self):
        try:
            raise ValueError("broken")
        except ValueError:
            record = make_record()
            record.exc_info = sys.exc_info()

        data = json.loads(StructuredFormatter(json_format=True).format(record))

        assert data["exception"]["type"] == "ValueError"
        assert data["exception"]["message"] == "broken"
        assert "Traceback" in data["exception"]["traceback"]


class TestLogContext:
    """Test context fields attached to records."""

    def test_fields_added_inside_scope_only(self, caplog):
        logger = logging.getLogger("waste.context")

        with caplog.at_level(logging.INFO, logger="waste.context"):
            with LogContext(request_id="r-42", operation="analyze_shipment_risk"):
                logger.info("inside")
            logger.info("outside")

        inside, outside = caplog.records[-2:]
        assert inside.request_id == "r-42"
        assert inside.operation == "analyze_shipment_risk"
        assert not hasattr(outside, "request_id")

    def test_log_request_context(self, caplog):
        with caplog.at_level(logging.INFO):
            with log_request_context("r-7", facility_id="fac-1"):
                get_logger("waste.request").info("working")

        working = next(r for r in caplog.records if r.getMessage() == "working")
        processed = next(r for r in caplog.records if r.getMessage() == "Request processed")
        assert working.request_id == "r-7"
        assert working.facility_id == "fac-1"
        assert processed.request_id == "r-7"
        assert processed.duration >= 0


class TestStructuredLogger:
    """Test the logger wrapper and its metrics."""

    def test_counts_levels(self):
        logger = StructuredLogger("waste.metrics")
        logger.info("one")
        logger.warning("two")
        logger.error("three")

        summary = logger.metrics.get_summary()
        assert summary["log_counts"]["INFO"] == 1
        assert summary["log_counts"]["WARNING"] == 1
        assert summary["log_counts"]["ERROR"] == 1
        assert summary["total_logs"] == 3
        assert summary["error_rate"] == pytest.approx(1 / 3)

    def test_errors_with_traceback_are_kept(self):
        logger = StructuredLogger("waste.metrics")
        logger.error("failed", exc_info=True, extra={"sampling_id": "s-1"})
        logger.critical("worse")

        assert [e["message"] for e in logger.metrics.errors] == ["failed", "worse"]

    def test_error_list_is_bounded(self):
        metrics = LogMetrics()
        for n in range(LogMetrics.MAX_ERRORS + 5):
            metrics.add_error({"message": str(n)})

        assert len(metrics.errors) == LogMetrics.MAX_ERRORS
        assert metrics.errors[0]["message"] == "5"

    def test_caller_location(self, caplog):
        with caplog.at_level(logging.INFO, logger="waste.location"):
            get_logger("waste.location").info("where am I")

        assert caplog.records[-1].funcName == "test_caller_location"


class TestSetupLogging:
    """Test root logger configuration."""

    def test_console_and_file_handlers(self, tmp_path, restore_root_logger):
        config = AppConfig()
        config.logging.level = "DEBUG"
        config.logging.json_format = True
        config.logging.file_path = str(tmp_path / "server.log")

        setup_logging(config)

        root = restore_root_logger
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 2
        assert root.handlers[0].stream is sys.stderr
        assert all(isinstance(h.formatter, StructuredFormatter) for h in root.handlers)
        assert logging.getLogger("redis").level == logging.WARNING

    def test_unwritable_log_file(self, tmp_path, restore_root_logger):
        config = AppConfig()
        config.logging.file_path = str(tmp_path / "missing-dir" / "server.log")

        with pytest.raises(ConfigurationError, match="Failed to configure logging"):
            setup_logging(config)
