"""Structured Logging for the Waste Management MCP Server.

This module wraps the standard ``logging`` package with the pieces the server
needs: a formatter that renders ``extra`` fields (as JSON lines or as
human-readable text), a record-factory based context manager that stamps every
record emitted inside a tool call with its request id, a small per-logger
counter, and the ``setup_logging`` entry point that wires console and rotating
file handlers from ``LoggingConfig``.

Classes
-------
StructuredFormatter
    Formatter for JSON or human-readable output with extra fields
LogContext
    Context manager adding fields to every record created in its scope
LogMetrics
    Counters for emitted records and recent errors
StructuredLogger
    Thin wrapper around ``logging.Logger`` that feeds ``LogMetrics``

Functions
---------
setup_logging
    Configure root handlers from the application configuration
get_logger
    Get a structured logger for a module
log_request_context
    Scope a tool call: tag records and log its duration on exit

Examples
--------
    >>> from waste_mcp.logging_config import get_logger, log_request_context
    >>> logger = get_logger(__name__)
    >>> with log_request_context("req-1", operation="analyze_shipment_risk"):
    ...     logger.info("Fetching shipment", extra={"shipment_id": "s-1"})

See Also
--------
waste_mcp.config : LoggingConfig
"""

import json
import logging
import logging.handlers
import sys
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict

from .config import get_config
from .exceptions import ConfigurationError

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RESERVED_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "message",
        "asctime",
    }
)


class StructuredFormatter(logging.Formatter):
    """Formatter for structured log output.

    Attributes
    ----------
    json_format : bool
        Render each record as one JSON object per line
    include_extra : bool
        Render fields passed through ``extra``
    """

    def __init__(self, json_format: bool = False, include_extra: bool = True):
        super().__init__()
        self.json_format = json_format
        self.include_extra = include_extra

    def _extra_fields(self, record: logging.LogRecord) -> Dict[str, Any]:
        fields = {}
        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key.startswith("_"):
                continue
            try:
                json.dumps(value)
                fields[key] = value
            except (TypeError, ValueError):
                fields[key] = str(value)
        return fields

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record.

        Parameters
        ----------
        record : logging.LogRecord
            The log record to format

        Returns
        -------
        str
            A JSON line or a human-readable line, with the traceback appended
            when the record carries exception information
        """
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info and record.exc_info[0] is not None:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }

        if self.include_extra:
            extra_fields = self._extra_fields(record)
            if extra_fields:
                log_data["extra"] = extra_fields

        if self.json_format:
            return json.dumps(log_data, ensure_ascii=False)

        line = f"{log_data['timestamp']} [{log_data['level']:8}] {log_data['logger']}: {log_data['message']}"
        if log_data.get("extra"):
            line += " | " + " | ".join(f"{k}={v}" for k, v in log_data["extra"].items())
        if "exception" in log_data:
            line += f"\n{log_data['exception']['traceback']}"
        return line


class LogContext:
    """Context manager adding fields to every record created in its scope.

    The fields are attached through the log record factory, so they reach
    records emitted by any logger, including library loggers.

    Attributes
    ----------
    context : Dict[str, Any]
        Fields set on each record
    """

    def __init__(self, **context):
        self.context = context
        self.old_factory = None

    def __enter__(self):
        self.old_factory = logging.getLogRecordFactory()
        old_factory = self.old_factory
        context = self.context

        def record_factory(*args, **kwargs):
            record = old_factory(*args, **kwargs)
            for key, value in context.items():
                setattr(record, key, value)
            return record

        logging.setLogRecordFactory(record_factory)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        logging.setLogRecordFactory(self.old_factory)


class LogMetrics:
    """Counters for emitted records and a bounded list of recent errors."""

    MAX_ERRORS = 100

    def __init__(self):
        self.log_counts = {"DEBUG": 0, "INFO": 0, "WARNING": 0, "ERROR": 0, "CRITICAL": 0}
        self.errors = []
        self.requests = 0

    def increment_log_count(self, level: str):
        if level in self.log_counts:
            self.log_counts[level] += 1

    def add_error(self, error_info: Dict[str, Any]):
        error_info["timestamp"] = datetime.now(timezone.utc).isoformat()
        self.errors.append(error_info)
        if len(self.errors) > self.MAX_ERRORS:
            self.errors = self.errors[-self.MAX_ERRORS :]

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of the collected counters.

        Returns
        -------
        Dict[str, Any]
            Totals per level, error rate and request count
        """
        total_logs = sum(self.log_counts.values())
        error_rate = (self.log_counts["ERROR"] + self.log_counts["CRITICAL"]) / max(total_logs, 1)
        return {
            "total_logs": total_logs,
            "log_counts": dict(self.log_counts),
            "error_rate": error_rate,
            "total_errors": len(self.errors),
            "total_requests": self.requests,
        }


class StructuredLogger:
    """Wrapper around ``logging.Logger`` that keeps ``LogMetrics`` up to date.

    Attributes
    ----------
    logger : logging.Logger
        The underlying logger
    metrics : LogMetrics
        Counters for this logger
    """

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)
        self.metrics = LogMetrics()

    def _log(self, level: str, message: str, *args, **kwargs):
        self.metrics.increment_log_count(level)
        # Report the caller's location rather than this wrapper's.
        kwargs.setdefault("stacklevel", 3)
        self.logger.log(getattr(logging, level), message, *args, **kwargs)

    def debug(self, message: str, *args, **kwargs):
        self._log("DEBUG", message, *args, **kwargs)

    def info(self, message: str, *args, **kwargs):
        self._log("INFO", message, *args, **kwargs)

    def warning(self, message: str, *args, **kwargs):
        self._log("WARNING", message, *args, **kwargs)

    def error(self, message: str, *args, **kwargs):
        self._log("ERROR", message, *args, **kwargs)
        if kwargs.get("exc_info"):
            self.metrics.add_error({"message": message, "extra": kwargs.get("extra", {})})

    def critical(self, message: str, *args, **kwargs):
        self._log("CRITICAL", message, *args, **kwargs)
        self.metrics.add_error({"message": message, "extra": kwargs.get("extra", {}), "level": "CRITICAL"})

    def log_request(self, request_info: Dict[str, Any]):
        """Log a completed tool call.

        Parameters
        ----------
        request_info : Dict[str, Any]
            Request id, duration and any context passed to the scope
        """
        self.metrics.requests += 1
        self.info("Request processed", extra=request_info)


def setup_logging(config=None) -> None:
    """Configure the root logger from the application configuration.

    Parameters
    ----------
    config : AppConfig, optional
        Application configuration (default: ``get_config()``)

    Raises
    ------
    ConfigurationError
        If a handler cannot be created, for example an unwritable log file
    """
    if config is None:
        config = get_config()

    try:
        root_logger = logging.getLogger()
        root_logger.setLevel(getattr(logging, config.logging.level))

        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)

        formatter = StructuredFormatter(json_format=config.logging.json_format)

        # stderr: stdout belongs to the stdio transport
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

        if config.logging.file_path:
            file_handler = logging.handlers.RotatingFileHandler(
                config.logging.file_path,
                maxBytes=config.logging.max_file_size_mb * 1024 * 1024,
                backupCount=config.logging.backup_count,
            )
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)

        logging.getLogger("fastmcp").setLevel(logging.INFO)
        logging.getLogger("mcp").setLevel(logging.WARNING)
        logging.getLogger("redis").setLevel(logging.WARNING)
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

        logging.getLogger(__name__).info(
            "Logging configured",
            extra={
                "level": config.logging.level,
                "json_format": config.logging.json_format,
                "file_path": config.logging.file_path,
            },
        )

    except (OSError, ValueError, AttributeError) as e:
        raise ConfigurationError(
            f"Failed to configure logging: {str(e)}",
            details={"config": config.logging.model_dump() if config else None},
            cause=e,
        ) from e


def get_logger(name: str) -> StructuredLogger:
    """Get a logger instance with structured logging capabilities.

    Parameters
    ----------
    name : str
        Name of the logger (usually __name__)

    Returns
    -------
    StructuredLogger
        Logger instance with structured logging features
    """
    return StructuredLogger(name)


@contextmanager
def log_request_context(request_id: str, **context):
    """Scope one tool call.

    Every record created inside the block carries ``request_id`` and the
    given context fields. On exit, success or failure, one
    "Request processed" record with the elapsed ``duration`` is emitted.

    Parameters
    ----------
    request_id : str
        Unique request identifier
    **context
        Additional context information
    """
    start_time = time.time()

    with LogContext(request_id=request_id, **context):
        try:
            yield
        finally:
            duration = time.time() - start_time
            get_logger(__name__).log_request({"duration": duration})
