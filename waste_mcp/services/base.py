"""Base classes for MCP tool services.

A tool service owns a group of MCP tools. It registers them on the FastMCP
server when constructed and wraps every tool call in ``_operation_context``,
which tags log records with a request id, times the call and feeds
``ServiceMetrics``.

Classes
-------
ServiceMetrics
    Per-operation call counts, timings and error counts
ToolService
    Abstract base class for services exposing MCP tools

See Also
--------
waste_mcp.services.sampling_tools : Sampling-aware tools
waste_mcp.logging_config : log_request_context
"""

import abc
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List

from fastmcp import FastMCP

from ..exceptions import DomainError
from ..logging_config import get_logger, log_request_context

MAX_TIMINGS = 1000


class ServiceMetrics:
    """Metrics collection for tool services.

    Attributes
    ----------
    operation_counts : Dict[str, int]
        Calls by operation
    operation_times : Dict[str, List[float]]
        Most recent durations by operation, in seconds
    error_counts : Dict[str, int]
        Failed calls by operation
    """

    def __init__(self):
        self.operation_counts: Dict[str, int] = {}
        self.operation_times: Dict[str, List[float]] = {}
        self.error_counts: Dict[str, int] = {}
        self._start_time = datetime.now(timezone.utc)

    def record_operation(self, operation: str, duration: float, success: bool = True):
        """Record one call.

        Parameters
        ----------
        operation : str
            Name of the operation
        duration : float
            Execution time in seconds
        success : bool, optional
            Whether the call succeeded (default: True)
        """
        self.operation_counts[operation] = self.operation_counts.get(operation, 0) + 1

        times = self.operation_times.setdefault(operation, [])
        times.append(duration)
        if len(times) > MAX_TIMINGS:
            del times[:-MAX_TIMINGS]

        if not success:
            self.error_counts[operation] = self.error_counts.get(operation, 0) + 1

    def get_summary(self) -> Dict[str, Any]:
        """Get metrics summary.

        Returns
        -------
        Dict[str, Any]
            Uptime, counts, average/min/max timings and the overall error rate
        """
        uptime = (datetime.now(timezone.utc) - self._start_time).total_seconds()

        avg_times = {}
        for operation, times in self.operation_times.items():
            if times:
                avg_times[operation] = {
                    "avg": sum(times) / len(times),
                    "min": min(times),
                    "max": max(times),
                    "count": len(times),
                }

        total = sum(self.operation_counts.values())
        return {
            "uptime_seconds": uptime,
            "operation_counts": dict(self.operation_counts),
            "average_times": avg_times,
            "error_counts": dict(self.error_counts),
            "total_requests": total,
            "error_rate": sum(self.error_counts.values()) / max(total, 1),
        }


class ToolService(abc.ABC):
    """Abstract base class for services exposing MCP tools.

    Attributes
    ----------
    name : str
        Service name identifier
    logger : StructuredLogger
        Logger instance
    metrics : ServiceMetrics
        Metrics collector
    """

    def __init__(self, name: str, mcp: FastMCP):
        """Initialize the service and register its tools.

        Parameters
        ----------
        name : str
            Service name identifier
        mcp : FastMCP
            MCP server the tools are registered on
        """
        self.name = name
        self._mcp = mcp
        self.logger = get_logger(f"{__name__}.{name}")
        self.metrics = ServiceMetrics()
        self._register_tools()

    @abc.abstractmethod
    def _register_tools(self) -> None:
        """Register this service's tools on ``self._mcp``."""

    @asynccontextmanager
    async def _operation_context(self, operation: str, **context):
        """Track one tool call.

        Records created inside the block carry ``request_id``, ``operation``,
        ``service`` and the given context. Domain errors are logged as
        warnings; anything else is logged with its traceback. Exceptions are
        re-raised.

        Parameters
        ----------
        operation : str
            Name of the operation
        **context
            Additional context information

        Yields
        ------
        str
            The request id
        """
        request_id = str(uuid.uuid4())
        start_time = time.time()
        success = True

        try:
            with log_request_context(request_id=request_id, operation=operation, service=self.name, **context):
                self.logger.info(f"Starting operation: {operation}")
                try:
                    yield request_id
                except DomainError as e:
                    success = False
                    self.logger.warning(f"Operation rejected: {operation}", extra={"error": str(e)})
                    raise
                except Exception as e:
                    success = False
                    self.logger.error(f"Operation failed: {operation}", exc_info=True, extra={"error": str(e)})
                    raise
        finally:
            duration = time.time() - start_time
            self.metrics.record_operation(operation, duration, success)
            if success:
                self.logger.info(f"Operation completed: {operation}", extra={"duration": duration})

    def get_metrics(self) -> Dict[str, Any]:
        """Service metrics summary, with the service name."""
        return {"service": self.name, **self.metrics.get_summary()}
