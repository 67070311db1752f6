"""Waste Management MCP Server Application Entry Point.

This module starts the MCP server over HTTP. The FastMCP application serves
the MCP protocol under ``/mcp/`` and the ``/health`` and ``/`` routes; a
FastAPI application with the readiness and liveness probes is mounted under
``/health/``:

- /health - Basic health check
- /health/ready - Readiness probe (record store and sampling broker)
- /health/live - Liveness probe (process resources)

Usage
-----
    $ python -m waste_mcp.app
    $ MCP_STORAGE_BACKEND=redis MCP_SAMPLING_RESPONDER=placeholder waste-mcp

See Also
--------
waste_mcp.context : Application context
waste_mcp.config : Environment variables
"""

import os
from datetime import datetime, timezone

import psutil
import uvicorn
from fastapi import FastAPI, HTTPException

from .config import get_config
from .constants import APP_NAME
from .context import Context, get_context
from .logging_config import get_logger, setup_logging

logger = get_logger(__name__)

RESOURCE_LIMIT_PERCENT = 95

health_app = FastAPI(title="Health Check", description="Application health monitoring")


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@health_app.get("/ready")
async def readiness_probe():
    """Readiness probe - the record store answers and the broker is in place."""
    context = get_context()
    storage = await context.store.health_check()
    if storage.get("status") != "healthy":
        raise HTTPException(status_code=503, detail=f"Service not ready: {storage.get('error', 'storage unhealthy')}")

    return {
        "status": "ready",
        "service": APP_NAME,
        "storage": storage,
        "sampling": context.broker.status(),
        "timestamp": _timestamp(),
    }


@health_app.get("/live")
async def liveness_probe():
    """Liveness probe - the process responds and has resources left."""
    memory_percent = psutil.virtual_memory().percent
    cpu_percent = psutil.cpu_percent(interval=0.1)

    if memory_percent > RESOURCE_LIMIT_PERCENT or cpu_percent > RESOURCE_LIMIT_PERCENT:
        raise HTTPException(
            status_code=503, detail=f"High resource usage: CPU {cpu_percent}%, Memory {memory_percent}%"
        )

    return {
        "status": "alive",
        "service": APP_NAME,
        "process_id": os.getpid(),
        "memory_percent": memory_percent,
        "cpu_percent": cpu_percent,
        "timestamp": _timestamp(),
    }


def create_app(context: Context):
    """Build the ASGI application: MCP over HTTP plus the mounted probes."""
    app = context.mcp.http_app()
    app.mount("/health", health_app)
    return app


def main() -> None:
    """Configure logging, build the context and serve over HTTP."""
    config = get_config()
    setup_logging(config)

    context = get_context()
    app = create_app(context)

    host, port = config.server.host, config.server.port
    logger.info("Starting Waste Management MCP Server", extra={"host": host, "port": port})
    logger.info(f"Server will be available at http://{host}:{port}/mcp/")
    logger.info(f"Health checks available at http://{host}:{port}/health, /health/ready and /health/live")

    uvicorn.run(app, host=host, port=port, log_config=None)


if __name__ == "__main__":
    main()
