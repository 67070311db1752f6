"""FastMCP server instance for the Waste Management MCP Server.

The server carries the sampling-aware tools (registered by
``SamplingToolService``) and two plain HTTP routes:

- ``/health``: static health check for load balancers
- ``/``: server information

Readiness and liveness probes that look at the record store and the process
live in ``waste_mcp.app`` and are mounted under ``/health/``.

See Also
--------
waste_mcp.services.sampling_tools : Tool implementations
waste_mcp.app : Process entry point and health probes
"""

from fastmcp import FastMCP
from starlette.requests import Request
from starlette.responses import JSONResponse

from ..constants import APP_NAME, APP_VERSION, SERVER_NAME

mcp: FastMCP = FastMCP(SERVER_NAME)
"""FastMCP: Main MCP server instance."""

TOOL_NAMES = [
    "generate_intelligent_facility_report",
    "analyze_shipment_risk",
    "suggest_inspection_questions",
]


@mcp.custom_route("/health", methods=["GET"])
async def health_check(_: Request) -> JSONResponse:
    """Health check endpoint for monitoring and load balancers.

    Always answers 200 without touching dependencies.

    Examples
    --------
        $ curl http://localhost:8000/health
        {"status": "healthy", "service": "Waste Management MCP Server", ...}
    """
    return JSONResponse(
        {
            "status": "healthy",
            "service": SERVER_NAME,
            "version": APP_VERSION,
            "transport": "http",
        }
    )


@mcp.custom_route("/", methods=["GET"])
async def server_info(_: Request) -> JSONResponse:
    """Describe the server and where its endpoints are."""
    return JSONResponse(
        {
            "name": APP_NAME,
            "service": SERVER_NAME,
            "version": APP_VERSION,
            "description": "Waste management database tools with optional AI analysis through MCP sampling",
            "endpoints": {
                "mcp": "/mcp/",
                "health": "/health",
                "ready": "/health/ready",
                "live": "/health/live",
            },
            "tools": TOOL_NAMES,
        }
    )
