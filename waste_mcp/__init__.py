"""Waste Management MCP Server Package.

This package provides a Model Context Protocol (MCP) server over a
waste-management database. Besides answering tool calls, the server can ask
the connected client to run its language model (MCP sampling) and merge the
generated text with metrics computed from the database, falling back to
deterministic values whenever no AI answer is obtained.

The package consists of:
- The sampling broker, responders and typed helpers (``waste_mcp.sampling``)
- The sampling-aware tool service (``waste_mcp.services``)
- A read-only record store with memory and Redis backends
- Configuration, logging and application context

Examples
--------
To run the MCP server:

    $ python -m waste_mcp.app

To use the tools programmatically:

    >>> from waste_mcp.context import get_context
    >>> service = get_context().service
"""

__version__ = "1.0.0"
