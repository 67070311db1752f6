"""MCP server package.

Modules
-------
server
    FastMCP server instance with the ``/health`` and ``/`` custom routes

The server runs on the HTTP transport and serves the MCP protocol under
``/mcp/``.
"""
