"""Application Context Management.

The context is the one object built at startup that owns the application's
components and hands them to each other by reference: configuration, record
store, sampling broker and its responder, sampling helpers, the FastMCP
server and the tool service.

Classes
-------
Context
    Builds and holds the application components

Functions
---------
get_context
    Global context, built on first access
reset_context
    Drop the global context so the next access rebuilds it

Examples
--------
    >>> from waste_mcp.context import get_context
    >>> context = get_context()
    >>> context.broker.is_available()
    True

Notes
-----
``MCP_SAMPLING_RESPONDER`` selects the responder bound at startup: ``client``
forwards prompts to the connected MCP client, ``placeholder`` answers with
canned text and ``none`` leaves sampling unavailable so every tool uses its
fallbacks.

See Also
--------
waste_mcp.mcp.server : MCP server instance
waste_mcp.services.sampling_tools : Tool service
"""

from typing import Optional

from fastmcp import FastMCP

from .config import AppConfig, get_config
from .logging_config import get_logger
from .mcp.server import mcp as default_mcp
from .sampling.broker import SamplingBroker
from .sampling.helpers import SamplingHelpers
from .sampling.responders import create_responder
from .services.sampling_tools import SamplingToolService
from .storage import RecordStore, create_store


class Context:
    """Central application context.

    Parameters
    ----------
    config : AppConfig, optional
        Application configuration (default: ``get_config()``)
    store : RecordStore, optional
        Record store (default: built from ``config.storage``)
    mcp : FastMCP, optional
        Server to register tools on (default: the module-level server)

    Attributes
    ----------
    config : AppConfig
        Application configuration
    store : RecordStore
        Read-only record store
    broker : SamplingBroker
        Sampling broker with the configured responder bound
    helpers : SamplingHelpers
        Typed sampling helpers over ``broker``
    mcp : FastMCP
        The MCP server
    service : SamplingToolService
        Sampling-aware tools, registered on ``mcp``
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        store: Optional[RecordStore] = None,
        mcp: Optional[FastMCP] = None,
    ) -> None:
        self.config = config or get_config()
        self.logger = get_logger(__name__)

        self.store = store if store is not None else create_store(self.config)

        self.broker = SamplingBroker(default_timeout=self.config.sampling.timeout_seconds)
        responder = create_responder(self.config.sampling.responder, self.broker)
        if responder is not None:
            self.broker.register_responder(responder)
        self.helpers = SamplingHelpers(self.broker)

        self.mcp = mcp if mcp is not None else default_mcp
        self.service = SamplingToolService(
            mcp=self.mcp, store=self.store, helpers=self.helpers, policy=self.config.policy
        )

        self.logger.info(
            "Application context ready",
            extra={
                "storage_backend": self.store.backend,
                "sampling_responder": self.config.sampling.responder,
                "sampling_timeout": self.config.sampling.timeout_seconds,
            },
        )

    async def close(self) -> None:
        """Release the record store."""
        await self.store.close()


_context: Optional[Context] = None


def get_context() -> Context:
    """Get the global application context, building it on first access."""
    global _context
    if _context is None:
        _context = Context()
    return _context


def reset_context() -> None:
    """Forget the global context."""
    global _context
    _context = None
