"""Sampling responders.

A responder receives each ``SamplingRequest`` the broker sends. Two
interchangeable implementations are provided:

PlaceholderResponder
    Answers every request with a deterministic canned reply, delivered back
    through ``broker.resolve`` on the next loop iteration. Useful for demos
    and for exercising the asynchronous reply path without a client model.
ClientSamplingResponder
    Forwards the prompt to the MCP client connected to the current tool call
    (``sampling/createMessage``) and returns its text inline.

``create_responder`` picks one from ``SamplingConfig.responder``.
"""

import asyncio
import json
from abc import ABC, abstractmethod
from typing import Optional

import mcp.types as mcp_types
from fastmcp.server.dependencies import get_context

from ..exceptions import ConfigurationError, SamplingParseError, SamplingUnavailableError
from ..logging_config import get_logger
from .broker import SamplingBroker, SamplingKind, SamplingRequest

logger = get_logger(__name__)


class SamplingResponder(ABC):
    """Callable bound to a broker with ``register_responder``."""

    name = "responder"

    @abstractmethod
    async def __call__(self, request: SamplingRequest) -> Optional[str]:
        """Handle one request.

        Returns
        -------
        str or None
            The reply, or None when it will be delivered through
            ``SamplingBroker.resolve`` later
        """


class PlaceholderResponder(SamplingResponder):
    """Deterministic replies, delivered asynchronously through the broker."""

    name = "placeholder"

    ANALYSIS_REPLY = (
        "[Placeholder analysis - no language model is attached to this server]\n"
        "1. Review the most recent inspection outcomes for rejected deliveries.\n"
        "2. Check whether high-risk contaminants cluster around specific sources.\n"
        "3. Confirm that shipment processing times match staffing levels.\n"
        "4. Verify waste type declarations against contract terms.\n"
        "5. Record all findings in the compliance report."
    )
    RISK_REPLY = json.dumps(
        {"score": 50, "reasoning": "Placeholder assessment - no language model is attached to this server"}
    )
    CHOICE_REPLY = "A) Placeholder selection - no language model is attached to this server"

    def __init__(self, broker: SamplingBroker):
        self.broker = broker

    def reply_for(self, request: SamplingRequest) -> str:
        if request.kind == SamplingKind.STRUCTURED_SCORE:
            return self.RISK_REPLY
        if request.kind == SamplingKind.CHOICE:
            return self.CHOICE_REPLY
        return self.ANALYSIS_REPLY

    async def __call__(self, request: SamplingRequest) -> Optional[str]:
        reply = self.reply_for(request)
        asyncio.get_running_loop().call_soon(self.broker.resolve, request.id, reply)
        return None


class ClientSamplingResponder(SamplingResponder):
    """Delegates generation to the MCP client of the active tool call."""

    name = "client"

    async def __call__(self, request: SamplingRequest) -> Optional[str]:
        try:
            ctx = get_context()
            session = ctx.session
        except RuntimeError as e:
            raise SamplingUnavailableError(
                "Sampling is not available - no active MCP request context", details={"sampling_id": request.id}
            ) from e

        payload = request.payload
        preferences = mcp_types.ModelPreferences(
            intelligence_priority=payload.model_preferences.get("intelligence_priority"),
            speed_priority=payload.model_preferences.get("speed_priority"),
            cost_priority=payload.model_preferences.get("cost_priority"),
        )
        result = await session.create_message(
            messages=[
                mcp_types.SamplingMessage(
                    role="user", content=mcp_types.TextContent(type="text", text=payload.prompt)
                )
            ],
            max_tokens=payload.max_tokens,
            temperature=payload.temperature,
            model_preferences=preferences,
            related_request_id=ctx.origin_request_id,
        )
        logger.debug("Client sampling reply received", extra={"sampling_id": request.id, "model": result.model})
        return self._text_of(result.content, request.id)

    @staticmethod
    def _text_of(content, request_id: str) -> str:
        blocks = content if isinstance(content, list) else [content]
        texts = [block.text for block in blocks if isinstance(block, mcp_types.TextContent)]
        if not texts:
            raise SamplingParseError(
                "Client sampling reply contained no text",
                details={"sampling_id": request_id, "content_types": [getattr(b, "type", "?") for b in blocks]},
            )
        return "\n".join(texts)


def create_responder(name: str, broker: SamplingBroker) -> Optional[SamplingResponder]:
    """Build the responder selected by configuration.

    Parameters
    ----------
    name : str
        ``none``, ``placeholder`` or ``client``
    broker : SamplingBroker
        Broker the placeholder delivers its replies to

    Returns
    -------
    SamplingResponder or None
        None for ``none``
    """
    if name == "none":
        return None
    if name == PlaceholderResponder.name:
        return PlaceholderResponder(broker)
    if name == ClientSamplingResponder.name:
        return ClientSamplingResponder()
    raise ConfigurationError(f"Unknown sampling responder: {name}", details={"choices": ["none", "placeholder", "client"]})
