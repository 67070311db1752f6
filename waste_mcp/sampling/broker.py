"""Sampling request broker.

An MCP server normally only answers requests. Sampling turns that around: a
tool asks the connected client to run a language model and waits for the
reply. The broker owns that exchange. It gives every outbound request a
correlation id, keeps one pending entry per id with its own timer, hands the
request to the registered responder and fulfils the caller when a reply for
the id arrives, whichever comes first of reply, timeout, responder failure
and caller cancellation.

Classes
-------
SamplingKind
    Intent of a request
SamplingStatus
    Lifecycle state of a request
SamplingPayload
    Prompt, optional context blob and generation hints
SamplingRequest
    One outstanding request as handed to the responder
SamplingBroker
    Pending-request table, responder binding and timeout enforcement

Notes
-----
A responder is any callable taking a ``SamplingRequest``. It may:

- return (or complete its awaitable with) a string, which resolves the
  request inline;
- return ``None``, in which case the reply is delivered later through
  ``SamplingBroker.resolve`` (or ``resolve_threadsafe`` from another thread);
- raise, which fails the request with that same exception.

All table mutations happen on the event loop as single dictionary operations,
so resolve and timeout race per entry and the first one wins. A late reply
for an id that already timed out is discarded.

Examples
--------
    >>> broker = SamplingBroker(default_timeout=5)
    >>> broker.register_responder(lambda request: "42")
    >>> await broker.send(SamplingPayload(prompt="Rate this"))
    '42'
"""

import asyncio
import inspect
import uuid
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from ..constants import DEFAULT_SAMPLING_TIMEOUT, MODEL_PREFERENCES, REQUEST_ID_PREFIX
from ..exceptions import SamplingTimeoutError, SamplingUnavailableError
from ..logging_config import get_logger

PROMPT_PREVIEW_LENGTH = 100


class SamplingKind(str, Enum):
    FREE_TEXT = "free_text"
    STRUCTURED_SCORE = "structured_score"
    CHOICE = "choice"


class SamplingStatus(str, Enum):
    PENDING = "pending"
    RESOLVED = "resolved"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


class SamplingPayload(BaseModel):
    """What the client is asked to generate.

    Attributes
    ----------
    prompt : str
        Full prompt text sent as a single user message
    context : Any, optional
        Structured data the prompt was built from, kept for responders that
        want it
    max_tokens : int
        Generation length hint
    temperature : float
        Sampling temperature hint
    model_preferences : Dict[str, float]
        Priority hints for model selection on the client
    """

    prompt: str = Field(..., min_length=1)
    context: Optional[Any] = Field(default=None)
    max_tokens: int = Field(default=1000, ge=1)
    temperature: float = Field(default=0.7, ge=0, le=2)
    model_preferences: Dict[str, float] = Field(default_factory=lambda: dict(MODEL_PREFERENCES))


class SamplingRequest(BaseModel):
    """One outstanding server-to-client request."""

    id: str
    kind: SamplingKind = SamplingKind.FREE_TEXT
    payload: SamplingPayload
    created_at: datetime
    deadline: datetime
    status: SamplingStatus = SamplingStatus.PENDING


Responder = Callable[[SamplingRequest], Union[None, str, Awaitable[Optional[str]]]]


class _PendingEntry:
    __slots__ = ("future", "timer", "request", "task")

    def __init__(self, future: asyncio.Future, timer: asyncio.TimerHandle, request: SamplingRequest):
        self.future = future
        self.timer = timer
        self.request = request
        self.task: Optional[asyncio.Task] = None


class SamplingBroker:
    """Correlates outbound sampling requests with their replies.

    Parameters
    ----------
    default_timeout : float, optional
        Seconds a request may stay pending when ``send`` gets no explicit
        timeout (default: 30)

    Attributes
    ----------
    default_timeout : float
        Default timeout window in seconds
    stats : Dict[str, int]
        Number of requests created and of each terminal outcome
    """

    def __init__(self, default_timeout: float = DEFAULT_SAMPLING_TIMEOUT):
        self.default_timeout = default_timeout
        self.logger = get_logger(__name__)
        self.stats = {"created": 0, "resolved": 0, "timed_out": 0, "failed": 0}
        self._responder: Optional[Responder] = None
        self._pending: Dict[str, _PendingEntry] = {}
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    # Responder binding

    def register_responder(self, responder: Responder) -> None:
        """Bind the responder, replacing any previous one."""
        if self._responder is not None:
            self.logger.warning(
                "Replacing registered sampling responder",
                extra={"previous": type(self._responder).__name__, "responder": type(responder).__name__},
            )
        self._responder = responder
        self.logger.info("Sampling responder registered", extra={"responder": type(responder).__name__})

    def unregister_responder(self) -> None:
        """Remove the responder. Requests already pending are unaffected."""
        self._responder = None
        self.logger.info("Sampling responder removed")

    def is_available(self) -> bool:
        """Whether a responder is bound."""
        return self._responder is not None

    # Introspection

    def pending_count(self) -> int:
        return len(self._pending)

    def pending_ids(self) -> List[str]:
        return list(self._pending)

    def get_request(self, request_id: str) -> Optional[SamplingRequest]:
        """The pending request with this id, if any."""
        entry = self._pending.get(request_id)
        return entry.request if entry else None

    def status(self) -> Dict[str, Any]:
        """Snapshot used by the readiness probe."""
        return {"available": self.is_available(), "pending": self.pending_count(), **self.stats}

    # Request lifecycle

    def _new_id(self) -> str:
        while True:
            request_id = f"{REQUEST_ID_PREFIX}{uuid.uuid4().hex}"
            if request_id not in self._pending:
                return request_id

    async def send(
        self,
        payload: SamplingPayload,
        kind: SamplingKind = SamplingKind.FREE_TEXT,
        timeout: Optional[float] = None,
    ) -> str:
        """Send a request to the responder and wait for its reply.

        Parameters
        ----------
        payload : SamplingPayload
            Prompt and generation hints
        kind : SamplingKind, optional
            Intent of the request (default: free text)
        timeout : float, optional
            Seconds to wait (default: ``default_timeout``)

        Returns
        -------
        str
            The reply content, exactly as delivered

        Raises
        ------
        SamplingUnavailableError
            No responder is registered. Nothing is recorded.
        SamplingTimeoutError
            No reply arrived within the timeout window
        Exception
            Whatever the responder raised
        """
        responder = self._responder
        if responder is None:
            raise SamplingUnavailableError()

        loop = asyncio.get_running_loop()
        self._loop = loop
        window = self.default_timeout if timeout is None else timeout

        request_id = self._new_id()
        created_at = datetime.now(timezone.utc)
        request = SamplingRequest(
            id=request_id,
            kind=kind,
            payload=payload,
            created_at=created_at,
            deadline=created_at + timedelta(seconds=window),
        )
        future = loop.create_future()
        timer = loop.call_later(window, self._expire, request_id, window)
        entry = _PendingEntry(future, timer, request)
        self._pending[request_id] = entry
        self.stats["created"] += 1

        self.logger.info(
            "Sampling request created", extra={"sampling_id": request_id, "kind": kind.value, "timeout": window}
        )
        self.logger.debug(
            "Sampling prompt preview",
            extra={"sampling_id": request_id, "prompt_preview": payload.prompt[:PROMPT_PREVIEW_LENGTH]},
        )

        try:
            reply = responder(request)
        except Exception as e:
            self._release(request_id, SamplingStatus.FAILED)
            future.cancel()
            self.logger.error(
                "Sampling responder failed",
                extra={"sampling_id": request_id, "error_type": type(e).__name__, "error": str(e)},
            )
            raise

        if inspect.isawaitable(reply):
            entry.task = asyncio.ensure_future(self._await_responder(request_id, reply))
        elif reply is not None:
            self.resolve(request_id, reply)

        try:
            return await future
        except asyncio.CancelledError:
            self._release(request_id, SamplingStatus.FAILED)
            self.logger.info("Sampling request cancelled by caller", extra={"sampling_id": request_id})
            raise
        finally:
            if entry.task is not None and not entry.task.done():
                entry.task.cancel()

    async def _await_responder(self, request_id: str, reply: Awaitable[Optional[str]]) -> None:
        try:
            content = await reply
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._fail(request_id, e)
            return
        if content is not None:
            self.resolve(request_id, content)

    def _release(self, request_id: str, status: SamplingStatus) -> Optional[_PendingEntry]:
        entry = self._pending.pop(request_id, None)
        if entry is None:
            return None
        entry.timer.cancel()
        entry.request.status = status
        self.stats[status.value] += 1
        return entry

    def resolve(self, request_id: str, content: str) -> bool:
        """Deliver the reply for a pending request.

        Parameters
        ----------
        request_id : str
            Correlation id the request was sent with
        content : str
            Reply text

        Returns
        -------
        bool
            True if a pending request was fulfilled; False if the id is
            unknown, already resolved, timed out or failed
        """
        entry = self._release(request_id, SamplingStatus.RESOLVED)
        if entry is None:
            self.logger.info("Discarding sampling reply for unknown request", extra={"sampling_id": request_id})
            return False
        if not entry.future.done():
            entry.future.set_result(content)
        self.logger.info("Sampling request resolved", extra={"sampling_id": request_id})
        return True

    def resolve_threadsafe(self, request_id: str, content: str) -> None:
        """Schedule ``resolve`` on the broker's loop from another thread."""
        if self._loop is None or self._loop.is_closed():
            self.logger.info("Discarding sampling reply, broker has no loop", extra={"sampling_id": request_id})
            return
        self._loop.call_soon_threadsafe(self.resolve, request_id, content)

    def _expire(self, request_id: str, window: float) -> None:
        entry = self._release(request_id, SamplingStatus.TIMED_OUT)
        if entry is None:
            return
        self.logger.warning("Sampling request timed out", extra={"sampling_id": request_id, "timeout": window})
        if not entry.future.done():
            entry.future.set_exception(
                SamplingTimeoutError(
                    f"Sampling request timed out after {window:g} seconds",
                    details={"sampling_id": request_id, "timeout": window},
                )
            )

    def _fail(self, request_id: str, error: Exception) -> None:
        entry = self._release(request_id, SamplingStatus.FAILED)
        if entry is None:
            return
        self.logger.error(
            "Sampling responder failed",
            extra={"sampling_id": request_id, "error_type": type(error).__name__, "error": str(error)},
        )
        if not entry.future.done():
            entry.future.set_exception(error)
