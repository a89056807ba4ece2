"""Streaming session: one prompt stream from request to terminal event.

A session posts the request, feeds response text through an ``SSEDecoder``
and dispatches each decoded event to the caller's callbacks in arrival order.
Exactly one of ``on_done`` / ``on_error`` ends a session that is not
cancelled, and nothing is dispatched afterwards.
"""

import asyncio
import json
import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx

from wish_sdk.core.sse import SSEDecoder
from wish_sdk.models.events import (
    ChunkEvent,
    ConnectedEvent,
    DoneEvent,
    ErrorEvent,
    StreamEvent,
)
from wish_sdk.models.request import StreamRequest
from wish_sdk.models.result import StreamResult
from wish_sdk.utils.errors import connection_error, parse_error_message, truncate_error
from wish_sdk.utils.logging import stream_id_var

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    """Lifecycle of a streaming session."""

    IDLE = "idle"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    DONE = "done"
    ERRORED = "errored"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.DONE, SessionState.ERRORED, SessionState.CANCELLED)


@dataclass(frozen=True)
class StreamCallbacks:
    """Optional callbacks invoked synchronously on the session's task."""

    on_connected: Callable[[], Any] | None = None
    on_chunk: Callable[[str], Any] | None = None
    on_done: Callable[[str], Any] | None = None
    on_error: Callable[[Any], Any] | None = None


class StreamingSession:
    """Owns one streaming request and the state derived from it.

    Args:
        request: What to stream.
        callbacks: Caller callbacks.
        transport: Optional httpx transport; when given, a client is built on
                   it for this session only (used by the test double).
        client: Optional shared ``httpx.AsyncClient``. The session never
                closes a client it did not create.
    """

    def __init__(
        self,
        request: StreamRequest,
        callbacks: StreamCallbacks | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.request = request
        self.callbacks = callbacks or StreamCallbacks()
        self.stream_id = uuid.uuid4().hex
        self._transport = transport
        self._client = client
        self._decoder = SSEDecoder()
        self._chunks: list[str] = []
        self._state = SessionState.IDLE
        self._result: StreamResult | None = None
        self._cancel_requested = False

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def accumulated(self) -> str:
        """Concatenation of every chunk dispatched so far."""
        return "".join(self._chunks)

    @property
    def result(self) -> StreamResult | None:
        """Terminal outcome, or None while the session is running."""
        return self._result

    @property
    def is_terminal(self) -> bool:
        return self._state.is_terminal

    def _transition(self, state: SessionState) -> None:
        if self._state.is_terminal:
            return
        logger.debug(f"Session {self._state.value} -> {state.value}", extra={"state": state.value})
        self._state = state

    # =========================================================================
    # Cancellation
    # =========================================================================

    def mark_cancelled(self) -> None:
        """Stop dispatching and record a cancelled outcome.

        No-op once the session is terminal.
        """
        if self._state.is_terminal:
            return
        self._cancel_requested = True
        self._transition(SessionState.CANCELLED)
        self._result = StreamResult.cancelled(partial=self.accumulated or None)
        logger.info(
            "Stream cancelled",
            extra={"slug": self.request.slug, "state": self._state.value},
        )

    # =========================================================================
    # Dispatch
    # =========================================================================

    def _invoke(self, name: str, *args: Any) -> None:
        callback = getattr(self.callbacks, name)
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.exception(f"Stream callback {name} raised", extra={"slug": self.request.slug})

    def dispatch(self, event: StreamEvent) -> None:
        """Apply one event to the session and notify the caller."""
        if self._state.is_terminal or self._cancel_requested:
            return

        if isinstance(event, ConnectedEvent):
            if self._state == SessionState.STREAMING:
                logger.debug("Ignoring connected event after stream start")
                return
            self._transition(SessionState.STREAMING)
            self._invoke("on_connected")

        elif isinstance(event, ChunkEvent):
            self._transition(SessionState.STREAMING)
            self._chunks.append(event.text)
            self._invoke("on_chunk", event.text)

        elif isinstance(event, DoneEvent):
            response = event.response
            if not event.explicit_response and self._chunks:
                response = self.accumulated
            self._transition(SessionState.DONE)
            self._result = StreamResult.completed(response, implicit=event.implicit)
            self._invoke("on_done", response)

        elif isinstance(event, ErrorEvent):
            self._transition(SessionState.ERRORED)
            self._result = StreamResult.failed(event.detail)
            self._invoke("on_error", event.detail)

    def feed(self, text: str) -> None:
        """Parse a fragment of the response body and dispatch its events."""
        for event in self._decoder.feed(text):
            self.dispatch(event)
            if self._state.is_terminal:
                break

    def finish(self) -> None:
        """Resolve a stream whose transport closed without a terminal event."""
        if self._state.is_terminal:
            return
        if self._decoder.buffer.strip():
            logger.debug(
                "Discarding incomplete trailing SSE block",
                extra={"slug": self.request.slug},
            )
        logger.warning(
            "Stream closed without a done event; completing with accumulated text",
            extra={"slug": self.request.slug},
        )
        self.dispatch(DoneEvent(response=self.accumulated, implicit=True))

    def fail(self, detail: dict[str, Any]) -> None:
        self.dispatch(ErrorEvent(detail=detail))

    # =========================================================================
    # Transport
    # =========================================================================

    def _timeout(self) -> httpx.Timeout:
        return httpx.Timeout(
            self.request.timeout_seconds,
            read=self.request.stream_timeout_seconds,
        )

    async def _consume(self, client: httpx.AsyncClient) -> None:
        async with client.stream(
            "POST",
            self.request.stream_url,
            json=self.request.body(),
            headers=self.request.headers(stream=True),
            timeout=self._timeout(),
        ) as response:
            if response.status_code != 200:
                body = await response.aread()
                self.fail(
                    {
                        "status": response.status_code,
                        "message": truncate_error(parse_error_message(_decode_body(body))),
                    }
                )
                return

            async for text in response.aiter_text():
                self.feed(text)
                if self._state.is_terminal:
                    # Leaving the context manager closes the connection
                    return

        self.finish()

    async def run(self) -> StreamResult:
        """Run the session to a terminal state.

        Returns:
            The terminal outcome. Transport failures resolve as failed results
            rather than raising.

        Raises:
            asyncio.CancelledError: If the surrounding task is cancelled.
        """
        token = stream_id_var.set(self.stream_id)
        start_time = time.perf_counter()
        self._transition(SessionState.CONNECTING)
        logger.info("Stream started", extra={"slug": self.request.slug})

        try:
            if self._client is not None:
                await self._consume(self._client)
            else:
                async with httpx.AsyncClient(transport=self._transport) as client:
                    await self._consume(client)
        except asyncio.CancelledError:
            self.mark_cancelled()
            raise
        except httpx.HTTPError as e:
            logger.warning(
                f"Stream transport failed: {type(e).__name__}: {e}",
                extra={"slug": self.request.slug, "error_type": type(e).__name__},
            )
            self.fail(connection_error(e).to_detail())
        except Exception as e:
            logger.exception(
                "Unexpected error while streaming",
                extra={"slug": self.request.slug, "error_type": type(e).__name__},
            )
            self.fail(connection_error(e).to_detail())
        finally:
            duration_ms = int((time.perf_counter() - start_time) * 1000)
            logger.info(
                "Stream finished",
                extra={
                    "slug": self.request.slug,
                    "state": self._state.value,
                    "duration_ms": duration_ms,
                },
            )
            stream_id_var.reset(token)

        assert self._result is not None
        return self._result


def _decode_body(body: bytes) -> Any:
    text = body.decode("utf-8", errors="replace")
    try:
        return json.loads(text)
    except ValueError:
        return text
