"""Server-Sent Event data models for prompt streams.

The remote API emits four named events: ``connected``, ``chunk``, ``done``
and ``error``. Anything else on the wire is ignored.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

# =============================================================================
# Wire-level block
# =============================================================================


class EventBlock(BaseModel):
    """One complete SSE block: an event name plus its joined data lines."""

    model_config = ConfigDict(frozen=True)

    event: str = "message"
    data: str = ""


# =============================================================================
# Application events
# =============================================================================


class ConnectedEvent(BaseModel):
    """The server accepted the stream."""

    type: Literal["connected"] = "connected"


class ChunkEvent(BaseModel):
    """Incremental fragment of the generated response."""

    type: Literal["chunk"] = "chunk"
    text: str


class DoneEvent(BaseModel):
    """Stream completed.

    ``explicit_response`` is False when the server's payload carried no
    ``response`` field and the raw data was used instead. ``implicit`` is True
    when no ``done`` event arrived at all and completion was synthesized at
    end of stream.
    """

    type: Literal["done"] = "done"
    response: str
    explicit_response: bool = True
    implicit: bool = False


class ErrorEvent(BaseModel):
    """The server (or the transport) reported a failure."""

    type: Literal["error"] = "error"
    detail: Any


# =============================================================================
# Union type for all possible stream events
# =============================================================================

StreamEvent = Annotated[
    Union[
        ConnectedEvent,
        ChunkEvent,
        DoneEvent,
        ErrorEvent,
    ],
    Field(discriminator="type"),
]
