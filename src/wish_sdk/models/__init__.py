"""Data models for requests, stream events, schemas and results."""

from wish_sdk.models.events import (
    ChunkEvent,
    ConnectedEvent,
    DoneEvent,
    ErrorEvent,
    EventBlock,
    StreamEvent,
)
from wish_sdk.models.request import StreamRequest
from wish_sdk.models.result import StreamResult, StreamStatus
from wish_sdk.models.schema import ContextVariable, PromptSchema, SchemaResponse

__all__ = [
    "ChunkEvent",
    "ConnectedEvent",
    "ContextVariable",
    "DoneEvent",
    "ErrorEvent",
    "EventBlock",
    "PromptSchema",
    "SchemaResponse",
    "StreamEvent",
    "StreamRequest",
    "StreamResult",
    "StreamStatus",
]
