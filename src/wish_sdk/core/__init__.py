"""Streaming engine, typed prompt wrappers and code generation."""

from wish_sdk.core.prompt import PromptModel
from wish_sdk.core.session import SessionState, StreamCallbacks, StreamingSession
from wish_sdk.core.sse import (
    SSEDecoder,
    decode_event_block,
    encode_sse_event,
    encode_stream_event,
    parse_event_block,
    parse_sse_buffer,
)
from wish_sdk.core.task import TaskHandle

__all__ = [
    "PromptModel",
    "SSEDecoder",
    "SessionState",
    "StreamCallbacks",
    "StreamingSession",
    "TaskHandle",
    "decode_event_block",
    "encode_sse_event",
    "encode_stream_event",
    "parse_event_block",
    "parse_sse_buffer",
]
