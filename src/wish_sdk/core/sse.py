"""Server-Sent Events parsing and encoding for prompt streams.

Parsing happens in two steps. ``parse_sse_buffer`` splits accumulated text
into complete ``EventBlock``s and returns whatever trailing text does not yet
end with a blank line. ``decode_event_block`` turns a block into a typed
stream event, or ``None`` for events the SDK does not recognise.
"""

import json
import logging
from typing import Any

from wish_sdk.models.events import (
    ChunkEvent,
    ConnectedEvent,
    DoneEvent,
    ErrorEvent,
    EventBlock,
    StreamEvent,
)

logger = logging.getLogger(__name__)

# Blank line separating two events
SSE_DELIMITER = "\n\n"

DEFAULT_EVENT_TYPE = "message"

KNOWN_EVENTS = frozenset({"connected", "chunk", "done", "error"})


def parse_event_block(block: str) -> EventBlock | None:
    """Parse the lines of one SSE block.

    Lines are ``field: value`` pairs split on the first colon. Only ``event``
    and ``data`` fields are read; the first ``event`` line names the block and
    every ``data`` line contributes one line of payload, with at most one
    leading space removed.

    Returns:
        The parsed block, or None if the block holds no lines.
    """
    lines = [line for line in block.split("\n") if line]
    if not lines:
        return None

    event_type: str | None = None
    data_lines: list[str] = []

    for line in lines:
        field, sep, value = line.partition(":")
        if not sep:
            continue
        if field == "event":
            if event_type is None:
                event_type = value.strip()
        elif field == "data":
            data_lines.append(value[1:] if value.startswith(" ") else value)

    return EventBlock(
        event=DEFAULT_EVENT_TYPE if event_type is None else event_type,
        data="\n".join(data_lines),
    )


def parse_sse_buffer(buffer: str) -> tuple[list[EventBlock], str]:
    """Extract complete event blocks from a buffer.

    Args:
        buffer: Text received so far and not yet parsed.

    Returns:
        Tuple of (complete blocks in order, remainder to keep buffering).
    """
    fragments = buffer.split(SSE_DELIMITER)
    # Empty when the buffer ended exactly on a delimiter
    remainder = fragments.pop()

    blocks = []
    for fragment in fragments:
        block = parse_event_block(fragment)
        if block is not None:
            blocks.append(block)

    return blocks, remainder


def _loads(data: str) -> tuple[bool, Any]:
    try:
        return True, json.loads(data)
    except (TypeError, ValueError):
        return False, None


def decode_event_block(block: EventBlock) -> StreamEvent | None:
    """Map an SSE block to a typed stream event.

    Never raises: malformed ``done`` or ``error`` payloads fall back to the
    raw text.
    """
    if block.event == "connected":
        return ConnectedEvent()

    if block.event == "chunk":
        return ChunkEvent(text=block.data)

    if block.event == "done":
        ok, payload = _loads(block.data)
        if ok and isinstance(payload, dict) and "response" in payload:
            response = payload["response"]
            if isinstance(response, str):
                return DoneEvent(response=response)
            if response is not None:
                return DoneEvent(response=json.dumps(response, ensure_ascii=False))
        return DoneEvent(response=block.data, explicit_response=False)

    if block.event == "error":
        ok, payload = _loads(block.data)
        if ok:
            return ErrorEvent(detail=payload)
        return ErrorEvent(detail={"message": block.data})

    if block.event != DEFAULT_EVENT_TYPE or block.data:
        logger.debug(f"Ignoring unrecognised SSE event {block.event!r}")
    return None


class SSEDecoder:
    """Incremental decoder holding the not-yet-parsed tail of a stream.

    Example usage:
        decoder = SSEDecoder()
        for fragment in fragments:
            for event in decoder.feed(fragment):
                handle(event)
    """

    def __init__(self):
        self._buffer = ""

    @property
    def buffer(self) -> str:
        """Text received but not yet part of a complete block."""
        return self._buffer

    def feed(self, text: str) -> list[StreamEvent]:
        """Append a fragment and return every event it completes."""
        if not text:
            return []

        # A CR ending one fragment pairs with the LF starting the next
        buffer = (self._buffer + text).replace("\r\n", "\n")
        blocks, self._buffer = parse_sse_buffer(buffer)

        events = []
        for block in blocks:
            event = decode_event_block(block)
            if event is not None:
                events.append(event)
        return events


def encode_sse_event(event: str, data: dict[str, Any] | str) -> str:
    """Encode a named Server-Sent Event.

    Args:
        event: Event name written on the ``event:`` line.
        data: Dictionary to encode as JSON, or text sent as-is. Multi-line
              text is split over several ``data:`` lines.

    Returns:
        SSE-formatted string ending with a blank line.
    """
    if isinstance(data, str):
        payload = data
    else:
        payload = json.dumps(data, ensure_ascii=False)

    data_lines = "".join(f"data: {line}\n" for line in payload.split("\n"))
    return f"event: {event}\n{data_lines}\n"


def encode_stream_event(event: StreamEvent) -> str:
    """Encode a typed stream event the way the prompt API sends it."""
    if isinstance(event, ConnectedEvent):
        return encode_sse_event("connected", "")
    if isinstance(event, ChunkEvent):
        return encode_sse_event("chunk", event.text)
    if isinstance(event, DoneEvent):
        return encode_sse_event("done", {"response": event.response})
    return encode_sse_event("error", event.detail)
