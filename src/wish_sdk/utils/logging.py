"""Structured logging helpers with JSON format support."""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone

# Identifier of the streaming session running in the current task
stream_id_var: ContextVar[str | None] = ContextVar("stream_id", default=None)

_EXTRA_KEYS = ("slug", "status", "state", "duration_ms", "error_code", "error_type")


class JsonFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        stream_id = stream_id_var.get()
        if stream_id:
            log_entry["stream_id"] = stream_id

        for key in _EXTRA_KEYS:
            if hasattr(record, key):
                value = getattr(record, key)
                if value is not None:
                    log_entry[key] = value

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class TextFormatter(logging.Formatter):
    """Text log formatter for interactive use."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as text with a stream id prefix."""
        message = super().format(record)
        stream_id = stream_id_var.get()
        if stream_id:
            return f"[{stream_id[:8]}] {message}"
        return message


def configure_logging(
    level: str = "INFO",
    format: str = "text",
) -> None:
    """Configure logging for command line use.

    The SDK never calls this on import; applications embedding it keep
    control of their own handlers.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR).
        format: Output format (json or text).
    """
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(getattr(logging, level.upper()))

    if format == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(TextFormatter())

    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level.upper()))

    # Reduce noise from the HTTP stack
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
