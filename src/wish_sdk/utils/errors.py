"""Error taxonomy and exceptions raised by the SDK."""

import logging
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """Classification of failures surfaced to callers."""

    # Transport errors
    CONNECTION_ERROR = "connection_error"
    TIMEOUT = "timeout"

    # HTTP status errors
    HTTP_ERROR = "http_error"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"

    # Response body could not be understood
    INVALID_RESPONSE = "invalid_response"


# Maximum length for error messages
MAX_ERROR_LENGTH = 500


class WishSdkError(Exception):
    """Base class for all SDK errors."""


class WishApiError(WishSdkError):
    """A request to the prompt API failed.

    Attributes:
        status: HTTP status code, or ``"connection_error"`` for transport failures.
        message: Human-readable description.
        detail: Structured detail as received from the server, if any.
    """

    def __init__(self, status: int | str, message: str, detail: Any = None):
        self.status = status
        self.message = message
        self.detail = detail
        super().__init__(f"[{status}] {message}")

    @classmethod
    def from_detail(cls, detail: Any) -> "WishApiError":
        """Build an error from a stream error payload of any shape."""
        if isinstance(detail, dict):
            status = detail.get("status", ErrorCode.HTTP_ERROR.value)
            message = detail.get("message") or detail.get("error") or str(detail)
            return cls(status, str(message), detail)
        return cls(ErrorCode.HTTP_ERROR.value, str(detail), detail)

    @property
    def code(self) -> ErrorCode:
        """Error code derived from the status."""
        if isinstance(self.status, int):
            return classify_status(self.status)
        try:
            return ErrorCode(self.status)
        except ValueError:
            return ErrorCode.HTTP_ERROR

    def to_detail(self) -> dict[str, Any]:
        """Return the ``{status, message}`` shape used by callbacks."""
        return {"status": self.status, "message": self.message}


class StreamCancelledError(WishSdkError):
    """A streaming call was cancelled before reaching a terminal event."""


def truncate_error(error: str, max_length: int = MAX_ERROR_LENGTH) -> str:
    """Truncate error message if too long.

    Args:
        error: The error message.
        max_length: Maximum allowed length.

    Returns:
        Truncated error message.
    """
    if len(error) <= max_length:
        return error

    return error[: max_length - 3] + "..."


def parse_error_message(body: Any) -> str:
    """Extract a message from an error response body.

    Strings are used verbatim; JSON objects are searched for an ``error``
    key, then a ``message`` key; anything else is rendered with ``repr``.
    """
    if isinstance(body, str):
        return body
    if isinstance(body, dict):
        if "error" in body:
            return str(body["error"])
        if "message" in body:
            return str(body["message"])
    return repr(body)


def classify_status(status_code: int) -> ErrorCode:
    """Map an HTTP status code to an error code."""
    if status_code in (401, 403):
        return ErrorCode.UNAUTHORIZED
    if status_code == 404:
        return ErrorCode.NOT_FOUND
    if status_code == 429:
        return ErrorCode.RATE_LIMITED
    if status_code >= 500:
        return ErrorCode.SERVER_ERROR
    return ErrorCode.HTTP_ERROR


def classify_exception(exc: Exception) -> ErrorCode:
    """Classify an exception to an error code.

    Args:
        exc: The exception to classify.

    Returns:
        Appropriate error code.
    """
    # Import here to keep this module importable without httpx initialised
    import httpx

    if isinstance(exc, WishApiError):
        return exc.code

    if isinstance(exc, httpx.HTTPStatusError):
        return classify_status(exc.response.status_code)

    if isinstance(exc, (httpx.TimeoutException, TimeoutError)):
        return ErrorCode.TIMEOUT

    if isinstance(exc, (httpx.TransportError, ConnectionError, OSError)):
        return ErrorCode.CONNECTION_ERROR

    return ErrorCode.INVALID_RESPONSE


def connection_error(exc: Exception) -> WishApiError:
    """Wrap a transport failure in the ``connection_error`` shape."""
    message = truncate_error(f"{type(exc).__name__}: {exc}")
    return WishApiError(ErrorCode.CONNECTION_ERROR.value, message)


def log_error(
    exc: Exception,
    code: ErrorCode | None = None,
    **context: Any,
) -> None:
    """Log an error with context.

    Args:
        exc: The exception that occurred.
        code: Optional pre-classified error code.
        **context: Additional context to include in log.
    """
    if code is None:
        code = classify_exception(exc)

    log_extra = {
        "error_code": code.value,
        "error_type": type(exc).__name__,
        **context,
    }

    if code == ErrorCode.INVALID_RESPONSE:
        logger.exception("Unexpected error during API call", extra=log_extra)
    else:
        logger.error(f"API call failed: {exc}", extra=log_extra)
