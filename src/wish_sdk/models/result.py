"""Terminal outcome of a streaming call."""

from enum import Enum
from typing import Any

from pydantic import BaseModel

from wish_sdk.utils.errors import StreamCancelledError, WishApiError


class StreamStatus(str, Enum):
    """How a stream ended."""

    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class StreamResult(BaseModel):
    """Outcome resolved by a stream's task handle.

    ``implicit`` marks completions synthesized because the server closed the
    stream without sending a ``done`` event.
    """

    status: StreamStatus
    response: str | None = None
    error: Any = None
    implicit: bool = False

    @classmethod
    def completed(cls, response: str, implicit: bool = False) -> "StreamResult":
        return cls(status=StreamStatus.COMPLETED, response=response, implicit=implicit)

    @classmethod
    def failed(cls, error: Any) -> "StreamResult":
        return cls(status=StreamStatus.FAILED, error=error)

    @classmethod
    def cancelled(cls, partial: str | None = None) -> "StreamResult":
        return cls(status=StreamStatus.CANCELLED, response=partial)

    @property
    def ok(self) -> bool:
        return self.status == StreamStatus.COMPLETED

    def unwrap(self) -> str:
        """Return the response text, raising for failed or cancelled streams.

        Raises:
            WishApiError: If the stream failed.
            StreamCancelledError: If the stream was cancelled.
        """
        if self.status == StreamStatus.COMPLETED:
            return self.response or ""
        if self.status == StreamStatus.CANCELLED:
            raise StreamCancelledError("Stream was cancelled")
        raise WishApiError.from_detail(self.error)
