"""Error types, retry and logging helpers."""

from wish_sdk.utils.errors import (
    ErrorCode,
    StreamCancelledError,
    WishApiError,
    WishSdkError,
)
from wish_sdk.utils.retry import (
    RetryError,
    calculate_backoff_delay,
    is_retryable_error,
    retry_with_backoff,
)

__all__ = [
    "ErrorCode",
    "RetryError",
    "StreamCancelledError",
    "WishApiError",
    "WishSdkError",
    "calculate_backoff_delay",
    "is_retryable_error",
    "retry_with_backoff",
]
