"""Client SDK for invoking and streaming BetterPrompt prompts."""

__version__ = "0.1.0"

from wish_sdk.clients import (
    LiveClient,
    PromptApi,
    StubClient,
    StubConfig,
    create_client,
)
from wish_sdk.config import Settings, get_settings
from wish_sdk.core.prompt import PromptModel
from wish_sdk.core.session import SessionState, StreamCallbacks
from wish_sdk.core.task import TaskHandle
from wish_sdk.models.result import StreamResult, StreamStatus
from wish_sdk.models.schema import PromptSchema, SchemaResponse
from wish_sdk.utils.errors import StreamCancelledError, WishApiError, WishSdkError

__all__ = [
    "LiveClient",
    "PromptApi",
    "PromptModel",
    "PromptSchema",
    "SchemaResponse",
    "SessionState",
    "Settings",
    "StreamCallbacks",
    "StreamCancelledError",
    "StreamResult",
    "StreamStatus",
    "StubClient",
    "StubConfig",
    "TaskHandle",
    "WishApiError",
    "WishSdkError",
    "__version__",
    "create_client",
    "get_settings",
]
