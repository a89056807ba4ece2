"""Prompt API clients: the live httpx client and the deterministic stub."""

from wish_sdk.clients.base import PromptApi, PromptOrSlug, resolve_prompt
from wish_sdk.clients.live import LiveClient
from wish_sdk.clients.stub import StubClient, StubConfig, StubStream
from wish_sdk.config import Settings


def create_client(
    settings: Settings | None = None,
    *,
    stub: StubConfig | bool = False,
) -> PromptApi:
    """Build a prompt API client.

    The implementation is chosen by the ``stub`` argument alone, never by
    inspecting the environment.

    Args:
        settings: SDK settings.
        stub: False for the live client, True for a stub with default canned
              data, or a ``StubConfig`` for a configured stub.

    Returns:
        A ``LiveClient`` or ``StubClient``.
    """
    if stub is False:
        return LiveClient(settings)
    config = stub if isinstance(stub, StubConfig) else None
    return StubClient(config, settings=settings)


__all__ = [
    "LiveClient",
    "PromptApi",
    "PromptOrSlug",
    "StubClient",
    "StubConfig",
    "StubStream",
    "create_client",
    "resolve_prompt",
]
