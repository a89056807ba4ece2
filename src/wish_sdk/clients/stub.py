"""Deterministic test double for the prompt API.

``StubClient`` has the same interface as ``LiveClient`` but never touches the
network. Streams are served as real SSE bodies through an in-memory httpx
transport, so callbacks behave exactly as they do against a live server.

Configuration lives on the ``StubConfig`` instance passed in, so two stubs
never share state:

    stub = StubClient(StubConfig())
    stub.set_response("medical-summary", "Mocked response")
    stub.set_stream("patient-onboarding", ["Hello", " ", "world"], chunk_delay=0)
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Mapping
from typing import Any

import httpx
from pydantic import BaseModel, Field

from wish_sdk.clients.base import PromptApi, PromptOrSlug, resolve_prompt
from wish_sdk.config import Settings
from wish_sdk.core.session import StreamCallbacks, StreamingSession
from wish_sdk.core.sse import encode_stream_event
from wish_sdk.core.task import TaskHandle
from wish_sdk.models.events import ChunkEvent, ConnectedEvent, DoneEvent, ErrorEvent
from wish_sdk.models.request import EVENT_STREAM_MEDIA_TYPE, StreamRequest
from wish_sdk.models.schema import PromptSchema, SchemaResponse
from wish_sdk.utils.errors import WishApiError

logger = logging.getLogger(__name__)

STUB_API_URL = "http://wish-stub.invalid"

DEFAULT_RESPONSE = (
    "**Mock Response**\n\n"
    "This is a stub response. Configure specific responses with "
    "`StubClient.set_response()`.\n"
)

DEFAULT_CHUNKS = [
    "**Streaming ",
    "Response**\n\n",
    "This is ",
    "a stub ",
    "stream.",
]

DEFAULT_CHUNK_DELAY = 0.1  # seconds


def _default_schema() -> list[PromptSchema]:
    return [
        PromptSchema(
            slug="medical-summary",
            name="Medical Summary",
            description="Generate comprehensive medical case summaries",
            required_context_variables=["case_id"],
            optional_context_variables=["document_id"],
        ),
        PromptSchema(
            slug="test-prompt",
            name="Test Prompt",
            description="A test prompt for development",
            required_context_variables=[],
            optional_context_variables=["optional_var"],
        ),
    ]


class StubStream(BaseModel):
    """Chunks served for one slug."""

    chunks: list[str]
    chunk_delay: float = Field(default=DEFAULT_CHUNK_DELAY, ge=0)


class StubConfig(BaseModel):
    """Canned responses keyed by prompt slug."""

    responses: dict[str, str] = Field(default_factory=dict)
    streams: dict[str, StubStream] = Field(default_factory=dict)
    errors: dict[str, Any] = Field(default_factory=dict)
    prompts: list[PromptSchema] = Field(default_factory=_default_schema)
    default_response: str = DEFAULT_RESPONSE
    default_stream: StubStream = Field(
        default_factory=lambda: StubStream(chunks=list(DEFAULT_CHUNKS))
    )


class StubClient(PromptApi):
    """Prompt API double returning canned data.

    Args:
        config: Canned responses. A fresh default config is used when omitted.
        settings: Optional settings; a placeholder API URL is filled in when
                  none is configured.
    """

    def __init__(self, config: StubConfig | None = None, settings: Settings | None = None):
        settings = settings or Settings()
        if not settings.api_url:
            settings = settings.model_copy(update={"api_url": STUB_API_URL})
        super().__init__(settings)
        self.config = config or StubConfig()

    # =========================================================================
    # Configuration helpers
    # =========================================================================

    def set_response(self, slug: str, response: str) -> None:
        """Set the text ``invoke`` returns for ``slug``."""
        self.config.responses[slug] = response

    def set_stream(
        self, slug: str, chunks: list[str], chunk_delay: float = DEFAULT_CHUNK_DELAY
    ) -> None:
        """Set the chunks ``stream`` emits for ``slug``."""
        self.config.streams[slug] = StubStream(chunks=list(chunks), chunk_delay=chunk_delay)

    def set_error(self, slug: str, detail: Any) -> None:
        """Make every call for ``slug`` fail with ``detail``."""
        self.config.errors[slug] = detail

    def clear(self) -> None:
        """Forget all per-slug configuration."""
        self.config.responses.clear()
        self.config.streams.clear()
        self.config.errors.clear()

    # =========================================================================
    # PromptApi
    # =========================================================================

    async def invoke(
        self,
        prompt_or_slug: PromptOrSlug,
        *,
        context_variables: Mapping[str, Any] | None = None,
        user_prompt: str | None = None,
        api_url: str | None = None,
        api_token: str | None = None,
        timeout: float | None = None,
    ) -> str:
        slug, _ = resolve_prompt(prompt_or_slug, context_variables)
        if slug in self.config.errors:
            raise WishApiError.from_detail(self.config.errors[slug])
        return self.config.responses.get(slug, self.config.default_response)

    def _stream_for(self, slug: str) -> StubStream:
        return self.config.streams.get(slug, self.config.default_stream)

    def _transport_for(self, slug: str) -> httpx.MockTransport:
        stream = self._stream_for(slug)
        error = self.config.errors.get(slug)

        async def body() -> AsyncIterator[bytes]:
            yield encode_stream_event(ConnectedEvent()).encode()
            for index, chunk in enumerate(stream.chunks):
                if index and stream.chunk_delay:
                    await asyncio.sleep(stream.chunk_delay)
                yield encode_stream_event(ChunkEvent(text=chunk)).encode()
            if error is not None:
                yield encode_stream_event(ErrorEvent(detail=error)).encode()
            else:
                done = DoneEvent(response="".join(stream.chunks))
                yield encode_stream_event(done).encode()

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                headers={"content-type": EVENT_STREAM_MEDIA_TYPE},
                content=body(),
            )

        return httpx.MockTransport(handler)

    def start_stream(self, request: StreamRequest, callbacks: StreamCallbacks) -> TaskHandle:
        logger.debug("Serving stub stream", extra={"slug": request.slug})
        session = StreamingSession(
            request, callbacks, transport=self._transport_for(request.slug)
        )
        return TaskHandle.start(session)

    async def fetch_schema(
        self,
        *,
        api_url: str | None = None,
        api_token: str | None = None,
    ) -> SchemaResponse:
        return SchemaResponse(prompts=list(self.config.prompts))
