"""Interface shared by the live client and the test double."""

from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from typing import Any

from wish_sdk.config import Settings
from wish_sdk.core.prompt import PromptModel
from wish_sdk.core.session import StreamCallbacks
from wish_sdk.core.task import TaskHandle
from wish_sdk.models.request import StreamRequest
from wish_sdk.models.schema import PromptSchema, SchemaResponse
from wish_sdk.utils.errors import WishApiError

PromptOrSlug = PromptModel | str


def resolve_prompt(
    prompt_or_slug: PromptOrSlug,
    context_variables: Mapping[str, Any] | None = None,
) -> tuple[str, dict[str, Any]]:
    """Return the slug and merged context variables for a call.

    Explicit ``context_variables`` override a prompt model's own values.

    Raises:
        TypeError: If ``prompt_or_slug`` is neither a slug nor a PromptModel.
    """
    if isinstance(prompt_or_slug, PromptModel):
        if not type(prompt_or_slug).slug:
            raise TypeError(f"{type(prompt_or_slug).__name__} does not define a slug")
        merged = prompt_or_slug.to_context_variables()
        merged.update(context_variables or {})
        return type(prompt_or_slug).slug, merged

    if isinstance(prompt_or_slug, str):
        return prompt_or_slug, dict(context_variables or {})

    raise TypeError(
        f"Expected a prompt slug or PromptModel, got {type(prompt_or_slug).__name__}"
    )


class PromptApi(ABC):
    """Operations available against a prompt API.

    Args:
        settings: Defaults for URL, token and timeouts. Per-call ``api_url``,
                  ``api_token`` and ``timeout`` arguments override them.
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or Settings()

    def build_request(
        self,
        prompt_or_slug: PromptOrSlug,
        *,
        context_variables: Mapping[str, Any] | None = None,
        user_prompt: str | None = None,
        api_url: str | None = None,
        api_token: str | None = None,
        timeout: float | None = None,
    ) -> StreamRequest:
        """Build the immutable request for one call.

        Raises:
            ValueError: If no API URL is configured.
        """
        slug, variables = resolve_prompt(prompt_or_slug, context_variables)
        url = api_url or self.settings.api_url
        if not url:
            self.settings.validate_required()
        return StreamRequest(
            slug=slug,
            context_variables=variables,
            user_prompt=user_prompt,
            api_url=url,
            api_token=api_token or self.settings.api_token,
            timeout_seconds=timeout or self.settings.timeout_seconds,
            stream_timeout_seconds=self.settings.stream_timeout_seconds,
        )

    @abstractmethod
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
        """Run a prompt and return the complete response text.

        Raises:
            WishApiError: On a non-200 response or a transport failure.
        """

    @abstractmethod
    def start_stream(self, request: StreamRequest, callbacks: StreamCallbacks) -> TaskHandle:
        """Schedule a streaming session for a prepared request."""

    def stream(
        self,
        prompt_or_slug: PromptOrSlug,
        *,
        context_variables: Mapping[str, Any] | None = None,
        user_prompt: str | None = None,
        on_connected: Callable[[], Any] | None = None,
        on_chunk: Callable[[str], Any] | None = None,
        on_done: Callable[[str], Any] | None = None,
        on_error: Callable[[Any], Any] | None = None,
        api_url: str | None = None,
        api_token: str | None = None,
        timeout: float | None = None,
    ) -> TaskHandle:
        """Stream a prompt response, invoking callbacks as events arrive.

        Must be called with a running event loop.

        Returns:
            Handle to await or cancel the stream.
        """
        request = self.build_request(
            prompt_or_slug,
            context_variables=context_variables,
            user_prompt=user_prompt,
            api_url=api_url,
            api_token=api_token,
            timeout=timeout,
        )
        callbacks = StreamCallbacks(
            on_connected=on_connected,
            on_chunk=on_chunk,
            on_done=on_done,
            on_error=on_error,
        )
        return self.start_stream(request, callbacks)

    @abstractmethod
    async def fetch_schema(
        self,
        *,
        api_url: str | None = None,
        api_token: str | None = None,
    ) -> SchemaResponse:
        """Fetch the schemas of all published prompts."""

    async def fetch_prompt_schema(
        self,
        slug: str,
        *,
        api_url: str | None = None,
        api_token: str | None = None,
    ) -> PromptSchema:
        """Fetch the schema of one prompt.

        Raises:
            WishApiError: With status 404 if no prompt has this slug.
        """
        schema = await self.fetch_schema(api_url=api_url, api_token=api_token)
        prompt = schema.find(slug)
        if prompt is None:
            raise WishApiError(404, f"Prompt '{slug}' not found")
        return prompt

    async def aclose(self) -> None:
        """Release pooled connections, if any."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

