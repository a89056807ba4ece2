"""HTTP client for the prompt API.

Handles all communication with the remote API: invoke, stream and the
schema endpoint.
"""

import logging
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from typing import Any

import httpx
from pydantic import ValidationError

from wish_sdk.clients.base import PromptApi, PromptOrSlug
from wish_sdk.config import Settings
from wish_sdk.core.session import StreamCallbacks, StreamingSession
from wish_sdk.core.task import TaskHandle
from wish_sdk.models.request import SCHEMA_PATH, StreamRequest, build_headers, build_url
from wish_sdk.models.schema import SchemaResponse
from wish_sdk.utils.errors import (
    ErrorCode,
    WishApiError,
    connection_error,
    log_error,
    parse_error_message,
    truncate_error,
)
from wish_sdk.utils.retry import retry_with_backoff

logger = logging.getLogger(__name__)


def _response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def _raise_for_status(response: httpx.Response) -> None:
    if response.status_code == 200:
        return
    body = _response_body(response)
    raise WishApiError(
        response.status_code,
        truncate_error(parse_error_message(body)),
        detail=body,
    )


class LiveClient(PromptApi):
    """Prompt API client backed by httpx.

    Args:
        settings: SDK settings.
        http_client: Optional shared ``httpx.AsyncClient``. It is used for every
                     call and never closed by this client.
        transport: Optional transport for the per-call clients created when no
                   ``http_client`` is given.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(settings)
        self._http_client = http_client
        self._transport = transport

    @asynccontextmanager
    async def _http(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
        else:
            async with httpx.AsyncClient(transport=self._transport) as client:
                yield client

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
        """Invoke a prompt and wait for the complete response.

        Raises:
            WishApiError: ``status`` is the HTTP code for non-200 responses and
                ``"connection_error"`` when the request could not complete.
        """
        request = self.build_request(
            prompt_or_slug,
            context_variables=context_variables,
            user_prompt=user_prompt,
            api_url=api_url,
            api_token=api_token,
            timeout=timeout,
        )
        logger.debug("Invoking prompt", extra={"slug": request.slug})

        try:
            async with self._http() as client:
                response = await client.post(
                    request.invoke_url,
                    json=request.body(),
                    headers=request.headers(),
                    timeout=request.timeout_seconds,
                )
        except httpx.HTTPError as e:
            log_error(e, slug=request.slug)
            raise connection_error(e) from e

        _raise_for_status(response)

        payload = _response_body(response)
        if not isinstance(payload, dict) or "response" not in payload:
            raise WishApiError(
                ErrorCode.INVALID_RESPONSE.value,
                "Invoke response did not contain a 'response' field",
                detail=payload,
            )
        return payload["response"]

    def start_stream(self, request: StreamRequest, callbacks: StreamCallbacks) -> TaskHandle:
        session = StreamingSession(
            request,
            callbacks,
            transport=self._transport,
            client=self._http_client,
        )
        return TaskHandle.start(session)

    async def _get_json(self, url: str, headers: dict[str, str]) -> Any:
        try:
            async with self._http() as client:
                response = await client.get(
                    url, headers=headers, timeout=self.settings.timeout_seconds
                )
        except httpx.HTTPError as e:
            raise connection_error(e) from e

        _raise_for_status(response)
        return _response_body(response)

    async def fetch_schema(
        self,
        *,
        api_url: str | None = None,
        api_token: str | None = None,
    ) -> SchemaResponse:
        """Fetch schemas for all published prompts.

        Transient failures are retried with exponential backoff.

        Raises:
            WishApiError: If the request fails or the payload is not a schema.
        """
        base_url = api_url or self.settings.api_url
        if not base_url:
            self.settings.validate_required()
        headers = build_headers(
            api_token or self.settings.api_token, {"accept": "application/json"}
        )

        retry = self.settings.retry
        payload = await retry_with_backoff(
            self._get_json,
            build_url(base_url, SCHEMA_PATH),
            headers,
            max_retries=retry.max_retries,
            base_delay=retry.base_delay,
            max_delay=retry.max_delay,
        )

        if isinstance(payload, list):
            payload = {"prompts": payload}
        try:
            return SchemaResponse.model_validate(payload)
        except ValidationError as e:
            raise WishApiError(
                ErrorCode.INVALID_RESPONSE.value,
                truncate_error(f"Unexpected schema payload: {e}"),
                detail=payload,
            ) from e
