"""Shared fixtures: fake SSE servers and callback recorders."""

import asyncio
import json
from collections.abc import Callable

import httpx
import pytest

from wish_sdk.config import Settings
from wish_sdk.core.session import StreamCallbacks
from wish_sdk.models.request import StreamRequest

API_URL = "https://wish.test"


class CallbackRecorder:
    """Records callback invocations in order."""

    def __init__(self):
        self.calls: list[tuple] = []
        self.connected = asyncio.Event()

    def callbacks(self) -> StreamCallbacks:
        return StreamCallbacks(
            on_connected=self.on_connected,
            on_chunk=self.on_chunk,
            on_done=self.on_done,
            on_error=self.on_error,
        )

    def on_connected(self) -> None:
        self.calls.append(("connected",))
        self.connected.set()

    def on_chunk(self, text: str) -> None:
        self.calls.append(("chunk", text))

    def on_done(self, response: str) -> None:
        self.calls.append(("done", response))

    def on_error(self, detail) -> None:
        self.calls.append(("error", detail))

    @property
    def names(self) -> list[str]:
        return [call[0] for call in self.calls]


class FakeServer:
    """In-memory prompt API serving canned SSE bodies.

    Attributes:
        requests: Every request received, in order.
        closed: Set once a streamed body stops being consumed.
    """

    def __init__(
        self,
        fragments: list[str] | None = None,
        status_code: int = 200,
        body: bytes | None = None,
        hang_after: int | None = None,
        raise_after: Exception | None = None,
        json_body=None,
    ):
        self.fragments = fragments or []
        self.status_code = status_code
        self.body = body
        self.hang_after = hang_after
        self.raise_after = raise_after
        self.json_body = json_body
        self.requests: list[httpx.Request] = []
        self.closed = asyncio.Event()

    async def _stream(self):
        try:
            for index, fragment in enumerate(self.fragments):
                if self.hang_after is not None and index >= self.hang_after:
                    break
                yield fragment.encode()
            if self.hang_after is not None:
                await asyncio.sleep(3600)
            if self.raise_after is not None:
                raise self.raise_after
        finally:
            self.closed.set()

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.json_body is not None:
            return httpx.Response(self.status_code, json=self.json_body)
        if self.body is not None:
            return httpx.Response(self.status_code, content=self.body)
        return httpx.Response(
            self.status_code,
            headers={"content-type": "text/event-stream"},
            content=self._stream(),
        )

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def last_json(self):
        return json.loads(self.requests[-1].content)


@pytest.fixture
def recorder() -> CallbackRecorder:
    return CallbackRecorder()


@pytest.fixture
def fake_server() -> Callable[..., FakeServer]:
    return FakeServer


@pytest.fixture
def settings() -> Settings:
    return Settings(api_url=API_URL, api_token="secret-token")


@pytest.fixture
def stream_request() -> StreamRequest:
    return StreamRequest(
        slug="medical-summary",
        context_variables={"case_id": "123"},
        api_url=API_URL,
        api_token="secret-token",
    )
