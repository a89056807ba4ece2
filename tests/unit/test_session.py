"""Tests for the streaming session."""

import logging

import httpx
import pytest

from wish_sdk.core.session import SessionState, StreamCallbacks, StreamingSession
from wish_sdk.models.events import ChunkEvent, ConnectedEvent, DoneEvent, ErrorEvent
from wish_sdk.models.result import StreamStatus

FULL_BODY = (
    "event: connected\ndata: \n\n"
    "event: chunk\ndata: Hello\n\n"
    "event: chunk\ndata:  world\n\n"
    'event: done\ndata: {"response":"Hello world"}\n\n'
)


async def run_session(server, request, recorder):
    session = StreamingSession(request, recorder.callbacks(), transport=server.transport)
    result = await session.run()
    return session, result


class TestEndToEnd:
    """Full streams dispatched through a session."""

    @pytest.mark.asyncio
    async def test_callbacks_in_order(self, fake_server, stream_request, recorder):
        """Test the canonical stream fires callbacks in arrival order."""
        server = fake_server([FULL_BODY])
        session, result = await run_session(server, stream_request, recorder)

        assert recorder.calls == [
            ("connected",),
            ("chunk", "Hello"),
            ("chunk", " world"),
            ("done", "Hello world"),
        ]
        assert result.status == StreamStatus.COMPLETED
        assert result.response == "Hello world"
        assert result.implicit is False
        assert session.state == SessionState.DONE
        assert session.accumulated == "Hello world"

    @pytest.mark.asyncio
    async def test_fragmented_body(self, fake_server, stream_request, recorder):
        """Test arbitrary network fragmentation does not change dispatch."""
        fragments = [FULL_BODY[i : i + 7] for i in range(0, len(FULL_BODY), 7)]
        server = fake_server(fragments)
        _, result = await run_session(server, stream_request, recorder)

        assert recorder.names == ["connected", "chunk", "chunk", "done"]
        assert result.response == "Hello world"

    @pytest.mark.asyncio
    async def test_implicit_done_on_close(self, fake_server, stream_request, recorder):
        """Test a stream closing without done completes with accumulated text."""
        server = fake_server(["event: chunk\ndata: A\n\n", "event: chunk\ndata: B\n\n"])
        session, result = await run_session(server, stream_request, recorder)

        assert recorder.calls == [("chunk", "A"), ("chunk", "B"), ("done", "AB")]
        assert result.status == StreamStatus.COMPLETED
        assert result.response == "AB"
        assert result.implicit is True
        assert session.state == SessionState.DONE

    @pytest.mark.asyncio
    async def test_incomplete_trailing_block_discarded(
        self, fake_server, stream_request, recorder
    ):
        """Test a final block without a blank line is not dispatched."""
        server = fake_server(["event: chunk\ndata: A\n\nevent: chunk\ndata: B"])
        _, result = await run_session(server, stream_request, recorder)

        assert recorder.calls == [("chunk", "A"), ("done", "A")]
        assert result.implicit is True

    @pytest.mark.asyncio
    async def test_empty_stream(self, fake_server, stream_request, recorder):
        """Test an empty body resolves to an empty implicit completion."""
        _, result = await run_session(fake_server([]), stream_request, recorder)

        assert recorder.calls == [("done", "")]
        assert result.response == ""
        assert result.implicit is True

    @pytest.mark.asyncio
    async def test_done_without_response_field_uses_accumulator(
        self, fake_server, stream_request, recorder
    ):
        """Test on_done receives the accumulated text when the payload has no response."""
        server = fake_server(
            ["event: chunk\ndata: Hi\n\nevent: chunk\ndata: !\n\nevent: done\ndata: {}\n\n"]
        )
        _, result = await run_session(server, stream_request, recorder)

        assert recorder.calls[-1] == ("done", "Hi!")
        assert result.response == "Hi!"
        assert result.implicit is False

    @pytest.mark.asyncio
    async def test_done_with_null_response_uses_accumulator(
        self, fake_server, stream_request, recorder
    ):
        """Test a null response field is treated like a missing one."""
        server = fake_server(
            ['event: chunk\ndata: Hi\n\nevent: done\ndata: {"response": null}\n\n']
        )
        _, result = await run_session(server, stream_request, recorder)

        assert recorder.calls == [("chunk", "Hi"), ("done", "Hi")]
        assert result.response == "Hi"

    @pytest.mark.asyncio
    async def test_malformed_done_without_chunks(self, fake_server, stream_request, recorder):
        """Test a raw-text done payload is used when nothing was accumulated."""
        server = fake_server(["event: done\ndata: not-json\n\n"])
        _, result = await run_session(server, stream_request, recorder)

        assert recorder.calls == [("done", "not-json")]
        assert result.response == "not-json"

    @pytest.mark.asyncio
    async def test_server_error_event(self, fake_server, stream_request, recorder):
        """Test an error event fails the session."""
        server = fake_server(
            ['event: chunk\ndata: A\n\nevent: error\ndata: {"message": "quota"}\n\n']
        )
        session, result = await run_session(server, stream_request, recorder)

        assert recorder.calls == [("chunk", "A"), ("error", {"message": "quota"})]
        assert result.status == StreamStatus.FAILED
        assert result.error == {"message": "quota"}
        assert session.state == SessionState.ERRORED

    @pytest.mark.asyncio
    async def test_ignores_unknown_events(self, fake_server, stream_request, recorder):
        """Test unrecognised events and comments are skipped."""
        server = fake_server(
            [": ping\n\nevent: heartbeat\ndata: x\n\ndata: plain\n\nevent: chunk\ndata: A\n\n"]
        )
        _, result = await run_session(server, stream_request, recorder)

        assert recorder.calls == [("chunk", "A"), ("done", "A")]


class TestTerminalOrdering:
    """Exactly one terminal callback, always last."""

    @pytest.mark.asyncio
    async def test_events_after_done_ignored(self, fake_server, stream_request, recorder):
        """Test nothing is dispatched after done."""
        server = fake_server(
            [
                'event: done\ndata: {"response": "X"}\n\n',
                "event: chunk\ndata: late\n\nevent: error\ndata: oops\n\n",
            ]
        )
        _, result = await run_session(server, stream_request, recorder)

        assert recorder.calls == [("done", "X")]
        assert result.response == "X"

    @pytest.mark.asyncio
    async def test_done_after_error_ignored(self, fake_server, stream_request, recorder):
        """Test nothing is dispatched after error, even in the same read."""
        server = fake_server(
            ['event: error\ndata: bad\n\nevent: done\ndata: {"response": "X"}\n\n']
        )
        _, result = await run_session(server, stream_request, recorder)

        assert recorder.calls == [("error", {"message": "bad"})]
        assert result.status == StreamStatus.FAILED

    @pytest.mark.asyncio
    async def test_connected_at_most_once_and_first(
        self, fake_server, stream_request, recorder
    ):
        """Test late or repeated connected events are dropped."""
        server = fake_server(
            [
                "event: chunk\ndata: A\n\n"
                "event: connected\ndata: \n\n"
                "event: connected\ndata: \n\n"
                'event: done\ndata: {"response": "A"}\n\n'
            ]
        )
        await run_session(server, stream_request, recorder)

        assert recorder.names == ["chunk", "done"]


class TestFailures:
    """Transport and HTTP failures."""

    @pytest.mark.asyncio
    async def test_non_200_response(self, fake_server, stream_request, recorder):
        """Test an HTTP error status is reported through on_error."""
        server = fake_server(status_code=401, body=b'{"error": "invalid token"}')
        session, result = await run_session(server, stream_request, recorder)

        assert recorder.calls == [("error", {"status": 401, "message": "invalid token"})]
        assert result.status == StreamStatus.FAILED
        assert session.state == SessionState.ERRORED

    @pytest.mark.asyncio
    async def test_non_200_plain_text_body(self, fake_server, stream_request, recorder):
        """Test a plain-text error body becomes the message."""
        server = fake_server(status_code=502, body=b"Bad Gateway")
        _, result = await run_session(server, stream_request, recorder)

        assert result.error == {"status": 502, "message": "Bad Gateway"}

    @pytest.mark.asyncio
    async def test_connect_error(self, stream_request, recorder):
        """Test a connection failure is reported as connection_error."""

        def refuse(request):
            raise httpx.ConnectError("Connection refused")

        session = StreamingSession(
            stream_request, recorder.callbacks(), transport=httpx.MockTransport(refuse)
        )
        result = await session.run()

        assert recorder.names == ["error"]
        detail = recorder.calls[0][1]
        assert detail["status"] == "connection_error"
        assert "Connection refused" in detail["message"]
        assert result.status == StreamStatus.FAILED

    @pytest.mark.asyncio
    async def test_read_error_mid_stream(self, fake_server, stream_request, recorder):
        """Test an I/O failure after some chunks still ends with on_error."""
        server = fake_server(
            ["event: chunk\ndata: A\n\n"], raise_after=httpx.ReadError("reset by peer")
        )
        _, result = await run_session(server, stream_request, recorder)

        assert recorder.names == ["chunk", "error"]
        assert result.error["status"] == "connection_error"
        assert server.closed.is_set()


class TestCallbackIsolation:
    """Callback exceptions never break a session."""

    @pytest.mark.asyncio
    async def test_failing_on_chunk_does_not_block_done(
        self, fake_server, stream_request, recorder, caplog
    ):
        """Test a raising on_chunk is logged and dispatch continues."""
        chunks = []

        def bad_chunk(text):
            chunks.append(text)
            raise RuntimeError("callback bug")

        callbacks = StreamCallbacks(on_chunk=bad_chunk, on_done=recorder.on_done)
        session = StreamingSession(
            stream_request, callbacks, transport=fake_server([FULL_BODY]).transport
        )

        with caplog.at_level(logging.ERROR, logger="wish_sdk.core.session"):
            result = await session.run()

        assert chunks == ["Hello", " world"]
        assert recorder.calls == [("done", "Hello world")]
        assert result.response == "Hello world"
        assert "on_chunk raised" in caplog.text

    @pytest.mark.asyncio
    async def test_no_callbacks(self, fake_server, stream_request):
        """Test a session runs without any callbacks registered."""
        session = StreamingSession(stream_request, transport=fake_server([FULL_BODY]).transport)
        result = await session.run()
        assert result.response == "Hello world"


class TestRequest:
    """What the session sends."""

    @pytest.mark.asyncio
    async def test_request_shape(self, fake_server, stream_request, recorder):
        """Test URL, headers and JSON body of the stream request."""
        server = fake_server([FULL_BODY])
        await run_session(server, stream_request, recorder)

        request = server.requests[0]
        assert request.method == "POST"
        assert str(request.url) == "https://wish.test/api/better-prompt/medical-summary/stream"
        assert request.headers["accept"] == "text/event-stream"
        assert request.headers["content-type"] == "application/json"
        assert request.headers["x-platform-internal-call-token"] == "secret-token"
        assert server.last_json == {"context_variables": {"case_id": "123"}}

    @pytest.mark.asyncio
    async def test_user_prompt_and_no_token(self, fake_server, stream_request, recorder):
        """Test user_prompt is sent and the token header omitted without a token."""
        request = stream_request.model_copy(
            update={"api_token": None, "user_prompt": "What are the symptoms?"}
        )
        server = fake_server([FULL_BODY])
        await run_session(server, request, recorder)

        assert "x-platform-internal-call-token" not in server.requests[0].headers
        assert server.last_json == {
            "context_variables": {"case_id": "123"},
            "user_prompt": "What are the symptoms?",
        }

    @pytest.mark.asyncio
    async def test_shared_client_left_open(self, fake_server, stream_request, recorder):
        """Test an injected client is not closed by the session."""
        server = fake_server([FULL_BODY])
        async with httpx.AsyncClient(transport=server.transport) as client:
            session = StreamingSession(stream_request, recorder.callbacks(), client=client)
            result = await session.run()
            assert not client.is_closed
        assert result.response == "Hello world"


class TestDispatch:
    """Direct dispatch without a transport."""

    def test_state_transitions(self, stream_request):
        """Test Idle -> Streaming -> Done and terminal stickiness."""
        session = StreamingSession(stream_request)
        assert session.state == SessionState.IDLE

        session.dispatch(ConnectedEvent())
        assert session.state == SessionState.STREAMING

        session.dispatch(ChunkEvent(text="x"))
        session.dispatch(DoneEvent(response="x"))
        assert session.state == SessionState.DONE

        session.dispatch(ErrorEvent(detail="late"))
        session.mark_cancelled()
        assert session.state == SessionState.DONE
        assert session.result.response == "x"

    def test_accumulator_order(self, stream_request, recorder):
        """Test the accumulator concatenates chunks in dispatch order."""
        session = StreamingSession(stream_request, recorder.callbacks())
        for text in ["a", "", "b", " c"]:
            session.dispatch(ChunkEvent(text=text))
        assert session.accumulated == "ab c"

    def test_mark_cancelled_blocks_dispatch(self, stream_request, recorder):
        """Test no callbacks fire after cancellation."""
        session = StreamingSession(stream_request, recorder.callbacks())
        session.dispatch(ChunkEvent(text="a"))
        session.mark_cancelled()
        session.dispatch(ChunkEvent(text="b"))
        session.dispatch(DoneEvent(response="ab"))

        assert recorder.calls == [("chunk", "a")]
        assert session.state == SessionState.CANCELLED
        assert session.result.status == StreamStatus.CANCELLED
        assert session.result.response == "a"
