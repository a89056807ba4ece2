"""Cancellable, awaitable handle for a running stream."""

import asyncio
import logging
from collections.abc import Generator
from typing import Any

from wish_sdk.core.session import SessionState, StreamingSession
from wish_sdk.models.result import StreamResult

logger = logging.getLogger(__name__)


class TaskHandle:
    """Handle returned by ``stream()`` for one in-flight session.

    The session runs as its own asyncio task. Awaiting the handle (or calling
    ``wait()``) suspends until the session is terminal; ``cancel()`` aborts the
    underlying connection.

    Example usage:
        handle = client.stream("summary", on_chunk=print)
        result = await handle
        text = result.unwrap()
    """

    def __init__(self, session: StreamingSession, task: asyncio.Task):
        self._session = session
        self._task = task

    @classmethod
    def start(cls, session: StreamingSession) -> "TaskHandle":
        """Schedule a session on the running event loop.

        Raises:
            RuntimeError: If called without a running event loop.
        """
        task = asyncio.get_running_loop().create_task(
            session.run(), name=f"wish-stream-{session.request.slug}"
        )
        return cls(session, task)

    @property
    def session(self) -> StreamingSession:
        return self._session

    @property
    def state(self) -> SessionState:
        """Current session state."""
        return self._session.state

    @property
    def result(self) -> StreamResult | None:
        """Terminal outcome, or None while still running."""
        return self._session.result

    def done(self) -> bool:
        """True once the session has reached a terminal state."""
        return self._session.is_terminal

    def cancel(self) -> bool:
        """Abort the stream.

        Callbacks stop firing immediately; the connection is closed when the
        session task next resumes. Idempotent and a no-op once terminal.

        Returns:
            True if this call cancelled a running stream.
        """
        if self._session.is_terminal:
            return False
        self._session.mark_cancelled()
        self._task.cancel()
        return True

    async def wait(self) -> StreamResult:
        """Suspend until the stream ends and return its outcome.

        Cancellation of the stream resolves to a cancelled result. Cancelling
        the task that awaits the handle still propagates to that caller.
        """
        try:
            return await asyncio.shield(self._task)
        except asyncio.CancelledError:
            if not self._task.cancelled():
                raise
        if self._session.result is None:
            # Cancelled before the session ever ran
            self._session.mark_cancelled()
        assert self._session.result is not None
        return self._session.result

    def __await__(self) -> Generator[Any, None, StreamResult]:
        return self.wait().__await__()
