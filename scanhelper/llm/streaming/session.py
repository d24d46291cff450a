"""
Streaming session: one per outstanding request.

A session is fed raw bytes by whatever transport is in use and turns them
into ordered chunk callbacks plus exactly one terminal callback. It knows
nothing about HTTP, so tests can drive it with synthetic byte chunks.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Callable
from typing import Any

from scanhelper.logging_utils import ContextualLogger

from ..exceptions import DecodeError
from .models import Delta, SessionState
from .parser import FrameParser

ChunkCallback = Callable[[str], None]
CompleteCallback = Callable[[], None]
ErrorCallback = Callable[[BaseException], None]
Dispatcher = Callable[[Callable[[], None]], None]


def inline_dispatcher(callback: Callable[[], None]) -> None:
    """Invoke the callback immediately on the current thread."""
    callback()


def loop_dispatcher(loop: asyncio.AbstractEventLoop) -> Dispatcher:
    """Schedule callbacks onto `loop` in FIFO order, from any thread."""
    def dispatch(callback: Callable[[], None]) -> None:
        loop.call_soon_threadsafe(callback)
    return dispatch


class StreamingSession:
    """
    Carry-over buffer plus callback contract for one chat-completion stream.

    State machine: IDLE -> STREAMING -> COMPLETED | FAILED | CANCELLED.
    Once terminal, feed() and finish() are no-ops. Callbacks are routed
    through the dispatcher; a cancelled session drops callbacks that were
    already queued but not yet run.
    """

    def __init__(
        self,
        on_chunk: ChunkCallback,
        on_complete: CompleteCallback,
        on_error: ErrorCallback,
        *,
        dispatcher: Dispatcher | None = None,
        context: dict[str, Any] | None = None,
    ):
        self.session_id = uuid.uuid4().hex[:12]
        self.state = SessionState.IDLE
        self.parser = FrameParser()
        self.error: BaseException | None = None

        self._on_chunk = on_chunk
        self._on_complete = on_complete
        self._on_error = on_error
        self._dispatch = dispatcher or inline_dispatcher
        self._cancelled = False
        self._logger = ContextualLogger(
            {"session_id": self.session_id, **(context or {})}
        )

    @property
    def closed(self) -> bool:
        return self.state.is_terminal

    @property
    def stats(self):
        return self.parser.stats

    def feed(self, data: bytes | str) -> bool:
        """
        Process one chunk of the response body.

        Returns:
            False once the session is closed and no more bytes are wanted.
        """
        if self.closed:
            return False
        self.state = SessionState.STREAMING

        for frame in self.parser.feed(data):
            if frame.is_terminator:
                self._logger.debug("Terminator frame received")
                self._terminate(SessionState.COMPLETED)
                return False

            try:
                delta = Delta.from_payload(frame.payload)
            except DecodeError as e:
                self.stats.frames_dropped += 1
                self._logger.debug(
                    "Dropping undecodable frame",
                    error_message=str(e),
                    payload=frame.payload[:200],
                )
                continue

            if delta.has_text:
                self.stats.deltas_delivered += 1
                self._deliver(self._on_chunk, delta.content)

        return True

    def finish(self, error: BaseException | None = None) -> None:
        """Signal the end of the connection, cleanly or with `error`."""
        if self.closed:
            return

        tail = self.parser.close()
        if tail:
            self._logger.debug("Discarding unterminated line", length=len(tail))

        if error is None:
            self._terminate(SessionState.COMPLETED)
        else:
            self.error = error
            self._terminate(SessionState.FAILED)

    def cancel(self) -> None:
        """Abandon the session; no callback fires after this returns."""
        self._cancelled = True
        if self.closed:
            return
        self.state = SessionState.CANCELLED
        self._logger.info("Session cancelled", **self.stats.as_dict())

    def _terminate(self, state: SessionState) -> None:
        self.state = state
        if state is SessionState.FAILED:
            self._logger.error(
                "Stream failed",
                error_type=type(self.error).__name__,
                error_message=str(self.error),
                **self.stats.as_dict(),
            )
            self._deliver(self._on_error, self.error)
        else:
            self._logger.info("Stream completed", **self.stats.as_dict())
            self._deliver(self._on_complete)

    def _deliver(self, callback: Callable[..., None], *args: Any) -> None:
        def invoke() -> None:
            if self._cancelled:
                return
            callback(*args)

        self._dispatch(invoke)
