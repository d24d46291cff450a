"""
Streaming chat-completion client over httpx.

Each send() opens one connection, feeds the response body into a fresh
StreamingSession and reports ordered deltas plus one terminal outcome.
No retry is performed.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncGenerator, Generator
from typing import Any

import httpx

from scanhelper.logging_utils import operation_context

from .exceptions import ConstructionError, LLMError, TransportError
from .models import ChatRequest, ProviderConfig
from .streaming.session import (
    ChunkCallback,
    CompleteCallback,
    Dispatcher,
    ErrorCallback,
    StreamingSession,
)


class StreamHandle:
    """Handle for one in-flight send(); awaitable and cancellable."""

    def __init__(self, session: StreamingSession, task: asyncio.Task[None]):
        self.session = session
        self.task = task

    def cancel(self) -> None:
        """Drop the session and cancel the underlying transport task."""
        self.session.cancel()
        self.task.cancel()

    def done(self) -> bool:
        return self.task.done()

    def __await__(self) -> Generator[Any, None, None]:
        return self.task.__await__()


class StreamingChatClient:
    """HTTP client for streaming chat completions."""

    def __init__(
        self,
        config: ProviderConfig,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config
        self._owns_client = http_client is None
        self.client: httpx.AsyncClient = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(
                connect=config.connect_timeout,
                read=config.read_timeout,
                write=config.write_timeout,
                pool=config.pool_timeout,
            ),
        )

    def send(
        self,
        request: ChatRequest,
        on_chunk: ChunkCallback,
        on_complete: CompleteCallback,
        on_error: ErrorCallback,
        *,
        dispatcher: Dispatcher | None = None,
    ) -> StreamHandle:
        """
        Start streaming `request` in a background task.

        Must be called from a running event loop. Callbacks run inline on
        that loop unless a dispatcher is given.
        """
        session = StreamingSession(
            on_chunk,
            on_complete,
            on_error,
            dispatcher=dispatcher,
            context={
                "provider": self.config.provider.value,
                "model": request.model,
            },
        )
        task = asyncio.get_running_loop().create_task(self._run(request, session))
        return StreamHandle(session, task)

    async def stream(self, request: ChatRequest) -> AsyncGenerator[str]:
        """
        Yield text deltas for `request` as they arrive.

        Raises:
            ConstructionError: If the request cannot be built.
            TransportError: If the connection fails before the stream ends.
        """
        queue: asyncio.Queue[tuple[str, Any]] = asyncio.Queue()

        handle = self.send(
            request,
            lambda text: queue.put_nowait(("chunk", text)),
            lambda: queue.put_nowait(("done", None)),
            lambda error: queue.put_nowait(("error", error)),
        )
        try:
            while True:
                kind, value = await queue.get()
                if kind == "chunk":
                    yield value
                elif kind == "error":
                    raise value
                else:
                    return
        finally:
            if not handle.done():
                handle.cancel()

    async def _run(self, request: ChatRequest, session: StreamingSession) -> None:
        try:
            http_request = self._build_request(request)
        except ConstructionError as e:
            session.finish(e)
            return

        context = {"session_id": session.session_id, "model": request.model}
        async with operation_context("chat_completion_stream", context=context):
            try:
                response = await self.client.send(http_request, stream=True)
                try:
                    if not response.is_success:
                        error_text = (await response.aread()).decode(
                            "utf-8", errors="replace"
                        )
                        raise TransportError(
                            f"Streaming API error {response.status_code}: "
                            f"{error_text}",
                            provider=self.config.provider.value,
                            model=request.model,
                            status_code=response.status_code,
                        )

                    async for data in response.aiter_bytes():
                        if not session.feed(data):
                            break
                finally:
                    await response.aclose()

            except asyncio.CancelledError:
                session.cancel()
                raise
            except httpx.HTTPError as e:
                error = TransportError(
                    f"HTTP error during streaming: {e!s}",
                    provider=self.config.provider.value,
                    model=request.model,
                )
                error.__cause__ = e
                session.finish(error)
                return
            except LLMError as e:
                session.finish(e)
                return
            except Exception as e:
                # Raised by a caller callback; keep the terminal guarantee
                session.finish(e)
                raise

            session.finish()

    def _build_request(self, request: ChatRequest) -> httpx.Request:
        """Build the POST request; any failure here is a ConstructionError."""
        url = self._endpoint(request)
        body = self._encode(request)
        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }
        try:
            return self.client.build_request(
                "POST", url, content=body, headers=headers
            )
        except (UnicodeEncodeError, httpx.InvalidURL) as e:
            raise ConstructionError(
                f"Request cannot be built: {e}",
                provider=self.config.provider.value,
                model=request.model,
            ) from e

    def _endpoint(self, request: ChatRequest) -> httpx.URL:
        """Resolve and validate the chat-completions URL."""
        try:
            url = httpx.URL(self.config.endpoint)
        except (httpx.InvalidURL, TypeError) as e:
            raise ConstructionError(
                f"Invalid endpoint URL {self.config.base_url!r}: {e}",
                provider=self.config.provider.value,
                model=request.model,
            ) from e

        if url.scheme not in ("http", "https") or not url.host:
            raise ConstructionError(
                f"Invalid endpoint URL {self.config.base_url!r}",
                provider=self.config.provider.value,
                model=request.model,
            )
        return url

    def _encode(self, request: ChatRequest) -> bytes:
        """Serialize the request body."""
        payload = request.to_payload()
        try:
            return json.dumps(payload, allow_nan=False).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise ConstructionError(
                f"Request body cannot be serialized: {e}",
                provider=self.config.provider.value,
                model=request.model,
            ) from e

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> StreamingChatClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()
