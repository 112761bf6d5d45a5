"""Client for long-lived streaming agent endpoints."""

from __future__ import annotations

import asyncio
from typing import Any, AsyncGenerator, AsyncIterator, Dict, Optional

import httpx

from .base import EventType, StreamEvent, TransportError, UpstreamError
from .frames import EventFrameDecoder

class StreamingTaskClient:
    """
    Open one POST per call and yield decoded events as they arrive.

    The event sequence ends with exactly one ``COMPLETE`` event on success.
    Failures are raised from the iterator:

    - :class:`TransportError` when the connection fails, drops, times out,
      or closes before ``COMPLETE``.
    - :class:`UpstreamError` when the endpoint answers with an error status
      or sends an ``ERROR`` frame.
    - :class:`ProtocolError` when an ``ERROR`` frame cannot be decoded.

    The client writes no external state. Abandoning the iterator closes the
    connection.
    """

    def __init__(
        self,
        base_url: str = "",
        timeout: Optional[float] = None,
        connect_timeout: float = 10.0,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.connect_timeout = connect_timeout
        self.headers = dict(headers or {})
        self.transport = transport

    def resolve_url(self, endpoint: str) -> str:
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    async def stream(
        self,
        endpoint: str,
        payload: Dict[str, Any],
        timeout: Optional[float] = None,
    ) -> AsyncGenerator[StreamEvent, None]:
        """Yield ``PROGRESS``/``STREAMING_URL`` events, then the ``COMPLETE`` event."""
        url = self.resolve_url(endpoint)
        budget = timeout if timeout is not None else self.timeout
        deadline = asyncio.get_running_loop().time() + budget if budget else None
        decoder = EventFrameDecoder()

        async with httpx.AsyncClient(timeout=self._http_timeout(budget), transport=self.transport) as client:
            try:
                async with client.stream("POST", url, json=payload, headers=self.headers) as resp:
                    if resp.status_code >= 400:
                        body = (await resp.aread()).decode(errors="replace")
                        raise UpstreamError(
                            f"{url} returned HTTP {resp.status_code}: {body[:200]}",
                            status_code=resp.status_code,
                        )

                    chunks = resp.aiter_bytes()
                    while True:
                        try:
                            chunk = await self._next_chunk(chunks, deadline, url)
                        except StopAsyncIteration:
                            break
                        for event in decoder.feed(chunk):
                            self._raise_for_error(event)
                            yield event
                            if event.type == EventType.COMPLETE:
                                return

                    for event in decoder.finish():
                        self._raise_for_error(event)
                        yield event
                        if event.type == EventType.COMPLETE:
                            return
            except httpx.TimeoutException as exc:
                raise TransportError(f"Stream from {url} timed out: {exc}") from exc
            except httpx.HTTPError as exc:
                raise TransportError(f"Stream from {url} failed: {exc}") from exc

        raise TransportError(f"Stream from {url} closed before COMPLETE")

    def _http_timeout(self, budget: Optional[float]) -> httpx.Timeout:
        return httpx.Timeout(budget or None, connect=self.connect_timeout)

    @staticmethod
    async def _next_chunk(chunks: AsyncIterator[bytes], deadline: Optional[float], url: str) -> bytes:
        if deadline is None:
            return await chunks.__anext__()
        remaining = deadline - asyncio.get_running_loop().time()
        if remaining <= 0:
            raise TransportError(f"Stream from {url} timed out")
        try:
            return await asyncio.wait_for(chunks.__anext__(), remaining)
        except asyncio.TimeoutError as exc:
            raise TransportError(f"Stream from {url} timed out") from exc

    @staticmethod
    def _raise_for_error(event: StreamEvent) -> None:
        if event.type == EventType.ERROR:
            raise UpstreamError(event.message or "Endpoint reported an error")
