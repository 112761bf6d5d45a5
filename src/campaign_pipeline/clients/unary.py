"""Request/response agent clients: the real HTTP client and a fake stand-in."""

from __future__ import annotations

import asyncio
import copy
import json
import time
from typing import Any, Callable, Dict, Mapping, Optional, Union

import httpx

from .base import CallResult, ProtocolError, TaskError, TransportError, UpstreamError

CannedResponse = Union[Dict[str, Any], Callable[[Dict[str, Any]], Dict[str, Any]], TaskError]


class UnaryTaskClient:
    """Perform one POST per call and return a :class:`CallResult`; never raises for call failures."""

    def __init__(
        self,
        base_url: str = "",
        timeout: Optional[float] = 120.0,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.headers = dict(headers or {})
        self.transport = transport

    def resolve_url(self, endpoint: str) -> str:
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    async def call(
        self,
        endpoint: str,
        payload: Dict[str, Any],
        timeout: Optional[float] = None,
    ) -> CallResult:
        url = self.resolve_url(endpoint)
        budget = timeout if timeout is not None else self.timeout
        start = time.perf_counter()

        async with httpx.AsyncClient(timeout=budget or None, transport=self.transport) as client:
            try:
                resp = await client.post(url, json=payload, headers=self.headers)
            except httpx.TimeoutException as exc:
                return CallResult.failure(
                    TransportError(f"{url} timed out after {budget}s: {exc}"), _elapsed_ms(start)
                )
            except httpx.HTTPError as exc:
                return CallResult.failure(TransportError(f"{url} request failed: {exc}"), _elapsed_ms(start))

        latency_ms = _elapsed_ms(start)
        if resp.status_code >= 400:
            return CallResult.failure(
                UpstreamError(_error_message(resp), status_code=resp.status_code), latency_ms
            )

        try:
            data = resp.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            return CallResult.failure(
                ProtocolError(f"{url} returned invalid JSON: {exc}", status_code=resp.status_code), latency_ms
            )
        if not isinstance(data, dict):
            return CallResult.failure(
                ProtocolError(f"{url} returned {type(data).__name__}, expected an object", status_code=resp.status_code),
                latency_ms,
            )
        return CallResult.success(data, status_code=resp.status_code, latency_ms=latency_ms)


class FakeUnaryTaskClient:
    """
    Stand-in for :class:`UnaryTaskClient` that answers from canned payloads.

    Used for agents whose real endpoint is not wired yet and for offline runs.
    A canned entry may be a dict, a callable of the request payload, or a
    :class:`TaskError` instance to simulate a failure.
    """

    def __init__(
        self,
        responses: Optional[Mapping[str, CannedResponse]] = None,
        delay: float = 0.0,
    ) -> None:
        self.responses: Dict[str, CannedResponse] = dict(responses or {})
        self.delay = delay
        self.calls: list[tuple[str, Dict[str, Any]]] = []

    def set_response(self, endpoint: str, response: CannedResponse) -> None:
        self.responses[endpoint] = response

    async def call(
        self,
        endpoint: str,
        payload: Dict[str, Any],
        timeout: Optional[float] = None,
    ) -> CallResult:
        self.calls.append((endpoint, payload))
        start = time.perf_counter()

        if self.delay:
            if timeout and self.delay > timeout:
                await asyncio.sleep(timeout)
                return CallResult.failure(
                    TransportError(f"{endpoint} timed out after {timeout}s"), _elapsed_ms(start)
                )
            await asyncio.sleep(self.delay)

        canned = self.responses.get(endpoint)
        if canned is None:
            return CallResult.failure(
                UpstreamError(f"No canned response for {endpoint}", status_code=404), _elapsed_ms(start)
            )
        if isinstance(canned, TaskError):
            return CallResult.failure(canned, _elapsed_ms(start))
        data = canned(payload) if callable(canned) else copy.deepcopy(canned)
        return CallResult.success(data, status_code=200, latency_ms=_elapsed_ms(start))


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        body = None
    if isinstance(body, dict):
        for key in ("error", "message"):
            if body.get(key):
                return str(body[key])
    text = resp.text.strip()
    return text[:200] if text else f"HTTP {resp.status_code}"


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)
