import asyncio
import json

import httpx

from campaign_pipeline.clients.base import ProtocolError, TransportError, UpstreamError
from campaign_pipeline.clients.unary import FakeUnaryTaskClient, UnaryTaskClient


def _client(handler) -> UnaryTaskClient:
    return UnaryTaskClient(base_url="https://agents.test", transport=httpx.MockTransport(handler))


def test_call_returns_parsed_payload():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/functions/v1/brand-analysis"
        assert json.loads(request.content) == {"url": "https://example.com", "run_id": "r1"}
        return httpx.Response(200, json={"business_type": "cafe"})

    result = asyncio.run(
        _client(handler).call("/functions/v1/brand-analysis", {"url": "https://example.com", "run_id": "r1"})
    )

    assert result.succeeded
    assert result.payload == {"business_type": "cafe"}
    assert result.status_code == 200
    assert result.latency_ms is not None


def test_error_status_becomes_upstream_failure():
    def handler(request):
        return httpx.Response(422, json={"error": "url unreachable"})

    result = asyncio.run(_client(handler).call("/x", {}))

    assert not result.succeeded
    assert isinstance(result.error, UpstreamError)
    assert result.error.message == "url unreachable"
    assert result.status_code == 422


def test_invalid_json_is_protocol_failure():
    def handler(request):
        return httpx.Response(200, content=b"<html>oops</html>")

    result = asyncio.run(_client(handler).call("/x", {}))

    assert isinstance(result.error, ProtocolError)


def test_non_object_json_is_protocol_failure():
    def handler(request):
        return httpx.Response(200, json=[1, 2])

    result = asyncio.run(_client(handler).call("/x", {}))

    assert isinstance(result.error, ProtocolError)


def test_timeout_returns_failure_instead_of_raising():
    def handler(request):
        raise httpx.ReadTimeout("too slow", request=request)

    result = asyncio.run(_client(handler).call("/x", {}, timeout=0.1))

    assert isinstance(result.error, TransportError)
    assert "timed out" in result.error.message


def test_fake_client_answers_from_canned_payloads():
    fake = FakeUnaryTaskClient({"/plan": {"objective": "Leads"}, "/echo": lambda p: {"seen": p["url"]}})

    plan = asyncio.run(fake.call("/plan", {"url": "u"}))
    echo = asyncio.run(fake.call("/echo", {"url": "u"}))
    missing = asyncio.run(fake.call("/nope", {}))

    assert plan.payload == {"objective": "Leads"}
    assert echo.payload == {"seen": "u"}
    assert isinstance(missing.error, UpstreamError)
    assert missing.status_code == 404
    assert [endpoint for endpoint, _ in fake.calls] == ["/plan", "/echo", "/nope"]


def test_fake_client_can_simulate_failures_and_timeouts():
    fake = FakeUnaryTaskClient({"/fail": UpstreamError("quota exceeded", status_code=429)})

    failed = asyncio.run(fake.call("/fail", {}))
    assert failed.error.status_code == 429

    slow = FakeUnaryTaskClient({"/slow": {"ok": True}}, delay=0.2)
    timed_out = asyncio.run(slow.call("/slow", {}, timeout=0.01))
    assert isinstance(timed_out.error, TransportError)


def test_fake_client_payloads_do_not_share_nested_data():
    canned = {"ads": [{"headline": "Try us"}]}
    fake = FakeUnaryTaskClient({"/creative": canned})

    first = asyncio.run(fake.call("/creative", {}))
    first.payload["ads"].append({"headline": "mutated"})
    first.payload["ads"][0]["headline"] = "changed"
    second = asyncio.run(fake.call("/creative", {}))

    assert second.payload == {"ads": [{"headline": "Try us"}]}
    assert canned == {"ads": [{"headline": "Try us"}]}
