"""Tests for the outbound httpx clients (retry policy, error mapping, pacing)."""

from __future__ import annotations

import json
import logging

import httpx
import pytest

from shopgate.adapters.http.client import ApiClient, OrderApiClient, ShopifyApiClient
from shopgate.adapters.http.factory import (
    create_generic_client,
    create_order_api_client,
    create_shopify_client,
    get_shopify_rate_limiter,
)
from shopgate.adapters.rate_limit.token_bucket import TokenBucketLimiter
from shopgate.core.errors import ErrorKind, ValidationAppError


class Recorder:
    """Collects requests and replays a list of scripted outcomes."""

    def __init__(self, *outcomes) -> None:
        self.outcomes = list(outcomes)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class SleepRecorder:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def make_client(recorder: Recorder, sleeps: SleepRecorder, **kwargs) -> ApiClient:
    return ApiClient(
        "https://api.example.com/v2",
        transport=httpx.MockTransport(recorder),
        sleep=sleeps,
        retry_delay_seconds=1.0,
        **kwargs,
    )


@pytest.mark.asyncio
async def test_successful_json_request():
    recorder = Recorder(httpx.Response(200, json={"ok": True}, headers={"X-Test": "1"}))
    client = make_client(recorder, SleepRecorder())

    response = await client.get("/items", params={"limit": 5})

    assert response.data == {"ok": True}
    assert response.status_code == 200
    assert response.headers["x-test"] == "1"
    assert response.request_id
    sent = recorder.requests[0]
    assert str(sent.url) == "https://api.example.com/v2/items?limit=5"
    assert sent.headers["User-Agent"] == "Shopify-App/1.0"
    assert sent.headers["Content-Type"] == "application/json"


@pytest.mark.asyncio
async def test_post_sends_json_body():
    recorder = Recorder(httpx.Response(201, json={"id": 7}))
    client = make_client(recorder, SleepRecorder())

    response = await client.post("/items", {"name": "x"})

    assert response.status_code == 201
    assert json.loads(recorder.requests[0].content) == {"name": "x"}


@pytest.mark.asyncio
async def test_empty_success_body_is_none():
    client = make_client(Recorder(httpx.Response(204)), SleepRecorder())

    assert (await client.delete("/items/1")).data is None


@pytest.mark.asyncio
async def test_client_errors_are_not_retried():
    recorder = Recorder(httpx.Response(404, text="missing"))
    sleeps = SleepRecorder()
    client = make_client(recorder, sleeps)

    with pytest.raises(Exception) as exc_info:
        await client.get("/items/9")

    error = exc_info.value
    assert error.kind is ErrorKind.EXTERNAL_API
    assert error.status_code == 404
    assert error.context["api_name"] == "api.example.com"
    assert error.context["response_data"] == "missing"
    assert len(recorder.requests) == 1
    assert sleeps.calls == []


@pytest.mark.asyncio
async def test_server_errors_are_retried_with_linear_backoff():
    recorder = Recorder(
        httpx.Response(500),
        httpx.Response(502),
        httpx.Response(200, json={"ok": True}),
    )
    sleeps = SleepRecorder()
    client = make_client(recorder, sleeps, retries=3)

    response = await client.get("/items")

    assert response.data == {"ok": True}
    assert len(recorder.requests) == 3
    assert sleeps.calls == [1.0, 2.0]


@pytest.mark.asyncio
async def test_last_server_error_is_raised_after_all_attempts():
    recorder = Recorder(httpx.Response(503))
    sleeps = SleepRecorder()
    client = make_client(recorder, sleeps, retries=3)

    with pytest.raises(Exception) as exc_info:
        await client.get("/items")

    assert exc_info.value.status_code == 503
    assert len(recorder.requests) == 3
    assert sleeps.calls == [1.0, 2.0]


@pytest.mark.asyncio
async def test_exhausted_retries_log_one_failure(caplog):
    client = make_client(Recorder(httpx.ReadTimeout("slow")), SleepRecorder(), retries=2)

    with caplog.at_level(logging.WARNING, logger="shopgate.adapters.http.client"):
        with pytest.raises(Exception):
            await client.get("/items")

    failed = [r for r in caplog.records if r.getMessage() == "api_client.failed"]
    retried = [r for r in caplog.records if r.getMessage() == "api_client.retry"]
    assert len(failed) == 1
    assert failed[0].attempts == 2
    assert failed[0].status_code == 408
    assert len(retried) == 1


@pytest.mark.asyncio
async def test_timeout_maps_to_408():
    recorder = Recorder(httpx.ReadTimeout("slow"))
    client = make_client(recorder, SleepRecorder(), retries=2)

    with pytest.raises(Exception) as exc_info:
        await client.get("/items")

    assert exc_info.value.kind is ErrorKind.EXTERNAL_API
    assert exc_info.value.status_code == 408
    assert len(recorder.requests) == 2


@pytest.mark.asyncio
async def test_network_error_maps_to_500():
    recorder = Recorder(httpx.ConnectError("refused"))
    client = make_client(recorder, SleepRecorder(), retries=1)

    with pytest.raises(Exception) as exc_info:
        await client.get("/items")

    assert exc_info.value.status_code == 500
    assert "Network error" in exc_info.value.message


@pytest.mark.asyncio
async def test_non_json_success_body_is_502():
    client = make_client(Recorder(httpx.Response(200, text="<html>oops</html>")), SleepRecorder())

    with pytest.raises(Exception) as exc_info:
        await client.get("/items")

    assert exc_info.value.status_code == 502


def test_invalid_constructor_args():
    with pytest.raises(ValueError):
        ApiClient(retries=0)
    with pytest.raises(ValueError):
        ApiClient(timeout_seconds=0)


class TestShopifyClient:
    @pytest.mark.asyncio
    async def test_waits_on_bucket_and_sends_access_token(self):
        recorder = Recorder(httpx.Response(200, json={"products": []}))
        bucket = TokenBucketLimiter(max_tokens=3)
        client = ShopifyApiClient(
            "demo.myshopify.com",
            "shpat_123",
            bucket,
            transport=httpx.MockTransport(recorder),
        )

        await client.get_products({"limit": 10})

        sent = recorder.requests[0]
        assert str(sent.url) == "https://demo.myshopify.com/admin/api/2024-01/products.json?limit=10"
        assert sent.headers["X-Shopify-Access-Token"] == "shpat_123"
        assert bucket.get_bucket("demo.myshopify.com").tokens == 2

    @pytest.mark.asyncio
    async def test_external_errors_become_shopify_errors(self):
        recorder = Recorder(httpx.Response(404, text="Not Found"))
        client = ShopifyApiClient(
            "demo.myshopify.com",
            "shpat_123",
            TokenBucketLimiter(),
            transport=httpx.MockTransport(recorder),
        )

        with pytest.raises(Exception) as exc_info:
            await client.get_order(42)

        error = exc_info.value
        assert error.kind is ErrorKind.SHOPIFY_API
        assert error.status_code == 404
        assert error.context["operation"] == "GET /orders/42.json"

    @pytest.mark.asyncio
    async def test_webhook_payload_is_wrapped(self):
        recorder = Recorder(httpx.Response(201, json={"webhook": {"id": 1}}))
        client = ShopifyApiClient(
            "demo.myshopify.com",
            "shpat_123",
            TokenBucketLimiter(),
            transport=httpx.MockTransport(recorder),
        )

        await client.create_webhook({"topic": "orders/create", "address": "https://x.test/hook"})

        sent = recorder.requests[0]
        assert sent.method == "POST"
        assert json.loads(sent.content) == {"webhook": {"topic": "orders/create", "address": "https://x.test/hook"}}


class TestOrderApiClient:
    @pytest.mark.asyncio
    async def test_update_status_sends_normalized_status(self):
        recorder = Recorder(httpx.Response(200, json={"ok": True}))
        client = OrderApiClient("tok_1234567890", "https://orders.test/api", transport=httpx.MockTransport(recorder))

        await client.update_order_status(15, " Shipped ")

        sent = recorder.requests[0]
        assert sent.method == "PUT"
        assert str(sent.url) == "https://orders.test/api/orders/15/status"
        assert sent.headers["Authorization"] == "Bearer tok_1234567890"
        assert json.loads(sent.content) == {"status": "shipped"}

    @pytest.mark.asyncio
    async def test_update_status_rejects_unknown_status(self):
        recorder = Recorder(httpx.Response(200, json={}))
        client = OrderApiClient("tok_1234567890", "https://orders.test/api", transport=httpx.MockTransport(recorder))

        with pytest.raises(ValidationAppError):
            await client.update_order_status(15, "teleported")

        assert recorder.requests == []


class TestFactories:
    def test_shopify_clients_share_process_bucket(self):
        first = create_shopify_client("a.myshopify.com", "t1")
        second = create_shopify_client("b.myshopify.com", "t2")

        assert first.rate_limiter is second.rate_limiter is get_shopify_rate_limiter()
        assert first.base_url == "https://a.myshopify.com/admin/api/2024-01"
        assert first.retries == 3

    def test_order_client_uses_configured_base_url(self):
        client = create_order_api_client("tok_1234567890")

        assert client.base_url == "https://backend.rushr-admin.com/api"
        assert client.default_headers["Authorization"] == "Bearer tok_1234567890"

    def test_generic_client_overrides(self):
        client = create_generic_client("https://x.test", retries=1, timeout_seconds=5)

        assert client.retries == 1
        assert client.timeout_seconds == 5


def test_order_client_defaults_to_hosted_backend():
    client = OrderApiClient("tok_1234567890")

    assert client.base_url == "https://backend.rushr-admin.com/api"
