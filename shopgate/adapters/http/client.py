"""Outbound HTTP clients built on httpx.

``ApiClient`` wraps one JSON API with a per-attempt timeout and a retry
loop:
- 4xx responses fail immediately (the request itself is wrong),
- 5xx responses, transport errors and timeouts are retried with a linear
  backoff of ``retry_delay_seconds * attempt``,
- every failure surfaces as an EXTERNAL_API ``AppError``.

``ShopifyApiClient`` paces calls through the per-shop token bucket and
reports failures as SHOPIFY_API errors. ``OrderApiClient`` talks to the
third-party order backend with a bearer token.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping
from urllib.parse import urlsplit

import httpx

from shopgate.adapters.rate_limit.token_bucket import TokenBucketLimiter
from shopgate.core.errors import (
    AppError,
    ErrorKind,
    create_external_api_error,
    create_shopify_api_error,
)
from shopgate.core.logging import log_performance, redact
from shopgate.core.validation import ORDER_STATUS_SCHEMA, validate_and_sanitize

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "Shopify-App/1.0"
DEFAULT_ORDER_API_URL = "https://backend.rushr-admin.com/api"


@dataclass(frozen=True)
class ApiResponse:
    """Successful response from a remote API.

    Attributes:
        data: Decoded JSON body (None for an empty body).
        status_code: HTTP status returned by the remote API.
        headers: Response headers.
        request_id: Short id correlating the log lines of this call.
    """

    data: Any
    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    request_id: str = ""


class ApiClient:
    """JSON API client with timeout, retries and structured logging."""

    def __init__(
        self,
        base_url: str = "",
        *,
        timeout_seconds: float = 30.0,
        retries: int = 3,
        retry_delay_seconds: float = 1.0,
        headers: Mapping[str, str] | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Prefix joined to every request path.
            timeout_seconds: Timeout applied to each attempt.
            retries: Maximum number of attempts per request.
            retry_delay_seconds: Base delay; attempt ``n`` waits ``n`` times this.
            headers: Headers sent with every request.
            user_agent: User-Agent header value.
            transport: Optional httpx transport (tests use ``httpx.MockTransport``).
            sleep: Coroutine function used between attempts.

        Raises:
            ValueError: If retries or timeout are not positive.
        """
        if retries < 1:
            raise ValueError("retries must be >= 1")
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")

        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.retries = retries
        self.retry_delay_seconds = retry_delay_seconds
        self.default_headers = {
            "Content-Type": "application/json",
            "User-Agent": user_agent,
            **(headers or {}),
        }
        self._transport = transport
        self._sleep = sleep

    def build_url(self, path: str) -> str:
        return f"{self.base_url}{path}" if self.base_url else path

    @staticmethod
    def get_api_name(url: str) -> str:
        """Return the hostname of a URL, used to label errors."""
        try:
            hostname = urlsplit(url).hostname
        except ValueError:
            hostname = None
        return hostname or "Unknown API"

    async def _send(
        self,
        method: str,
        url: str,
        *,
        json: Any = None,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str],
    ) -> httpx.Response:
        async with httpx.AsyncClient(
            transport=self._transport,
            timeout=httpx.Timeout(self.timeout_seconds),
        ) as client:
            return await client.request(method, url, json=json, params=params, headers=headers)

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> ApiResponse:
        """Send a request, retrying transient failures.

        Args:
            method: HTTP method.
            path: Path appended to ``base_url`` (or a full URL without base).
            json: Optional JSON body.
            params: Optional query parameters.
            headers: Extra headers for this request only.

        Returns:
            ApiResponse with the decoded JSON body.

        Raises:
            ExternalApiAppError: On a 4xx response (no retry), after the last
                failed attempt (5xx, timeout 408, network 500), or when a
                successful response is not valid JSON (502).
        """
        url = self.build_url(path)
        api_name = self.get_api_name(url)
        request_id = uuid.uuid4().hex[:8]
        merged_headers = {**self.default_headers, **(headers or {})}

        logger.info(
            "api_client.request_started",
            extra={
                "api_request_id": request_id,
                "method": method,
                "url": url,
                "headers": redact(merged_headers),
            },
        )

        attempt = 0
        while True:
            attempt += 1
            start = time.perf_counter()
            try:
                response = await self._send(method, url, json=json, params=params, headers=merged_headers)
            except httpx.TimeoutException:
                error = create_external_api_error(api_name, 408, "Request timeout")
            except httpx.TransportError as exc:
                error = create_external_api_error(api_name, 500, f"Network error: {exc}")
            else:
                duration_ms = (time.perf_counter() - start) * 1000
                log_performance(
                    logger,
                    "api_client.request",
                    duration_ms,
                    api_request_id=request_id,
                    attempt=attempt,
                    status_code=response.status_code,
                    url=url,
                )

                if response.is_success:
                    return self._build_response(response, api_name, request_id, attempt)

                error = create_external_api_error(
                    api_name,
                    response.status_code,
                    f"HTTP {response.status_code}: {response.reason_phrase}",
                    response.text,
                )
                if response.status_code < 500:
                    logger.warning(
                        "api_client.client_error",
                        extra={"api_request_id": request_id, "status_code": response.status_code, "url": url},
                    )
                    raise error

            if attempt >= self.retries:
                logger.error(
                    "api_client.failed",
                    extra={
                        "api_request_id": request_id,
                        "attempts": attempt,
                        "url": url,
                        "status_code": error.status_code,
                        "error_msg": error.message,
                    },
                )
                raise error

            delay = self.retry_delay_seconds * attempt
            logger.warning(
                "api_client.retry",
                extra={
                    "api_request_id": request_id,
                    "attempt": attempt,
                    "error_msg": error.message,
                    "next_attempt_in_s": delay,
                },
            )
            await self._sleep(delay)

    def _build_response(
        self,
        response: httpx.Response,
        api_name: str,
        request_id: str,
        attempt: int,
    ) -> ApiResponse:
        if not response.content:
            data = None
        else:
            try:
                data = response.json()
            except ValueError as exc:
                raise create_external_api_error(
                    api_name, 502, "Invalid JSON in response body", response.text[:500]
                ) from exc

        logger.info(
            "api_client.request_succeeded",
            extra={"api_request_id": request_id, "attempt": attempt, "status_code": response.status_code},
        )
        return ApiResponse(
            data=data,
            status_code=response.status_code,
            headers=dict(response.headers),
            request_id=request_id,
        )

    async def get(self, path: str, **kwargs: Any) -> ApiResponse:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, data: Any = None, **kwargs: Any) -> ApiResponse:
        return await self.request("POST", path, json=data, **kwargs)

    async def put(self, path: str, data: Any = None, **kwargs: Any) -> ApiResponse:
        return await self.request("PUT", path, json=data, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> ApiResponse:
        return await self.request("DELETE", path, **kwargs)


class ShopifyApiClient(ApiClient):
    """Shopify Admin REST API client paced by a per-shop token bucket."""

    def __init__(
        self,
        shop: str,
        access_token: str,
        rate_limiter: TokenBucketLimiter,
        *,
        api_version: str = "2024-01",
        **kwargs: Any,
    ) -> None:
        headers = {"X-Shopify-Access-Token": access_token, **kwargs.pop("headers", {})}
        super().__init__(f"https://{shop}/admin/api/{api_version}", headers=headers, **kwargs)
        self.shop = shop
        self.rate_limiter = rate_limiter

    async def request(self, method: str, path: str, **kwargs: Any) -> ApiResponse:
        """Wait for a bucket token, then send; external errors become SHOPIFY_API."""
        await self.rate_limiter.acquire(self.shop, 1)
        try:
            return await super().request(method, path, **kwargs)
        except AppError as exc:
            if exc.kind is not ErrorKind.EXTERNAL_API:
                raise
            raise create_shopify_api_error(f"{method} {path}", exc, exc.status_code) from exc

    async def get_products(self, params: Mapping[str, Any] | None = None) -> ApiResponse:
        return await self.get("/products.json", params=params)

    async def get_product(self, product_id: int | str) -> ApiResponse:
        return await self.get(f"/products/{product_id}.json")

    async def get_orders(self, params: Mapping[str, Any] | None = None) -> ApiResponse:
        return await self.get("/orders.json", params=params)

    async def get_order(self, order_id: int | str) -> ApiResponse:
        return await self.get(f"/orders/{order_id}.json")

    async def create_webhook(self, webhook: Mapping[str, Any]) -> ApiResponse:
        return await self.post("/webhooks.json", {"webhook": dict(webhook)})

    async def get_webhooks(self) -> ApiResponse:
        return await self.get("/webhooks.json")


class OrderApiClient(ApiClient):
    """Client for the third-party order backend (bearer token auth)."""

    def __init__(self, token: str, base_url: str = DEFAULT_ORDER_API_URL, **kwargs: Any) -> None:
        headers = {"Authorization": f"Bearer {token}", **kwargs.pop("headers", {})}
        super().__init__(base_url, headers=headers, **kwargs)

    async def get_orders(self) -> ApiResponse:
        return await self.get("/orders")

    async def get_order_details(self, order_id: int | str) -> ApiResponse:
        return await self.get(f"/orders/{order_id}")

    async def update_order_status(self, order_id: int | str, status: str) -> ApiResponse:
        """Update an order's status after checking it is a known status.

        Raises:
            ValidationAppError: If ``status`` is not a recognised order status.
        """
        cleaned = validate_and_sanitize({"status": status}, ORDER_STATUS_SCHEMA)["status"]
        return await self.put(f"/orders/{order_id}/status", {"status": cleaned.lower()})
