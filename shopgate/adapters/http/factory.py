"""Factory functions for outbound API clients.

Reads configuration from shopgate.core.config.settings so callers only pass
per-tenant credentials.
"""

from __future__ import annotations

from typing import Any

from shopgate.adapters.http.client import ApiClient, OrderApiClient, ShopifyApiClient
from shopgate.adapters.rate_limit.token_bucket import TokenBucketLimiter
from shopgate.core.config import settings

_shopify_limiter: TokenBucketLimiter | None = None


def get_shopify_rate_limiter() -> TokenBucketLimiter:
    """Return the process-wide Shopify token bucket limiter."""

    global _shopify_limiter
    if _shopify_limiter is None:
        _shopify_limiter = TokenBucketLimiter(
            max_tokens=settings.rate_limit.shopify_bucket_max_tokens,
            refill_rate=settings.rate_limit.shopify_bucket_refill_per_second,
        )
    return _shopify_limiter


def reset_shopify_rate_limiter() -> None:
    """Forget the cached token bucket limiter (used by tests)."""

    global _shopify_limiter
    _shopify_limiter = None


def _client_defaults(overrides: dict[str, Any]) -> dict[str, Any]:
    return {
        "timeout_seconds": settings.http.timeout_seconds,
        "retries": settings.http.retries,
        "retry_delay_seconds": settings.http.retry_delay_seconds,
        "user_agent": settings.http.user_agent,
        **overrides,
    }


def create_shopify_client(shop: str, access_token: str, **overrides: Any) -> ShopifyApiClient:
    """Build a Shopify Admin API client sharing the process-wide bucket.

    Args:
        shop: Shop domain (``example.myshopify.com``).
        access_token: Admin API access token.
        **overrides: ApiClient keyword arguments overriding settings.
    """

    overrides.setdefault("rate_limiter", get_shopify_rate_limiter())
    overrides.setdefault("api_version", settings.shopify.api_version)
    return ShopifyApiClient(shop, access_token, **_client_defaults(overrides))


def create_order_api_client(token: str, **overrides: Any) -> OrderApiClient:
    """Build a client for the order backend authenticated with ``token``."""

    overrides.setdefault("base_url", settings.order_api.base_url)
    return OrderApiClient(token, **_client_defaults(overrides))


def create_generic_client(base_url: str = "", **overrides: Any) -> ApiClient:
    """Build a plain JSON API client."""

    return ApiClient(base_url, **_client_defaults(overrides))
