"""Outbound HTTP adapters - JSON API clients with retries and pacing."""

from shopgate.adapters.http.client import ApiClient, ApiResponse, OrderApiClient, ShopifyApiClient
from shopgate.adapters.http.factory import (
    create_generic_client,
    create_order_api_client,
    create_shopify_client,
    get_shopify_rate_limiter,
)

__all__ = [
    "ApiClient",
    "ApiResponse",
    "OrderApiClient",
    "ShopifyApiClient",
    "create_generic_client",
    "create_order_api_client",
    "create_shopify_client",
    "get_shopify_rate_limiter",
]
