"""Shop order service: token registration and order retrieval.

Each shop registers the token it uses against the third-party order
backend. Orders are then fetched on the shop's behalf with that token.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping

from shopgate.adapters.http.client import OrderApiClient
from shopgate.adapters.http.factory import create_order_api_client
from shopgate.core.config import settings
from shopgate.core.errors import (
    create_external_api_error,
    create_not_found_error,
    create_validation_error,
    validate_required_fields,
)
from shopgate.core.validation import SHOP_SCHEMA, TOKEN_SCHEMA, validate_and_sanitize
from shopgate.utils.token_store import TokenStore

logger = logging.getLogger(__name__)

OrderClientFactory = Callable[[str], OrderApiClient]


class ShopOrderService:
    """Stores per-shop order API tokens and fetches orders with them."""

    def __init__(
        self,
        token_store: TokenStore,
        client_factory: OrderClientFactory = create_order_api_client,
    ) -> None:
        """Initialize the service.

        Args:
            token_store: Where shop tokens are kept.
            client_factory: Builds an order API client from a token.
        """
        self.token_store = token_store
        self.client_factory = client_factory

    @staticmethod
    def clean_shop(shop: Any) -> str:
        """Sanitize and validate a shop domain.

        Raises:
            ValidationAppError: If the shop is missing or not a myshopify domain.
        """
        return validate_and_sanitize({"shop": shop}, SHOP_SCHEMA)["shop"]

    def save_token(self, shop: Any, payload: Any) -> dict[str, Any]:
        """Validate and store the order API token for a shop.

        Args:
            shop: Shop domain as received.
            payload: Decoded request body; must hold a ``token`` field.

        Returns:
            Dict with the canonical shop domain and the stored token length.

        Raises:
            ValidationAppError: If the shop, body or token is invalid.
        """
        clean_shop = self.clean_shop(shop)

        if not isinstance(payload, Mapping):
            raise create_validation_error("request_body", "Request body must be a JSON object")
        validate_required_fields(payload, ["token"])
        token = validate_and_sanitize(payload, TOKEN_SCHEMA)["token"]

        self.token_store.save(clean_shop, token)
        logger.info("order_service.token_saved", extra={"shop": clean_shop, "token_length": len(token)})
        return {"shop": clean_shop, "token_length": len(token)}

    async def fetch_orders(self, shop: Any) -> dict[str, Any]:
        """Fetch the shop's orders from the order backend.

        Args:
            shop: Shop domain as received.

        Returns:
            Dict with ``shop``, ``orders`` (always a list) and ``request_id``.

        Raises:
            ValidationAppError: If the shop is invalid.
            NotFoundAppError: If no token is registered for the shop.
            ExternalApiAppError: If the backend fails or answers with
                something other than a JSON object.
        """
        clean_shop = self.clean_shop(shop)

        token = self.token_store.get(clean_shop)
        if not token:
            logger.warning("order_service.token_missing", extra={"shop": clean_shop})
            raise create_not_found_error("Order API token", clean_shop)

        client = self.client_factory(token)
        response = await client.get_orders()

        if not isinstance(response.data, dict):
            raise create_external_api_error(
                "Order API", response.status_code, "Invalid response format", response.data
            )

        orders = response.data.get("orders")
        if not isinstance(orders, list):
            orders = []

        logger.info(
            "order_service.orders_fetched",
            extra={"shop": clean_shop, "order_count": len(orders), "api_request_id": response.request_id},
        )
        return {"shop": clean_shop, "orders": orders, "request_id": response.request_id}


_order_service: ShopOrderService | None = None


def get_order_service() -> ShopOrderService:
    """Return the process-wide service (FastAPI dependency)."""

    global _order_service
    if _order_service is None:
        _order_service = ShopOrderService(
            TokenStore(
                ttl_seconds=settings.app.token_ttl_seconds,
                max_entries=settings.app.token_store_max_entries,
            )
        )
    return _order_service
