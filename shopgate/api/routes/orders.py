from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query

from shopgate.core.rate_limit import rate_limit
from shopgate.schemas.orders import OrdersResponse
from shopgate.services.order_service import ShopOrderService, get_order_service

router = APIRouter(tags=["Orders"])


@router.get(
    "/orders",
    response_model=OrdersResponse,
    dependencies=[Depends(rate_limit("orders", "external"))],
)
async def list_orders(
    shop: str | None = Query(None, description="Shop domain, e.g. example.myshopify.com"),
    service: ShopOrderService = Depends(get_order_service),
) -> OrdersResponse:
    """Fetch the shop's orders from the order backend.

    Raises:
        ValidationAppError: 400 if the shop is invalid.
        NotFoundAppError: 404 if no token was saved for the shop.
        ExternalApiAppError: When the order backend fails.
    """

    result = await service.fetch_orders(shop)
    return OrdersResponse(
        orders=result["orders"],
        shop=result["shop"],
        timestamp=datetime.now(timezone.utc),
        request_id=result["request_id"],
    )
