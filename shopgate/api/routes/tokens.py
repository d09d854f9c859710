from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Body, Depends, Query

from shopgate.core.rate_limit import rate_limit
from shopgate.schemas.tokens import SaveTokenResponse
from shopgate.services.order_service import ShopOrderService, get_order_service

router = APIRouter(tags=["Tokens"])


@router.post(
    "/tokens",
    response_model=SaveTokenResponse,
    dependencies=[Depends(rate_limit("save-token", "token"))],
)
def save_token(
    shop: str | None = Query(None, description="Shop domain, e.g. example.myshopify.com"),
    payload: Any = Body(..., description='JSON object with a "token" field'),
    service: ShopOrderService = Depends(get_order_service),
) -> SaveTokenResponse:
    """Store the order API token for a shop.

    Raises:
        ValidationAppError: 400 if the shop or token is invalid.
        RateLimitAppError: 429 after 5 writes in 5 minutes.
    """

    result = service.save_token(shop, payload)
    return SaveTokenResponse(shop=result["shop"], timestamp=datetime.now(timezone.utc))
