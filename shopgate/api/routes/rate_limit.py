from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from shopgate.adapters.rate_limit.base import LimitClass
from shopgate.core.rate_limit import get_client_identifier, get_rate_limiter, rate_limit
from shopgate.schemas.rate_limit import RateLimitStatusResponse

router = APIRouter(tags=["Rate limit"])


@router.get(
    "/rate-limit/status",
    response_model=RateLimitStatusResponse,
    dependencies=[Depends(rate_limit("rate-limit-status", "api"))],
)
def rate_limit_status(
    request: Request,
    endpoint: str = Query(..., min_length=1, description="Logical endpoint name, e.g. orders"),
    limit_class: LimitClass = Query("api", description="Limit class of the endpoint"),
) -> RateLimitStatusResponse:
    """Report the caller's current window for an endpoint without counting it.

    The caller is identified the same way as for limiting (``shop`` query
    parameter, then forwarding headers).
    """

    status = get_rate_limiter().get_status(get_client_identifier(request), endpoint, limit_class)
    return RateLimitStatusResponse(
        endpoint=endpoint,
        limit_class=limit_class,
        limit=status.limit,
        remaining=status.remaining,
        count=status.count,
        window_seconds=status.window_seconds,
        reset_at=status.reset_at,
    )
