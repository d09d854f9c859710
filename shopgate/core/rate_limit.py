"""Rate limiting dependencies for FastAPI routes.

This module wires the rate limiting adapters into the HTTP layer.

Design goals:
- Minimal coupling: routes declare ``Depends(rate_limit("orders", "external"))``.
- Swap-friendly: storage backend can be replaced (e.g., Redis) behind an
  abstract interface.
- Outcome-aware: successful/failed requests are reported back to the limiter
  so classes that skip successes or failures can refund the slot.

Client identity:
- ``shop`` query parameter when present,
- else the first ``X-Forwarded-For`` entry,
- else ``X-Real-Ip``,
- else ``"unknown"``.
"""

from __future__ import annotations

import logging
from typing import AsyncIterator, Callable, MutableMapping

from fastapi import Request, Response

from shopgate.adapters.rate_limit.base import (
    DEFAULT_LIMIT_CLASS,
    AbstractRateLimiter,
    RateLimitInfo,
)
from shopgate.adapters.rate_limit.in_memory import (
    InMemoryFixedWindowRateLimiter,
    hash_identity,
)
from shopgate.core.config import settings

logger = logging.getLogger(__name__)


_limiter: AbstractRateLimiter | None = None
_limiter_config: float | None = None


def get_rate_limiter() -> AbstractRateLimiter:
    """Return the process-wide fixed-window limiter.

    The instance is cached in-module to preserve state across requests.
    If configuration changes (primarily in tests), the limiter is rebuilt.

    Returns:
        AbstractRateLimiter: Configured limiter instance.
    """

    global _limiter, _limiter_config

    config = settings.rate_limit.sweep_probability
    if _limiter is None or _limiter_config != config:
        _limiter = InMemoryFixedWindowRateLimiter(sweep_probability=config)
        _limiter_config = config

    return _limiter


def reset_rate_limiter() -> None:
    """Forget the cached limiter so the next request builds a fresh one."""

    global _limiter, _limiter_config
    _limiter = None
    _limiter_config = None


def get_client_identifier(request: Request) -> str:
    """Derive the rate limit identity for a request.

    Args:
        request: FastAPI request.

    Returns:
        str: Shop domain, client IP, or ``"unknown"``.
    """

    shop = request.query_params.get("shop")
    if shop:
        return shop

    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    return request.headers.get("x-real-ip") or "unknown"


def apply_rate_limit_headers(headers: MutableMapping[str, str], info: RateLimitInfo) -> None:
    """Attach X-RateLimit-* (and Retry-After when due) headers."""

    headers["X-RateLimit-Limit"] = str(info.limit)
    headers["X-RateLimit-Remaining"] = str(info.remaining)
    headers["X-RateLimit-Reset"] = str(info.reset_at)
    if info.retry_after_seconds:
        headers["Retry-After"] = str(info.retry_after_seconds)


def rate_limit(
    endpoint: str,
    limit_class: str = DEFAULT_LIMIT_CLASS,
) -> Callable[[Request, Response], AsyncIterator[RateLimitInfo | None]]:
    """Build a FastAPI dependency enforcing a limit class on an endpoint.

    The dependency counts the request before the endpoint runs, adds the
    rate limit headers to the response, and reports the outcome afterwards
    (an exception raised by the endpoint counts as a failure).

    Usage:
        @router.get("/orders", dependencies=[Depends(rate_limit("orders", "external"))])

    Args:
        endpoint: Logical endpoint name used in the window key.
        limit_class: Policy name (api, shopify, external, auth, token).

    Returns:
        An async generator dependency.
    """

    async def enforce_rate_limit(
        request: Request,
        response: Response,
    ) -> AsyncIterator[RateLimitInfo | None]:
        if not settings.rate_limit.enabled:
            yield None
            return

        limiter = get_rate_limiter()
        identity = get_client_identifier(request)

        # Raises RateLimitAppError (429) before the endpoint runs.
        info = limiter.check_limit(identity, endpoint, limit_class)

        logger.info(
            "rate_limit.allowed",
            extra={
                "identity_hash": hash_identity(identity),
                "endpoint": endpoint,
                "limit_class": limit_class,
                "limit": info.limit,
                "remaining": info.remaining,
            },
        )

        if settings.rate_limit.include_headers:
            apply_rate_limit_headers(response.headers, info)

        try:
            yield info
        except Exception:
            limiter.record_failure(identity, endpoint, limit_class)
            raise
        else:
            limiter.record_success(identity, endpoint, limit_class)

    return enforce_rate_limit
