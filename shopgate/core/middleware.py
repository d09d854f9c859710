"""HTTP middleware for request correlation and Shopify embedding.

``request_id_middleware``:
- Accepts incoming X-Request-ID header or generates a UUID
- Stores request_id in contextvars for access throughout the request lifecycle
- Injects request_id and total duration into response headers
- Emits a performance log for every request

``shopify_headers_middleware``:
- Adds CORS headers so the embedded admin UI can call the API
- Allows framing by the Shopify admin only (``frame-ancestors``)
- Adds basic browser security headers
- Answers ``OPTIONS`` preflight requests directly with 200

Usage:
    app.middleware("http")(shopify_headers_middleware)
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request, Response

from shopgate.core.config import settings
from shopgate.core.logging import clear_request_id, log_performance, set_request_id

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization, X-Shopify-Access-Token",
    "Access-Control-Allow-Credentials": "true",
}

EMBEDDING_HEADERS = {
    "X-Frame-Options": "ALLOWALL",
    "Content-Security-Policy": "frame-ancestors https://*.myshopify.com https://admin.shopify.com;",
}

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


async def request_id_middleware(request: Request, call_next) -> Response:
    """HTTP middleware for request ID generation and propagation.

    If the client provides an X-Request-ID header (configurable via
    LOG_REQUEST_ID_HEADER), that value is used. Otherwise, a new UUID is
    generated. The ID is propagated back in the response headers and stored
    in contextvars for log correlation.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The response from the next handler with request_id and
            duration headers added.
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        log_performance(
            logger,
            "http.request",
            duration_ms,
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
        )
    finally:
        clear_request_id()

    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response


def _apply_headers(response: Response, *groups: dict[str, str]) -> None:
    for group in groups:
        for name, value in group.items():
            response.headers[name] = value


async def shopify_headers_middleware(request: Request, call_next) -> Response:
    """Add CORS, embedding and security headers; short-circuit preflight.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: 200 with headers only for ``OPTIONS``, otherwise the
            downstream response with headers added.
    """

    if request.method == "OPTIONS":
        response = Response(status_code=200)
        _apply_headers(response, CORS_HEADERS, EMBEDDING_HEADERS, SECURITY_HEADERS)
        return response

    response = await call_next(request)
    _apply_headers(response, CORS_HEADERS, EMBEDDING_HEADERS, SECURITY_HEADERS)
    return response
