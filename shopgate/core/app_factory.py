from __future__ import annotations

"""Application factory for FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) to
improve testability and separation of concerns compared to a monolithic main.
"""

from fastapi import FastAPI

from shopgate.api.routes import health_router, orders_router, rate_limit_router, tokens_router
from shopgate.core.config import settings
from shopgate.core.exception_handlers import setup_exception_handlers
from shopgate.core.logging import configure_logging
from shopgate.core.middleware import request_id_middleware, shopify_headers_middleware
from shopgate.core.openapi import apply_openapi_customizations


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Shopgate API",
        description=(
            "Backend for an embedded Shopify admin app. Stores each shop's order "
            "API token and fetches orders on its behalf. Every request is "
            "sanitized and validated, throttled per limit class, and failures "
            "are returned as typed JSON errors with a request id."
        ),
        version="0.1.0",
        debug=settings.app.debug,
    )

    # Middleware: the last registered runs first, so request ids cover the
    # Shopify header layer and preflight responses too.
    app.middleware("http")(shopify_headers_middleware)
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(tokens_router, prefix="/v1")
    app.include_router(orders_router, prefix="/v1")
    app.include_router(rate_limit_router, prefix="/v1")
    app.include_router(health_router)

    # OpenAPI customizations (tags, error schema)
    apply_openapi_customizations(app)

    return app
