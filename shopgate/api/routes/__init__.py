from __future__ import annotations

from shopgate.api.routes.health import router as health_router
from shopgate.api.routes.orders import router as orders_router
from shopgate.api.routes.rate_limit import router as rate_limit_router
from shopgate.api.routes.tokens import router as tokens_router

__all__ = ["health_router", "orders_router", "rate_limit_router", "tokens_router"]
