"""Global exception handlers for consistent error responses.

This module provides FastAPI exception handlers that intercept all errors
(domain and unexpected) and return consistent JSON responses with proper
HTTP status codes and traceability.

Design:
- AppError → its own status code, kind and severity
- FastAPI request validation errors → VALIDATION_ERROR (400)
- Unexpected Exception → reclassified best-effort, generic message for 500s
- All responses include request_id for distributed tracing
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from shopgate.core.config import settings
from shopgate.core.errors import (
    AppError,
    ErrorKind,
    RateLimitAppError,
    classify_exception,
    create_validation_error,
)
from shopgate.core.logging import get_request_id, log_app_error

logger = logging.getLogger(__name__)

# Kinds whose context is always safe to show to the client
_PUBLIC_CONTEXT_KINDS = {ErrorKind.VALIDATION, ErrorKind.RATE_LIMIT}

GENERIC_ERROR_MESSAGE = "An unexpected error occurred. Please try again later."


def build_error_response(error: AppError, *, expose_message: bool = True) -> JSONResponse:
    """Render an AppError as the standard JSON error envelope.

    Args:
        error: Error to render.
        expose_message: Whether the error message may be shown to clients.

    Returns:
        JSONResponse with status, body and X-Error-* headers.
    """

    include_context = settings.app.debug or error.kind in _PUBLIC_CONTEXT_KINDS
    body: dict[str, Any] = error.to_dict(include_context=include_context)
    if not expose_message:
        body["message"] = GENERIC_ERROR_MESSAGE
    body["request_id"] = get_request_id()

    headers = {
        "X-Error-Type": error.kind.value,
        "X-Error-Timestamp": error.timestamp.isoformat(),
    }
    if isinstance(error, RateLimitAppError) and error.retry_after:
        headers["Retry-After"] = str(error.retry_after)

    return JSONResponse(
        status_code=error.status_code,
        content={"success": False, "error": body},
        headers=headers,
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with the error's status code and details.
    """
    log_app_error(
        logger,
        exc,
        request_path=request.url.path,
        request_method=request.method,
        request_id=get_request_id(),
    )
    return build_error_response(exc)


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Map FastAPI's 422 request validation errors to VALIDATION_ERROR (400)."""

    errors: dict[str, list[str]] = {}
    for item in exc.errors():
        location = [str(part) for part in item.get("loc", ()) if part not in ("body", "query", "path")]
        errors.setdefault(".".join(location) or "request", []).append(item.get("msg", "Invalid value"))

    error = create_validation_error("request_validation", "Request validation failed", errors)
    log_app_error(logger, error, request_path=request.url.path, request_method=request.method)
    return build_error_response(error)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    The exception is reclassified by ``classify_exception``. Messages of
    errors that stay INTERNAL are never returned to the client.

    Args:
        request: FastAPI request object.
        exc: Exception instance (unexpected).

    Returns:
        JSONResponse without implementation details.
    """
    error = classify_exception(exc)
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "classified_as": error.kind.value,
            "request_path": request.url.path,
            "request_method": request.method,
            "request_id": get_request_id(),
        },
    )
    return build_error_response(error, expose_message=error.kind is not ErrorKind.INTERNAL)


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with FastAPI app.

    Must be called during app initialization, before route registration.

    Args:
        app: FastAPI application instance.
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(RequestValidationError)(request_validation_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
