"""Application-level exception types.

This module defines the error taxonomy shared by the validation layer, the
rate limiters and the outbound API clients. Every failure the HTTP layer
turns into a response is an ``AppError`` carrying its kind, HTTP status,
severity and structured context.

Errors are built through the ``create_*`` factories so that kind, status and
severity always travel together.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Mapping, TypedDict

import httpx


class ErrorKind(str, Enum):
    """Closed set of error categories exposed to API clients."""

    VALIDATION = "VALIDATION_ERROR"
    AUTHENTICATION = "AUTHENTICATION_ERROR"
    AUTHORIZATION = "AUTHORIZATION_ERROR"
    NOT_FOUND = "NOT_FOUND_ERROR"
    EXTERNAL_API = "EXTERNAL_API_ERROR"
    DATABASE = "DATABASE_ERROR"
    NETWORK = "NETWORK_ERROR"
    INTERNAL = "INTERNAL_SERVER_ERROR"
    RATE_LIMIT = "RATE_LIMIT_ERROR"
    SHOPIFY_API = "SHOPIFY_API_ERROR"


class Severity(str, Enum):
    """Operational severity used for log levels and alerting."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorContext(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional; each factory fills the subset relevant to its
    category.
    """

    field: str
    value: Any
    validation_message: str
    api_name: str
    original_status_code: int
    response_data: Any
    operation: str
    original_error: str | None
    retry_after: int | None
    resource: str
    identifier: str


_SEALED_FIELDS = frozenset({"message", "kind", "status_code", "severity", "context", "_created_at"})


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        message: Human-readable error message.
        kind: Error category from ``ErrorKind``.
        status_code: HTTP status the error maps to.
        severity: Operational severity.
        context: Structured details for debugging and clients.
    """

    message: str
    kind: ErrorKind = ErrorKind.INTERNAL
    status_code: int = 500
    severity: Severity = Severity.MEDIUM
    context: ErrorContext = field(default_factory=dict)  # type: ignore[assignment]
    _created_at: datetime = field(
        init=False,
        repr=False,
        compare=False,
        default_factory=lambda: datetime.now(timezone.utc),
    )

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)
        object.__setattr__(self, "_sealed", True)

    def __setattr__(self, name: str, value: Any) -> None:
        # Exception machinery still sets __traceback__, __cause__ and friends.
        if name in _SEALED_FIELDS and getattr(self, "_sealed", False):
            raise AttributeError(f"{type(self).__name__}.{name} is read-only")
        super().__setattr__(name, value)

    @property
    def timestamp(self) -> datetime:
        """Creation instant (UTC)."""
        return self._created_at

    def to_dict(self, *, include_context: bool = True) -> dict[str, Any]:
        """Render the error as a JSON-friendly mapping.

        Args:
            include_context: Whether to include the structured context.

        Returns:
            Dict with code, message, severity, timestamp and optional details.
        """

        payload: dict[str, Any] = {
            "code": self.kind.value,
            "message": self.message,
            "severity": self.severity.value,
            "timestamp": self.timestamp.isoformat(),
        }
        if include_context and self.context:
            payload["details"] = dict(self.context)
        return payload


class ValidationAppError(AppError):
    """Raised when input validation fails."""


class ExternalApiAppError(AppError):
    """Raised when a third-party HTTP API call fails."""


class DatabaseAppError(AppError):
    """Raised when a persistence operation fails."""


class ShopifyApiAppError(AppError):
    """Raised when a Shopify Admin API call fails."""


class RateLimitAppError(AppError):
    """Raised when a rate limit window is exhausted."""

    @property
    def retry_after(self) -> int | None:
        return self.context.get("retry_after")


class NotFoundAppError(AppError):
    """Raised when a requested resource does not exist."""


def _error_message(error: BaseException | str | None) -> str | None:
    if error is None:
        return None
    if isinstance(error, AppError):
        return error.message
    return str(error)


def create_validation_error(field: str, message: str, value: Any = None) -> ValidationAppError:
    """Build a validation error for a single field (or a whole request).

    Args:
        field: Field name, or a pseudo-field such as ``request_validation``.
        message: Description of the violated rule.
        value: Offending value, or the per-field error map for schema failures.

    Returns:
        ValidationAppError with status 400 and low severity.
    """

    return ValidationAppError(
        message=f"Validation failed for {field}: {message}",
        kind=ErrorKind.VALIDATION,
        status_code=400,
        severity=Severity.LOW,
        context={"field": field, "value": value, "validation_message": message},
    )


def create_external_api_error(
    api_name: str,
    status_code: int,
    message: str,
    response_data: Any = None,
) -> ExternalApiAppError:
    """Build an error for a failed third-party API call.

    Statuses outside the 4xx/5xx range are reported as 502 Bad Gateway.

    Args:
        api_name: Name (usually hostname) of the remote API.
        status_code: Status returned by the remote API.
        message: Short description of the failure.
        response_data: Raw response body, if any.

    Returns:
        ExternalApiAppError carrying the original status in its context.
    """

    return ExternalApiAppError(
        message=f"External API error from {api_name}: {message}",
        kind=ErrorKind.EXTERNAL_API,
        status_code=status_code if 400 <= status_code < 600 else 502,
        severity=Severity.HIGH if status_code >= 500 else Severity.MEDIUM,
        context={
            "api_name": api_name,
            "original_status_code": status_code,
            "response_data": response_data,
        },
    )


def create_database_error(operation: str, original_error: BaseException | str | None) -> DatabaseAppError:
    """Build an error for a failed persistence operation."""

    return DatabaseAppError(
        message=f"Database operation failed: {operation}",
        kind=ErrorKind.DATABASE,
        status_code=500,
        severity=Severity.HIGH,
        context={"operation": operation, "original_error": _error_message(original_error)},
    )


def create_shopify_api_error(
    operation: str,
    original_error: BaseException | str | None,
    status_code: int = 500,
) -> ShopifyApiAppError:
    """Build an error for a failed Shopify Admin API operation.

    Args:
        operation: Operation label, e.g. ``GET /products.json``.
        original_error: Underlying exception or message.
        status_code: HTTP status to report (default 500).

    Returns:
        ShopifyApiAppError; severity is high for 5xx statuses.
    """

    original_message = _error_message(original_error)
    return ShopifyApiAppError(
        message=f"Shopify API error during {operation}: {original_message or 'Unknown error'}",
        kind=ErrorKind.SHOPIFY_API,
        status_code=status_code,
        severity=Severity.HIGH if status_code >= 500 else Severity.MEDIUM,
        context={"operation": operation, "original_error": original_message},
    )


def create_rate_limit_error(retry_after: int | None = None) -> RateLimitAppError:
    """Build a 429 error carrying the suggested retry delay in seconds."""

    return RateLimitAppError(
        message="Rate limit exceeded. Please try again later.",
        kind=ErrorKind.RATE_LIMIT,
        status_code=429,
        severity=Severity.MEDIUM,
        context={"retry_after": retry_after},
    )


def create_not_found_error(resource: str, identifier: str) -> NotFoundAppError:
    """Build a 404 error for a missing resource."""

    return NotFoundAppError(
        message=f"{resource} not found for {identifier}",
        kind=ErrorKind.NOT_FOUND,
        status_code=404,
        severity=Severity.LOW,
        context={"resource": resource, "identifier": identifier},
    )


def validate_required_fields(data: Mapping[str, Any], required_fields: Iterable[str]) -> bool:
    """Ensure every required field is present and non-empty.

    Args:
        data: Input record.
        required_fields: Names that must be present, not None and not "".

    Returns:
        True when all fields are present.

    Raises:
        ValidationAppError: Listing every missing field at once.
    """

    missing = [
        name
        for name in required_fields
        if name not in data or data[name] is None or data[name] == ""
    ]
    if missing:
        raise create_validation_error(
            "required_fields",
            f"Missing required fields: {', '.join(missing)}",
            missing,
        )
    return True


# Substring fallbacks for exceptions that reach the HTTP boundary unclassified.
_MESSAGE_RULES: tuple[tuple[tuple[str, ...], ErrorKind, int], ...] = (
    (("fetch", "network"), ErrorKind.NETWORK, 503),
    (("unauthorized", "authentication"), ErrorKind.AUTHENTICATION, 401),
    (("forbidden", "permission"), ErrorKind.AUTHORIZATION, 403),
    (("not found",), ErrorKind.NOT_FOUND, 404),
)


def classify_exception(exc: BaseException) -> AppError:
    """Convert an arbitrary exception into an ``AppError``.

    ``AppError`` instances are returned unchanged. ``httpx`` transport errors
    map to NETWORK. Anything else is classified by a best-effort,
    case-insensitive match on its message and defaults to INTERNAL.

    Args:
        exc: Exception that escaped the service layer.

    Returns:
        AppError describing the failure.
    """

    if isinstance(exc, AppError):
        return exc

    message = str(exc) or type(exc).__name__
    if isinstance(exc, httpx.TransportError):
        return AppError(
            message=message,
            kind=ErrorKind.NETWORK,
            status_code=503,
            context={"error_type": type(exc).__name__},  # type: ignore[typeddict-unknown-key]
        )

    lowered = message.lower()
    for needles, kind, status_code in _MESSAGE_RULES:
        if any(needle in lowered for needle in needles):
            return AppError(message=message, kind=kind, status_code=status_code)

    return AppError(message=message)
