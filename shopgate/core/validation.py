"""Schema-level validation and sanitization of request payloads."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from shopgate.core.errors import create_validation_error
from shopgate.utils.sanitizers import SanitizeOptions, sanitize_input
from shopgate.utils.validators import ValidateOptions, validate_input

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldRule:
    """Declared type and constraints for one payload field.

    Attributes:
        type: Field type name used for both sanitization and validation.
        sanitize: Options forwarded to ``sanitize_input``.
        validate: Options forwarded to ``validate_input``.
    """

    type: str
    sanitize: SanitizeOptions = field(default_factory=dict)  # type: ignore[assignment]
    validate: ValidateOptions = field(default_factory=dict)  # type: ignore[assignment]


Schema = Mapping[str, FieldRule]


def validate_and_sanitize(data: Mapping[str, Any], schema: Schema) -> dict[str, Any]:
    """Sanitize and validate every schema field of a payload.

    Only fields declared in the schema are considered; extra input is
    dropped. Each raw value is sanitized first and the sanitized value is
    validated, so checks run on canonical data (e.g. lowercased emails).

    Args:
        data: Raw request payload.
        schema: Field name to ``FieldRule`` mapping.

    Returns:
        Dict of sanitized values for every schema field.

    Raises:
        ValidationAppError: If any field fails; ``context["value"]`` holds the
            complete field -> messages map and no partial output is returned.
    """

    sanitized: dict[str, Any] = {}
    errors: dict[str, list[str]] = {}

    for field_name, rule in schema.items():
        cleaned = sanitize_input(data.get(field_name), rule.type, rule.sanitize)
        field_errors = validate_input(cleaned, rule.type, rule.validate)
        if field_errors:
            errors[field_name] = field_errors
        else:
            sanitized[field_name] = cleaned

    if errors:
        logger.warning(
            "validation.request_rejected",
            extra={"invalid_fields": sorted(errors), "field_count": len(schema)},
        )
        raise create_validation_error("request_validation", "Request validation failed", errors)

    return sanitized


SHOP_SCHEMA: dict[str, FieldRule] = {
    "shop": FieldRule(type="shopify_domain", validate={"required": True}),
}

TOKEN_SCHEMA: dict[str, FieldRule] = {
    "token": FieldRule(type="token", validate={"required": True}),
}

ORDER_STATUS_SCHEMA: dict[str, FieldRule] = {
    "status": FieldRule(type="order_status", sanitize={"max_length": 20}, validate={"required": True}),
}
