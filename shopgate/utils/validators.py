"""Rule-based validation of (already sanitized) field values.

``validate_input`` returns a list of human-readable error messages instead of
raising, so callers can aggregate failures across fields. An empty list means
the value is valid.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, Mapping, TypedDict

from shopgate.utils.field_types import (
    PATTERNS,
    normalize_field_type,
    to_number,
    to_text,
)

logger = logging.getLogger(__name__)


class ValidateOptions(TypedDict, total=False):
    """Options accepted by ``validate_input``."""

    required: bool
    min: float
    max: float
    min_length: int
    max_length: int
    pattern: str | re.Pattern[str]
    min_items: int
    max_items: int


# Types whose check is a single full-match against PATTERNS.
_PATTERN_MESSAGES: dict[str, str] = {
    "email": "Invalid email format",
    "phone": "Invalid phone number format",
    "url": "Invalid URL format",
    "shopify_domain": "Invalid Shopify domain format",
    "hex_color": "Invalid hex color format",
    "postal_code": "Invalid postal code format",
    "currency": "Invalid currency code",
    "order_status": "Invalid order status",
}


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value == "")


def _matches(pattern: re.Pattern[str], value: Any) -> bool:
    return pattern.fullmatch(to_text(value)) is not None


def _format_bound(bound: float) -> str:
    return to_text(bound)


def _check_number(value: Any, options: ValidateOptions, *, whole: bool) -> list[str]:
    errors: list[str] = []
    number = None if isinstance(value, bool) else to_number(value)
    if number is None:
        errors.append("Must be a valid number")
        return errors

    if whole and not float(number).is_integer():
        errors.append("Must be a whole number")

    minimum = options.get("min")
    maximum = options.get("max")
    if minimum is not None and number < minimum:
        errors.append(f"Must be at least {_format_bound(minimum)}")
    if maximum is not None and number > maximum:
        errors.append(f"Must be at most {_format_bound(maximum)}")
    return errors


def _check_string(value: Any, options: ValidateOptions) -> list[str]:
    if not isinstance(value, str):
        return ["Must be a string"]

    errors: list[str] = []
    min_length = options.get("min_length")
    max_length = options.get("max_length")
    pattern = options.get("pattern")

    if min_length and len(value) < min_length:
        errors.append(f"Must be at least {min_length} characters long")
    if max_length and len(value) > max_length:
        errors.append(f"Must be at most {max_length} characters long")
    if pattern is not None and re.search(pattern, value) is None:
        errors.append("Invalid format")
    return errors


def _check_array(value: Any, options: ValidateOptions) -> list[str]:
    if not isinstance(value, (list, tuple)):
        return ["Must be an array"]

    errors: list[str] = []
    min_items = options.get("min_items")
    max_items = options.get("max_items")
    if min_items and len(value) < min_items:
        errors.append(f"Must have at least {min_items} items")
    if max_items and len(value) > max_items:
        errors.append(f"Must have at most {max_items} items")
    return errors


def validate_input(
    value: Any,
    field_type: str,
    options: ValidateOptions | None = None,
) -> list[str]:
    """Validate a value against its field type and constraints.

    A required field that is None or "" yields exactly one error and skips
    every other check. An optional empty field is always valid.

    Args:
        value: Value to check (normally the output of ``sanitize_input``).
        field_type: Field type name; camelCase and kebab-case are accepted.
        options: Optional ``ValidateOptions``.

    Returns:
        List of error messages in the order the checks ran.

    Examples:
        >>> validate_input("", "string", {"required": True})
        ['string is required']
        >>> validate_input(50, "number", {"min": 100})
        ['Must be at least 100']
    """

    opts: ValidateOptions = options or {}
    kind = normalize_field_type(field_type)

    if _is_empty(value):
        if opts.get("required"):
            return [f"{field_type} is required"]
        return []

    errors: list[str] = []

    if kind in _PATTERN_MESSAGES:
        if not _matches(PATTERNS[kind], value):
            errors.append(_PATTERN_MESSAGES[kind])

    elif kind == "shopify_id":
        if not _matches(PATTERNS["shopify_id"], value) and not _matches(PATTERNS["numeric_id"], value):
            errors.append("Invalid Shopify ID format")

    elif kind == "token":
        if not _matches(PATTERNS["token"], value):
            errors.append("Invalid token format")
        if len(to_text(value)) < 10:
            errors.append("Token must be at least 10 characters long")

    elif kind in ("number", "integer"):
        errors.extend(_check_number(value, opts, whole=kind == "integer"))

    elif kind == "string":
        errors.extend(_check_string(value, opts))

    elif kind == "array":
        errors.extend(_check_array(value, opts))

    return errors


RecordValidator = Callable[[Mapping[str, Any]], "dict[str, list[str]] | None"]


def validate_order_data(data: Mapping[str, Any]) -> dict[str, list[str]] | None:
    """Check that an order record carries its identifying fields."""

    errors: dict[str, list[str]] = {}
    if not data.get("id"):
        errors["id"] = ["Order ID is required"]
    if not data.get("order_number"):
        errors["order_number"] = ["Order number is required"]
    if not data.get("customer"):
        errors["customer"] = ["Customer data is required"]
    return errors or None


def validate_customer_data(data: Mapping[str, Any]) -> dict[str, list[str]] | None:
    """Check the optional contact fields of a customer record."""

    errors: dict[str, list[str]] = {}
    for field_name in ("email", "phone"):
        if data.get(field_name):
            field_errors = validate_input(data[field_name], field_name, {"required": False})
            if field_errors:
                errors[field_name] = field_errors
    return errors or None


def validate_token_data(data: Mapping[str, Any]) -> dict[str, list[str]] | None:
    """Check that a payload carries a well-formed API token."""

    token_errors = validate_input(data.get("token"), "token", {"required": True})
    if token_errors:
        logger.debug("validators.token_rejected", extra={"error_count": len(token_errors)})
        return {"token": token_errors}
    return None


VALIDATORS: dict[str, RecordValidator] = {
    "order_data": validate_order_data,
    "customer_data": validate_customer_data,
    "token_data": validate_token_data,
}
