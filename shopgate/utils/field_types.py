"""Field type catalog shared by the sanitizer and the validator.

Holds the canonical type names, the regex patterns and per-type length
limits, plus the text/number coercion helpers both layers rely on.
"""

from __future__ import annotations

import math
import re
from typing import Any, Literal

FieldType = Literal[
    "string",
    "text",
    "name",
    "email",
    "phone",
    "number",
    "integer",
    "boolean",
    "url",
    "shopify_domain",
    "shopify_id",
    "token",
    "array",
    "json",
    "hex_color",
    "postal_code",
    "currency",
    "order_status",
]

PATTERNS: dict[str, re.Pattern[str]] = {
    "email": re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}"),
    "phone": re.compile(r"\+?[0-9\s\-()]{10,20}"),
    "url": re.compile(
        r"https?://(www\.)?[-a-zA-Z0-9@:%._+~#=]{1,256}\.[a-zA-Z0-9()]{1,6}\b"
        r"([-a-zA-Z0-9()@:%_+.~#?&/=]*)"
    ),
    "shopify_domain": re.compile(r"[a-zA-Z0-9][a-zA-Z0-9\-]*[a-zA-Z0-9]\.myshopify\.com"),
    "alphanumeric": re.compile(r"[a-zA-Z0-9]+"),
    "alphanumeric_with_spaces": re.compile(r"[a-zA-Z0-9\s]+"),
    "shopify_id": re.compile(r"gid://shopify/[A-Za-z]+/[0-9]+"),
    "numeric_id": re.compile(r"[0-9]+"),
    "token": re.compile(r"[a-zA-Z0-9_\-.]{10,}"),
    "hex_color": re.compile(r"#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})"),
    "postal_code": re.compile(r"[A-Za-z0-9\s\-]{3,10}"),
    "currency": re.compile(r"[A-Z]{3}"),
    "order_status": re.compile(
        r"(pending|confirmed|processing|shipped|delivered|cancelled|refunded)",
        re.IGNORECASE,
    ),
}

MAX_LENGTHS: dict[str, int] = {
    "short_text": 100,
    "medium_text": 500,
    "long_text": 2000,
    "name": 100,
    "email": 254,
    "phone": 20,
    "address": 200,
    "city": 100,
    "country": 100,
    "postal_code": 20,
    "token": 1000,
    "description": 2000,
    "title": 200,
    "sku": 100,
    "tag": 50,
}

DEFAULT_MAX_LENGTH = MAX_LENGTHS["medium_text"]

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def normalize_field_type(field_type: str) -> str:
    """Return the canonical snake_case spelling of a field type.

    ``shopifyDomain``, ``shopify-domain`` and ``shopify_domain`` all map to
    ``shopify_domain``.
    """

    return _CAMEL_BOUNDARY.sub("_", field_type).replace("-", "_").lower()


def to_text(value: Any) -> str:
    """Coerce a value to text the way form/JSON input is rendered."""

    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    try:
        return str(value)
    except ValueError:
        # ints past the interpreter's digit conversion limit
        return ""


def to_number(value: Any) -> int | float | None:
    """Parse a numeric value, returning None when it is not a finite number.

    Empty and whitespace-only strings count as zero; booleans count as 0/1.
    Integral values parsed from text are returned as ``int``.
    """

    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return None if isinstance(value, float) and math.isnan(value) else value
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return 0
    try:
        number = float(text)
    except ValueError:
        return None
    if math.isnan(number):
        return None
    if number.is_integer() and not math.isinf(number):
        return int(number)
    return number


_LEADING_INT = re.compile(r"\s*([+-]?[0-9]+)")


def to_integer(value: Any) -> int | None:
    """Parse the leading integer of a value (``"123.45"`` -> 123)."""

    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return None if math.isnan(value) or math.isinf(value) else int(value)
    match = _LEADING_INT.match(to_text(value))
    if not match:
        return None
    try:
        return int(match.group(1))
    except ValueError:
        # digit run past the interpreter's int conversion limit
        return None
