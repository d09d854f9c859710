"""Input sanitization for untrusted request data.

``sanitize_input`` maps a raw value to the canonical, safe representation of
its declared field type. It never raises: unusable input collapses to the
type's default (or ``None`` when ``allow_null`` is set).
"""

from __future__ import annotations

import json
import re
from typing import Any, TypedDict
from urllib.parse import urlsplit, urlunsplit

from shopgate.utils.field_types import (
    DEFAULT_MAX_LENGTH,
    MAX_LENGTHS,
    normalize_field_type,
    to_integer,
    to_number,
    to_text,
)

SHOPIFY_DOMAIN_SUFFIX = ".myshopify.com"
DEFAULT_MAX_ITEMS = 100

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_NAME_UNSAFE_CHARS = re.compile(r"[<>\"'&]")
_WHITESPACE_RUN = re.compile(r"\s+")
_PHONE_UNSAFE_CHARS = re.compile(r"[^0-9+\-()\s]")
_TOKEN_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.\-]")
_URL_SCHEME = re.compile(r"[a-zA-Z][a-zA-Z0-9+.\-]*")


class SanitizeOptions(TypedDict, total=False):
    """Options accepted by ``sanitize_input``."""

    allow_null: bool
    max_length: int
    min: float
    max: float
    item_type: str
    max_items: int


_EMPTY_DEFAULTS: dict[str, Any] = {
    "number": 0,
    "integer": 0,
    "boolean": False,
}


def _empty_value(field_type: str) -> Any:
    if field_type == "array":
        return []
    if field_type == "json":
        return {}
    return _EMPTY_DEFAULTS.get(field_type, "")


def _clamp(number: int | float, options: SanitizeOptions) -> int | float:
    minimum = options.get("min")
    maximum = options.get("max")
    if minimum is not None and number < minimum:
        return minimum
    if maximum is not None and number > maximum:
        return maximum
    return number


def _normalize_url(raw: Any) -> str | None:
    """Return the normalized absolute URL, or None if it does not parse."""

    text = to_text(raw).strip()
    try:
        parts = urlsplit(text)
        # Accessing .port validates it and raises ValueError when malformed.
        parts.port
    except ValueError:
        return None

    if not parts.scheme or not _URL_SCHEME.fullmatch(parts.scheme) or not parts.hostname:
        return None

    scheme = parts.scheme.lower()
    userinfo, _, hostport = parts.netloc.rpartition("@")
    netloc = f"{userinfo}@{hostport.lower()}" if userinfo else hostport.lower()
    path = parts.path or ("/" if scheme in {"http", "https"} else "")
    return urlunsplit((scheme, netloc, path, parts.query, parts.fragment))


def sanitize_input(
    value: Any,
    field_type: str = "string",
    options: SanitizeOptions | None = None,
) -> Any:
    """Sanitize a raw value according to its declared field type.

    Args:
        value: Raw, untrusted input.
        field_type: Field type name (see ``FieldType``); camelCase and
            kebab-case spellings are accepted.
        options: Optional ``SanitizeOptions``.

    Returns:
        The cleaned value. Missing input yields the type default (``""``,
        ``0``, ``False``, ``[]`` or ``{}``) or None when ``allow_null``.

    Examples:
        >>> sanitize_input("  TEST@EXAMPLE.COM  ", "email")
        'test@example.com'
        >>> sanitize_input("mystore", "shopifyDomain")
        'mystore.myshopify.com'
        >>> sanitize_input("50", "number", {"min": 100})
        100
    """

    opts: SanitizeOptions = options or {}
    kind = normalize_field_type(field_type)
    allow_null = bool(opts.get("allow_null"))

    if value is None:
        return None if allow_null else _empty_value(kind)

    max_length = opts.get("max_length") or MAX_LENGTHS.get(kind, DEFAULT_MAX_LENGTH)

    if kind in ("string", "text"):
        return _CONTROL_CHARS.sub("", to_text(value).strip())[:max_length]

    if kind == "name":
        cleaned = _NAME_UNSAFE_CHARS.sub("", to_text(value).strip())
        return _WHITESPACE_RUN.sub(" ", cleaned)[: MAX_LENGTHS["name"]]

    if kind == "email":
        return to_text(value).strip().lower()[: MAX_LENGTHS["email"]]

    if kind == "phone":
        return _PHONE_UNSAFE_CHARS.sub("", to_text(value)).strip()[: MAX_LENGTHS["phone"]]

    if kind == "number":
        number = to_number(value)
        if number is None:
            return None if allow_null else 0
        return _clamp(number, opts)

    if kind == "integer":
        integer = to_integer(value)
        if integer is None:
            return None if allow_null else 0
        return _clamp(integer, opts)

    if kind == "boolean":
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.lower() in ("true", "1", "yes")
        return bool(value)

    if kind == "url":
        normalized = _normalize_url(value)
        if normalized is None:
            return None if allow_null else ""
        return normalized[:max_length]

    if kind == "shopify_domain":
        domain = to_text(value).strip().lower()
        if not domain.endswith(SHOPIFY_DOMAIN_SUFFIX):
            return domain + SHOPIFY_DOMAIN_SUFFIX
        return domain

    if kind == "token":
        return _TOKEN_UNSAFE_CHARS.sub("", to_text(value).strip())[: MAX_LENGTHS["token"]]

    if kind == "array":
        if not isinstance(value, (list, tuple)):
            return []
        item_type = opts.get("item_type") or "string"
        items = [sanitize_input(item, item_type, opts) for item in value]
        return items[: opts.get("max_items") or DEFAULT_MAX_ITEMS]

    if kind == "json":
        if not isinstance(value, str):
            return value
        try:
            return json.loads(value)
        except ValueError:
            return None if allow_null else {}

    return to_text(value).strip()[:max_length]
