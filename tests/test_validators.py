"""Unit tests for field validation rules."""

from __future__ import annotations

import pytest

from shopgate.utils.validators import (
    VALIDATORS,
    validate_customer_data,
    validate_input,
    validate_order_data,
    validate_token_data,
)


class TestRequired:
    def test_required_empty_string(self) -> None:
        assert validate_input("", "string", {"required": True}) == ["string is required"]

    def test_required_none_reports_type_as_given(self) -> None:
        assert validate_input(None, "shopifyDomain", {"required": True}) == ["shopifyDomain is required"]

    def test_optional_empty_is_valid(self) -> None:
        assert validate_input("", "email") == []
        assert validate_input(None, "number", {"min": 5}) == []


class TestPatterns:
    @pytest.mark.parametrize(
        ("field_type", "value"),
        [
            ("email", "test@example.com"),
            ("phone", "+1 (555) 123-4567"),
            ("url", "https://example.com/path?q=1"),
            ("shopify_domain", "my-store.myshopify.com"),
            ("hex_color", "#a1b2c3"),
            ("postal_code", "SW1A 1AA"),
            ("currency", "USD"),
            ("order_status", "Shipped"),
            ("shopify_id", "gid://shopify/Product/123"),
            ("shopify_id", "123456"),
        ],
    )
    def test_accepts_valid_values(self, field_type: str, value: str) -> None:
        assert validate_input(value, field_type) == []

    @pytest.mark.parametrize(
        ("field_type", "value", "message"),
        [
            ("email", "invalid-email", "Invalid email format"),
            ("phone", "12", "Invalid phone number format"),
            ("url", "ftp://example.com", "Invalid URL format"),
            ("shopify_domain", "example.com", "Invalid Shopify domain format"),
            ("currency", "usd", "Invalid currency code"),
            ("order_status", "lost", "Invalid order status"),
            ("shopify_id", "gid://shopify/Product/abc", "Invalid Shopify ID format"),
        ],
    )
    def test_rejects_invalid_values(self, field_type: str, value: str, message: str) -> None:
        assert validate_input(value, field_type) == [message]

    def test_email_pattern_is_anchored(self) -> None:
        assert validate_input("a@b.co extra", "email") == ["Invalid email format"]


class TestToken:
    def test_valid_token(self) -> None:
        assert validate_input("shpat_abcdef123456", "token") == []

    def test_short_token_reports_both_rules(self) -> None:
        assert validate_input("abc", "token") == [
            "Invalid token format",
            "Token must be at least 10 characters long",
        ]


class TestNumbers:
    def test_below_minimum(self) -> None:
        assert validate_input(50, "number", {"min": 100}) == ["Must be at least 100"]

    def test_above_maximum(self) -> None:
        assert validate_input(150, "number", {"max": 100}) == ["Must be at most 100"]

    def test_not_a_number(self) -> None:
        assert validate_input("abc", "number") == ["Must be a valid number"]

    def test_boolean_is_not_a_number(self) -> None:
        assert validate_input(True, "number") == ["Must be a valid number"]

    def test_numeric_text_is_accepted(self) -> None:
        assert validate_input("42", "number", {"min": 1, "max": 100}) == []

    def test_integer_requires_whole_number(self) -> None:
        assert validate_input(1.5, "integer") == ["Must be a whole number"]
        assert validate_input(2, "integer", {"min": 1}) == []


class TestStringsAndArrays:
    def test_length_rules(self) -> None:
        assert validate_input("ab", "string", {"min_length": 3}) == ["Must be at least 3 characters long"]
        assert validate_input("abcd", "string", {"max_length": 3}) == ["Must be at most 3 characters long"]

    def test_custom_pattern(self) -> None:
        assert validate_input("abc", "string", {"pattern": r"^\d+$"}) == ["Invalid format"]
        assert validate_input("123", "string", {"pattern": r"^\d+$"}) == []

    def test_non_string(self) -> None:
        assert validate_input(5, "string") == ["Must be a string"]

    def test_array_rules(self) -> None:
        assert validate_input("x", "array") == ["Must be an array"]
        assert validate_input([1], "array", {"min_items": 2}) == ["Must have at least 2 items"]
        assert validate_input([1, 2, 3], "array", {"max_items": 2}) == ["Must have at most 2 items"]

    def test_unknown_type_accepts_anything(self) -> None:
        assert validate_input({"a": 1}, "json") == []


class TestRecordValidators:
    def test_order_data_missing_fields(self) -> None:
        errors = validate_order_data({"id": 1})

        assert errors == {
            "order_number": ["Order number is required"],
            "customer": ["Customer data is required"],
        }

    def test_order_data_complete(self) -> None:
        assert validate_order_data({"id": 1, "order_number": "#1001", "customer": {"id": 2}}) is None

    def test_customer_data_checks_present_fields_only(self) -> None:
        assert validate_customer_data({"email": "bad"}) == {"email": ["Invalid email format"]}
        assert validate_customer_data({}) is None

    def test_token_data(self) -> None:
        assert validate_token_data({"token": "valid_token_123"}) is None
        assert validate_token_data({}) == {"token": ["token is required"]}

    def test_registry(self) -> None:
        assert VALIDATORS["token_data"] is validate_token_data
