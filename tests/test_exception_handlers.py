"""Tests for global exception handlers.

Validates that all exception types are handled consistently with
proper HTTP status codes, error format, and no information leakage.
"""

import asyncio
import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from shopgate.core.config import settings
from shopgate.core.errors import (
    AppError,
    ErrorKind,
    create_external_api_error,
    create_not_found_error,
    create_rate_limit_error,
    create_validation_error,
)
from shopgate.core.exception_handlers import general_exception_handler, setup_exception_handlers


@pytest.fixture
def app_with_handlers() -> FastAPI:
    """Create FastAPI app with exception handlers registered."""
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    """Create test client with handlers enabled."""
    return TestClient(app_with_handlers, raise_server_exceptions=False)


def decode(response) -> dict:
    response_body = response.body if isinstance(response.body, bytes) else bytes(response.body)
    return json.loads(response_body.decode())


class TestAppErrorHandler:
    """Test handler for AppError and subclasses."""

    def test_validation_error_returns_400_with_details(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-validation")
        async def test_endpoint():
            raise create_validation_error("email", "Invalid email format", "nope")

        response = client.get("/test-validation")

        assert response.status_code == 400
        data = response.json()
        assert data["success"] is False
        assert data["error"]["code"] == "VALIDATION_ERROR"
        assert data["error"]["severity"] == "low"
        assert data["error"]["details"]["field"] == "email"
        assert "request_id" in data["error"]
        assert response.headers["X-Error-Type"] == "VALIDATION_ERROR"
        assert response.headers["X-Error-Timestamp"] == data["error"]["timestamp"]

    def test_rate_limit_error_sets_retry_after(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-rate-limit")
        async def test_endpoint():
            raise create_rate_limit_error(42)

        response = client.get("/test-rate-limit")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "42"
        assert response.json()["error"]["details"] == {"retry_after": 42}

    def test_not_found_error_returns_404_without_details(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-not-found")
        async def test_endpoint():
            raise create_not_found_error("Order API token", "a.myshopify.com")

        response = client.get("/test-not-found")

        assert response.status_code == 404
        data = response.json()
        assert data["error"]["code"] == "NOT_FOUND_ERROR"
        assert "details" not in data["error"]

    def test_details_exposed_in_debug_mode(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-external")
        async def test_endpoint():
            raise create_external_api_error("api.example.com", 503, "HTTP 503: Service Unavailable")

        with patch.object(settings.app, "debug", True):
            response = client.get("/test-external")

        assert response.status_code == 503
        assert response.json()["error"]["details"]["api_name"] == "api.example.com"

    def test_request_validation_error_maps_to_400(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-query")
        async def test_endpoint(limit: int):
            return {"limit": limit}

        response = client.get("/test-query?limit=abc")

        assert response.status_code == 400
        data = response.json()
        assert data["error"]["code"] == "VALIDATION_ERROR"
        assert "limit" in data["error"]["details"]["value"]


class TestGeneralExceptionHandler:
    """Test fallback handler for unexpected exceptions."""

    def test_unexpected_exception_handler_registered(self, app_with_handlers: FastAPI):
        assert Exception in app_with_handlers.exception_handlers

    def test_general_exception_handler_hides_internal_messages(self):
        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        exc = RuntimeError("Unexpected error: database connection failed")
        response = asyncio.run(general_exception_handler(request, exc))

        data = decode(response)
        assert response.status_code == 500
        assert data["error"]["code"] == "INTERNAL_SERVER_ERROR"
        # Original error message should NOT be in response
        assert "database connection" not in data["error"]["message"]
        assert "request_id" in data["error"]

    def test_general_exception_handler_never_leaks_stack_trace(self):
        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        response = asyncio.run(general_exception_handler(request, ValueError("Test error with details")))

        response_text = bytes(response.body).decode()
        assert "Traceback" not in response_text
        assert "File \"" not in response_text
        assert "ValueError" not in response_text

    def test_classified_exceptions_keep_status(self):
        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        response = asyncio.run(general_exception_handler(request, PermissionError("Permission denied")))

        assert response.status_code == 403
        assert decode(response)["error"]["code"] == "AUTHORIZATION_ERROR"

    def test_httpx_errors_become_network_errors(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-network")
        async def test_endpoint():
            raise httpx.ConnectError("connection refused")

        response = client.get("/test-network")

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "NETWORK_ERROR"


class TestErrorHandlerIntegration:
    """Integration tests for exception handler setup."""

    def test_setup_exception_handlers_registers_handlers(self, app_with_handlers: FastAPI):
        assert AppError in app_with_handlers.exception_handlers
        assert Exception in app_with_handlers.exception_handlers

    def test_multiple_handler_setups_does_not_fail(self):
        app = FastAPI()

        setup_exception_handlers(app)
        setup_exception_handlers(app)

        assert AppError in app.exception_handlers

    def test_error_kinds_are_stable_codes(self):
        assert {kind.value for kind in ErrorKind} == {
            "VALIDATION_ERROR",
            "AUTHENTICATION_ERROR",
            "AUTHORIZATION_ERROR",
            "NOT_FOUND_ERROR",
            "EXTERNAL_API_ERROR",
            "DATABASE_ERROR",
            "NETWORK_ERROR",
            "INTERNAL_SERVER_ERROR",
            "RATE_LIMIT_ERROR",
            "SHOPIFY_API_ERROR",
        }
