"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It ensures that the TESTING environment variable is set to prevent
loading the .env file during tests.
"""

import os

# CRITICAL: Set this before any imports that might load settings
# This prevents Pydantic from loading the .env file in tests
os.environ["TESTING"] = "true"

# Set default env vars that all tests might need
os.environ.setdefault("APP_DEBUG", "false")
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("LOG_OUTPUT", "stdout")
os.environ.setdefault("RATE_LIMIT_ENABLED", "true")
os.environ.setdefault("RATE_LIMIT_SWEEP_PROBABILITY", "0.01")

import pytest  # noqa: E402

from shopgate.adapters.http.factory import reset_shopify_rate_limiter  # noqa: E402
from shopgate.core.rate_limit import reset_rate_limiter  # noqa: E402


@pytest.fixture(autouse=True)
def _fresh_limiters():
    """Give every test its own process-wide limiters."""
    reset_rate_limiter()
    reset_shopify_rate_limiter()
    yield
    reset_rate_limiter()
    reset_shopify_rate_limiter()
