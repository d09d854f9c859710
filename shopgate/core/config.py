"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file and os.getenv("TESTING") != "true":
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode (error details in every response)",
    )
    token_ttl_seconds: int = Field(
        86400,
        description="How long a stored third-party API token stays valid",
        ge=1,
    )
    token_store_max_entries: int = Field(
        10000,
        description="Maximum number of shops kept in the in-memory token store",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log output: stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(10 * 1024 * 1024, description="Rotate log file after this many bytes (0 disables)")
    backup_count: int = Field(5, description="Number of rotated log files to keep")
    request_id_header: str = Field("X-Request-ID", description="Header carrying the correlation id")
    slow_operation_ms: int = Field(
        5000,
        description="Operations slower than this are logged as warnings",
    )
    performance_info_ms: int = Field(
        1000,
        description="Operations slower than this are logged at info level",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """Inbound rate limiting and outbound pacing configuration."""

    enabled: bool = Field(
        True,
        description="Enable fixed-window rate limiting on API routes",
    )
    include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers on responses",
    )
    sweep_probability: float = Field(
        0.01,
        description="Chance that a check also evicts expired windows",
        ge=0.0,
        le=1.0,
    )
    shopify_bucket_max_tokens: int = Field(
        40,
        description="Token bucket capacity per shop for Shopify Admin API calls",
        ge=1,
    )
    shopify_bucket_refill_per_second: float = Field(
        2.0,
        description="Token bucket refill rate per shop (tokens per second)",
        gt=0.0,
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


class HttpClientSettings(BaseSettings):
    """Outbound HTTP client configuration."""

    timeout_seconds: float = Field(30.0, description="Per-attempt request timeout in seconds", gt=0)
    retries: int = Field(3, description="Maximum attempts per request", ge=1)
    retry_delay_seconds: float = Field(
        1.0,
        description="Base delay for linear backoff (delay * attempt)",
        ge=0,
    )
    user_agent: str = Field("Shopify-App/1.0", description="User-Agent sent to remote APIs")

    model_config = SettingsConfigDict(
        env_prefix="HTTP_",
        case_sensitive=False,
    )


class ShopifySettings(BaseSettings):
    """Shopify Admin API configuration."""

    api_version: str = Field("2024-01", description="Admin REST API version")

    model_config = SettingsConfigDict(
        env_prefix="SHOPIFY_",
        case_sensitive=False,
    )


class OrderApiSettings(BaseSettings):
    """Third-party order API configuration."""

    base_url: str = Field(
        "https://backend.rushr-admin.com/api",
        description="Base URL of the third-party order API",
    )

    model_config = SettingsConfigDict(
        env_prefix="ORDER_API_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if a setting is malformed.
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=AppSettings)
    log: LogSettings = Field(default_factory=LogSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    http: HttpClientSettings = Field(default_factory=HttpClientSettings)
    shopify: ShopifySettings = Field(default_factory=ShopifySettings)
    order_api: OrderApiSettings = Field(default_factory=OrderApiSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
