"""Pydantic schemas for rate limit introspection."""

from __future__ import annotations

from pydantic import BaseModel, Field


class RateLimitStatusResponse(BaseModel):
    """Current fixed-window state for a client, endpoint and limit class."""

    endpoint: str = Field(..., description="Logical endpoint name.")
    limit_class: str = Field(..., description="Limit class the window belongs to.")
    limit: int = Field(..., description="Maximum requests per window.")
    remaining: int = Field(..., description="Requests left in the current window.")
    count: int = Field(..., description="Requests counted in the current window.")
    window_seconds: int = Field(..., description="Window length in seconds.")
    reset_at: int | None = Field(
        None,
        description="Epoch milliseconds when the window resets (null when no window is open).",
    )
