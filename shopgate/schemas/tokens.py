"""Pydantic schemas for order API token registration."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class SaveTokenResponse(BaseModel):
    """Confirmation returned after a shop's token is stored."""

    success: bool = Field(True, description="Always true on success.")
    message: str = Field("Token saved successfully", description="Human-readable outcome.")
    shop: str = Field(..., description="Canonical shop domain the token belongs to.")
    timestamp: datetime = Field(..., description="Server time (UTC) when the token was stored.")
