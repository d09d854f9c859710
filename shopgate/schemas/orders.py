"""Pydantic schemas for order retrieval responses."""

from __future__ import annotations

from datetime import datetime
from typing import Any, List

from pydantic import BaseModel, Field


class OrdersResponse(BaseModel):
    """Orders fetched from the order backend for one shop."""

    success: bool = Field(True, description="Always true on success.")
    orders: List[Any] = Field(
        default_factory=list,
        description="Orders as returned by the order backend (empty when none).",
    )
    shop: str = Field(..., description="Canonical shop domain.")
    timestamp: datetime = Field(..., description="Server time (UTC) of the fetch.")
    request_id: str = Field(..., description="Id correlating the outbound API call in logs.")
