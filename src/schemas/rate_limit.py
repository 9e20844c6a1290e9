"""Pydantic schemas for rate limit endpoints."""
from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class RateLimitStatusResponse(BaseModel):
    """Current usage against the hourly link limit."""

    model_config = ConfigDict(from_attributes=True)

    limit: int
    used: int
    remaining: int
    reset_at: datetime
    percentage_used: int


class RateLimitViolationResponse(BaseModel):
    """A denied submission."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    violation_type: str
    attempted_at: datetime
    details: dict[str, Any] | None = None
