"""Pydantic schemas for user profile endpoints."""
from datetime import datetime

from pydantic import BaseModel


class UserStats(BaseModel):
    """Profile statistics for the current user."""

    link_count: int
    tag_count: int
    email: str | None
    created_at: datetime


class AccountDeletionRequest(BaseModel):
    """Request body for deleting the current user's account."""

    confirmation: str
