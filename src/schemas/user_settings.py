"""Pydantic schemas for user settings endpoints."""
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict

SortOrder = Literal["rating-desc", "date-desc", "date-asc"]
LinksPerPage = Literal[12, 24, 48]

DEFAULT_SORT: SortOrder = "rating-desc"
DEFAULT_LINKS_PER_PAGE: LinksPerPage = 12


class UserSettingsUpdate(BaseModel):
    """Schema for updating user settings. Omitted fields are left unchanged."""

    ai_processing_enabled: bool | None = None
    default_sort: SortOrder | None = None
    links_per_page: LinksPerPage | None = None


class UserSettingsResponse(BaseModel):
    """Schema for user settings responses."""

    model_config = ConfigDict(from_attributes=True)

    ai_processing_enabled: bool
    default_sort: SortOrder
    links_per_page: LinksPerPage
    updated_at: datetime
