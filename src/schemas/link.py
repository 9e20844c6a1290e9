"""Pydantic schemas for link endpoints."""
from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from models.link import MAX_DESCRIPTION_LENGTH, MAX_TITLE_LENGTH, MAX_URL_LENGTH
from schemas.validators import validate_rating
from services.exceptions import InvalidUrlError
from services.url_normalizer import normalize_url

SortOrder = Literal["rating-desc", "date-desc", "date-asc"]
TagMatch = Literal["all", "any"]


def _blank_to_none(v: object) -> object:
    """Treat empty or whitespace-only strings as missing."""
    if isinstance(v, str):
        stripped = v.strip()
        return stripped or None
    return v


class LinkCreate(BaseModel):
    """
    Schema for submitting a new link.

    The URL is kept as submitted; normalization is only used for duplicate detection.
    """

    url: str
    title: str | None = None
    rating: int | None = None

    @field_validator("url", mode="before")
    @classmethod
    def check_url(cls, v: object) -> str:
        """Require an absolute http(s) URL within the column limit."""
        if not isinstance(v, str) or not v.strip():
            raise ValueError("URL is required")
        url = v.strip()
        if len(url) > MAX_URL_LENGTH:
            raise ValueError(f"URL must be at most {MAX_URL_LENGTH} characters")
        try:
            normalize_url(url)
        except InvalidUrlError as e:
            raise ValueError("Invalid URL format") from e
        return url

    @field_validator("title", mode="before")
    @classmethod
    def strip_title(cls, v: object) -> object:
        """Blank titles are treated as not provided."""
        return _blank_to_none(v)

    @field_validator("rating")
    @classmethod
    def check_rating(cls, v: int | None) -> int | None:
        """Validate rating range."""
        return validate_rating(v)


class LinkUpdate(BaseModel):
    """
    Schema for editing a link.

    Omitted fields are left unchanged; an explicit null rating clears the rating.
    """

    title: str | None = None
    ai_description: str | None = Field(default=None, max_length=MAX_DESCRIPTION_LENGTH)
    rating: int | None = None

    @field_validator("title", "ai_description", mode="before")
    @classmethod
    def strip_text(cls, v: object) -> object:
        """Blank values are treated as not provided."""
        return _blank_to_none(v)

    @field_validator("title")
    @classmethod
    def truncate_title(cls, v: str | None) -> str | None:
        """Titles beyond the column limit are cut."""
        return v[:MAX_TITLE_LENGTH] if v else v

    @field_validator("rating")
    @classmethod
    def check_rating(cls, v: int | None) -> int | None:
        """Validate rating range."""
        return validate_rating(v)


class TagSummary(BaseModel):
    """A tag as embedded in a link response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str


class LinkResponse(BaseModel):
    """
    Schema for link responses.

    scraped_content is never returned; it is stored only as LLM context.
    Tags are read from the tag_objects relationship when it is eagerly loaded.
    """

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    url: str
    domain: str
    title: str | None
    ai_description: str | None
    rating: int | None
    ai_processing_status: str
    ai_processing_started_at: datetime | None = None
    ai_processing_completed_at: datetime | None = None
    ai_processing_error: str | None = None
    tags: list[TagSummary]
    created_at: datetime
    updated_at: datetime

    @model_validator(mode="before")
    @classmethod
    def extract_tags(cls, data: Any) -> Any:
        """
        Extract tags from the tag_objects relationship.

        Only accesses tag_objects if it's already loaded (not lazy) to avoid
        triggering database queries outside async context.
        """
        if hasattr(data, "__dict__") and not isinstance(data, dict):
            data_dict = {}
            for key in cls.model_fields:
                if key != "tags" and hasattr(data, key):
                    data_dict[key] = getattr(data, key)
            loaded = data.__dict__.get("tag_objects")
            data_dict["tags"] = [
                TagSummary(id=tag.id, name=tag.name) for tag in loaded
            ] if loaded is not None else []
            return data_dict
        return data


class LinkResult(BaseModel):
    """Envelope returned by link submission: success flag plus data or error."""

    success: bool
    data: LinkResponse | None = None
    error: str | None = None


class LinkListResponse(BaseModel):
    """Schema for paginated link search results."""

    items: list[LinkResponse]
    total: int  # Total count of links matching the query (before pagination)
    page: int
    page_size: int
    total_pages: int


class RatingCount(BaseModel):
    """Number of links with a given rating (None = unrated)."""

    rating: int | None
    count: int


class TagUsage(BaseModel):
    """Tag usage count across non-deleted links."""

    id: UUID
    name: str
    count: int


class LinkStatistics(BaseModel):
    """Aggregate statistics over a user's non-deleted links."""

    total_links: int
    links_by_rating: list[RatingCount]
    average_rating: float | None
    most_used_tags: list[TagUsage]
    recent_links_count: int  # Links added in the last 7 days
    completed_links: int
    failed_links: int
