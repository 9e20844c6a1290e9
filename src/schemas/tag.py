"""Pydantic schemas for tag endpoints."""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from schemas.validators import MAX_TAGS_PER_LINK, validate_and_normalize_tag


def _normalize_tag_name(v: object) -> str:
    if not isinstance(v, str):
        raise ValueError("Tag name must be a string")
    return validate_and_normalize_tag(v)


class TagCount(BaseModel):
    """Schema for a tag with its usage count."""

    id: UUID
    name: str
    link_count: int  # Count of non-deleted links using this tag


class TagListResponse(BaseModel):
    """Schema for the tags list response."""

    tags: list[TagCount]


class TagResponse(BaseModel):
    """Schema for full tag response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    created_at: datetime


class TagCreate(BaseModel):
    """Schema for creating a tag."""

    name: str

    @field_validator("name", mode="before")
    @classmethod
    def normalize_and_validate(cls, v: object) -> str:
        """Normalize and validate the tag name."""
        return _normalize_tag_name(v)


class TagRenameRequest(BaseModel):
    """Schema for renaming a tag."""

    new_name: str

    @field_validator("new_name", mode="before")
    @classmethod
    def normalize_and_validate(cls, v: object) -> str:
        """Normalize and validate the new tag name."""
        return _normalize_tag_name(v)


class TagMergeRequest(BaseModel):
    """Schema for merging the path tag into target_tag_id."""

    target_tag_id: UUID


class LinkTagsUpdate(BaseModel):
    """Schema for replacing a link's tags."""

    tag_ids: list[UUID] = Field(default_factory=list)

    @field_validator("tag_ids")
    @classmethod
    def check_limit(cls, v: list[UUID]) -> list[UUID]:
        """Reject more than the per-link tag limit."""
        if len(v) > MAX_TAGS_PER_LINK:
            raise ValueError(f"Maximum {MAX_TAGS_PER_LINK} tags allowed")
        return v
