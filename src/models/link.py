"""Link model for storing saved bookmarks."""
from datetime import datetime
from enum import StrEnum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, TimestampMixin, UUIDv7Mixin
from models.tag import link_tags

if TYPE_CHECKING:
    from models.tag import Tag
    from models.user import User


# Column limits - stored values are truncated to these before insert
MAX_URL_LENGTH = 2048
MAX_DOMAIN_LENGTH = 255
MAX_TITLE_LENGTH = 500
MAX_DESCRIPTION_LENGTH = 280
MAX_SCRAPED_CONTENT_LENGTH = 3000
MAX_ERROR_LENGTH = 500


class ProcessingStatus(StrEnum):
    """Metadata/AI processing state of a link."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class Link(Base, UUIDv7Mixin, TimestampMixin):
    """Link model - a saved URL with scraped and AI-generated metadata."""

    __tablename__ = "links"
    __table_args__ = (
        # Partial unique index: enforces uniqueness only for non-deleted links.
        # Soft-deleted links don't block re-saving the same URL.
        Index(
            "uq_links_user_normalized_url_active",
            "user_id",
            "normalized_url",
            unique=True,
            postgresql_where=text("deleted_at IS NULL"),
            sqlite_where=text("deleted_at IS NULL"),
        ),
        Index("ix_links_user_domain", "user_id", "domain"),
        CheckConstraint(
            "rating IS NULL OR (rating >= 1 AND rating <= 5)",
            name="ck_links_rating_range",
        ),
        CheckConstraint(
            "ai_processing_status IN ('pending', 'processing', 'completed', 'failed')",
            name="ck_links_ai_processing_status",
        ),
    )

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
    )
    url: Mapped[str] = mapped_column(String(MAX_URL_LENGTH), nullable=False)
    normalized_url: Mapped[str] = mapped_column(
        String(MAX_URL_LENGTH),
        nullable=False,
        comment="URL normalized for uniqueness comparison (lowercase scheme, no trailing slash)",
    )
    domain: Mapped[str] = mapped_column(String(MAX_DOMAIN_LENGTH), nullable=False)
    title: Mapped[str | None] = mapped_column(String(MAX_TITLE_LENGTH), nullable=True)
    ai_description: Mapped[str | None] = mapped_column(
        String(MAX_DESCRIPTION_LENGTH), nullable=True,
    )
    # Used only as LLM context, never shown to the end user
    scraped_content: Mapped[str | None] = mapped_column(
        String(MAX_SCRAPED_CONTENT_LENGTH), nullable=True,
    )
    rating: Mapped[int | None] = mapped_column(nullable=True)

    ai_processing_status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ProcessingStatus.PENDING.value,
    )
    ai_processing_started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    ai_processing_completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    ai_processing_error: Mapped[str | None] = mapped_column(
        String(MAX_ERROR_LENGTH), nullable=True,
    )

    # Soft delete timestamp - if not null, link is considered deleted
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, default=None, index=True,
    )

    user: Mapped["User"] = relationship(back_populates="links")
    tag_objects: Mapped[list["Tag"]] = relationship(
        secondary=link_tags,
        back_populates="links",
        order_by="Tag.name",
    )
