"""UserSettings model for storing user preferences."""
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from models.user import User


class UserSettings(Base, TimestampMixin):
    """
    User settings - stores per-user preferences.

    ai_processing_enabled is read by the ingestion pipeline before any LLM
    call; the remaining fields only drive list defaults.
    """

    __tablename__ = "user_settings"
    __table_args__ = (
        CheckConstraint(
            "default_sort IN ('rating-desc', 'date-desc', 'date-asc')",
            name="ck_user_settings_default_sort",
        ),
        CheckConstraint(
            "links_per_page IN (12, 24, 48)",
            name="ck_user_settings_links_per_page",
        ),
    )

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    ai_processing_enabled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True,
    )
    default_sort: Mapped[str] = mapped_column(
        String(20), nullable=False, default="rating-desc",
    )
    links_per_page: Mapped[int] = mapped_column(nullable=False, default=12)

    user: Mapped["User"] = relationship(back_populates="settings")
