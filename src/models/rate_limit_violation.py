"""RateLimitViolation model - audit trail of denied link submissions."""
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, DateTime, ForeignKey, Index, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base, UUIDv7Mixin, utc_now


class RateLimitViolation(Base, UUIDv7Mixin):
    """
    Append-only record of a denied ingestion attempt.

    Rows are never updated; tasks.cleanup purges them after the retention window.
    """

    __tablename__ = "rate_limit_violations"
    __table_args__ = (
        Index("ix_rate_limit_violations_user_attempted", "user_id", "attempted_at"),
    )

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    violation_type: Mapped[str] = mapped_column(
        String(50), nullable=False, default="links_per_hour",
    )
    attempted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
    )
    details: Mapped[dict[str, Any] | None] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=True,
    )
