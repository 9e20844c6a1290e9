"""SQLAlchemy models."""
from models.base import Base, TimestampMixin, UUIDv7Mixin
from models.tag import Tag, link_tags  # Must be before link due to import
from models.link import Link, ProcessingStatus
from models.rate_limit_violation import RateLimitViolation
from models.user import User
from models.user_settings import UserSettings

__all__ = [
    "Base",
    "Link",
    "ProcessingStatus",
    "RateLimitViolation",
    "Tag",
    "TimestampMixin",
    "UUIDv7Mixin",
    "User",
    "UserSettings",
    "link_tags",
]
