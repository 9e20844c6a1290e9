"""
Database-backed rate limiting for link creation.

This module contains the enforcement logic - the "how" of rate limiting.
For configuration (limits, window), see rate_limit_config.py.

The limit is a sliding window: links created (including since-deleted ones)
in the trailing window are counted on every check. There is no lock between
the check and the insert, so two concurrent submissions can both pass at the
boundary.
"""
import logging
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.rate_limit_config import (
    LINKS_PER_HOUR,
    RATE_LIMIT_WINDOW,
    RateLimitStatus,
    ViolationType,
)
from models.base import utc_now
from models.link import Link
from models.rate_limit_violation import RateLimitViolation

logger = logging.getLogger(__name__)


class RateLimiter:
    """Counts a user's recent links against a per-window limit."""

    def __init__(
        self,
        limit: int = LINKS_PER_HOUR,
        window: timedelta = RATE_LIMIT_WINDOW,
    ) -> None:
        self.limit = limit
        self.window = window

    async def get_status(
        self,
        db: AsyncSession,
        user_id: UUID,
        now: datetime | None = None,
    ) -> RateLimitStatus:
        """
        Report usage in the window ending at now. Never denies.

        Soft-deleted links still count: deleting a link does not free capacity.
        """
        now = now or utc_now()
        window_start = now - self.window
        used = await db.scalar(
            select(func.count(Link.id)).where(
                Link.user_id == user_id,
                Link.created_at >= window_start,
            ),
        ) or 0
        percentage = round(used / self.limit * 100) if self.limit > 0 else 100
        return RateLimitStatus(
            limit=self.limit,
            used=used,
            remaining=max(0, self.limit - used),
            reset_at=now + self.window,
            percentage_used=percentage,
        )

    async def record_violation(
        self,
        db: AsyncSession,
        user_id: UUID,
        url: str,
        now: datetime | None = None,
    ) -> RateLimitViolation:
        """Append a violation row for a denied submission."""
        now = now or utc_now()
        violation = RateLimitViolation(
            user_id=user_id,
            violation_type=ViolationType.LINKS_PER_HOUR.value,
            attempted_at=now,
            details={'url': url, 'attempted_at': now.isoformat()},
        )
        db.add(violation)
        await db.flush()
        logger.warning(
            "rate_limit_exceeded",
            extra={
                'user_id': str(user_id),
                'limit_type': ViolationType.LINKS_PER_HOUR.value,
                'limit': self.limit,
            },
        )
        return violation

    async def list_violations(
        self,
        db: AsyncSession,
        user_id: UUID,
        limit: int = 10,
    ) -> list[RateLimitViolation]:
        """Return the user's most recent violations, newest first."""
        result = await db.execute(
            select(RateLimitViolation)
            .where(RateLimitViolation.user_id == user_id)
            .order_by(RateLimitViolation.attempted_at.desc())
            .limit(limit),
        )
        return list(result.scalars().all())
