"""
Scheduled cleanup task.

Rate limit violations are audit data with a fixed retention window. Designed
to run as a cron job (e.g., daily at 3 AM).

Usage:
    python -m tasks.cleanup
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from core.rate_limit_config import VIOLATION_RETENTION_DAYS
from db.session import async_session_factory
from models.base import utc_now
from models.rate_limit_violation import RateLimitViolation

logger = logging.getLogger(__name__)


@dataclass
class CleanupStats:
    """Statistics from a cleanup run."""

    violations_deleted: int = 0

    def to_dict(self) -> dict[str, int]:
        """Convert to simple dict for logging/return."""
        return {"violations_deleted": self.violations_deleted}


async def cleanup_rate_limit_violations(
    db: AsyncSession,
    now: datetime | None = None,
    retention_days: int = VIOLATION_RETENTION_DAYS,
) -> CleanupStats:
    """
    Delete rate limit violations attempted more than retention_days ago.

    Args:
        db: Database session.
        now: Current time for cutoff calculation. Defaults to utc_now().
             Inject a specific time for testing boundary conditions.
        retention_days: Days a violation is kept.

    Returns:
        CleanupStats with the number of deleted rows.
    """
    if now is None:
        now = utc_now()

    cutoff = now - timedelta(days=retention_days)
    result = await db.execute(
        delete(RateLimitViolation).where(RateLimitViolation.attempted_at < cutoff),
    )
    stats = CleanupStats(violations_deleted=result.rowcount or 0)
    if stats.violations_deleted > 0:
        logger.info(
            "Cleaned %d rate limit violations (cutoff=%s)",
            stats.violations_deleted,
            cutoff.isoformat(),
        )

    await db.commit()
    return stats


async def run_cleanup(
    db: AsyncSession | None = None,
    now: datetime | None = None,
) -> CleanupStats:
    """
    Run all cleanup tasks.

    Args:
        db: Database session. If None, creates one from async_session_factory.
        now: Current time for cutoff calculation. Defaults to utc_now().

    Returns:
        CleanupStats from the run.
    """
    logger.info("Starting cleanup task")
    retention_days = get_settings().violation_retention_days

    if db is not None:
        stats = await cleanup_rate_limit_violations(db, now=now, retention_days=retention_days)
    else:
        async with async_session_factory() as session:
            stats = await cleanup_rate_limit_violations(
                session, now=now, retention_days=retention_days,
            )

    logger.info("Cleanup complete: %s", stats.to_dict())
    return stats


def main() -> None:
    """Entry point for running cleanup as a script."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(run_cleanup())


if __name__ == "__main__":
    main()
