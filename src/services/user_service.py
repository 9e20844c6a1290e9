"""Service layer for account-level operations: profile statistics and account deletion."""
import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.link import Link
from models.tag import Tag
from models.user import User
from schemas.user import UserStats
from services.exceptions import InvalidConfirmationError

logger = logging.getLogger(__name__)

ACCOUNT_DELETION_CONFIRMATION = "DELETE MY ACCOUNT"


async def get_user_stats(db: AsyncSession, user: User) -> UserStats:
    """
    Get profile statistics for a user.

    link_count only counts links that haven't been deleted; tag_count counts
    every tag the user owns, used or not.
    """
    link_count = await db.scalar(
        select(func.count(Link.id)).where(
            Link.user_id == user.id,
            Link.deleted_at.is_(None),
        ),
    )
    tag_count = await db.scalar(
        select(func.count(Tag.id)).where(Tag.user_id == user.id),
    )
    return UserStats(
        link_count=link_count or 0,
        tag_count=tag_count or 0,
        email=user.email,
        created_at=user.created_at,
    )


async def delete_user_account(db: AsyncSession, user: User, confirmation: str) -> None:
    """
    Permanently delete a user and everything they own.

    This is the only path that hard-deletes links. Links (including
    soft-deleted ones), tags, link-tag associations, settings and rate-limit
    violations go with the user through ON DELETE CASCADE foreign keys.

    Args:
        db: Database session.
        user: The user to delete.
        confirmation: Must equal ACCOUNT_DELETION_CONFIRMATION exactly.

    Raises:
        InvalidConfirmationError: If the confirmation text does not match.
    """
    if confirmation != ACCOUNT_DELETION_CONFIRMATION:
        raise InvalidConfirmationError(ACCOUNT_DELETION_CONFIRMATION)

    user_id = user.id
    await db.delete(user)
    await db.flush()
    logger.info("user_account_deleted", extra={'user_id': str(user_id)})
