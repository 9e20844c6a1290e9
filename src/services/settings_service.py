"""Service layer for user settings operations."""
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.user_settings import UserSettings
from schemas.user_settings import DEFAULT_LINKS_PER_PAGE, DEFAULT_SORT, UserSettingsUpdate


async def get_settings(db: AsyncSession, user_id: UUID) -> UserSettings | None:
    """Get user settings, returns None if not exists."""
    query = select(UserSettings).where(UserSettings.user_id == user_id)
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def get_or_create_settings(db: AsyncSession, user_id: UUID) -> UserSettings:
    """Get user settings, creating default if not exists."""
    settings = await get_settings(db, user_id)
    if settings is None:
        settings = UserSettings(user_id=user_id)
        db.add(settings)
        await db.flush()
        await db.refresh(settings)
    return settings


async def is_ai_processing_enabled(db: AsyncSession, user_id: UUID) -> bool:
    """Whether the user allows AI enrichment. Users without settings get the default (on)."""
    settings = await get_settings(db, user_id)
    return True if settings is None else settings.ai_processing_enabled


async def update_settings(
    db: AsyncSession,
    user_id: UUID,
    data: UserSettingsUpdate,
) -> UserSettings:
    """Apply the fields set in data, creating settings first if needed."""
    settings = await get_or_create_settings(db, user_id)
    for field, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(settings, field, value)
    await db.flush()
    await db.refresh(settings)
    return settings


async def reset_settings(db: AsyncSession, user_id: UUID) -> UserSettings:
    """Restore all settings to their defaults."""
    settings = await get_or_create_settings(db, user_id)
    settings.ai_processing_enabled = True
    settings.default_sort = DEFAULT_SORT
    settings.links_per_page = DEFAULT_LINKS_PER_PAGE
    await db.flush()
    await db.refresh(settings)
    return settings
