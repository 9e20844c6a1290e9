"""User settings endpoints."""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_current_user
from models.user import User
from schemas.user_settings import UserSettingsResponse, UserSettingsUpdate
from services import settings_service

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("/", response_model=UserSettingsResponse)
async def get_settings(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> UserSettingsResponse:
    """Get the current user's settings, creating defaults on first access."""
    settings = await settings_service.get_or_create_settings(db, current_user.id)
    return UserSettingsResponse.model_validate(settings)


@router.patch("/", response_model=UserSettingsResponse)
async def update_settings(
    data: UserSettingsUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> UserSettingsResponse:
    """Update the current user's settings. Omitted fields are left unchanged."""
    settings = await settings_service.update_settings(db, current_user.id, data)
    return UserSettingsResponse.model_validate(settings)


@router.post("/reset", response_model=UserSettingsResponse)
async def reset_settings(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> UserSettingsResponse:
    """Restore the current user's settings to their defaults."""
    settings = await settings_service.reset_settings(db, current_user.id)
    return UserSettingsResponse.model_validate(settings)
