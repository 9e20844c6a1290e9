"""User profile endpoints."""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_current_user
from models.user import User
from schemas.user import AccountDeletionRequest, UserStats
from services import user_service
from services.exceptions import InvalidConfirmationError

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserStats)
async def get_me(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> UserStats:
    """Get the current user's profile with link and tag counts."""
    return await user_service.get_user_stats(db, current_user)


@router.delete("/me", status_code=status.HTTP_204_NO_CONTENT)
async def delete_me(
    data: AccountDeletionRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> None:
    """
    Permanently delete the current user's account and all of their data.

    The body must contain `{"confirmation": "DELETE MY ACCOUNT"}`; anything
    else returns 400 and deletes nothing.
    """
    try:
        await user_service.delete_user_account(db, current_user, data.confirmation)
    except InvalidConfirmationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        ) from e
