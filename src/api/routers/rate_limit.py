"""Rate limit status endpoints."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_current_user, get_rate_limiter
from core.rate_limiter import RateLimiter
from models.user import User
from schemas.rate_limit import RateLimitStatusResponse, RateLimitViolationResponse

router = APIRouter(prefix="/rate-limit", tags=["rate-limit"])


@router.get("/", response_model=RateLimitStatusResponse)
async def get_rate_limit_status(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
) -> RateLimitStatusResponse:
    """How many links the current user can still add this hour."""
    status = await rate_limiter.get_status(db, current_user.id)
    return RateLimitStatusResponse.model_validate(status)


@router.get("/violations", response_model=list[RateLimitViolationResponse])
async def list_violations(
    limit: int = Query(default=10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
) -> list[RateLimitViolationResponse]:
    """The current user's most recent denied submissions, newest first."""
    violations = await rate_limiter.list_violations(db, current_user.id, limit=limit)
    return [RateLimitViolationResponse.model_validate(v) for v in violations]
