"""Link submission and management endpoints."""
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_current_user, get_link_service
from core.rate_limit_config import RateLimitExceededError
from models.base import utc_now
from models.user import User
from schemas.link import (
    LinkListResponse,
    LinkResponse,
    LinkResult,
    LinkStatistics,
    LinkUpdate,
    SortOrder,
    TagMatch,
)
from schemas.tag import LinkTagsUpdate
from schemas.user_settings import DEFAULT_LINKS_PER_PAGE, DEFAULT_SORT
from services import link_service, settings_service
from services.exceptions import (
    DuplicateLinkError,
    InvalidStateError,
    NotScrapableError,
    TagLimitExceededError,
    TagNotFoundError,
    ValidationError,
)
from services.link_service import LinkService

router = APIRouter(prefix="/links", tags=["links"])


class LinkSubmission(BaseModel):
    """
    Raw link submission body.

    Fields are untyped on purpose: validation happens in the ingestion pipeline
    so failures are reported in the {success, data, error} envelope.
    """

    url: Any = None
    title: Any = None
    rating: Any = None


def _error_response(
    status_code: int,
    message: str,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=LinkResult(success=False, error=message).model_dump(mode="json"),
        headers=headers,
    )


def _rate_limit_headers(exc: RateLimitExceededError) -> dict[str, str]:
    reset_at = exc.status.reset_at
    return {
        "Retry-After": str(max(0, int((reset_at - utc_now()).total_seconds()))),
        "X-RateLimit-Limit": str(exc.status.limit),
        "X-RateLimit-Remaining": "0",
        "X-RateLimit-Reset": str(int(reset_at.timestamp())),
    }


@router.post("/", response_model=LinkResult, status_code=201)
async def create_link(
    data: LinkSubmission,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    service: LinkService = Depends(get_link_service),
) -> LinkResult | JSONResponse:
    """
    Save a link.

    The page is scraped and, when AI processing is available and enabled, given
    a generated description and tags. Scrape or AI failures do not reject the
    submission: the link is saved with ai_processing_status "failed".

    Returns 422 for invalid input, 409 for a URL already saved, 429 when the
    hourly limit is reached and 400 for URLs that cannot be scraped.
    """
    # Pre-flight failures are returned rather than raised so the request
    # transaction still commits (the rate limit violation row must persist)
    try:
        result = await service.create_link(
            db, current_user.id, data.url, title=data.title, rating=data.rating,
        )
    except ValidationError as e:
        return _error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, str(e))
    except DuplicateLinkError as e:
        return _error_response(status.HTTP_409_CONFLICT, str(e))
    except RateLimitExceededError as e:
        return _error_response(
            status.HTTP_429_TOO_MANY_REQUESTS, str(e), headers=_rate_limit_headers(e),
        )
    except NotScrapableError as e:
        return _error_response(status.HTTP_400_BAD_REQUEST, str(e))

    if not result.success:
        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR, result.error or "Failed to create link",
        )
    return LinkResult(success=True, data=LinkResponse.model_validate(result.data))


@router.get("/", response_model=LinkListResponse)
async def list_links(
    q: str | None = Query(default=None, description="Search title, description, url and domain"),  # noqa: E501
    tag_ids: list[UUID] = Query(default=[], description="Filter by tag ids"),
    tag_match: TagMatch = Query(default="all", description="'all' (AND) or 'any' (OR)"),
    min_rating: int | None = Query(default=None, ge=1, le=5, description="Minimum rating"),
    domain: str | None = Query(default=None, description="Filter by hostname"),
    sort: SortOrder | None = Query(default=None, description="Defaults to the user's setting"),
    page: int = Query(default=1, ge=1, description="1-based page number"),
    page_size: int | None = Query(default=None, ge=1, le=100, description="Defaults to the user's setting"),  # noqa: E501
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> LinkListResponse:
    """
    List links for the current user with search, filtering, and sorting.

    - **q**: Case-insensitive text search
    - **tag_ids**: Filter by one or more tags
    - **tag_match**: 'all' requires every tag, 'any' requires at least one
    - **sort**: rating-desc (unrated last), date-desc or date-asc
    """
    if sort is None or page_size is None:
        user_settings = await settings_service.get_settings(db, current_user.id)
        if sort is None:
            sort = user_settings.default_sort if user_settings else DEFAULT_SORT
        if page_size is None:
            page_size = user_settings.links_per_page if user_settings else DEFAULT_LINKS_PER_PAGE

    links, total = await link_service.search_links(
        db=db,
        user_id=current_user.id,
        query=q,
        tag_ids=tag_ids or None,
        tag_match=tag_match,
        min_rating=min_rating,
        domain=domain,
        sort=sort,
        page=page,
        page_size=page_size,
    )
    return LinkListResponse(
        items=[LinkResponse.model_validate(link) for link in links],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=(total + page_size - 1) // page_size,
    )


@router.get("/statistics", response_model=LinkStatistics)
async def get_statistics(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> LinkStatistics:
    """Aggregate statistics over the current user's links."""
    return await link_service.get_link_statistics(db, current_user.id)


@router.get("/{link_id}", response_model=LinkResponse)
async def get_link(
    link_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> LinkResponse:
    """Get a single link by ID."""
    link = await link_service.get_link(db, current_user.id, link_id)
    if link is None:
        raise HTTPException(status_code=404, detail="Link not found")
    return LinkResponse.model_validate(link)


@router.patch("/{link_id}", response_model=LinkResponse)
async def update_link(
    link_id: UUID,
    data: LinkUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> LinkResponse:
    """Update a link's title, description or rating."""
    try:
        link = await link_service.update_link(db, current_user.id, link_id, data)
    except InvalidStateError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    if link is None:
        raise HTTPException(status_code=404, detail="Link not found")
    return LinkResponse.model_validate(link)


@router.delete("/{link_id}", status_code=204)
async def delete_link(
    link_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> None:
    """Soft delete a link. The same URL can be saved again afterwards."""
    deleted = await link_service.delete_link(db, current_user.id, link_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Link not found")


@router.put("/{link_id}/tags", response_model=LinkResponse)
async def set_link_tags(
    link_id: UUID,
    data: LinkTagsUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> LinkResponse:
    """
    Replace a link's tags.

    Returns 404 if the link or any tag doesn't exist.
    """
    try:
        link = await link_service.set_link_tags(db, current_user.id, link_id, data.tag_ids)
    except TagLimitExceededError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except TagNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    if link is None:
        raise HTTPException(status_code=404, detail="Link not found")
    return LinkResponse.model_validate(link)
