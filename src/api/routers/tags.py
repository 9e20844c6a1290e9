"""Tag management endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_current_user
from models.user import User
from schemas.tag import (
    TagCreate,
    TagListResponse,
    TagMergeRequest,
    TagRenameRequest,
    TagResponse,
)
from services import tag_service
from services.exceptions import (
    InvalidStateError,
    InvalidTagError,
    TagAlreadyExistsError,
    TagNotFoundError,
)

router = APIRouter(prefix="/tags", tags=["tags"])


@router.get("/", response_model=TagListResponse)
async def list_tags(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> TagListResponse:
    """
    Get all tags for the current user with their usage counts.

    `link_count` only counts links that haven't been deleted. Results are
    sorted by link_count DESC, then name ASC.
    """
    tags = await tag_service.list_tags_with_counts(db, current_user.id)
    return TagListResponse(tags=tags)


@router.post("/", response_model=TagResponse, status_code=status.HTTP_201_CREATED)
async def create_tag(
    data: TagCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> TagResponse:
    """
    Create a tag.

    Returns 409 if a tag with this name already exists.
    """
    try:
        tag = await tag_service.create_tag(db, current_user.id, data.name)
    except InvalidTagError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        ) from e
    except TagAlreadyExistsError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        ) from e
    return TagResponse.model_validate(tag)


@router.patch("/{tag_id}", response_model=TagResponse)
async def rename_tag(
    tag_id: UUID,
    rename_request: TagRenameRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> TagResponse:
    """
    Rename a tag.

    All links using this tag will automatically reflect the new name.

    Returns 404 if the tag doesn't exist.
    Returns 409 if a tag with the new name already exists.
    """
    try:
        tag = await tag_service.rename_tag(
            db, current_user.id, tag_id, rename_request.new_name,
        )
        return TagResponse.model_validate(tag)
    except TagNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        ) from e
    except TagAlreadyExistsError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        ) from e


@router.post("/{tag_id}/merge", response_model=TagResponse)
async def merge_tag(
    tag_id: UUID,
    merge_request: TagMergeRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> TagResponse:
    """
    Merge this tag into the target tag.

    Links tagged with the source tag are re-tagged with the target (no
    duplicate associations), then the source tag is deleted. Returns the target.
    """
    try:
        tag = await tag_service.merge_tags(
            db, current_user.id, tag_id, merge_request.target_tag_id,
        )
        return TagResponse.model_validate(tag)
    except TagNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        ) from e
    except InvalidStateError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        ) from e


@router.delete("/{tag_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_tag(
    tag_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> None:
    """
    Delete a tag.

    The tag is removed from all links; the links themselves are kept.
    """
    try:
        await tag_service.delete_tag(db, current_user.id, tag_id)
    except TagNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        ) from e
