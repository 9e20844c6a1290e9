"""Service layer for tag operations."""
import logging
from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import delete, func, insert, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from models.link import Link
from models.tag import Tag, link_tags
from schemas.tag import TagCount
from schemas.validators import validate_and_normalize_tag
from services.exceptions import (
    InvalidStateError,
    InvalidTagError,
    TagAlreadyExistsError,
    TagNotFoundError,
)

logger = logging.getLogger(__name__)


def _normalize_name(name: str) -> str:
    """Validate a tag name, translating the validator's ValueError."""
    try:
        return validate_and_normalize_tag(name)
    except ValueError as e:
        raise InvalidTagError(str(e)) from e


async def get_tag(
    db: AsyncSession,
    user_id: UUID,
    tag_id: UUID,
) -> Tag | None:
    """
    Get a tag by id for a user.

    Returns:
        The Tag if found and owned by the user, None otherwise.
    """
    result = await db.execute(
        select(Tag).where(Tag.id == tag_id, Tag.user_id == user_id),
    )
    return result.scalar_one_or_none()


async def get_tag_by_name(
    db: AsyncSession,
    user_id: UUID,
    tag_name: str,
) -> Tag | None:
    """
    Get a tag by name for a user. Matching is case-insensitive.

    Returns:
        The Tag if found, None otherwise.
    """
    normalized = tag_name.lower().strip()
    result = await db.execute(
        select(Tag).where(
            Tag.user_id == user_id,
            Tag.name == normalized,
        ),
    )
    return result.scalar_one_or_none()


async def list_tags(db: AsyncSession, user_id: UUID) -> list[Tag]:
    """Get all of a user's tags ordered by name."""
    result = await db.execute(
        select(Tag).where(Tag.user_id == user_id).order_by(Tag.name.asc()),
    )
    return list(result.scalars().all())


async def list_tags_with_counts(
    db: AsyncSession,
    user_id: UUID,
) -> list[TagCount]:
    """
    Get all tags for a user with their usage counts.

    Counts only include non-deleted links. Tags with no links are included
    with a count of 0.

    Returns:
        List of TagCount objects sorted by count desc, then name asc.
    """
    # COUNT ignores NULLs, so tags without active links get count=0
    link_count = func.count(Link.id)
    result = await db.execute(
        select(Tag.id, Tag.name, link_count.label("link_count"))
        .outerjoin(link_tags, Tag.id == link_tags.c.tag_id)
        .outerjoin(
            Link,
            (link_tags.c.link_id == Link.id) & Link.deleted_at.is_(None),
        )
        .where(Tag.user_id == user_id)
        .group_by(Tag.id, Tag.name)
        .order_by(link_count.desc(), Tag.name.asc()),
    )
    return [
        TagCount(id=row.id, name=row.name, link_count=row.link_count)
        for row in result
    ]


async def create_tag(
    db: AsyncSession,
    user_id: UUID,
    name: str,
) -> Tag:
    """
    Create a tag.

    Args:
        db: Database session.
        user_id: Owner of the tag.
        name: Tag name; normalized to lowercase.

    Returns:
        The new Tag.

    Raises:
        InvalidTagError: If the name fails validation.
        TagAlreadyExistsError: If the user already has a tag with this name.
    """
    normalized = _normalize_name(name)
    if await get_tag_by_name(db, user_id, normalized) is not None:
        raise TagAlreadyExistsError(normalized)

    tag = Tag(user_id=user_id, name=normalized)
    try:
        async with db.begin_nested():
            db.add(tag)
            await db.flush()
    except IntegrityError as e:
        # Another request created the tag between check and flush
        raise TagAlreadyExistsError(normalized) from e
    return tag


async def get_or_create_tags_by_name(
    db: AsyncSession,
    user_id: UUID,
    tag_names: Sequence[str],
) -> list[Tag]:
    """
    Resolve tag names to the user's tags, creating any that don't exist.

    Names are matched case-insensitively. Invalid names are skipped.

    Args:
        db: Database session.
        user_id: User ID to scope tags.
        tag_names: Tag names to get or create.

    Returns:
        List of Tag objects in input order, without duplicates.
    """
    normalized: list[str] = []
    for name in tag_names:
        try:
            candidate = validate_and_normalize_tag(name)
        except ValueError:
            logger.info("Skipping invalid tag name %r", name)
            continue
        if candidate not in normalized:
            normalized.append(candidate)
    if not normalized:
        return []

    result = await db.execute(
        select(Tag).where(
            Tag.user_id == user_id,
            Tag.name.in_(normalized),
        ),
    )
    existing_tags = {tag.name: tag for tag in result.scalars()}

    tags = []
    for name in normalized:
        if name in existing_tags:
            tags.append(existing_tags[name])
        else:
            new_tag = Tag(user_id=user_id, name=name)
            db.add(new_tag)
            tags.append(new_tag)

    await db.flush()
    return tags


async def rename_tag(
    db: AsyncSession,
    user_id: UUID,
    tag_id: UUID,
    new_name: str,
) -> Tag:
    """
    Rename a tag. The tag keeps its id and its link associations.

    Raises:
        TagNotFoundError: If the tag doesn't exist.
        InvalidTagError: If the new name fails validation.
        TagAlreadyExistsError: If a different tag already has the new name.
    """
    tag = await get_tag(db, user_id, tag_id)
    if tag is None:
        raise TagNotFoundError(tag_id)

    new_normalized = _normalize_name(new_name)
    if tag.name == new_normalized:
        return tag

    existing = await get_tag_by_name(db, user_id, new_normalized)
    if existing is not None:
        raise TagAlreadyExistsError(new_normalized)

    tag.name = new_normalized
    try:
        async with db.begin_nested():
            await db.flush()
    except IntegrityError as e:
        # Handle race condition: another request created the tag between check and flush
        raise TagAlreadyExistsError(new_normalized) from e
    await db.refresh(tag)
    return tag


async def merge_tags(
    db: AsyncSession,
    user_id: UUID,
    source_tag_id: UUID,
    target_tag_id: UUID,
) -> Tag:
    """
    Merge source into target: every link tagged with source ends up tagged
    with target (once), then source is deleted.

    Returns:
        The target Tag.

    Raises:
        InvalidStateError: If source and target are the same tag.
        TagNotFoundError: If either tag doesn't exist for the user.
    """
    if source_tag_id == target_tag_id:
        raise InvalidStateError("Cannot merge a tag into itself")

    source = await get_tag(db, user_id, source_tag_id)
    if source is None:
        raise TagNotFoundError(source_tag_id)
    target = await get_tag(db, user_id, target_tag_id)
    if target is None:
        raise TagNotFoundError(target_tag_id)

    source_links = set(
        (await db.execute(
            select(link_tags.c.link_id).where(link_tags.c.tag_id == source.id),
        )).scalars(),
    )
    target_links = set(
        (await db.execute(
            select(link_tags.c.link_id).where(link_tags.c.tag_id == target.id),
        )).scalars(),
    )
    to_repoint = source_links - target_links
    if to_repoint:
        await db.execute(
            insert(link_tags),
            [{"link_id": link_id, "tag_id": target.id} for link_id in to_repoint],
        )

    await db.execute(delete(link_tags).where(link_tags.c.tag_id == source.id))
    # Associations are gone; reload so the unit of work does not delete them again
    db.expire(source, ["links"])
    await db.delete(source)
    await db.flush()

    logger.info(
        "tags_merged",
        extra={
            "user_id": str(user_id),
            "source_tag_id": str(source_tag_id),
            "target_tag_id": str(target_tag_id),
            "links_repointed": len(to_repoint),
        },
    )
    return target


async def delete_tag(
    db: AsyncSession,
    user_id: UUID,
    tag_id: UUID,
) -> None:
    """
    Delete a tag and its link associations. Links themselves are untouched.

    Raises:
        TagNotFoundError: If the tag doesn't exist.
    """
    tag = await get_tag(db, user_id, tag_id)
    if tag is None:
        raise TagNotFoundError(tag_id)

    await db.execute(delete(link_tags).where(link_tags.c.tag_id == tag.id))
    db.expire(tag, ["links"])
    await db.delete(tag)
    await db.flush()
