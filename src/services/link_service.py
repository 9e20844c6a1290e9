"""
Service layer for links: the ingestion pipeline and link CRUD.

Ingestion runs in a single request: validate, dedupe, rate limit, scrape,
enrich with AI, persist. Only the pre-flight steps can reject a submission;
scrape and AI failures degrade the saved link instead of aborting.
"""
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import timedelta
from typing import Any
from uuid import UUID

import pydantic
from sqlalchemy import and_, case, exists, func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.attributes import set_committed_value

from core.rate_limit_config import RateLimitExceededError
from core.rate_limiter import RateLimiter
from models.base import utc_now
from models.link import (
    MAX_DESCRIPTION_LENGTH,
    MAX_ERROR_LENGTH,
    MAX_SCRAPED_CONTENT_LENGTH,
    MAX_TITLE_LENGTH,
    Link,
    ProcessingStatus,
)
from models.tag import Tag, link_tags
from schemas.link import (
    LinkCreate,
    LinkStatistics,
    LinkUpdate,
    RatingCount,
    SortOrder,
    TagMatch,
    TagUsage,
)
from schemas.validators import MAX_TAGS_PER_LINK
from services import settings_service, tag_service
from services.ai_service import AIService, PageContent, TagChoice
from services.content_extractor import ScrapedMetadata
from services.exceptions import (
    DuplicateLinkError,
    InvalidStateError,
    NotScrapableError,
    TagLimitExceededError,
    TagNotFoundError,
    ValidationError,
)
from services.url_normalizer import normalize_url
from services.url_scraper import UrlScraper, is_url_scrapable

logger = logging.getLogger(__name__)

DUPLICATE_INDEX_NAME = "uq_links_user_normalized_url_active"
RECENT_LINKS_WINDOW = timedelta(days=7)
MOST_USED_TAGS_LIMIT = 10


def truncate(text: str | None, max_length: int) -> str | None:
    """Cut text to max_length characters. Empty or missing text becomes None."""
    if not text:
        return None
    return text[:max_length]


def escape_ilike(value: str) -> str:
    r"""
    Escape special ILIKE characters for safe use in LIKE/ILIKE patterns.

    - % matches any sequence of characters
    - _ matches any single character
    - \\ is the escape character

    This function escapes them so they match literally.
    """
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _first_validation_message(error: pydantic.ValidationError) -> str:
    """Return the first violated rule as a plain message."""
    errors = error.errors()
    if not errors:
        return "Validation failed"
    message = errors[0].get("msg", "Validation failed")
    return message.removeprefix("Value error, ")


def _is_duplicate_violation(error: IntegrityError) -> bool:
    """Whether an IntegrityError comes from the active-URL unique index."""
    message = str(error)
    # PostgreSQL names the index; SQLite names the columns
    return DUPLICATE_INDEX_NAME in message or "links.user_id, links.normalized_url" in message


@dataclass
class IngestionResult:
    """Outcome of LinkService.create_link."""

    success: bool
    data: Link | None = None
    error: str | None = None


async def find_active_link_by_normalized_url(
    db: AsyncSession,
    user_id: UUID,
    normalized_url: str,
) -> Link | None:
    """
    Check if a normalized URL exists for this user (excluding soft-deleted links).

    Returns the existing link if found, None otherwise.
    """
    result = await db.execute(
        select(Link).where(
            Link.user_id == user_id,
            Link.normalized_url == normalized_url,
            Link.deleted_at.is_(None),
        ),
    )
    return result.scalars().first()


class LinkService:
    """
    Link ingestion pipeline.

    Collaborators are injected so the scraper, LLM provider and limits can be
    replaced in tests.
    """

    def __init__(
        self,
        scraper: UrlScraper,
        ai_service: AIService,
        rate_limiter: RateLimiter,
        production: bool = False,
    ) -> None:
        self.scraper = scraper
        self.ai_service = ai_service
        self.rate_limiter = rate_limiter
        self.production = production

    async def create_link(  # noqa: PLR0912, PLR0915
        self,
        db: AsyncSession,
        user_id: UUID,
        url: Any,
        title: Any = None,
        rating: Any = None,
    ) -> IngestionResult:
        """
        Save a URL with scraped metadata, an AI description and AI-assigned tags.

        Args:
            db: Database session.
            user_id: Owner of the new link.
            url: URL as submitted.
            title: Optional user-supplied title; takes precedence over the scraped one.
            rating: Optional rating 1-5.

        Returns:
            IngestionResult with the saved link. A link whose scrape failed is
            still saved (status failed); success=False only when the insert fails.

        Raises:
            ValidationError: If input fails validation.
            DuplicateLinkError: If the user already has this URL (not deleted).
            RateLimitExceededError: If the user hit the hourly limit. A violation row
                is recorded first.
            NotScrapableError: If the URL is rejected by the scrapability check.

        Note:
            Does not commit. Caller (session generator) handles commit at request end.
        """
        # 1. Validate
        try:
            data = LinkCreate.model_validate({"url": url, "title": title, "rating": rating})
        except pydantic.ValidationError as e:
            raise ValidationError(_first_validation_message(e)) from e
        normalized = normalize_url(data.url)

        # 2. Duplicate check
        if await find_active_link_by_normalized_url(db, user_id, normalized.normalized):
            raise DuplicateLinkError(data.url)

        # 3. Rate limit
        status = await self.rate_limiter.get_status(db, user_id)
        if status.exceeded:
            await self.rate_limiter.record_violation(db, user_id, data.url)
            raise RateLimitExceededError(status)

        # 4. Scrapability
        check = is_url_scrapable(data.url, production=self.production)
        if not check.valid:
            raise NotScrapableError(check.reason or "URL cannot be scraped")

        # 5. Scrape
        started_at = utc_now()
        scraped: ScrapedMetadata | None = None
        scraping_error: str | None = None
        try:
            scraped = await self.scraper.scrape(data.url)
        except Exception as e:
            logger.exception("Scraping raised for %s", data.url)
            scraping_error = str(e) or "Unknown scraping error"

        scrape_ok = scraped is not None and scraped.success
        processing_error: str | None = None
        description: str | None = None
        if scrape_ok:
            description = scraped.description or scraped.og_description
        else:
            failure = (scraped.error if scraped is not None else None) or scraping_error
            processing_error = truncate(failure or "Scraping failed", MAX_ERROR_LENGTH)

        # 6. Enrich
        tag_ids: list[UUID] = []
        new_tags: list[Tag] = []
        if scrape_ok and self.ai_service.enabled:
            if await settings_service.is_ai_processing_enabled(db, user_id):
                try:
                    description, tag_ids, new_tags, ai_error = await self._enrich(
                        db, user_id, data.url, scraped, description,
                    )
                    processing_error = processing_error or ai_error
                except Exception as e:
                    logger.exception("AI processing failed for %s", data.url)
                    processing_error = truncate(
                        str(e) or "AI processing failed", MAX_ERROR_LENGTH,
                    )
            else:
                logger.info("AI processing disabled by user preference", extra={
                    "user_id": str(user_id),
                })

        # 7. Persist
        if data.title:
            resolved_title = data.title
        elif scrape_ok:
            resolved_title = scraped.title or scraped.og_title or normalized.domain
        else:
            resolved_title = None

        link = Link(
            user_id=user_id,
            url=data.url,
            normalized_url=normalized.normalized,
            domain=normalized.domain,
            title=truncate(resolved_title, MAX_TITLE_LENGTH),
            ai_description=truncate(description, MAX_DESCRIPTION_LENGTH),
            scraped_content=truncate(
                scraped.scraped_content if scrape_ok else None, MAX_SCRAPED_CONTENT_LENGTH,
            ),
            rating=data.rating,
            ai_processing_status=(
                ProcessingStatus.COMPLETED.value if scrape_ok else ProcessingStatus.FAILED.value
            ),
            ai_processing_started_at=started_at,
            ai_processing_completed_at=utc_now(),
            ai_processing_error=processing_error,
            tag_objects=[],
        )
        try:
            async with db.begin_nested():
                db.add(link)
                await db.flush()
        except IntegrityError as e:
            if _is_duplicate_violation(e):
                # Concurrent submission passed the pre-check first
                raise DuplicateLinkError(data.url) from e
            logger.exception("Error creating link for %s", data.url)
            return IngestionResult(success=False, error="Failed to create link")
        except SQLAlchemyError:
            logger.exception("Error creating link for %s", data.url)
            return IngestionResult(success=False, error="Failed to create link")

        await self._assign_tags_best_effort(db, user_id, link, tag_ids, new_tags)

        logger.info(
            "link_created",
            extra={
                "user_id": str(user_id),
                "link_id": str(link.id),
                "status": link.ai_processing_status,
                "tag_count": len(link.tag_objects),
            },
        )
        # 8. Return
        return IngestionResult(success=True, data=link)

    async def _enrich(
        self,
        db: AsyncSession,
        user_id: UUID,
        url: str,
        scraped: ScrapedMetadata,
        fallback_description: str | None,
    ) -> tuple[str | None, list[UUID], list[Tag], str | None]:
        """
        Run the AI steps for a successfully scraped page.

        Returns:
            (description, existing tag ids, new tags, error) where description
            falls back to fallback_description and error is the description
            step's error, if any.
        """
        user_tags = await tag_service.list_tags(db, user_id)
        content = PageContent(
            url=url,
            title=scraped.title or scraped.og_title,
            description=scraped.description or scraped.og_description,
            scraped_content=scraped.scraped_content,
        )
        result = await self.ai_service.generate_description_and_tags(
            content,
            [TagChoice(id=str(tag.id), name=tag.name) for tag in user_tags],
        )

        description = fallback_description
        error = None
        if result.description.success:
            description = result.description.description
        else:
            logger.warning("AI description failed: %s", result.description.error)
            error = truncate(result.description.error, MAX_ERROR_LENGTH)

        tag_ids: list[UUID] = []
        if result.tags.success:
            tag_ids = [UUID(tag_id) for tag_id in result.tags.tag_ids]
        elif user_tags:
            logger.warning("AI tag suggestions failed: %s", result.tags.error)

        new_tags: list[Tag] = []
        if not tag_ids and (result.tags.needs_new_tags or not user_tags):
            new_tags = await self._generate_new_tags(db, user_id, content)
        return description, tag_ids, new_tags, error

    async def _generate_new_tags(
        self,
        db: AsyncSession,
        user_id: UUID,
        content: PageContent,
    ) -> list[Tag]:
        """Ask the model for new tag names and resolve them to the user's tags."""
        result = await self.ai_service.generate_new_tags(content)
        if not result.success:
            logger.warning("Failed to generate new tags: %s", result.error)
            return []
        try:
            async with db.begin_nested():
                tags = await tag_service.get_or_create_tags_by_name(
                    db, user_id, result.tag_names,
                )
        except SQLAlchemyError:
            logger.exception("Error creating AI-generated tags")
            return []
        logger.info(
            "ai_tags_generated",
            extra={"user_id": str(user_id), "tags": [tag.name for tag in tags]},
        )
        return tags

    async def _assign_tags_best_effort(
        self,
        db: AsyncSession,
        user_id: UUID,
        link: Link,
        tag_ids: Sequence[UUID],
        new_tags: Sequence[Tag],
    ) -> None:
        """
        Attach tags to a saved link inside a savepoint, then reload it.

        A failure in either step is logged and leaves the link saved; a failed
        reload keeps whatever tags were attached in memory.
        """
        link_id = link.id
        assigned: list[Tag] = []
        if tag_ids or new_tags:
            try:
                async with db.begin_nested():
                    tags = list(new_tags)
                    if tag_ids:
                        result = await db.execute(
                            select(Tag).where(Tag.user_id == user_id, Tag.id.in_(tag_ids)),
                        )
                        tags.extend(result.scalars().all())
                    link.tag_objects = tags[:MAX_TAGS_PER_LINK]
                    await db.flush()
                assigned = tags[:MAX_TAGS_PER_LINK]
            except SQLAlchemyError:
                logger.exception("Error assigning tags to link %s", link_id)
        try:
            await db.refresh(link)
            # Ensure tag_objects is loaded for the response
            await db.refresh(link, attribute_names=["tag_objects"])
        except SQLAlchemyError:
            logger.exception("Error reloading link %s after tag assignment", link_id)
            set_committed_value(link, "tag_objects", assigned)


async def get_link(
    db: AsyncSession,
    user_id: UUID,
    link_id: UUID,
    include_deleted: bool = False,
) -> Link | None:
    """
    Get a link by ID, scoped to user, with its tags loaded.

    Returns:
        The link if found, None otherwise.
    """
    query = (
        select(Link)
        .options(selectinload(Link.tag_objects))
        .where(Link.id == link_id, Link.user_id == user_id)
        # Tag associations may have been changed with core statements
        .execution_options(populate_existing=True)
    )
    if not include_deleted:
        query = query.where(Link.deleted_at.is_(None))
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def search_links(
    db: AsyncSession,
    user_id: UUID,
    query: str | None = None,
    tag_ids: Sequence[UUID] | None = None,
    tag_match: TagMatch = "all",
    min_rating: int | None = None,
    domain: str | None = None,
    sort: SortOrder = "rating-desc",
    page: int = 1,
    page_size: int = 12,
) -> tuple[list[Link], int]:
    """
    Search and filter a user's non-deleted links with pagination.

    Args:
        db: Database session.
        user_id: User ID to scope links.
        query: Case-insensitive text search across title, description, url and domain.
        tag_ids: Filter by tags.
        tag_match: "all" (link must have every tag) or "any" (at least one).
        min_rating: Only links rated at least this.
        domain: Only links from this hostname.
        sort: "rating-desc" (unrated last), "date-desc" or "date-asc".
        page: 1-based page number.
        page_size: Links per page.

    Returns:
        Tuple of (list of links, total count).
    """
    base_query = (
        select(Link)
        .options(selectinload(Link.tag_objects))
        .where(Link.user_id == user_id, Link.deleted_at.is_(None))
    )

    if query and query.strip():
        pattern = f"%{escape_ilike(query.strip())}%"
        base_query = base_query.where(
            or_(
                Link.title.ilike(pattern, escape="\\"),
                Link.ai_description.ilike(pattern, escape="\\"),
                Link.url.ilike(pattern, escape="\\"),
                Link.domain.ilike(pattern, escape="\\"),
            ),
        )

    if tag_ids:
        unique_ids = list(dict.fromkeys(tag_ids))
        if tag_match == "all":
            for tag_id in unique_ids:
                base_query = base_query.where(
                    exists().where(
                        link_tags.c.link_id == Link.id,
                        link_tags.c.tag_id == tag_id,
                    ),
                )
        else:
            base_query = base_query.where(
                exists().where(
                    link_tags.c.link_id == Link.id,
                    link_tags.c.tag_id.in_(unique_ids),
                ),
            )

    if min_rating is not None:
        base_query = base_query.where(Link.rating >= min_rating)
    if domain:
        base_query = base_query.where(Link.domain == domain.lower().strip())

    count_query = select(func.count()).select_from(base_query.subquery())
    total = (await db.execute(count_query)).scalar() or 0

    if sort == "rating-desc":
        base_query = base_query.order_by(
            Link.rating.desc().nulls_last(), Link.created_at.desc(), Link.id.desc(),
        )
    elif sort == "date-asc":
        base_query = base_query.order_by(Link.created_at.asc(), Link.id.asc())
    else:
        base_query = base_query.order_by(Link.created_at.desc(), Link.id.desc())

    page = max(page, 1)
    base_query = base_query.offset((page - 1) * page_size).limit(page_size)
    result = await db.execute(base_query)
    return list(result.scalars().all()), total


async def update_link(
    db: AsyncSession,
    user_id: UUID,
    link_id: UUID,
    data: LinkUpdate,
) -> Link | None:
    """
    Update a link's title, description or rating. Returns None if not found or wrong user.

    Blank title/description values are ignored; an explicit null rating clears it.

    Raises:
        InvalidStateError: If no field would change.
    """
    update_data = data.model_dump(exclude_unset=True)
    for field in ("title", "ai_description"):
        if update_data.get(field) is None:
            update_data.pop(field, None)
    if not update_data:
        raise InvalidStateError("No fields to update")

    link = await get_link(db, user_id, link_id)
    if link is None:
        return None

    for field, value in update_data.items():
        setattr(link, field, value)
    await db.flush()
    await db.refresh(link)
    await db.refresh(link, attribute_names=["tag_objects"])
    return link


async def delete_link(
    db: AsyncSession,
    user_id: UUID,
    link_id: UUID,
) -> bool:
    """
    Soft delete a link. The URL can then be saved again.

    Returns:
        True if deleted, False if not found.
    """
    link = await get_link(db, user_id, link_id)
    if link is None:
        return False
    link.deleted_at = utc_now()
    await db.flush()
    return True


async def set_link_tags(
    db: AsyncSession,
    user_id: UUID,
    link_id: UUID,
    tag_ids: Sequence[UUID],
) -> Link | None:
    """
    Replace a link's tags.

    Returns:
        The updated link, or None if the link doesn't exist.

    Raises:
        TagLimitExceededError: If more than 10 distinct tags are given.
        TagNotFoundError: If a tag doesn't exist or belongs to another user.
    """
    unique_ids = list(dict.fromkeys(tag_ids))
    if len(unique_ids) > MAX_TAGS_PER_LINK:
        raise TagLimitExceededError(MAX_TAGS_PER_LINK, len(unique_ids))

    link = await get_link(db, user_id, link_id)
    if link is None:
        return None

    tags: list[Tag] = []
    if unique_ids:
        result = await db.execute(
            select(Tag).where(Tag.user_id == user_id, Tag.id.in_(unique_ids)),
        )
        found = {tag.id: tag for tag in result.scalars()}
        missing = [tag_id for tag_id in unique_ids if tag_id not in found]
        if missing:
            raise TagNotFoundError(missing[0])
        tags = [found[tag_id] for tag_id in unique_ids]

    link.tag_objects = tags
    await db.flush()
    await db.refresh(link)
    await db.refresh(link, attribute_names=["tag_objects"])
    return link


async def get_link_statistics(db: AsyncSession, user_id: UUID) -> LinkStatistics:
    """Aggregate counts over the user's non-deleted links."""
    active = and_(Link.user_id == user_id, Link.deleted_at.is_(None))

    totals = (await db.execute(
        select(
            func.count(Link.id).label("total"),
            func.avg(Link.rating).label("average"),
            func.count(case((Link.created_at >= utc_now() - RECENT_LINKS_WINDOW, 1))).label(
                "recent",
            ),
            func.count(
                case((Link.ai_processing_status == ProcessingStatus.COMPLETED.value, 1)),
            ).label("completed"),
            func.count(
                case((Link.ai_processing_status == ProcessingStatus.FAILED.value, 1)),
            ).label("failed"),
        ).where(active),
    )).one()

    rating_rows = await db.execute(
        select(Link.rating, func.count(Link.id))
        .where(active)
        .group_by(Link.rating),
    )
    links_by_rating = sorted(
        (RatingCount(rating=rating, count=count) for rating, count in rating_rows),
        key=lambda item: (item.rating is None, -(item.rating or 0)),
    )

    tag_rows = await db.execute(
        select(Tag.id, Tag.name, func.count(link_tags.c.link_id).label("count"))
        .join(link_tags, Tag.id == link_tags.c.tag_id)
        .join(Link, link_tags.c.link_id == Link.id)
        .where(Tag.user_id == user_id, active)
        .group_by(Tag.id, Tag.name)
        .order_by(func.count(link_tags.c.link_id).desc(), Tag.name.asc())
        .limit(MOST_USED_TAGS_LIMIT),
    )

    return LinkStatistics(
        total_links=totals.total,
        links_by_rating=links_by_rating,
        average_rating=float(totals.average) if totals.average is not None else None,
        most_used_tags=[
            TagUsage(id=row.id, name=row.name, count=row.count) for row in tag_rows
        ],
        recent_links_count=totals.recent,
        completed_links=totals.completed,
        failed_links=totals.failed,
    )
