"""
Tests for the link ingestion pipeline and link CRUD.

The scraper and LLM provider are the fakes from conftest; the database is real.
"""
import json
from datetime import timedelta
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from core.rate_limit_config import RateLimitExceededError
from core.rate_limiter import RateLimiter
from models.base import utc_now
from models.link import Link
from models.rate_limit_violation import RateLimitViolation
from models.tag import Tag
from models.user import User
from schemas.link import LinkUpdate
from schemas.user_settings import UserSettingsUpdate
from services import settings_service, tag_service
from services.ai_service import AIService
from services.content_extractor import ScrapedMetadata
from services.exceptions import (
    DuplicateLinkError,
    InvalidStateError,
    NotScrapableError,
    TagLimitExceededError,
    TagNotFoundError,
    ValidationError,
)
from services.link_service import (
    LinkService,
    delete_link,
    escape_ilike,
    get_link,
    get_link_statistics,
    search_links,
    set_link_tags,
    truncate,
    update_link,
)
from tests.conftest import FakeProvider, FakeScraper


async def add_link(
    db: AsyncSession,
    user: User,
    url: str,
    title: str | None = None,
    rating: int | None = None,
    tags: list[Tag] | None = None,
    created_ago: timedelta = timedelta(0),
    status: str = "completed",
    description: str | None = None,
) -> Link:
    """Insert a link directly, bypassing the ingestion pipeline."""
    link = Link(
        user_id=user.id,
        url=url,
        normalized_url=url,
        domain=url.split("/")[2],
        title=title,
        ai_description=description,
        rating=rating,
        ai_processing_status=status,
        created_at=utc_now() - created_ago,
        tag_objects=tags or [],
    )
    db.add(link)
    await db.flush()
    return link


async def count_rows(db: AsyncSession, model: type) -> int:
    return await db.scalar(select(func.count()).select_from(model))


# =============================================================================
# Helpers
# =============================================================================


def test__truncate__cuts_and_blanks() -> None:
    assert truncate("abcdef", 3) == "abc"
    assert truncate("abc", 10) == "abc"
    assert truncate("", 10) is None
    assert truncate(None, 10) is None


def test__escape_ilike__escapes_wildcards() -> None:
    assert escape_ilike("100%_a\\b") == "100\\%\\_a\\\\b"


# =============================================================================
# create_link - happy paths
# =============================================================================


async def test__create_link__new_user_gets_generated_tags(
    db_session: AsyncSession,
    test_user: User,
    link_service: LinkService,
    fake_provider: FakeProvider,
) -> None:
    """With no existing tags, the model generates new ones for the user."""
    result = await link_service.create_link(
        db_session, test_user.id, "https://example.com/article",
    )

    assert result.success is True
    link = result.data
    assert link.url == "https://example.com/article"
    assert link.normalized_url == "https://example.com/article"
    assert link.domain == "example.com"
    assert link.title == "Example Article"
    assert link.ai_description == "An AI written summary."
    assert link.scraped_content == "Body text of the example page."
    assert link.ai_processing_status == "completed"
    assert link.ai_processing_error is None
    assert link.ai_processing_started_at is not None
    assert link.ai_processing_completed_at is not None
    assert [t.name for t in link.tag_objects] == ["python", "testing", "web dev"]
    assert "suggest" not in fake_provider.calls
    assert sorted(fake_provider.calls) == ["description", "generate"]

    user_tags = await tag_service.list_tags(db_session, test_user.id)
    assert [t.name for t in user_tags] == ["python", "testing", "web dev"]


async def test__create_link__existing_tags_suggested(
    db_session: AsyncSession,
    test_user: User,
    link_service: LinkService,
    fake_provider: FakeProvider,
) -> None:
    python = await tag_service.create_tag(db_session, test_user.id, "python")
    await tag_service.create_tag(db_session, test_user.id, "cooking")
    fake_provider.replies["suggest"] = json.dumps({"tag_ids": [str(python.id), "bogus"]})

    result = await link_service.create_link(db_session, test_user.id, "https://example.com/a")

    assert [t.name for t in result.data.tag_objects] == ["python"]
    assert "generate" not in fake_provider.calls


async def test__create_link__no_suggestion_match_generates_and_reuses(
    db_session: AsyncSession,
    test_user: User,
    link_service: LinkService,
    fake_provider: FakeProvider,
) -> None:
    """Generated names that match existing tags reuse them instead of duplicating."""
    python = await tag_service.create_tag(db_session, test_user.id, "python")

    result = await link_service.create_link(db_session, test_user.id, "https://example.com/a")

    tags = {t.name: t.id for t in result.data.tag_objects}
    assert set(tags) == {"python", "web dev", "testing"}
    assert tags["python"] == python.id
    assert "generate" in fake_provider.calls
    total = await db_session.scalar(
        select(func.count()).select_from(Tag).where(Tag.user_id == test_user.id),
    )
    assert total == 3


async def test__create_link__user_title_and_rating_win(
    db_session: AsyncSession,
    test_user: User,
    link_service: LinkService,
) -> None:
    result = await link_service.create_link(
        db_session, test_user.id, "  https://example.com/a  ", title="  Mine  ", rating=4,
    )

    assert result.data.url == "https://example.com/a"
    assert result.data.title == "Mine"
    assert result.data.rating == 4


async def test__create_link__long_title_truncated(
    db_session: AsyncSession,
    test_user: User,
    link_service: LinkService,
) -> None:
    result = await link_service.create_link(
        db_session, test_user.id, "https://example.com/a", title="t" * 600,
    )
    assert len(result.data.title) == 500


@pytest.mark.parametrize(
    ("scraped_title", "og_title", "expected"),
    [
        ("Page", "OG", "Page"),
        (None, "OG", "OG"),
        (None, None, "example.com"),
    ],
)
async def test__create_link__title_fallback_chain(
    db_session: AsyncSession,
    test_user: User,
    link_service: LinkService,
    fake_scraper: FakeScraper,
    scraped_title: str | None,
    og_title: str | None,
    expected: str,
) -> None:
    fake_scraper.result = ScrapedMetadata(
        url="https://Example.com/a",
        domain="example.com",
        success=True,
        title=scraped_title,
        og_title=og_title,
        scraped_content="text",
    )

    result = await link_service.create_link(db_session, test_user.id, "https://Example.com/a")

    assert result.data.title == expected


# =============================================================================
# create_link - degraded enrichment
# =============================================================================


async def test__create_link__scrape_failure_still_saved(
    db_session: AsyncSession,
    test_user: User,
    link_service: LinkService,
    fake_scraper: FakeScraper,
    fake_provider: FakeProvider,
) -> None:
    fake_scraper.result = ScrapedMetadata.failure(
        "https://example.com/gone", "example.com", "HTTP 404: Not Found",
    )

    result = await link_service.create_link(db_session, test_user.id, "https://example.com/gone")

    assert result.success is True
    link = result.data
    assert link.ai_processing_status == "failed"
    assert link.ai_processing_error == "HTTP 404: Not Found"
    assert link.title is None
    assert link.ai_description is None
    assert link.scraped_content is None
    assert link.tag_objects == []
    assert fake_provider.calls == []


async def test__create_link__scrape_failure_keeps_user_title(
    db_session: AsyncSession,
    test_user: User,
    link_service: LinkService,
    fake_scraper: FakeScraper,
) -> None:
    fake_scraper.result = ScrapedMetadata.failure(
        "https://example.com/gone", "example.com", "Request timeout",
    )
    result = await link_service.create_link(
        db_session, test_user.id, "https://example.com/gone", title="Saved anyway",
    )
    assert result.data.title == "Saved anyway"


async def test__create_link__scraper_exception_still_saved(
    db_session: AsyncSession,
    test_user: User,
    link_service: LinkService,
    fake_scraper: FakeScraper,
) -> None:
    fake_scraper.error = RuntimeError("browser crashed")

    result = await link_service.create_link(db_session, test_user.id, "https://example.com/a")

    assert result.success is True
    assert result.data.ai_processing_status == "failed"
    assert result.data.ai_processing_error == "browser crashed"


async def test__create_link__description_failure_falls_back_to_meta(
    db_session: AsyncSession,
    test_user: User,
    link_service: LinkService,
    fake_provider: FakeProvider,
) -> None:
    fake_provider.replies["description"] = RuntimeError("model down")

    result = await link_service.create_link(db_session, test_user.id, "https://example.com/a")

    link = result.data
    assert link.ai_processing_status == "completed"
    assert link.ai_description == "A page about examples."
    assert link.ai_processing_error == "AI error: model down"
    assert len(link.tag_objects) == 3


async def test__create_link__tag_generation_failure_leaves_no_tags(
    db_session: AsyncSession,
    test_user: User,
    link_service: LinkService,
    fake_provider: FakeProvider,
) -> None:
    fake_provider.replies["generate"] = json.dumps({"tags": ["python"]})

    result = await link_service.create_link(db_session, test_user.id, "https://example.com/a")

    assert result.success is True
    assert result.data.ai_processing_status == "completed"
    assert result.data.tag_objects == []
    assert await tag_service.list_tags(db_session, test_user.id) == []


async def test__create_link__reload_failure_after_tagging_keeps_link(
    db_session: AsyncSession,
    test_user: User,
    link_service: LinkService,
) -> None:
    """A failed reload after tagging still returns the saved link with its tags."""
    original_refresh = db_session.refresh

    async def refresh(instance: object, *args: object, **kwargs: object) -> None:
        if isinstance(instance, Link):
            raise OperationalError("SELECT links", {}, Exception("connection lost"))
        await original_refresh(instance, *args, **kwargs)

    with patch.object(db_session, "refresh", side_effect=refresh):
        result = await link_service.create_link(
            db_session, test_user.id, "https://example.com/article",
        )

    assert result.success is True
    assert sorted(t.name for t in result.data.tag_objects) == ["python", "testing", "web dev"]
    assert await count_rows(db_session, Link) == 1


async def test__create_link__ai_disabled_by_user_setting(
    db_session: AsyncSession,
    test_user: User,
    link_service: LinkService,
    fake_provider: FakeProvider,
) -> None:
    await settings_service.update_settings(
        db_session, test_user.id, UserSettingsUpdate(ai_processing_enabled=False),
    )

    result = await link_service.create_link(db_session, test_user.id, "https://example.com/a")

    assert fake_provider.calls == []
    assert result.data.ai_description == "A page about examples."
    assert result.data.ai_processing_status == "completed"
    assert result.data.tag_objects == []


async def test__create_link__no_provider_configured(
    db_session: AsyncSession,
    test_user: User,
    fake_scraper: FakeScraper,
) -> None:
    service = LinkService(fake_scraper, AIService(None), RateLimiter())
    fake_scraper.result.description = None

    result = await service.create_link(db_session, test_user.id, "https://example.com/a")

    assert result.data.ai_description == "OG description"
    assert result.data.tag_objects == []


# =============================================================================
# create_link - pre-flight rejections
# =============================================================================


@pytest.mark.parametrize(
    ("url", "rating", "message"),
    [
        ("", None, "URL is required"),
        (None, None, "URL is required"),
        ("not a url", None, "Invalid URL format"),
        ("ftp://example.com/file", None, "Invalid URL format"),
        ("https://example.com/" + "a" * 2100, None, "URL must be at most 2048 characters"),
        ("https://example.com", 6, "Rating must be between 1 and 5"),
    ],
)
async def test__create_link__validation_errors(
    db_session: AsyncSession,
    test_user: User,
    link_service: LinkService,
    fake_scraper: FakeScraper,
    url: str | None,
    rating: int | None,
    message: str,
) -> None:
    with pytest.raises(ValidationError, match=message):
        await link_service.create_link(db_session, test_user.id, url, rating=rating)
    assert fake_scraper.calls == []
    assert await count_rows(db_session, Link) == 0


async def test__create_link__duplicate_after_normalization(
    db_session: AsyncSession,
    test_user: User,
    link_service: LinkService,
    fake_scraper: FakeScraper,
) -> None:
    await link_service.create_link(db_session, test_user.id, "https://example.com/article/")

    with pytest.raises(DuplicateLinkError, match="You have already saved this link"):
        await link_service.create_link(db_session, test_user.id, "HTTPS://example.com/article")

    assert len(fake_scraper.calls) == 1
    assert await count_rows(db_session, Link) == 1


async def test__create_link__same_url_for_different_users(
    db_session: AsyncSession,
    test_user: User,
    other_user: User,
    link_service: LinkService,
) -> None:
    first = await link_service.create_link(db_session, test_user.id, "https://example.com/a")
    second = await link_service.create_link(db_session, other_user.id, "https://example.com/a")
    assert first.data.id != second.data.id


async def test__create_link__resave_after_soft_delete(
    db_session: AsyncSession,
    test_user: User,
    link_service: LinkService,
) -> None:
    first = await link_service.create_link(db_session, test_user.id, "https://example.com/a")
    assert await delete_link(db_session, test_user.id, first.data.id) is True

    second = await link_service.create_link(db_session, test_user.id, "https://example.com/a")

    assert second.success is True
    assert second.data.id != first.data.id
    assert await count_rows(db_session, Link) == 2


async def test__create_link__concurrent_duplicate_caught_by_index(
    db_session: AsyncSession,
    test_user: User,
    link_service: LinkService,
) -> None:
    """A submission that passed the pre-check still fails cleanly on insert."""
    await link_service.create_link(db_session, test_user.id, "https://example.com/a")

    with (
        patch(
            "services.link_service.find_active_link_by_normalized_url",
            AsyncMock(return_value=None),
        ),
        pytest.raises(DuplicateLinkError),
    ):
        await link_service.create_link(db_session, test_user.id, "https://example.com/a")

    assert await count_rows(db_session, Link) == 1


async def test__create_link__rate_limit_allows_last_slot_then_denies(
    db_session: AsyncSession,
    test_user: User,
    link_service: LinkService,
) -> None:
    for i in range(29):
        await add_link(db_session, test_user, f"https://example.com/{i}")

    result = await link_service.create_link(db_session, test_user.id, "https://example.com/new")

    assert result.success is True
    assert await count_rows(db_session, RateLimitViolation) == 0

    with pytest.raises(RateLimitExceededError) as exc_info:
        await link_service.create_link(db_session, test_user.id, "https://example.com/newer")

    assert exc_info.value.status.used == 30
    assert await count_rows(db_session, Link) == 30
    assert await count_rows(db_session, RateLimitViolation) == 1


async def test__create_link__rate_limit_exceeded_records_violation(
    db_session: AsyncSession,
    test_user: User,
    link_service: LinkService,
    fake_scraper: FakeScraper,
) -> None:
    for i in range(30):
        await add_link(db_session, test_user, f"https://example.com/{i}")

    with pytest.raises(RateLimitExceededError) as exc_info:
        await link_service.create_link(db_session, test_user.id, "https://example.com/new")

    assert exc_info.value.status.used == 30
    assert exc_info.value.status.remaining == 0
    assert fake_scraper.calls == []
    assert await count_rows(db_session, Link) == 30
    violation = (await db_session.execute(select(RateLimitViolation))).scalar_one()
    assert violation.user_id == test_user.id
    assert violation.details["url"] == "https://example.com/new"


async def test__create_link__old_links_do_not_count(
    db_session: AsyncSession,
    test_user: User,
    link_service: LinkService,
) -> None:
    for i in range(30):
        await add_link(
            db_session, test_user, f"https://example.com/{i}", created_ago=timedelta(hours=2),
        )
    result = await link_service.create_link(db_session, test_user.id, "https://example.com/new")
    assert result.success is True


async def test__create_link__duplicate_checked_before_rate_limit(
    db_session: AsyncSession,
    test_user: User,
    link_service: LinkService,
) -> None:
    for i in range(30):
        await add_link(db_session, test_user, f"https://example.com/{i}")

    with pytest.raises(DuplicateLinkError):
        await link_service.create_link(db_session, test_user.id, "https://example.com/0")
    assert await count_rows(db_session, RateLimitViolation) == 0


async def test__create_link__private_url_rejected_in_production(
    db_session: AsyncSession,
    test_user: User,
    fake_scraper: FakeScraper,
    fake_provider: FakeProvider,
) -> None:
    service = LinkService(
        fake_scraper, AIService(fake_provider), RateLimiter(), production=True,
    )

    with pytest.raises(NotScrapableError, match="Localhost URLs cannot be scraped"):
        await service.create_link(db_session, test_user.id, "http://localhost:8000/admin")

    assert fake_scraper.calls == []
    assert await count_rows(db_session, Link) == 0


async def test__create_link__private_url_allowed_in_development(
    db_session: AsyncSession,
    test_user: User,
    link_service: LinkService,
) -> None:
    result = await link_service.create_link(db_session, test_user.id, "http://localhost:8000/")
    assert result.success is True


# =============================================================================
# get_link / search_links
# =============================================================================


async def test__get_link__scoped_and_hides_deleted(
    db_session: AsyncSession,
    test_user: User,
    other_user: User,
) -> None:
    link = await add_link(db_session, test_user, "https://a.com/1")

    assert (await get_link(db_session, test_user.id, link.id)).id == link.id
    assert await get_link(db_session, other_user.id, link.id) is None
    assert await get_link(db_session, test_user.id, uuid4()) is None

    await delete_link(db_session, test_user.id, link.id)
    assert await get_link(db_session, test_user.id, link.id) is None
    assert await get_link(db_session, test_user.id, link.id, include_deleted=True) is not None


async def test__search_links__text_query(db_session: AsyncSession, test_user: User) -> None:
    await add_link(db_session, test_user, "https://a.com/1", title="Async Python Guide")
    await add_link(db_session, test_user, "https://b.com/2", description="all about python")
    await add_link(db_session, test_user, "https://python.org/3")
    await add_link(db_session, test_user, "https://c.com/4", title="Rust")

    links, total = await search_links(db_session, test_user.id, query="PYTHON")

    assert total == 3
    assert {link.url for link in links} == {
        "https://a.com/1", "https://b.com/2", "https://python.org/3",
    }


async def test__search_links__wildcards_are_literal(
    db_session: AsyncSession,
    test_user: User,
) -> None:
    await add_link(db_session, test_user, "https://a.com/1", title="100% coverage")
    await add_link(db_session, test_user, "https://a.com/2", title="1000 coverage")

    links, total = await search_links(db_session, test_user.id, query="100%")

    assert total == 1
    assert links[0].title == "100% coverage"


async def test__search_links__tag_match_all_and_any(
    db_session: AsyncSession,
    test_user: User,
) -> None:
    python = await tag_service.create_tag(db_session, test_user.id, "python")
    web = await tag_service.create_tag(db_session, test_user.id, "web")
    await add_link(db_session, test_user, "https://a.com/both", tags=[python, web])
    await add_link(db_session, test_user, "https://a.com/python", tags=[python])
    await add_link(db_session, test_user, "https://a.com/web", tags=[web])
    await add_link(db_session, test_user, "https://a.com/none")

    links, total = await search_links(db_session, test_user.id, tag_ids=[python.id, web.id])
    assert total == 1
    assert links[0].url == "https://a.com/both"

    links, total = await search_links(
        db_session, test_user.id, tag_ids=[python.id, web.id], tag_match="any",
    )
    assert total == 3
    assert "https://a.com/none" not in {link.url for link in links}


async def test__search_links__rating_and_domain_filters(
    db_session: AsyncSession,
    test_user: User,
) -> None:
    await add_link(db_session, test_user, "https://a.com/1", rating=5)
    await add_link(db_session, test_user, "https://a.com/2", rating=3)
    await add_link(db_session, test_user, "https://b.com/3", rating=4)
    await add_link(db_session, test_user, "https://b.com/4")

    _, total = await search_links(db_session, test_user.id, min_rating=4)
    assert total == 2

    links, total = await search_links(db_session, test_user.id, domain=" A.com ")
    assert total == 2
    assert {link.domain for link in links} == {"a.com"}


async def test__search_links__excludes_deleted_and_other_users(
    db_session: AsyncSession,
    test_user: User,
    other_user: User,
) -> None:
    deleted = await add_link(db_session, test_user, "https://a.com/1")
    await delete_link(db_session, test_user.id, deleted.id)
    await add_link(db_session, other_user, "https://a.com/2")
    await add_link(db_session, test_user, "https://a.com/3")

    links, total = await search_links(db_session, test_user.id)

    assert total == 1
    assert links[0].url == "https://a.com/3"


async def test__search_links__sort_orders(db_session: AsyncSession, test_user: User) -> None:
    await add_link(db_session, test_user, "https://a.com/old", rating=3, created_ago=timedelta(days=3))
    await add_link(db_session, test_user, "https://a.com/mid", created_ago=timedelta(days=2))
    await add_link(db_session, test_user, "https://a.com/new", rating=5, created_ago=timedelta(days=1))

    by_rating, _ = await search_links(db_session, test_user.id, sort="rating-desc")
    assert [link.url.rsplit("/", 1)[1] for link in by_rating] == ["new", "old", "mid"]

    newest, _ = await search_links(db_session, test_user.id, sort="date-desc")
    assert [link.url.rsplit("/", 1)[1] for link in newest] == ["new", "mid", "old"]

    oldest, _ = await search_links(db_session, test_user.id, sort="date-asc")
    assert [link.url.rsplit("/", 1)[1] for link in oldest] == ["old", "mid", "new"]


async def test__search_links__pagination(db_session: AsyncSession, test_user: User) -> None:
    for i in range(5):
        await add_link(
            db_session, test_user, f"https://a.com/{i}", created_ago=timedelta(minutes=i),
        )

    page_one, total = await search_links(
        db_session, test_user.id, sort="date-desc", page=1, page_size=2,
    )
    page_three, _ = await search_links(
        db_session, test_user.id, sort="date-desc", page=3, page_size=2,
    )

    assert total == 5
    assert [link.url for link in page_one] == ["https://a.com/0", "https://a.com/1"]
    assert [link.url for link in page_three] == ["https://a.com/4"]


# =============================================================================
# update_link / delete_link
# =============================================================================


async def test__update_link__title_and_rating(db_session: AsyncSession, test_user: User) -> None:
    link = await add_link(db_session, test_user, "https://a.com/1", title="Old", rating=2)

    updated = await update_link(
        db_session, test_user.id, link.id, LinkUpdate(title="New", rating=5),
    )

    assert updated.title == "New"
    assert updated.rating == 5


async def test__update_link__explicit_null_clears_rating(
    db_session: AsyncSession,
    test_user: User,
) -> None:
    link = await add_link(db_session, test_user, "https://a.com/1", title="Keep", rating=2)

    updated = await update_link(
        db_session, test_user.id, link.id, LinkUpdate.model_validate({"rating": None}),
    )

    assert updated.rating is None
    assert updated.title == "Keep"


async def test__update_link__blank_fields_only_is_invalid(
    db_session: AsyncSession,
    test_user: User,
) -> None:
    link = await add_link(db_session, test_user, "https://a.com/1")

    with pytest.raises(InvalidStateError, match="No fields to update"):
        await update_link(db_session, test_user.id, link.id, LinkUpdate(title="   "))
    with pytest.raises(InvalidStateError):
        await update_link(db_session, test_user.id, link.id, LinkUpdate())


async def test__update_link__other_user(
    db_session: AsyncSession,
    test_user: User,
    other_user: User,
) -> None:
    link = await add_link(db_session, test_user, "https://a.com/1")
    assert await update_link(db_session, other_user.id, link.id, LinkUpdate(title="x")) is None


async def test__delete_link__soft_deletes(db_session: AsyncSession, test_user: User) -> None:
    link = await add_link(db_session, test_user, "https://a.com/1")

    assert await delete_link(db_session, test_user.id, link.id) is True
    assert link.deleted_at is not None
    assert await delete_link(db_session, test_user.id, link.id) is False
    assert await count_rows(db_session, Link) == 1


# =============================================================================
# set_link_tags
# =============================================================================


async def test__set_link_tags__replaces_tags(db_session: AsyncSession, test_user: User) -> None:
    python = await tag_service.create_tag(db_session, test_user.id, "python")
    web = await tag_service.create_tag(db_session, test_user.id, "web")
    link = await add_link(db_session, test_user, "https://a.com/1", tags=[python])

    updated = await set_link_tags(db_session, test_user.id, link.id, [web.id, web.id])
    assert [t.name for t in updated.tag_objects] == ["web"]

    cleared = await set_link_tags(db_session, test_user.id, link.id, [])
    assert cleared.tag_objects == []


async def test__set_link_tags__exactly_limit_allowed(db_session: AsyncSession, test_user: User) -> None:
    tags = [await tag_service.create_tag(db_session, test_user.id, f"tag {i}") for i in range(10)]
    link = await add_link(db_session, test_user, "https://a.com/1")

    updated = await set_link_tags(db_session, test_user.id, link.id, [t.id for t in tags])

    assert len(updated.tag_objects) == 10
    assert {t.id for t in updated.tag_objects} == {t.id for t in tags}


async def test__set_link_tags__limit(db_session: AsyncSession, test_user: User) -> None:
    link = await add_link(db_session, test_user, "https://a.com/1")
    with pytest.raises(TagLimitExceededError):
        await set_link_tags(db_session, test_user.id, link.id, [uuid4() for _ in range(11)])


async def test__set_link_tags__foreign_tag(
    db_session: AsyncSession,
    test_user: User,
    other_user: User,
) -> None:
    foreign = await tag_service.create_tag(db_session, other_user.id, "python")
    link = await add_link(db_session, test_user, "https://a.com/1")

    with pytest.raises(TagNotFoundError):
        await set_link_tags(db_session, test_user.id, link.id, [foreign.id])


async def test__set_link_tags__missing_link(db_session: AsyncSession, test_user: User) -> None:
    assert await set_link_tags(db_session, test_user.id, uuid4(), []) is None


# =============================================================================
# get_link_statistics
# =============================================================================


async def test__get_link_statistics(
    db_session: AsyncSession,
    test_user: User,
    other_user: User,
) -> None:
    python = await tag_service.create_tag(db_session, test_user.id, "python")
    web = await tag_service.create_tag(db_session, test_user.id, "web")
    await add_link(db_session, test_user, "https://a.com/1", rating=5, tags=[python, web])
    await add_link(db_session, test_user, "https://a.com/2", rating=5, tags=[python])
    await add_link(
        db_session, test_user, "https://a.com/3", rating=2, created_ago=timedelta(days=30),
    )
    await add_link(db_session, test_user, "https://a.com/4", status="failed")
    deleted = await add_link(db_session, test_user, "https://a.com/5", rating=1, tags=[web])
    await delete_link(db_session, test_user.id, deleted.id)
    await add_link(db_session, other_user, "https://a.com/6", rating=1)

    stats = await get_link_statistics(db_session, test_user.id)

    assert stats.total_links == 4
    assert stats.average_rating == pytest.approx(4.0)
    assert [(r.rating, r.count) for r in stats.links_by_rating] == [(5, 2), (2, 1), (None, 1)]
    assert [(t.name, t.count) for t in stats.most_used_tags] == [("python", 2), ("web", 1)]
    assert stats.recent_links_count == 3
    assert stats.completed_links == 3
    assert stats.failed_links == 1


async def test__get_link_statistics__empty(db_session: AsyncSession, test_user: User) -> None:
    stats = await get_link_statistics(db_session, test_user.id)

    assert stats.total_links == 0
    assert stats.average_rating is None
    assert stats.links_by_rating == []
    assert stats.most_used_tags == []
