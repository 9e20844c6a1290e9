"""
Pytest fixtures for testing.

Tests run against an in-memory SQLite database by default. Set
TEST_DATABASE=postgres to run them against a PostgreSQL container instead.
"""
import os
from collections.abc import AsyncGenerator, Generator

# Must be set before any app imports that trigger Settings validation
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
# Ensure tests run in dev mode (bypasses auth) regardless of local .env
os.environ["DEV_MODE"] = "true"

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncConnection,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from core.rate_limiter import RateLimiter  # noqa: E402
from models.base import Base  # noqa: E402
from models.user import User  # noqa: E402
from services.ai_service import AIService  # noqa: E402
from services.content_extractor import ScrapedMetadata  # noqa: E402
from services.link_service import LinkService  # noqa: E402

SQLITE_URL = "sqlite+aiosqlite:///:memory:"


class FakeScraper:
    """Scraper double returning a canned result and recording calls."""

    def __init__(self, result: ScrapedMetadata | None = None, error: Exception | None = None):
        self.result = result or ScrapedMetadata(
            url="https://example.com/article",
            domain="example.com",
            success=True,
            title="Example Article",
            description="A page about examples.",
            og_title="Example OG",
            og_description="OG description",
            scraped_content="Body text of the example page.",
        )
        self.error = error
        self.calls: list[str] = []

    @property
    def mode(self) -> str:
        return "lightweight"

    async def scrape(self, url: str, timeout: float | None = None) -> ScrapedMetadata:
        self.calls.append(url)
        if self.error is not None:
            raise self.error
        return self.result


class FakeProvider:
    """
    LLM provider double.

    Replies are matched by a marker in the system prompt, so concurrent calls
    don't depend on ordering.
    """

    def __init__(
        self,
        description: str | Exception = "An AI written summary.",
        suggestions: str | Exception = '{"tag_ids": []}',
        new_tags: str | Exception = '{"tags": ["python", "web dev", "testing"]}',
    ):
        self.replies = {
            "description": description,
            "suggest": suggestions,
            "generate": new_tags,
        }
        self.calls: list[str] = []

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int,
        temperature: float,
        require_json: bool = False,
    ) -> str:
        if "provided tag IDs" in system_prompt:
            key = "suggest"
        elif "generates highly relevant tags" in system_prompt:
            key = "generate"
        else:
            key = "description"
        self.calls.append(key)
        reply = self.replies[key]
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture(scope="session")
def database_url() -> Generator[str]:
    """
    Database URL for the test session.

    PostgreSQL is started in a container only when TEST_DATABASE=postgres.
    """
    if os.environ.get("TEST_DATABASE") == "postgres":
        from testcontainers.postgres import PostgresContainer

        with PostgresContainer("postgres:16", driver="asyncpg") as postgres:
            yield postgres.get_connection_url()
    else:
        yield SQLITE_URL


@pytest.fixture
async def async_engine(database_url: str) -> AsyncGenerator[AsyncEngine]:
    """Create an async engine for testing."""
    if database_url.startswith("sqlite"):
        engine = create_async_engine(
            database_url,
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

        # pysqlite's own transaction handling breaks SAVEPOINT; let SQLAlchemy emit BEGIN
        @event.listens_for(engine.sync_engine, "connect")
        def _on_connect(dbapi_connection, _connection_record) -> None:  # noqa: ANN001
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(engine.sync_engine, "begin")
        def _on_begin(conn) -> None:  # noqa: ANN001
            conn.exec_driver_sql("BEGIN")
    else:
        engine = create_async_engine(database_url, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def db_connection(async_engine: AsyncEngine) -> AsyncGenerator[AsyncConnection]:
    """
    Create a connection with a transaction that will be rolled back after the test.

    This provides test isolation - each test runs in its own transaction
    that is rolled back, so tests don't affect each other.
    """
    async with async_engine.connect() as connection:
        transaction = await connection.begin()
        try:
            yield connection
        finally:
            await transaction.rollback()


@pytest.fixture
async def db_session(db_connection: AsyncConnection) -> AsyncGenerator[AsyncSession]:
    """
    Create an async session bound to the test transaction.

    Uses begin_nested() for savepoints, allowing the session's flush/commit
    to work within our outer test transaction.
    """
    session_factory = async_sessionmaker(
        bind=db_connection,
        class_=AsyncSession,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )

    async with session_factory() as session:
        yield session


@pytest.fixture
async def test_user(db_session: AsyncSession) -> User:
    """Create a test user."""
    user = User(auth0_id="test-user-123", email="test@example.com")
    db_session.add(user)
    await db_session.flush()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def other_user(db_session: AsyncSession) -> User:
    """Create another test user for isolation tests."""
    user = User(auth0_id="other-user-456", email="other@example.com")
    db_session.add(user)
    await db_session.flush()
    await db_session.refresh(user)
    return user


@pytest.fixture
def fake_scraper() -> FakeScraper:
    """Scraper returning a successful canned page."""
    return FakeScraper()


@pytest.fixture
def fake_provider() -> FakeProvider:
    """LLM provider returning canned replies."""
    return FakeProvider()


@pytest.fixture
def link_service(fake_scraper: FakeScraper, fake_provider: FakeProvider) -> LinkService:
    """LinkService wired with fakes and the default rate limit."""
    return LinkService(
        scraper=fake_scraper,
        ai_service=AIService(fake_provider),
        rate_limiter=RateLimiter(limit=30),
    )


@pytest.fixture
async def client(
    db_session: AsyncSession,
    link_service: LinkService,
) -> AsyncGenerator[AsyncClient]:
    """Create a test client with database session and link service overrides."""
    # Clear the settings cache so it picks up DATABASE_URL from environment
    from core.config import get_settings

    get_settings.cache_clear()

    from api.dependencies import get_link_service
    from api.main import app
    from db.session import get_async_session

    async def override_get_async_session() -> AsyncGenerator[AsyncSession]:
        yield db_session

    app.dependency_overrides[get_async_session] = override_get_async_session
    app.dependency_overrides[get_link_service] = lambda: link_service

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as test_client:
        yield test_client

    app.dependency_overrides.clear()
