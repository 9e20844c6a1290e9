"""FastAPI dependencies for injection."""
from functools import lru_cache

from fastapi import Depends

from core.auth import get_current_user
from core.config import Settings, get_settings
from core.rate_limiter import RateLimiter
from db.session import get_async_session
from services.ai_service import AIService
from services.browser_scraper import BrowserScraper
from services.lightweight_scraper import LightweightScraper
from services.link_service import LinkService
from services.llm_provider import build_llm_provider
from services.url_scraper import UrlScraper


def build_url_scraper(settings: Settings) -> UrlScraper:
    """Assemble the scrape strategy selector from settings."""
    lightweight = LightweightScraper(
        timeout=settings.lightweight_scrape_timeout,
        block_private_hosts=settings.is_production,
        **({"user_agent": settings.scraper_user_agent} if settings.scraper_user_agent else {}),
    )
    browser = None
    if not settings.force_lightweight_scraper:
        browser = BrowserScraper(
            timeout=settings.browser_scrape_timeout,
            block_private_hosts=settings.is_production,
        )
    return UrlScraper(
        browser=browser,
        lightweight=lightweight,
        force_lightweight=settings.force_lightweight_scraper,
    )


def build_link_service(settings: Settings) -> LinkService:
    """Assemble the ingestion pipeline. Provider and scraper are chosen here, once."""
    return LinkService(
        scraper=build_url_scraper(settings),
        ai_service=AIService(build_llm_provider(settings)),
        rate_limiter=RateLimiter(limit=settings.links_per_hour_limit),
        production=settings.is_production,
    )


@lru_cache
def _cached_link_service() -> LinkService:
    return build_link_service(get_settings())


def get_link_service() -> LinkService:
    """Dependency returning the process-wide LinkService."""
    return _cached_link_service()


def get_rate_limiter(settings: Settings = Depends(get_settings)) -> RateLimiter:
    """Dependency returning a RateLimiter configured from settings."""
    return RateLimiter(limit=settings.links_per_hour_limit)


__all__ = [
    "build_link_service",
    "build_url_scraper",
    "get_async_session",
    "get_current_user",
    "get_link_service",
    "get_rate_limiter",
    "get_settings",
]
