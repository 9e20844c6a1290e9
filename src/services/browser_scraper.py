"""
Headless browser scraper for client-rendered pages.

Launches Chromium through Playwright, navigates to the page, waits for the DOM
plus a short settle delay, and extracts metadata from the rendered HTML with
the same functions the lightweight scraper uses.

Requires the Chromium binary (`playwright install chromium`). A launch failure
is raised to the caller so the strategy selector can fall back; failures after
launch are returned as success=False.
"""
import logging

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from services.content_extractor import ScrapedMetadata, extract_metadata
from services.url_normalizer import extract_domain
from services.url_scraper import SSRFBlockedError, validate_url_not_private

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
SETTLE_DELAY_MS = 2000
USER_AGENT = (
    'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) '
    'AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'
)
LAUNCH_ARGS = ['--no-sandbox', '--disable-setuid-sandbox', '--disable-dev-shm-usage']
VIEWPORT = {'width': 1280, 'height': 720}


def classify_navigation_error(error: Exception) -> str:
    """Map a Playwright navigation failure to a short user-facing message."""
    if isinstance(error, PlaywrightTimeoutError):
        return "Request timeout"
    message = str(error)
    if 'ERR_NAME_NOT_RESOLVED' in message:
        return "Domain not found"
    if 'ERR_CONNECTION_REFUSED' in message:
        return "Connection refused"
    first_line = message.splitlines()[0] if message else ''
    return first_line or "Unknown error occurred"


class BrowserScraper:
    """Scraper that renders pages in headless Chromium."""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: str = USER_AGENT,
        settle_delay_ms: int = SETTLE_DELAY_MS,
        block_private_hosts: bool = False,
    ) -> None:
        self.timeout = timeout
        self.user_agent = user_agent
        self.settle_delay_ms = settle_delay_ms
        self.block_private_hosts = block_private_hosts

    async def scrape(self, url: str, timeout: float | None = None) -> ScrapedMetadata:  # noqa: ASYNC109
        """
        Render a URL and extract its metadata.

        Browser, context and page are closed on every exit path.

        Args:
            url: The URL to scrape.
            timeout: Navigation timeout in seconds; defaults to the scraper's timeout.

        Returns:
            ScrapedMetadata for the page.

        Raises:
            PlaywrightError: If the browser cannot be launched.
        """
        domain = extract_domain(url)
        timeout_ms = (timeout or self.timeout) * 1000

        async with async_playwright() as p:
            browser = await p.chromium.launch(headless=True, args=LAUNCH_ARGS)
            try:
                context = await browser.new_context(
                    user_agent=self.user_agent,
                    viewport=VIEWPORT,
                )
                try:
                    page = await context.new_page()
                    try:
                        page.set_default_timeout(timeout_ms)
                        response = await page.goto(
                            url,
                            wait_until='domcontentloaded',
                            timeout=timeout_ms,
                        )
                        if self.block_private_hosts:
                            try:
                                await validate_url_not_private(page.url)
                            except SSRFBlockedError as e:
                                logger.warning("Browser scraping blocked for %s: %s", url, e)
                                return ScrapedMetadata.failure(
                                    url, domain, "Redirect blocked: Private addresses are not supported in production",
                                )
                        if response is not None and not response.ok:
                            return ScrapedMetadata.failure(
                                url, domain, f"HTTP {response.status}: {response.status_text}",
                            )
                        await page.wait_for_timeout(self.settle_delay_ms)
                        title = await page.title()
                        html = await page.content()
                    except PlaywrightError as e:
                        error = classify_navigation_error(e)
                        logger.warning("Browser scraping failed for %s: %s", url, error)
                        return ScrapedMetadata.failure(url, domain, error)
                    finally:
                        await page.close()
                finally:
                    await context.close()
            finally:
                await browser.close()

        return extract_metadata(html, url, domain, title=title)
