"""
Lightweight scraper: plain HTTP fetch plus HTML parsing.

Needs no browser binary, so it works in constrained deployments. It sees only
the server-rendered HTML and is therefore weaker on client-rendered pages.
"""
import logging

import httpx

from services.content_extractor import ScrapedMetadata, extract_metadata
from services.url_normalizer import extract_domain
from services.url_scraper import SSRFBlockedError, is_url_scrapable, validate_url_not_private

logger = logging.getLogger(__name__)

USER_AGENT = 'Mozilla/5.0 (compatible; TagLink/1.0; +https://taglink.app/bot)'
DEFAULT_TIMEOUT = 10.0

REQUEST_HEADERS = {
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
    'Accept-Language': 'en-US,en;q=0.5',
    'DNT': '1',
    'Upgrade-Insecure-Requests': '1',
}

HTML_CONTENT_TYPES = ('text/html', 'application/xhtml')


def classify_request_error(error: Exception) -> str:
    """
    Map a low-level request failure to a short user-facing message.

    Args:
        error: Exception raised by httpx.

    Returns:
        A classified message, e.g. 'Domain not found' or 'Connection refused'.
    """
    if isinstance(error, httpx.TimeoutException):
        return "Request timeout"
    message = str(error)
    lowered = message.lower()
    if any(
        marker in lowered
        for marker in (
            'name or service not known',
            'nodename nor servname',
            'getaddrinfo failed',
            'temporary failure in name resolution',
            'no address associated',
        )
    ):
        return "Domain not found"
    if 'connection refused' in lowered:
        return "Connection refused"
    if isinstance(error, httpx.TooManyRedirects):
        return "Too many redirects"
    return f"Request failed: {message}" if message else "Request failed"


class LightweightScraper:
    """Scraper that fetches HTML with httpx and extracts metadata with BeautifulSoup."""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: str = USER_AGENT,
        block_private_hosts: bool = False,
    ) -> None:
        self.timeout = timeout
        self.user_agent = user_agent
        self.block_private_hosts = block_private_hosts

    async def scrape(self, url: str, timeout: float | None = None) -> ScrapedMetadata:  # noqa: ASYNC109, PLR0911
        """
        Fetch a URL and extract its metadata.

        Best-effort: every failure (network error, timeout, non-2xx, non-HTML
        content type) is returned as success=False, never raised.

        Args:
            url: The URL to scrape.
            timeout: Request timeout in seconds; defaults to the scraper's timeout.

        Returns:
            ScrapedMetadata for the page.
        """
        domain = extract_domain(url)
        if self.block_private_hosts:
            try:
                await validate_url_not_private(url)
            except SSRFBlockedError as e:
                logger.warning("Lightweight scraping blocked for %s: %s", url, e)
                return ScrapedMetadata.failure(url, domain, "Private addresses are not supported in production")

        try:
            async with httpx.AsyncClient(
                follow_redirects=True,
                timeout=timeout or self.timeout,
                headers={'User-Agent': self.user_agent, **REQUEST_HEADERS},
                http2=True,
            ) as client:
                response = await client.get(url)

                # Redirects may land on an internal address the pre-flight check never saw
                if self.block_private_hosts:
                    check = is_url_scrapable(str(response.url), production=True)
                    if not check.valid:
                        return ScrapedMetadata.failure(
                            url, domain, f"Redirect blocked: {check.reason}",
                        )
                    try:
                        await validate_url_not_private(str(response.url))
                    except SSRFBlockedError as e:
                        logger.warning("Lightweight scraping blocked for %s: %s", url, e)
                        return ScrapedMetadata.failure(
                            url, domain, "Redirect blocked: Private addresses are not supported in production",
                        )

                if not response.is_success:
                    return ScrapedMetadata.failure(
                        url, domain, f"HTTP {response.status_code}: {response.reason_phrase}",
                    )

                content_type = response.headers.get('content-type', '').lower()
                if not any(html_type in content_type for html_type in HTML_CONTENT_TYPES):
                    return ScrapedMetadata.failure(url, domain, "Not an HTML page")

                html = response.text
        except httpx.HTTPError as e:
            error = classify_request_error(e)
            logger.warning("Lightweight scraping failed for %s: %s", url, error)
            return ScrapedMetadata.failure(url, domain, error)

        return extract_metadata(html, url, domain)
