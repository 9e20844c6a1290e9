"""
Scrape strategy selection and the pre-flight scrapability check.

Two scrapers exist: a browser scraper (full JS rendering) and a lightweight
HTTP scraper. UrlScraper picks between them once per call and always returns
exactly one ScrapedMetadata.
"""
import asyncio
import ipaddress
import logging
import socket
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import urlsplit

from services.content_extractor import ScrapedMetadata

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = ('http', 'https')
LOCALHOST_NAMES = ('localhost', 'localhost.localdomain')


class Scraper(Protocol):
    """A strategy that turns a URL into ScrapedMetadata."""

    async def scrape(self, url: str, timeout: float | None = None) -> ScrapedMetadata:  # noqa: ASYNC109
        """Scrape a URL. Expected failures are returned as success=False."""
        ...


@dataclass(frozen=True)
class ScrapabilityCheck:
    """Outcome of is_url_scrapable."""

    valid: bool
    reason: str | None = None


def is_private_host(hostname: str) -> bool:
    """
    Check whether a literal hostname points at an internal address.

    Only literal IPs and localhost names are recognized; no DNS lookup is done.

    Args:
        hostname: Hostname as parsed from a URL.

    Returns:
        True for localhost, loopback, private (RFC1918) and link-local addresses.
    """
    host = hostname.lower().strip('[]')
    if host in LOCALHOST_NAMES:
        return True
    try:
        ip = ipaddress.ip_address(host)
    except ValueError:
        return False
    return ip.is_loopback or ip.is_private or ip.is_link_local or ip.is_unspecified


def is_url_scrapable(url: str, production: bool) -> ScrapabilityCheck:
    """
    Decide whether a URL may be scraped.

    Never raises and performs no network I/O.

    Args:
        url: URL to check.
        production: When True, internal addresses are rejected as well.

    Returns:
        ScrapabilityCheck with a reason when the URL is rejected.
    """
    try:
        parts = urlsplit(url)
        hostname = parts.hostname
    except ValueError:
        return ScrapabilityCheck(valid=False, reason="Invalid URL format")

    if parts.scheme.lower() not in ALLOWED_SCHEMES:
        return ScrapabilityCheck(valid=False, reason="Only HTTP/HTTPS URLs are supported")
    if not hostname:
        return ScrapabilityCheck(valid=False, reason="Invalid URL format")

    if production and is_private_host(hostname):
        if hostname.lower() in LOCALHOST_NAMES:
            return ScrapabilityCheck(
                valid=False, reason="Localhost URLs cannot be scraped in production",
            )
        return ScrapabilityCheck(
            valid=False, reason="Private IP addresses are not supported in production",
        )

    return ScrapabilityCheck(valid=True)


class SSRFBlockedError(Exception):
    """Raised when a URL resolves to a private/internal network address."""

    pass


def is_private_ip(ip_str: str) -> bool:
    """
    Check if a resolved IP address is private, loopback, or otherwise internal.

    Args:
        ip_str: IP address string (IPv4 or IPv6).

    Returns:
        True if the IP is internal, False if public.
    """
    try:
        ip = ipaddress.ip_address(ip_str.split('%', 1)[0])
    except ValueError:
        # Unparseable resolver output is treated as internal
        return True
    return (
        ip.is_private
        or ip.is_loopback
        or ip.is_link_local
        or ip.is_multicast
        or ip.is_reserved
        or ip.is_unspecified
    )


async def validate_url_not_private(url: str) -> None:
    """
    Validate that a URL does not resolve to a private/internal network.

    Unlike is_url_scrapable, this resolves the hostname, so a public-looking
    name pointing at an internal address is caught as well. Resolution
    failures are not raised here; the fetch itself reports them.

    Args:
        url: The URL to validate.

    Raises:
        SSRFBlockedError: If the hostname is localhost or any resolved address is internal.
    """
    hostname = urlsplit(url).hostname
    if not hostname:
        return
    if is_private_host(hostname):
        raise SSRFBlockedError(f"Blocked request to private/internal address: {hostname}")

    try:
        addrinfo = await asyncio.to_thread(
            socket.getaddrinfo, hostname, None, socket.AF_UNSPEC, socket.SOCK_STREAM,
        )
    except socket.gaierror:
        return
    for _, _, _, _, sockaddr in addrinfo:
        ip_str = str(sockaddr[0])
        if is_private_ip(ip_str):
            raise SSRFBlockedError(
                f"Blocked request to private/internal address: {hostname} resolves to {ip_str}",
            )


class UrlScraper:
    """
    Selects a scrape strategy.

    With force_lightweight set (constrained deployments without a browser),
    only the lightweight scraper runs. Otherwise the browser scraper runs
    first and the lightweight scraper is the fallback when the browser raises
    or reports failure.
    """

    def __init__(
        self,
        browser: Scraper | None,
        lightweight: Scraper,
        force_lightweight: bool = False,
    ) -> None:
        self.browser = browser
        self.lightweight = lightweight
        self.force_lightweight = force_lightweight or browser is None

    @property
    def mode(self) -> str:
        """Name of the primary strategy, for logging."""
        return 'lightweight' if self.force_lightweight else 'browser'

    async def scrape(self, url: str, timeout: float | None = None) -> ScrapedMetadata:  # noqa: ASYNC109
        """
        Scrape a URL with the configured strategy.

        Args:
            url: URL to scrape.
            timeout: Optional timeout in seconds passed to the scraper that runs;
                each scraper applies its own default when None.

        Returns:
            The result of the browser scraper if it succeeded, otherwise the
            lightweight scraper's result.
        """
        logger.info("scrape_started", extra={'url': url, 'mode': self.mode})
        if self.force_lightweight:
            return await self.lightweight.scrape(url, timeout)

        try:
            result = await self.browser.scrape(url, timeout)
        except Exception as e:
            # Browser unavailable (missing binary, launch failure)
            logger.warning(
                "browser_scraper_unavailable",
                extra={'url': url, 'error': str(e)},
            )
            return await self.lightweight.scrape(url, timeout)

        if result.success:
            return result

        logger.info(
            "browser_scrape_failed_falling_back",
            extra={'url': url, 'error': result.error},
        )
        return await self.lightweight.scrape(url, timeout)
