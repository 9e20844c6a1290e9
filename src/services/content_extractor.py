"""
Metadata and content extraction shared by both scrapers.

All functions are pure (no I/O) and operate on HTML already fetched by a
scraper, so the browser and lightweight paths produce the same fields.
"""
import logging
from dataclasses import dataclass

from bs4 import BeautifulSoup, Tag

logger = logging.getLogger(__name__)

MAX_CONTENT_WORDS = 500

# Elements that never contain the page's main content
NON_CONTENT_ELEMENTS = ('script', 'style', 'noscript', 'iframe', 'nav', 'header', 'footer')

# Main-content containers, in order of preference
CONTENT_SELECTORS = (
    'article',
    'main',
    '[role="main"]',
    '.content',
    '.post-content',
    '.article-content',
    '#content',
)


@dataclass
class ScrapedMetadata:
    """
    Result of scraping a URL.

    success=False is an expected outcome carrying a classified error message,
    not an exception.
    """

    url: str
    domain: str
    title: str | None = None
    description: str | None = None
    favicon: str | None = None
    og_title: str | None = None
    og_description: str | None = None
    og_image: str | None = None
    scraped_content: str | None = None
    success: bool = False
    error: str | None = None

    @classmethod
    def failure(cls, url: str, domain: str, error: str) -> 'ScrapedMetadata':
        """Build a failed result for a URL."""
        return cls(url=url, domain=domain, success=False, error=error)


def parse_html(html: str) -> BeautifulSoup:
    """Parse HTML with the lxml parser."""
    return BeautifulSoup(html, 'lxml')


def extract_title(soup: BeautifulSoup) -> str | None:
    """Return the trimmed document <title>, or None if missing or empty."""
    title_tag = soup.find('title')
    if title_tag is None:
        return None
    title = title_tag.get_text().strip()
    return title or None


def extract_meta(soup: BeautifulSoup, key: str) -> str | None:
    """
    Return the content of the first meta tag matching key.

    Looks up property="key" first (Open Graph style), then name="key".

    Args:
        soup: Parsed document.
        key: Meta key, e.g. 'description' or 'og:title'.

    Returns:
        Trimmed content attribute, or None if no matching tag has content.
    """
    for attribute in ('property', 'name'):
        tag = soup.find('meta', attrs={attribute: key})
        if isinstance(tag, Tag):
            content = tag.get('content')
            if isinstance(content, str) and content.strip():
                return content.strip()
    return None


def resolve_favicon_href(href: str, domain: str) -> str:
    """
    Resolve a favicon href against the page's domain.

    Handles absolute, protocol-relative, root-relative and relative hrefs.
    """
    if href.startswith(('http://', 'https://')):
        return href
    if href.startswith('//'):
        return f"https:{href}"
    if href.startswith('/'):
        return f"https://{domain}{href}"
    return f"https://{domain}/{href}"


def extract_favicon(soup: BeautifulSoup, domain: str) -> str:
    """
    Return the page's favicon URL.

    Uses the first <link rel~="icon"> href. Without one, falls back to
    https://{domain}/favicon.ico, which is a guess and is not verified.
    """
    link = soup.select_one('link[rel~="icon"][href]')
    if link is not None:
        href = link.get('href')
        if isinstance(href, str) and href.strip():
            return resolve_favicon_href(href.strip(), domain)
    return f"https://{domain}/favicon.ico"


def extract_text_content(soup: BeautifulSoup, max_words: int = MAX_CONTENT_WORDS) -> str | None:
    """
    Extract a plain-text excerpt of the page's main content.

    Removes non-content elements, prefers article/main style containers over
    the full body, collapses whitespace and keeps the first max_words words.
    Entities are decoded by the parser.

    Note: mutates soup (non-content elements are removed).

    Args:
        soup: Parsed document.
        max_words: Maximum number of words to keep.

    Returns:
        The excerpt, or None if the page has no text.
    """
    for element in soup.find_all(list(NON_CONTENT_ELEMENTS)):
        element.extract()

    # Containers with no words fall through to the next selector, then the body
    candidates = [soup.select_one(selector) for selector in CONTENT_SELECTORS]
    candidates.extend([soup.body, soup])
    for container in candidates:
        if container is None:
            continue
        words = container.get_text(' ').split()
        if words:
            return ' '.join(words[:max_words])
    return None


def extract_metadata(
    html: str,
    url: str,
    domain: str,
    title: str | None = None,
) -> ScrapedMetadata:
    """
    Extract all scraped fields from an HTML document.

    Parse errors never propagate: they produce a failed result instead.

    Args:
        html: Raw HTML.
        url: URL the HTML was fetched from.
        domain: Hostname used for favicon resolution.
        title: Title already known from a live DOM (browser scraper); when None,
            the <title> element is used.

    Returns:
        ScrapedMetadata with success=True, or success=False on parse errors.
    """
    try:
        soup = parse_html(html)
        result = ScrapedMetadata(
            url=url,
            domain=domain,
            title=(title.strip() or None) if title else extract_title(soup),
            description=extract_meta(soup, 'description'),
            og_title=extract_meta(soup, 'og:title'),
            og_description=extract_meta(soup, 'og:description'),
            og_image=extract_meta(soup, 'og:image'),
            favicon=extract_favicon(soup, domain),
            success=True,
        )
        # Last, because it removes non-content elements from soup
        result.scraped_content = extract_text_content(soup)
        return result
    except Exception as e:
        logger.warning("Failed to parse HTML for %s: %s", url, e)
        return ScrapedMetadata.failure(url, domain, f"Failed to parse page: {e}")
