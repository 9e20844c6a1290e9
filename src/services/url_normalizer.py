"""
URL normalization for duplicate detection.

The normalized form is only ever compared, never displayed or fetched.
"""
from dataclasses import dataclass
from urllib.parse import urlsplit

from services.exceptions import InvalidUrlError

ALLOWED_SCHEMES = ("http", "https")


@dataclass(frozen=True)
class NormalizedUrl:
    """Canonical comparison key and registrable host for a URL."""

    normalized: str
    domain: str


def normalize_url(raw_url: str) -> NormalizedUrl:
    """
    Normalize a URL for uniqueness comparison.

    - Scheme is lower-cased (HTTP://x and http://x compare equal).
    - Trailing slashes are stripped from non-root paths; a root path is kept as-is.
    - Host, query and fragment are preserved exactly as submitted.

    Idempotent: normalizing an already-normalized URL returns the same string.

    Args:
        raw_url: URL as submitted by the user.

    Returns:
        NormalizedUrl with the comparison string and lower-cased hostname.

    Raises:
        InvalidUrlError: If the URL is not an absolute http/https URL with a host.
    """
    if not isinstance(raw_url, str):
        raise InvalidUrlError(str(raw_url))
    candidate = raw_url.strip()
    try:
        parts = urlsplit(candidate)
        hostname = parts.hostname
    except ValueError as e:
        raise InvalidUrlError(raw_url) from e

    scheme = parts.scheme.lower()
    if scheme not in ALLOWED_SCHEMES or not hostname:
        raise InvalidUrlError(raw_url)

    path = parts.path
    if len(path) > 1 and path.endswith("/"):
        path = path.rstrip("/") or "/"

    # An empty query or fragment is kept when its delimiter was submitted
    normalized = f"{scheme}://{parts.netloc}{path}"
    if parts.query or "?" in candidate.split("#", 1)[0]:
        normalized += f"?{parts.query}"
    if parts.fragment or "#" in candidate:
        normalized += f"#{parts.fragment}"
    return NormalizedUrl(normalized=normalized, domain=hostname.lower())


def extract_domain(url: str) -> str:
    """Return the lower-cased hostname of a URL, or an empty string if it has none."""
    try:
        return (urlsplit(url).hostname or "").lower()
    except ValueError:
        return ""
