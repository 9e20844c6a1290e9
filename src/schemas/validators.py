"""
Shared validation functions for Pydantic schemas and services.

Tag rules live here so that user-created tags, renames and AI-generated tags
are held to the same format.
"""
import re

# Tag format: lowercase letters, numbers, spaces and hyphens (e.g., 'web development', 'ci-cd')
TAG_PATTERN = re.compile(r"^[a-z0-9 -]+$")
TAG_MIN_LENGTH = 2
TAG_MAX_LENGTH = 30
MAX_TAGS_PER_LINK = 10

MIN_RATING = 1
MAX_RATING = 5


def validate_and_normalize_tag(tag: str) -> str:
    """
    Normalize and validate a single tag name.

    Args:
        tag: The tag string to validate.

    Returns:
        The normalized tag (lowercase, trimmed).

    Raises:
        ValueError: If the tag is too short, too long, or has invalid characters.
    """
    normalized = tag.lower().strip()
    if len(normalized) < TAG_MIN_LENGTH:
        raise ValueError(f"Tag must be at least {TAG_MIN_LENGTH} characters")
    if len(normalized) > TAG_MAX_LENGTH:
        raise ValueError(f"Tag must be at most {TAG_MAX_LENGTH} characters")
    if not TAG_PATTERN.match(normalized):
        raise ValueError("Tag can only contain letters, numbers, spaces, and hyphens")
    return normalized


def is_valid_generated_tag(tag: str, max_words: int = 2) -> bool:
    """
    Check an already-normalized AI-generated tag name.

    Generated tags follow the user tag rules and are additionally capped at
    max_words words.
    """
    if len(tag.split()) > max_words:
        return False
    try:
        validate_and_normalize_tag(tag)
    except ValueError:
        return False
    return True


def validate_rating(rating: int | None) -> int | None:
    """Validate that a rating is within 1-5. None means unrated."""
    if rating is not None and not MIN_RATING <= rating <= MAX_RATING:
        raise ValueError(f"Rating must be between {MIN_RATING} and {MAX_RATING}")
    return rating
