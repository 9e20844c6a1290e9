"""Shared exceptions for service layer operations."""
from uuid import UUID


class InvalidUrlError(ValueError):
    """Raised when a string cannot be parsed as an absolute http(s) URL."""

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(f"Invalid URL: '{url}'")


class ValidationError(Exception):
    """
    Raised when link submission input fails validation.

    Carries the first violated rule as its message.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)


class DuplicateLinkError(Exception):
    """Raised when the user already has an active link with the same normalized URL."""

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__("You have already saved this link")


class NotScrapableError(Exception):
    """Raised when a URL is rejected by the pre-flight scrapability check."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class TagNotFoundError(Exception):
    """Raised when a tag doesn't exist or doesn't belong to the user."""

    def __init__(self, tag: UUID | str) -> None:
        self.tag = tag
        super().__init__(f"Tag '{tag}' not found")


class TagAlreadyExistsError(Exception):
    """Raised when creating or renaming a tag to a name the user already has."""

    def __init__(self, tag_name: str) -> None:
        self.tag_name = tag_name
        super().__init__(f"Tag '{tag_name}' already exists")


class TagLimitExceededError(Exception):
    """Raised when assigning more tags to a link than allowed."""

    def __init__(self, limit: int, requested: int) -> None:
        self.limit = limit
        self.requested = requested
        super().__init__(f"Maximum {limit} tags allowed per link (got {requested})")


class InvalidStateError(Exception):
    """Raised when an operation is invalid for a resource's current state."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class InvalidTagError(ValueError):
    """Raised when a tag name fails format validation."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class InvalidConfirmationError(Exception):
    """Raised when a destructive operation is not confirmed with the expected phrase."""

    def __init__(self, expected: str) -> None:
        self.expected = expected
        super().__init__(f"Invalid confirmation text: type '{expected}' to confirm")
