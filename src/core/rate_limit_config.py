"""
Rate limiting configuration and types.

This module contains the policy for link-creation rate limiting (the "what"),
separate from the counting logic in rate_limiter.py (the "how").
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import StrEnum

# Links a user may create within the sliding window
LINKS_PER_HOUR = 30
RATE_LIMIT_WINDOW = timedelta(hours=1)

# Violations are audit data; purged by tasks.cleanup after this many days
VIOLATION_RETENTION_DAYS = 30


class ViolationType(StrEnum):
    """Kind of limit a RateLimitViolation row records."""

    LINKS_PER_HOUR = "links_per_hour"


@dataclass
class RateLimitStatus:
    """Current usage against the link-creation limit."""

    limit: int
    used: int
    remaining: int
    reset_at: datetime  # Advisory only: now + window, not when the oldest link expires
    percentage_used: int

    @property
    def exceeded(self) -> bool:
        """Whether another link would exceed the limit."""
        return self.used >= self.limit


class RateLimitExceededError(Exception):
    """Raised when a user has created too many links within the window."""

    def __init__(self, status: RateLimitStatus) -> None:
        self.status = status
        super().__init__(
            f"Rate limit exceeded. You can add up to {status.limit} links per hour.",
        )
