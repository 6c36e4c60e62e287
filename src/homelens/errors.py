"""
Exception hierarchy for HomeLens.
"""

from __future__ import annotations

from typing import Optional


class HomeLensError(Exception):
    """Base class for all HomeLens errors."""


class ConfigurationError(HomeLensError):
    """Raised when configuration cannot be loaded or validated."""


class ListingURLError(HomeLensError, ValueError):
    """Raised when a URL is not a Rightmove listing page."""

    def __init__(self, url: str, reason: str = "Invalid Rightmove URL") -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"{reason}: {url!r}")


class FetchError(HomeLensError):
    """Raised when a listing page could not be fetched after all attempts."""

    def __init__(self, url: str, message: str, *, attempts: int = 0, status: Optional[int] = None) -> None:
        self.url = url
        self.message = message
        self.attempts = attempts
        self.status = status
        super().__init__(f"Failed to fetch {url}: {message}")
