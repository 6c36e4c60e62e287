"""
Input validation for listing URLs.
"""

from __future__ import annotations

import re

from homelens.errors import ListingURLError

LISTING_URL_PATTERN = re.compile(r"^https://www\.rightmove\.co\.uk/properties/\d+")
MAX_URL_LENGTH = 2048


def is_listing_url(url: object) -> bool:
    """Return True if ``url`` looks like a Rightmove listing page."""
    if not isinstance(url, str) or len(url) > MAX_URL_LENGTH:
        return False
    return LISTING_URL_PATTERN.match(url) is not None


def validate_listing_url(url: object) -> str:
    """
    Validate a listing URL before it is fetched.

    Returns:
        The URL with surrounding whitespace removed.

    Raises:
        ListingURLError: If the URL is empty, too long, or not a listing page.
    """
    if not isinstance(url, str) or not url.strip():
        raise ListingURLError(str(url or ""), "Rightmove URL is required")

    url = url.strip()
    if len(url) > MAX_URL_LENGTH:
        raise ListingURLError(url[:80], f"URL exceeds {MAX_URL_LENGTH} characters")
    if not LISTING_URL_PATTERN.match(url):
        raise ListingURLError(url)
    return url
