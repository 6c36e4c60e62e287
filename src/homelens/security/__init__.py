"""Input validation for HomeLens."""

from .validation import LISTING_URL_PATTERN, is_listing_url, validate_listing_url

__all__ = ["LISTING_URL_PATTERN", "is_listing_url", "validate_listing_url"]
