"""
Protocols for pluggable listing-date strategies.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from .models import DateSource, ExtractionResult


@runtime_checkable
class DateExtractor(Protocol):
    """One tier of the listing-date cascade."""

    name: str
    source: DateSource

    def extract(self, html: str, *, fetched_at: datetime) -> ExtractionResult:
        """Extract a listing date from an HTML document.

        Args:
            html: Raw HTML of the listing page
            fetched_at: When the page was fetched; anchors relative phrases

        Returns:
            ExtractionResult tagged with this extractor's source, or the
            empty result when nothing was found
        """
        ...
