"""
Listing-date cascade.

Runs the date extractors in fixed priority order (JSON-LD, embedded page
model, free text) and stops at the first tier that produces a date. Lower
tiers are never attempted once a higher one has answered.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, List, Optional, Sequence

import structlog

from .embedded_json import EmbeddedJsonDateExtractor
from .free_text import FreeTextDateExtractor
from .json_ld import JsonLdDateExtractor
from .models import ExtractionResult
from .protocols import DateExtractor

if TYPE_CHECKING:
    from homelens.config.config import ExtractionSettings

logger = structlog.get_logger(__name__)


def default_extractors(settings: Optional[ExtractionSettings] = None) -> List[DateExtractor]:
    """The three tiers in priority order, tuned by ``settings`` when given."""
    if settings is None:
        embedded = EmbeddedJsonDateExtractor()
    else:
        embedded = EmbeddedJsonDateExtractor(
            date_keys=settings.date_keys,
            model_names=settings.model_names,
            max_depth=settings.max_search_depth,
            min_object_length=settings.min_object_length,
        )
    return [JsonLdDateExtractor(), embedded, FreeTextDateExtractor()]


class DateCascade:
    """Priority-ordered listing-date extraction."""

    def __init__(self, extractors: Optional[Sequence[DateExtractor]] = None) -> None:
        self.extractors: List[DateExtractor] = list(extractors) if extractors is not None else default_extractors()
        if not self.extractors:
            raise ValueError("DateCascade needs at least one extractor")

    @classmethod
    def from_settings(cls, settings: ExtractionSettings) -> DateCascade:
        return cls(default_extractors(settings))

    def extract(self, html: str, *, fetched_at: datetime) -> ExtractionResult:
        """Return the first tier's answer, or the empty result."""
        for extractor in self.extractors:
            result = extractor.extract(html, fetched_at=fetched_at)
            if result.found:
                logger.debug("Listing date found", extractor=extractor.name, date=result.date)
                return result
        logger.debug("No listing date found", tiers=[extractor.name for extractor in self.extractors])
        return ExtractionResult.empty()
