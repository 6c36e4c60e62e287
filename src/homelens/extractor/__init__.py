"""
HomeLens extraction module.

Pure functions and strategy classes that turn a listing page's HTML into
structured facts:

1. JSON-LD structured data
2. Embedded page model in inline scripts
3. Phrases in the rendered page text
"""

from .cascade import DateCascade, default_extractors
from .embedded_json import EmbeddedJsonDateExtractor, extract_global_json, parse_embedded_json_date
from .free_text import FreeTextDateExtractor, TextMatch, parse_added_on_from_text
from .json_ld import JsonLdDateExtractor, iter_json_ld, parse_json_ld_date
from .models import (
    DataQuality,
    DateSource,
    ExtractionResult,
    PriceHistoryEntry,
    PriceHistoryResult,
    PriceHistorySource,
    TimeOnMarketRecord,
)
from .protocols import DateExtractor

__all__ = [
    "DataQuality",
    "DateCascade",
    "DateExtractor",
    "DateSource",
    "EmbeddedJsonDateExtractor",
    "ExtractionResult",
    "FreeTextDateExtractor",
    "JsonLdDateExtractor",
    "PriceHistoryEntry",
    "PriceHistoryResult",
    "PriceHistorySource",
    "TextMatch",
    "TimeOnMarketRecord",
    "default_extractors",
    "extract_global_json",
    "iter_json_ld",
    "parse_added_on_from_text",
    "parse_embedded_json_date",
    "parse_json_ld_date",
]
