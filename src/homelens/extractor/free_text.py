"""
Free-text listing date extraction.

Last tier of the cascade: reads the rendered page text for phrases such as
"Added on 15 September 2025", "Listed 04/09/2025" or "Added 3 weeks ago".
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Callable, List, NamedTuple, Optional

import structlog
from selectolax.lexbor import LexborHTMLParser

from .dates import MONTHS, build_date, subtract_offset, utc_date
from .models import DateSource, ExtractionResult

logger = structlog.get_logger(__name__)

_MONTH_NAMES = "|".join(name.capitalize() for name in MONTHS)

ABSOLUTE_PATTERN = re.compile(
    rf"(Added|Listed|First listed)\s+on\s+(\d{{1,2}})\s+({_MONTH_NAMES})\s+(\d{{4}})",
    re.IGNORECASE,
)
SLASH_PATTERN = re.compile(r"(Added|Listed)\s+(?:on\s+)?(\d{1,2})/(\d{1,2})/(\d{4})", re.IGNORECASE)
RELATIVE_PATTERN = re.compile(
    r"(Added|Listed)\s+(today|yesterday|(\d+)\s+(day|week|month)s?\s+ago)",
    re.IGNORECASE,
)

_STRIPPED_TAGS = ["script", "style", "noscript", "template"]


class TextMatch(NamedTuple):
    date: Optional[str]
    snippet: Optional[str]


NO_MATCH = TextMatch(None, None)


def page_text(html: str) -> str:
    """Rendered text of the page body with scripts and styles removed."""
    if not html:
        return ""
    tree = LexborHTMLParser(html)
    tree.strip_tags(_STRIPPED_TAGS)
    root = tree.body or tree.root
    if root is None:
        return ""
    return root.text(deep=True, separator=" ")


def _absolute(text: str, fetched_at: datetime) -> TextMatch:
    match = ABSOLUTE_PATTERN.search(text)
    if not match:
        return NO_MATCH
    _, day, month_name, year = match.groups()
    found = build_date(year, MONTHS[month_name.lower()], day)
    return TextMatch(found, match.group(0)) if found else NO_MATCH


def _slash(text: str, fetched_at: datetime) -> TextMatch:
    match = SLASH_PATTERN.search(text)
    if not match:
        return NO_MATCH
    _, day, month, year = match.groups()
    found = build_date(year, month, day)
    return TextMatch(found, match.group(0)) if found else NO_MATCH


def _relative(text: str, fetched_at: datetime) -> TextMatch:
    match = RELATIVE_PATTERN.search(text)
    if not match:
        return NO_MATCH

    phrase = match.group(2).lower()
    reference = utc_date(fetched_at)
    if phrase == "today":
        found = reference
    elif phrase == "yesterday":
        found = subtract_offset(reference, 1, "day")
    else:
        try:
            found = subtract_offset(reference, int(match.group(3)), match.group(4))
        except (OverflowError, ValueError):
            logger.debug("Relative offset out of range", snippet=match.group(0))
            return NO_MATCH
    return TextMatch(found.isoformat(), match.group(0))


PATTERN_FAMILIES: List[Callable[[str, datetime], TextMatch]] = [_absolute, _slash, _relative]


def parse_added_on_text(text: str, fetched_at: datetime) -> TextMatch:
    """Apply the phrase families in order to already-rendered text."""
    for family in PATTERN_FAMILIES:
        result = family(text, fetched_at)
        if result.date is not None:
            return result
    return NO_MATCH


def parse_added_on_from_text(html: str, fetched_at: datetime) -> TextMatch:
    """
    Find an "added"/"listed" phrase in the page and resolve it to a date.

    Args:
        html: Raw HTML of the listing page
        fetched_at: Reference timestamp for relative phrases

    Returns:
        TextMatch with ``YYYY-MM-DD`` date and the matched snippet, or
        ``TextMatch(None, None)``
    """
    return parse_added_on_text(page_text(html), fetched_at)


class FreeTextDateExtractor:
    """Third tier: phrases in the visible page text."""

    name = "free_text"
    source = DateSource.FREE_TEXT

    def extract(self, html: str, *, fetched_at: datetime) -> ExtractionResult:
        found = parse_added_on_from_text(html, fetched_at)
        if found.date is None:
            return ExtractionResult.empty()
        return ExtractionResult(date=found.date, source=self.source, raw_snippet=found.snippet)
