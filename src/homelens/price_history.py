"""
Price history extraction for listing pages.

Five tiers are tried in order and the first one that yields at least one
usable entry wins:

a. ``priceHistory`` arrays in JSON-LD
b. ``priceHistory`` / ``listingHistory`` / ``history`` array literals in
   inline scripts
c. ``YYYY: £amount`` pairs anywhere in the page text, within plausible
   year and price bounds
d. the same pairs inside the block introducing "Property sale history"
e. phrases such as "Sold for £P on DATE" or "Reduced to £P on DATE"

When no tier finds anything the result is empty and its data quality is
``none``.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Any, Iterable, Iterator, List, NamedTuple, Optional, Tuple

import structlog
from bs4 import BeautifulSoup

from homelens.config.config import PriceHistorySettings
from homelens.crawler.http_client import ListingFetcher
from homelens.extractor.dates import build_date, month_number, normalize_date
from homelens.extractor.embedded_json import iter_inline_scripts
from homelens.extractor.free_text import page_text
from homelens.extractor.json_ld import iter_json_ld
from homelens.extractor.json_scanner import find_keyed_arrays, loads_lenient
from homelens.extractor.models import PriceHistoryEntry, PriceHistoryResult, PriceHistorySource
from homelens.observability.metrics import METRICS
from homelens.security.validation import validate_listing_url

logger = structlog.get_logger(__name__)

SCRIPT_HISTORY_KEYS = ("priceHistory", "listingHistory", "history")
SALE_HISTORY_HEADING = re.compile(r"Property sale history", re.IGNORECASE)
DEFAULT_EVENT = "Price changed"

YEAR_PRICE_PATTERN = re.compile(r"\b(\d{4}):?\s*£\s?(\d[\d,]*)")

_DATE = r"\d{1,2}(?:st|nd|rd|th)?\s+[A-Za-z]{3,9}\.?\s+\d{4}|\d{1,2}/\d{1,2}/\d{4}"
_PRICE = r"£\s?(?P<price>\d[\d,]*)"
PHRASE_PATTERNS: Tuple[Tuple[re.Pattern[str], str], ...] = (
    (re.compile(rf"Sold\s+for\s+{_PRICE}\s+on\s+(?P<date>{_DATE})", re.IGNORECASE), "Sold"),
    (re.compile(rf"Sold\s+on\s+(?P<date>{_DATE})\s+for\s+{_PRICE}", re.IGNORECASE), "Sold"),
    (re.compile(rf"Price\s+changed\s+to\s+{_PRICE}\s+on\s+(?P<date>{_DATE})", re.IGNORECASE), "Price changed"),
    (re.compile(rf"Reduced\s+to\s+{_PRICE}\s+on\s+(?P<date>{_DATE})", re.IGNORECASE), "Reduced"),
    (re.compile(rf"Increased\s+to\s+{_PRICE}\s+on\s+(?P<date>{_DATE})", re.IGNORECASE), "Increased"),
)

_YEAR_ONLY = re.compile(r"^\d{4}$")
_ORDINAL_DATE = re.compile(r"^(\d{1,2})(?:st|nd|rd|th)?\s+([A-Za-z]{3,9})\.?\s+(\d{4})$", re.IGNORECASE)
_SLASH_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")


class RawEntry(NamedTuple):
    """An entry as found on the page, before cleaning."""

    date: Any
    price: Any
    event: str


def _first(item: dict, keys: Iterable[str]) -> Any:
    for key in keys:
        value = item.get(key)
        if value not in (None, ""):
            return value
    return None


def clean_price(value: Any) -> Optional[str]:
    """Digits of a price, or None when there are none."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return str(int(value)) if value > 0 else None
    digits = re.sub(r"\D", "", str(value))
    return digits or None


def clean_date(value: Any) -> Optional[str]:
    """
    Normalize an entry date.

    Year-only values stay as ``YYYY``, readable dates become ``YYYY-MM-DD``
    and anything else is kept as stripped text. Numbers are read as epoch
    seconds, or milliseconds when large enough.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        seconds = value / 1000 if value > 100_000_000_000 else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc).date().isoformat()
        except (OverflowError, OSError, ValueError):
            return None

    text = str(value).strip()
    if not text:
        return None
    if _YEAR_ONLY.match(text):
        return text

    match = _ORDINAL_DATE.match(text)
    if match:
        day, month_name, year = match.groups()
        month = month_number(month_name)
        return build_date(year, month, day) if month else None

    match = _SLASH_DATE.match(text)
    if match:
        day, month, year = match.groups()
        return build_date(year, month, day)

    return normalize_date(text) or text


def _sort_key(entry: PriceHistoryEntry) -> Tuple[int, int]:
    if _YEAR_ONLY.match(entry.date):
        return (0, -date(int(entry.date), 1, 1).toordinal())
    try:
        return (0, -date.fromisoformat(entry.date).toordinal())
    except ValueError:
        return (1, 0)


class PriceHistoryExtractor:
    """Tiered price history extraction from listing HTML."""

    def __init__(
        self,
        min_year: int = 1990,
        max_year: int = 2025,
        min_price: int = 50_000,
        max_price: int = 2_000_000,
        limit: int = 10,
    ) -> None:
        self.min_year = min_year
        self.max_year = max_year
        self.min_price = min_price
        self.max_price = max_price
        self.limit = limit

    @classmethod
    def from_settings(cls, settings: PriceHistorySettings) -> PriceHistoryExtractor:
        return cls(
            min_year=settings.min_year,
            max_year=settings.max_year,
            min_price=settings.min_price,
            max_price=settings.max_price,
            limit=settings.limit,
        )

    # --- Tiers ---

    def from_json_ld(self, html: str) -> Iterator[RawEntry]:
        for item in iter_json_ld(html):
            history = item.get("priceHistory")
            if not isinstance(history, list):
                continue
            for entry in history:
                if isinstance(entry, dict):
                    yield RawEntry(
                        _first(entry, ("date", "datePosted")),
                        _first(entry, ("price", "listingPrice")),
                        str(entry.get("event") or DEFAULT_EVENT),
                    )

    def from_scripts(self, html: str) -> Iterator[RawEntry]:
        for script in iter_inline_scripts(html):
            if not any(key in script for key in SCRIPT_HISTORY_KEYS):
                continue
            for _key, literal in find_keyed_arrays(script, SCRIPT_HISTORY_KEYS):
                data = loads_lenient(literal)
                if not isinstance(data, list):
                    continue
                for entry in data:
                    if not isinstance(entry, dict):
                        continue
                    price = _first(entry, ("price", "listingPrice", "value"))
                    if price is None:
                        continue
                    yield RawEntry(
                        _first(entry, ("date", "datePosted", "timestamp")),
                        price,
                        str(_first(entry, ("event", "type", "reason")) or DEFAULT_EVENT),
                    )
                # first parsable array per script
                break

    def from_year_price_text(self, text: str) -> Iterator[RawEntry]:
        for match in YEAR_PRICE_PATTERN.finditer(text):
            year = int(match.group(1))
            price = int(match.group(2).replace(",", "") or 0)
            if self.min_year <= year <= self.max_year and self.min_price <= price <= self.max_price:
                yield RawEntry(match.group(1), str(price), "Sale")

    def from_sale_history_section(self, html: str) -> Iterator[RawEntry]:
        soup = BeautifulSoup(html, "html.parser")
        heading = soup.find(string=SALE_HISTORY_HEADING)
        if heading is None:
            return
        for block in heading.parents:
            text = block.get_text(" ", strip=True)
            if YEAR_PRICE_PATTERN.search(text):
                break
        else:
            return
        for match in YEAR_PRICE_PATTERN.finditer(text):
            if int(match.group(1)) >= self.min_year:
                yield RawEntry(match.group(1), match.group(2), "Sale")

    def from_phrases(self, text: str) -> Iterator[RawEntry]:
        for pattern, event in PHRASE_PATTERNS:
            for match in pattern.finditer(text):
                yield RawEntry(match.group("date"), match.group("price"), event)

    # --- Post-processing ---

    def clean(self, raw_entries: Iterable[RawEntry]) -> List[PriceHistoryEntry]:
        """Drop incomplete entries, normalize, dedupe, sort newest first and cap."""
        seen = set()
        entries: List[PriceHistoryEntry] = []
        for raw in raw_entries:
            entry_date = clean_date(raw.date)
            price = clean_price(raw.price)
            if not entry_date or not price:
                continue
            if (entry_date, price) in seen:
                continue
            seen.add((entry_date, price))
            entries.append(PriceHistoryEntry(date=entry_date, price=price, event=raw.event))
        entries.sort(key=_sort_key)
        return entries[: self.limit]

    def extract(self, html: str) -> Tuple[List[PriceHistoryEntry], Optional[PriceHistorySource]]:
        """Entries from the first productive tier, with that tier's source."""
        if not html:
            return [], None

        text = page_text(html)
        tiers = (
            (PriceHistorySource.JSON_LD, lambda: self.from_json_ld(html)),
            (PriceHistorySource.SCRIPT, lambda: self.from_scripts(html)),
            (PriceHistorySource.YEAR_PRICE, lambda: self.from_year_price_text(text)),
            (PriceHistorySource.SALE_HISTORY_SECTION, lambda: self.from_sale_history_section(html)),
            (PriceHistorySource.PHRASE, lambda: self.from_phrases(text)),
        )
        for source, tier in tiers:
            entries = self.clean(tier())
            if entries:
                logger.debug("Price history found", source=source.value, entries=len(entries))
                return entries, source
        logger.debug("No price history found")
        return [], None


def analyze_price_history(
    url: str,
    html: str,
    fetched_at: datetime,
    extractor: Optional[PriceHistoryExtractor] = None,
) -> PriceHistoryResult:
    extractor = extractor or PriceHistoryExtractor()
    entries, source = extractor.extract(html)
    METRICS["extractions_total"].labels(kind="price_history", source=source.value if source else "none").inc()
    return PriceHistoryResult(url=url, fetched_at=fetched_at, entries=tuple(entries), source=source)


class PriceHistoryScraper:
    """Validates, fetches and extracts price history for listing pages."""

    def __init__(self, fetcher: ListingFetcher, extractor: Optional[PriceHistoryExtractor] = None) -> None:
        self.fetcher = fetcher
        self.extractor = extractor or PriceHistoryExtractor()

    async def scrape(self, url: str) -> PriceHistoryResult:
        """
        Raises:
            ListingURLError: If ``url`` is not a listing URL.
            FetchError: If the page could not be fetched.
        """
        url = validate_listing_url(url)
        with structlog.contextvars.bound_contextvars(listing_url=url):
            page = await self.fetcher.fetch(url)
            result = analyze_price_history(url, page.html, page.fetched_at, self.extractor)
            logger.info(
                "Price history extracted",
                source=result.source.value if result.source else None,
                entries=len(result.entries),
                data_quality=result.data_quality.value,
            )
            return result
