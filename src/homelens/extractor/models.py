"""
Data models for extraction results.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class DateSource(str, Enum):
    """Where a listing date came from, in priority order."""

    JSON_LD = "json-ld"
    EMBEDDED_JSON = "jsonModel"
    FREE_TEXT = "text"
    NONE = "none"


class PriceHistorySource(str, Enum):
    """Tier that produced a price history."""

    JSON_LD = "json-ld"
    SCRIPT = "script"
    YEAR_PRICE = "year-price"
    SALE_HISTORY_SECTION = "sale-history-section"
    PHRASE = "phrase"


class DataQuality(str, Enum):
    REAL = "real"
    NONE = "none"


def isoformat_utc(dt: datetime) -> str:
    """Render a datetime as ISO-8601 in UTC with a ``Z`` suffix."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(slots=True, frozen=True)
class ExtractionResult:
    """Outcome of running the date cascade over one document."""

    date: Optional[str]
    source: DateSource
    raw_snippet: Optional[str] = None

    def __post_init__(self) -> None:
        if (self.date is None) != (self.source is DateSource.NONE):
            raise ValueError("source must be 'none' exactly when no date was found")

    @classmethod
    def empty(cls) -> ExtractionResult:
        return cls(date=None, source=DateSource.NONE, raw_snippet=None)

    @property
    def found(self) -> bool:
        return self.date is not None


@dataclass(slots=True, frozen=True)
class TimeOnMarketRecord:
    """Time-on-market answer for one listing page."""

    url: str
    fetched_at: datetime
    portal_added_on: Optional[str]
    source: DateSource
    time_on_market_days: Optional[int]
    raw_snippet: Optional[str] = None

    def __post_init__(self) -> None:
        if self.time_on_market_days is not None and self.time_on_market_days < 0:
            raise ValueError("time_on_market_days must be non-negative")

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "url": self.url,
            "fetched_at": isoformat_utc(self.fetched_at),
            "portal_added_on": self.portal_added_on,
            "source": self.source.value,
            "time_on_market_days": self.time_on_market_days,
        }
        if self.source is DateSource.FREE_TEXT and self.raw_snippet:
            data["raw_snippet"] = self.raw_snippet
        return data


@dataclass(slots=True, frozen=True)
class PriceHistoryEntry:
    date: str
    price: str
    event: str

    def to_dict(self) -> Dict[str, str]:
        return {"date": self.date, "price": self.price, "event": self.event}


@dataclass(slots=True, frozen=True)
class PriceHistoryResult:
    """Price history for one listing page.

    ``data_quality`` is ``none`` when no tier produced an entry; entries are
    never invented to fill the gap.
    """

    url: str
    fetched_at: datetime
    entries: Tuple[PriceHistoryEntry, ...] = field(default_factory=tuple)
    source: Optional[PriceHistorySource] = None

    @property
    def data_quality(self) -> DataQuality:
        return DataQuality.REAL if self.entries else DataQuality.NONE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "fetched_at": isoformat_utc(self.fetched_at),
            "priceHistory": [entry.to_dict() for entry in self.entries],
            "source": self.source.value if self.source else None,
            "dataQuality": self.data_quality.value,
        }
