"""
Date normalization and arithmetic shared by the extractors.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Union

import structlog
from dateutil import parser as dateutil_parser
from dateutil.relativedelta import relativedelta

logger = structlog.get_logger(__name__)

MONTHS = {
    "january": "01",
    "february": "02",
    "march": "03",
    "april": "04",
    "may": "05",
    "june": "06",
    "july": "07",
    "august": "08",
    "september": "09",
    "october": "10",
    "november": "11",
    "december": "12",
}
MONTH_ABBREVIATIONS = {name[:3]: number for name, number in MONTHS.items()}

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_ISO_PREFIX = re.compile(r"^(\d{4})-(\d{2})-(\d{2})[T\s]")
_DMY = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")

DateLike = Union[str, date, datetime]

# Missing month and day parts resolve to January and the 1st; year 1 marks a missing year
_PARSE_DEFAULT = datetime(1, 1, 1)


def month_number(name: str) -> Optional[str]:
    """Two-digit month for a full or three-letter English month name."""
    key = name.strip().lower()
    return MONTHS.get(key) or (MONTH_ABBREVIATIONS.get(key[:3]) if len(key) >= 3 else None)


def build_date(year: Union[int, str], month: Union[int, str], day: Union[int, str]) -> Optional[str]:
    """Return ``YYYY-MM-DD`` if the parts form a real calendar day."""
    try:
        return date(int(year), int(month), int(day)).isoformat()
    except (TypeError, ValueError):
        return None


def normalize_date(value: object) -> Optional[str]:
    """
    Normalize a date-like value to ``YYYY-MM-DD``.

    Timestamps keep the calendar date as written; no timezone conversion is
    applied. ``DD/MM/YYYY`` is read day-first. A missing day or month is taken
    as the first, so "September 2025" is 2025-09-01. Returns None for values
    without a year and anything else that cannot be read as a date.
    """
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    if _ISO_DATE.match(text):
        return build_date(text[:4], text[5:7], text[8:10])

    match = _ISO_PREFIX.match(text)
    if match:
        return build_date(*match.groups())

    match = _DMY.match(text)
    if match:
        day, month, year = match.groups()
        return build_date(year, month, day)

    try:
        parsed = dateutil_parser.parse(text, dayfirst=True, default=_PARSE_DEFAULT)
    except (ValueError, OverflowError, TypeError):
        logger.debug("Unparseable date value", value=text[:64])
        return None
    if parsed.year == _PARSE_DEFAULT.year:
        logger.debug("Date value has no year", value=text[:64])
        return None
    return parsed.date().isoformat()


def utc_date(moment: datetime) -> date:
    """Calendar date of ``moment`` in UTC; naive datetimes are taken as UTC."""
    if moment.tzinfo is None:
        return moment.date()
    return moment.astimezone(timezone.utc).date()


def subtract_offset(reference: date, amount: int, unit: str) -> date:
    """
    Step back ``amount`` days, weeks or calendar months from ``reference``.

    Month arithmetic clamps to the last day of the target month.
    """
    unit = unit.lower().rstrip("s")
    if unit == "day":
        return reference - timedelta(days=amount)
    if unit == "week":
        return reference - timedelta(days=amount * 7)
    if unit == "month":
        return reference - relativedelta(months=amount)
    raise ValueError(f"Unsupported offset unit: {unit!r}")


def days_on_market(added_on: DateLike, fetched_at: datetime) -> Optional[int]:
    """
    Whole days between the added date and the fetch date, both taken at
    UTC midnight.

    Returns None when the added date cannot be read or lies after the
    fetch date.
    """
    added = normalize_date(added_on)
    if added is None:
        return None
    delta = (utc_date(fetched_at) - date.fromisoformat(added)).days
    return delta if delta >= 0 else None
