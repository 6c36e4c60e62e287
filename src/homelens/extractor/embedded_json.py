"""
Embedded page-model date extraction.

Listing pages serialize their client-side state into inline scripts
(``window.jsonModel = {...}`` and friends). This tier reads those objects
and searches them for a listing-date key.
"""

from __future__ import annotations

import json
import re
from datetime import datetime
from typing import Any, Iterator, Optional, Sequence

import structlog
from bs4 import BeautifulSoup

from .dates import normalize_date
from .json_scanner import find_assignments, iter_objects, loads_lenient
from .models import DateSource, ExtractionResult

logger = structlog.get_logger(__name__)

DEFAULT_DATE_KEYS = ("addedOn", "firstListedDate", "datePosted", "datePublished", "listedDate", "addedDate")
DEFAULT_MODEL_NAMES = ("jsonModel", "__PRELOADED_STATE__", "PAGE_MODEL", "pageModel", "propertyData")

_DATE_VALUE = re.compile(r"^(?:\d{4}-\d{2}-\d{2}|\d{2}/\d{2}/\d{4})")


def iter_inline_scripts(html: str) -> Iterator[str]:
    """Yield the body of every inline, non-JSON-LD ``<script>`` tag."""
    if not html:
        return
    soup = BeautifulSoup(html, "html.parser")
    for script in soup.find_all("script"):
        if script.get("src"):
            continue
        script_type = (script.get("type") or "").strip().lower()
        if script_type == "application/ld+json":
            continue
        text = script.string if script.string is not None else script.get_text()
        if text and text.strip():
            yield text


def find_date_in_object(obj: Any, date_keys: Sequence[str], max_depth: int = 5, _depth: int = 0) -> Optional[str]:
    """
    Depth-first search for a date-like string under a date key.

    Keys match when they contain any of ``date_keys`` case-insensitively.
    Direct keys of a container are checked before its nested values.
    """
    if _depth > max_depth or not isinstance(obj, (dict, list)):
        return None

    lowered = [key.lower() for key in date_keys]

    if isinstance(obj, dict):
        for key, value in obj.items():
            lower_key = str(key).lower()
            if any(fragment in lower_key for fragment in lowered):
                if isinstance(value, str) and _DATE_VALUE.match(value):
                    return value
        children = obj.values()
    else:
        children = obj

    for value in children:
        if isinstance(value, (dict, list)):
            found = find_date_in_object(value, date_keys, max_depth, _depth + 1)
            if found:
                return found

    return None


def _mentions_date_key(data: Any, date_keys: Sequence[str]) -> bool:
    serialized = json.dumps(data).lower()
    return any(key.lower() in serialized for key in date_keys)


def extract_global_json(
    script: str,
    date_keys: Sequence[str] = DEFAULT_DATE_KEYS,
    *,
    model_names: Sequence[str] = DEFAULT_MODEL_NAMES,
    max_depth: int = 5,
    min_object_length: int = 100,
) -> Optional[str]:
    """
    Find a listing date inside one script body.

    Known model assignments are tried first; failing that, the largest
    balanced objects in the script that mention a date key.
    """
    for name, literal in find_assignments(script, model_names):
        data = loads_lenient(literal)
        if data is None:
            logger.debug("Model assignment is not valid JSON", model=name)
            continue
        found = find_date_in_object(data, date_keys, max_depth)
        if found:
            normalized = normalize_date(found)
            if normalized:
                return normalized

    for literal in iter_objects(script, min_length=min_object_length):
        data = loads_lenient(literal)
        if data is None or not _mentions_date_key(data, date_keys):
            continue
        found = find_date_in_object(data, date_keys, max_depth)
        if found:
            normalized = normalize_date(found)
            if normalized:
                return normalized

    return None


def parse_embedded_json_date(
    html: str,
    date_keys: Sequence[str] = DEFAULT_DATE_KEYS,
    *,
    model_names: Sequence[str] = DEFAULT_MODEL_NAMES,
    max_depth: int = 5,
    min_object_length: int = 100,
) -> Optional[str]:
    """Return the first embedded-model listing date as ``YYYY-MM-DD``, or None."""
    for script in iter_inline_scripts(html):
        found = extract_global_json(
            script,
            date_keys,
            model_names=model_names,
            max_depth=max_depth,
            min_object_length=min_object_length,
        )
        if found:
            return found
    return None


class EmbeddedJsonDateExtractor:
    """Second tier: page model serialized into inline scripts."""

    name = "embedded_json"
    source = DateSource.EMBEDDED_JSON

    def __init__(
        self,
        date_keys: Sequence[str] = DEFAULT_DATE_KEYS,
        model_names: Sequence[str] = DEFAULT_MODEL_NAMES,
        max_depth: int = 5,
        min_object_length: int = 100,
    ) -> None:
        self.date_keys = tuple(date_keys)
        self.model_names = tuple(model_names)
        self.max_depth = max_depth
        self.min_object_length = min_object_length

    def extract(self, html: str, *, fetched_at: datetime) -> ExtractionResult:
        found = parse_embedded_json_date(
            html,
            self.date_keys,
            model_names=self.model_names,
            max_depth=self.max_depth,
            min_object_length=self.min_object_length,
        )
        if found is None:
            return ExtractionResult.empty()
        return ExtractionResult(date=found, source=self.source)
