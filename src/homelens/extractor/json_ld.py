"""
JSON-LD listing date extraction.

Reads ``<script type="application/ld+json">`` blocks and looks for the
schema.org posting date of the listing.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional

import structlog
from bs4 import BeautifulSoup

from .dates import normalize_date
from .models import DateSource, ExtractionResult

logger = structlog.get_logger(__name__)

JSON_LD_DATE_FIELDS = ("datePosted", "datePublished", "dateCreated")


def iter_json_ld_blocks(html: str) -> Iterator[Any]:
    """Yield the parsed content of every JSON-LD block, skipping malformed ones."""
    if not html:
        return
    soup = BeautifulSoup(html, "html.parser")
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        text = script.string if script.string is not None else script.get_text()
        if not text or not text.strip():
            continue
        try:
            yield json.loads(text.strip())
        except json.JSONDecodeError as e:
            logger.debug("Skipping malformed JSON-LD block", error=str(e))
            continue


def iter_json_ld(html: str) -> Iterator[Dict[str, Any]]:
    """
    Yield every JSON-LD object in document order.

    Arrays are flattened and the members of a nested ``@graph`` follow the
    object that carries it.
    """
    for data in iter_json_ld_blocks(html):
        items: List[Any] = data if isinstance(data, list) else [data]
        for item in items:
            if not isinstance(item, dict):
                continue
            yield item
            graph = item.get("@graph")
            if isinstance(graph, list):
                for graph_item in graph:
                    if isinstance(graph_item, dict):
                        yield graph_item


def _date_from_item(item: Dict[str, Any]) -> Optional[str]:
    for field in JSON_LD_DATE_FIELDS:
        value = item.get(field)
        if value:
            normalized = normalize_date(value)
            if normalized:
                return normalized
    return None


def parse_json_ld_date(html: str) -> Optional[str]:
    """Return the first JSON-LD posting date as ``YYYY-MM-DD``, or None."""
    for item in iter_json_ld(html):
        found = _date_from_item(item)
        if found:
            return found
    return None


class JsonLdDateExtractor:
    """Highest-priority tier: schema.org structured data."""

    name = "json_ld"
    source = DateSource.JSON_LD

    def extract(self, html: str, *, fetched_at: datetime) -> ExtractionResult:
        found = parse_json_ld_date(html)
        if found is None:
            return ExtractionResult.empty()
        return ExtractionResult(date=found, source=self.source)
