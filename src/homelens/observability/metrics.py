"""
Defines Prometheus metrics for the application.
"""

from __future__ import annotations

from typing import Any, Dict

from prometheus_client import REGISTRY as _PROM_REGISTRY
from prometheus_client import Counter as _OrigCounter
from prometheus_client import Histogram as _OrigHistogram

# ---------------------------------------------------------------------------
# Duplicate-safe Prometheus metric wrappers
# ---------------------------------------------------------------------------
# The module may be imported more than once during the test suite; reusing
# already-registered collectors avoids duplicate registration errors.


def _duplicate_safe_factory(metric_cls):
    """Return a factory that reuses an existing collector if already present."""

    def _factory(name: str, documentation: str, *args, **kwargs):  # type: ignore[override]
        existing = _PROM_REGISTRY._names_to_collectors.get(name)
        if existing is not None:
            return existing  # type: ignore[return-value]

        try:
            return metric_cls(name, documentation, *args, **kwargs)  # type: ignore[call-arg]
        except ValueError:
            # Registration lost the race; fall back to the now-existing collector.
            return _PROM_REGISTRY._names_to_collectors[name]  # type: ignore[return-value]

    return _factory


Counter = _duplicate_safe_factory(_OrigCounter)  # type: ignore[assignment]
Histogram = _duplicate_safe_factory(_OrigHistogram)  # type: ignore[assignment]


def _create_metrics() -> Dict[str, Any]:
    return {
        "extractions_total": Counter(
            "homelens_extractions_total",
            "Completed extractions by kind and winning source",
            ["kind", "source"],
        ),
        "fetch_attempts_total": Counter(
            "homelens_fetch_attempts_total",
            "Listing fetch attempts by outcome",
            ["outcome"],
        ),
        "fetch_latency_seconds": Histogram(
            "homelens_fetch_latency_seconds",
            "Time taken to fetch a listing page, retries included",
        ),
        "negative_day_counts_total": Counter(
            "homelens_negative_day_counts_total",
            "Listings whose added date was after the fetch date",
        ),
        "page_cache_total": Counter(
            "homelens_page_cache_total",
            "Page cache lookups by result",
            ["result"],
        ),
    }


METRICS: Dict[str, Any] = _create_metrics()
