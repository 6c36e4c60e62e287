"""
Shared test configuration for HomeLens.

Provides a fixed fetch timestamp, listing URLs and small listing pages
built around the structures the extractors look for.
"""

import json
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

import pytest

from homelens.config import Config, FetchConfig, LazyConfig

# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line("markers", "integration: Integration tests across modules")


# ============================================================================
# Core Fixtures
# ============================================================================

LISTING_URL = "https://www.rightmove.co.uk/properties/123456789"


@pytest.fixture
def listing_url() -> str:
    return LISTING_URL


@pytest.fixture
def fetched_at() -> datetime:
    """2025-10-01T12:00:00Z, the reference fetch time used across tests."""
    return datetime(2025, 10, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def test_config() -> Config:
    """Configuration with no backoff and no page cache."""
    return Config(fetch=FetchConfig(backoff_base_seconds=0, cache_ttl_seconds=0, timeout=2.0))


@pytest.fixture(autouse=True)
def reset_lazy_config():
    """Keep the lazily loaded settings from leaking between tests."""
    LazyConfig.reset()
    yield
    LazyConfig.reset()


# ============================================================================
# Listing page builders
# ============================================================================


def page(body: str = "", head: str = "") -> str:
    return f"<!DOCTYPE html><html><head><title>Listing</title>{head}</head><body>{body}</body></html>"


def json_ld_script(data: Any) -> str:
    return f'<script type="application/ld+json">{json.dumps(data)}</script>'


def model_script(model: Dict[str, Any], name: str = "jsonModel") -> str:
    return f"<script>window.{name} = {json.dumps(model)};</script>"


@pytest.fixture
def make_page() -> Callable[..., str]:
    """Build a listing page from optional JSON-LD, page model and body text."""

    def _make(
        json_ld: Optional[Any] = None,
        model: Optional[Dict[str, Any]] = None,
        text: str = "",
    ) -> str:
        head = json_ld_script(json_ld) if json_ld is not None else ""
        body = f"<main><p>{text}</p></main>" if text else "<main></main>"
        if model is not None:
            body += model_script(model)
        return page(body, head)

    return _make
