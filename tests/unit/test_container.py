"""
Tests for the dependency container lifecycle.
"""

from pathlib import Path

import pytest
import yaml

from homelens.config import Config, FetchConfig
from homelens.container import DependencyContainer, LazyInstance
from homelens.crawler.http_client import FetchedPage, ListingFetcher
from homelens.price_history import PriceHistoryScraper
from homelens.time_on_market import TimeOnMarketScraper


class Closable:
    def __init__(self):
        self.initialized = False
        self.closed = False

    async def initialize(self):
        self.initialized = True

    async def close(self):
        self.closed = True


@pytest.mark.unit
class TestLazyInstance:
    @pytest.mark.asyncio
    async def test_created_once_and_cleaned_up(self):
        lazy = LazyInstance(Closable)
        first = await lazy.get()
        second = await lazy.get()

        assert first is second
        assert first.initialized
        assert lazy.initialized

        await lazy.cleanup()
        assert first.closed
        assert not lazy.initialized


@pytest.mark.unit
class TestDependencyContainer:
    @pytest.mark.asyncio
    async def test_lifecycle_builds_and_closes_components(self, test_config):
        container = DependencyContainer(config=test_config)
        async with container.lifecycle():
            fetcher = await container.get_fetcher()
            assert isinstance(fetcher, ListingFetcher)
            assert fetcher.session is not None

            scraper = await container.get_time_on_market_scraper()
            assert isinstance(scraper, TimeOnMarketScraper)
            assert scraper.fetcher is fetcher
            assert await container.get_time_on_market_scraper() is scraper

            history = await container.get_price_history_scraper()
            assert isinstance(history, PriceHistoryScraper)
            assert history.extractor.limit == test_config.price_history.limit

            assert container.get_health_status()["fetcher_ready"] is True

        assert fetcher.session is None
        assert container.is_running is False

    @pytest.mark.asyncio
    async def test_loads_config_from_path(self, tmp_path: Path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"fetch": {"max_attempts": 2, "cache_ttl_seconds": 0}}))
        container = DependencyContainer(config_path=path)
        async with container.lifecycle():
            fetcher = await container.get_fetcher()
            assert fetcher.config.max_attempts == 2
            assert container.get_health_status()["config_path"] == str(path)

    @pytest.mark.asyncio
    async def test_clear_page_cache(self, fetched_at):
        container = DependencyContainer(config=Config(fetch=FetchConfig(cache_ttl_seconds=60)))
        async with container.lifecycle():
            url = "https://www.rightmove.co.uk/properties/1"
            container.page_cache.set(url, FetchedPage(url, url, 200, "<html></html>", fetched_at, 1))

            assert container.get_health_status()["cached_pages"] == 1
            assert container.clear_page_cache() == 1
            assert container.clear_page_cache() == 0

    @pytest.mark.asyncio
    async def test_access_before_initialize_fails(self, test_config):
        container = DependencyContainer(config=test_config)
        with pytest.raises(RuntimeError):
            await container.get_fetcher()
