"""
Dependency injection container for HomeLens components.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any, AsyncIterator, Callable, Dict, Generic, Optional, TypeVar
from uuid import uuid4

import structlog

from homelens.cache import TTLCache
from homelens.config import Config, load_config

if TYPE_CHECKING:
    from homelens.crawler.http_client import FetchedPage, ListingFetcher
    from homelens.price_history import PriceHistoryScraper
    from homelens.time_on_market import TimeOnMarketScraper

T = TypeVar("T")


class LazyInstance(Generic[T]):
    """Lazy-loaded instance with lifecycle management."""

    def __init__(self, factory: Callable[..., T], *args: Any, **kwargs: Any) -> None:
        self._factory = factory
        self._args = args
        self._kwargs = kwargs
        self._instance: Optional[T] = None
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def get(self) -> T:
        """Get or create the instance."""
        if not self._initialized:
            self._instance = self._factory(*self._args, **self._kwargs)
            if hasattr(self._instance, "initialize") and callable(getattr(self._instance, "initialize", None)):
                await self._instance.initialize()  # type: ignore
            self._initialized = True
        assert self._instance is not None
        return self._instance

    async def cleanup(self) -> None:
        """Clean up the instance."""
        if self._instance and hasattr(self._instance, "close") and callable(getattr(self._instance, "close", None)):
            await self._instance.close()  # type: ignore
        self._instance = None
        self._initialized = False


class DependencyContainer:
    """
    Owns the configuration, the page cache, the fetcher and the scrapers
    built on it. The fetcher is created on first use and closed on
    shutdown.
    """

    def __init__(self, config_path: Optional[Path] = None, config: Optional[Config] = None) -> None:
        self.config_path = config_path
        self.config: Optional[Config] = config
        self.logger = structlog.get_logger(self.__class__.__name__)

        self.page_cache: Optional[TTLCache[str, FetchedPage]] = None
        self._fetcher: Optional[LazyInstance[ListingFetcher]] = None
        self._fetcher_lock = asyncio.Lock()
        self._time_on_market: Optional[TimeOnMarketScraper] = None
        self._price_history: Optional[PriceHistoryScraper] = None

        self.container_id = str(uuid4())
        self.is_running = False

    async def initialize(self) -> None:
        """Load configuration (unless provided) and prepare lazy instances."""
        if self.config is None:
            self.config = load_config(self.config_path)
        await self._create_instances()
        self.is_running = True

        self.logger.info(
            "Dependency container initialized",
            container_id=self.container_id,
            config_path=str(self.config_path) if self.config_path else "default",
        )

    async def _create_instances(self) -> None:
        """Create lazy instances with the current configuration."""
        if self.config is None:
            raise RuntimeError("Configuration must be loaded before creating instances")

        await self._cleanup_instances()

        # Import modules only when needed to avoid circular imports
        from homelens.crawler.http_client import ListingFetcher

        fetch = self.config.fetch
        self.page_cache = TTLCache(fetch.cache_ttl_seconds, max_entries=fetch.cache_max_entries)
        self._fetcher = LazyInstance(ListingFetcher, fetch, cache=self.page_cache)

    def _require_config(self) -> Config:
        if self.config is None or self._fetcher is None:
            raise RuntimeError("Container not initialized. Use lifecycle() or call initialize() first.")
        return self.config

    async def get_fetcher(self) -> ListingFetcher:
        """Get the listing fetcher instance."""
        self._require_config()
        assert self._fetcher is not None
        async with self._fetcher_lock:
            return await self._fetcher.get()

    async def get_time_on_market_scraper(self) -> TimeOnMarketScraper:
        """Get the time-on-market scraper instance."""
        from homelens.extractor.cascade import DateCascade
        from homelens.time_on_market import TimeOnMarketScraper

        config = self._require_config()
        fetcher = await self.get_fetcher()
        if self._time_on_market is None:
            self._time_on_market = TimeOnMarketScraper(fetcher, DateCascade.from_settings(config.extraction))
        return self._time_on_market

    async def get_price_history_scraper(self) -> PriceHistoryScraper:
        """Get the price history scraper instance."""
        from homelens.price_history import PriceHistoryExtractor, PriceHistoryScraper

        config = self._require_config()
        fetcher = await self.get_fetcher()
        if self._price_history is None:
            self._price_history = PriceHistoryScraper(
                fetcher, PriceHistoryExtractor.from_settings(config.price_history)
            )
        return self._price_history

    def clear_page_cache(self) -> int:
        """Drop every cached page; returns how many were removed."""
        cleared = self.page_cache.clear() if self.page_cache is not None else 0
        self.logger.info("Page cache cleared", entries=cleared)
        return cleared

    @asynccontextmanager
    async def lifecycle(self) -> AsyncIterator[DependencyContainer]:
        """Context manager for proper lifecycle management."""
        try:
            await self.initialize()
            yield self
        finally:
            await self.shutdown()

    async def shutdown(self) -> None:
        """Graceful shutdown of all managed instances."""
        if not self.is_running:
            return

        self.logger.info("Shutting down dependency container", container_id=self.container_id)
        await self._cleanup_instances()
        self.is_running = False
        self.logger.info("Dependency container shutdown complete")

    async def _cleanup_instances(self) -> None:
        """Close the fetcher and forget the scrapers bound to it."""
        if self._fetcher is not None:
            try:
                await self._fetcher.cleanup()
            except Exception as e:
                self.logger.error("Error cleaning up fetcher", error=str(e))
        self._time_on_market = None
        self._price_history = None

    def get_health_status(self) -> Dict[str, Any]:
        """Get health status of all managed components."""
        return {
            "container_id": self.container_id,
            "is_running": self.is_running,
            "config_loaded": self.config is not None,
            "fetcher_ready": bool(self._fetcher and self._fetcher.initialized),
            "cached_pages": len(self.page_cache) if self.page_cache is not None else 0,
            "config_path": str(self.config_path) if self.config_path else None,
        }
