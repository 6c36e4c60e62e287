"""
Time-on-market analysis for listing pages.

``analyze_listing`` is the pure core: HTML and a fetch timestamp in, a
``TimeOnMarketRecord`` out. ``TimeOnMarketScraper`` wraps it with URL
validation and fetching.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Iterable, List, Optional, Union

import structlog

from homelens.crawler.http_client import ListingFetcher
from homelens.errors import HomeLensError
from homelens.extractor.cascade import DateCascade
from homelens.extractor.dates import days_on_market
from homelens.extractor.models import TimeOnMarketRecord
from homelens.observability.metrics import METRICS
from homelens.security.validation import validate_listing_url

logger = structlog.get_logger(__name__)

ScrapeOutcome = Union[TimeOnMarketRecord, HomeLensError]


def analyze_listing(
    url: str,
    html: str,
    fetched_at: datetime,
    cascade: Optional[DateCascade] = None,
) -> TimeOnMarketRecord:
    """Run the date cascade over ``html`` and count days on market."""
    cascade = cascade or DateCascade()
    result = cascade.extract(html, fetched_at=fetched_at)

    days: Optional[int] = None
    if result.date is not None:
        days = days_on_market(result.date, fetched_at)
        if days is None:
            METRICS["negative_day_counts_total"].inc()
            logger.warning(
                "Listing date is after fetch date",
                url=url,
                portal_added_on=result.date,
                source=result.source.value,
            )

    METRICS["extractions_total"].labels(kind="added", source=result.source.value).inc()
    return TimeOnMarketRecord(
        url=url,
        fetched_at=fetched_at,
        portal_added_on=result.date,
        source=result.source,
        time_on_market_days=days,
        raw_snippet=result.raw_snippet,
    )


class TimeOnMarketScraper:
    """Validates, fetches and analyzes listing pages."""

    def __init__(self, fetcher: ListingFetcher, cascade: Optional[DateCascade] = None) -> None:
        self.fetcher = fetcher
        self.cascade = cascade or DateCascade()

    async def scrape(self, url: str) -> TimeOnMarketRecord:
        """
        Scrape one listing.

        Raises:
            ListingURLError: If ``url`` is not a listing URL.
            FetchError: If the page could not be fetched.
        """
        url = validate_listing_url(url)
        with structlog.contextvars.bound_contextvars(listing_url=url):
            page = await self.fetcher.fetch(url)
            record = analyze_listing(url, page.html, page.fetched_at, self.cascade)
            logger.info(
                "Time on market extracted",
                source=record.source.value,
                portal_added_on=record.portal_added_on,
                days=record.time_on_market_days,
            )
            return record

    async def scrape_many(self, urls: Iterable[str], concurrency: int = 4) -> List[ScrapeOutcome]:
        """
        Scrape several listings concurrently.

        Results come back in input order; a failed URL yields its error in
        place of a record.
        """
        semaphore = asyncio.Semaphore(max(1, concurrency))

        async def _bounded(url: str) -> ScrapeOutcome:
            async with semaphore:
                try:
                    return await self.scrape(url)
                except HomeLensError as e:
                    logger.warning("Scrape failed", url=url, error=str(e))
                    return e

        return list(await asyncio.gather(*(_bounded(url) for url in urls)))
