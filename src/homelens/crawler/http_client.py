"""
HTTP client for listing pages with bounded retries, backoff and an optional
page cache.
"""

from __future__ import annotations

import asyncio
import random
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

import aiohttp
import structlog

from homelens.cache import TTLCache
from homelens.config.config import FetchConfig
from homelens.errors import FetchError
from homelens.observability.metrics import METRICS

from .user_agents import UserAgentRotator

logger = structlog.get_logger(__name__)

ACCEPT_HTML = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class RawResponse:
    """Status and body of a single HTTP attempt."""

    status: int
    reason: str
    final_url: str
    text: str


@dataclass(frozen=True)
class FetchedPage:
    """A successfully fetched listing document."""

    url: str
    final_url: str
    status: int
    html: str
    fetched_at: datetime
    attempts: int


class ListingFetcher:
    """Fetches listing pages: per-attempt timeout, bounded retries, exponential backoff."""

    def __init__(
        self,
        config: FetchConfig,
        *,
        cache: Optional[TTLCache[str, FetchedPage]] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.config = config
        self.cache = cache
        self._clock = clock
        self.user_agents = UserAgentRotator(config.user_agent, rotate=config.rotate_user_agents)

        # Session will be initialized in initialize()
        self.session: Optional[aiohttp.ClientSession] = None
        self._is_initialized = False

        logger.debug(
            "Listing fetcher created",
            timeout=config.timeout,
            max_attempts=config.max_attempts,
            cache_enabled=bool(cache and cache.enabled),
        )

    async def initialize(self) -> None:
        """Initialize the HTTP client session."""
        if self.session is None:
            self.session = aiohttp.ClientSession(
                headers={
                    "Accept": ACCEPT_HTML,
                    "Accept-Language": self.config.accept_language,
                }
            )
            self._is_initialized = True
            logger.debug("HTTP client session initialized")

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        if self.session:
            await self.session.close()
            self.session = None
        self._is_initialized = False
        logger.debug("HTTP client closed")

    async def __aenter__(self) -> "ListingFetcher":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _perform_request(self, url: str, timeout: float, user_agent: str) -> RawResponse:
        """Perform one GET and read the body within ``timeout`` seconds."""
        if not self._is_initialized or self.session is None:
            raise RuntimeError("HTTP client not initialized")

        try:
            async with asyncio.timeout(timeout):
                async with self.session.get(url, headers={"User-Agent": user_agent}) as response:
                    text = await response.text(errors="replace")
                    return RawResponse(
                        status=response.status,
                        reason=response.reason or "",
                        final_url=str(response.url),
                        text=text,
                    )
        except asyncio.TimeoutError:
            raise asyncio.TimeoutError(f"Request timed out after {timeout}s")

    def _calculate_backoff_delay(self, attempt: int) -> float:
        """Exponential backoff with jitter: base, 2x base, 4x base..."""
        base_delay = self.config.backoff_base_seconds * 2 ** (attempt - 1)
        jitter = random.uniform(0.8, 1.2)  # ±20% jitter
        return base_delay * jitter

    async def fetch(self, url: str, *, use_cache: bool = True) -> FetchedPage:
        """
        Fetch a listing page.

        Network errors, timeouts and non-2xx statuses are retried up to
        ``max_attempts`` in total.

        Raises:
            FetchError: When every attempt failed.
        """
        if not self._is_initialized:
            raise RuntimeError("HTTP client not initialized. Call initialize() first.")

        if use_cache and self.cache is not None and self.cache.enabled:
            cached = self.cache.get(url)
            if cached is not None:
                METRICS["page_cache_total"].labels(result="hit").inc()
                logger.debug("Page cache hit", url=url)
                return cached
            METRICS["page_cache_total"].labels(result="miss").inc()

        fetched_at = self._clock()
        start_time = time.monotonic()
        max_attempts = self.config.max_attempts
        last_error = "no attempt made"
        last_status: Optional[int] = None

        for attempt in range(1, max_attempts + 1):
            user_agent = self.user_agents.for_attempt(attempt)
            try:
                raw = await self._perform_request(url, self.config.timeout, user_agent)
            except asyncio.TimeoutError as e:
                last_error = str(e) or f"Request timed out after {self.config.timeout}s"
                last_status = None
                METRICS["fetch_attempts_total"].labels(outcome="timeout").inc()
                logger.warning("Request timed out", url=url, attempt=attempt, max_attempts=max_attempts)
            except (aiohttp.ClientError, OSError) as e:
                last_error = str(e) or e.__class__.__name__
                last_status = None
                METRICS["fetch_attempts_total"].labels(outcome="error").inc()
                logger.warning("Request failed", url=url, attempt=attempt, max_attempts=max_attempts, error=last_error)
            else:
                if 200 <= raw.status < 300:
                    METRICS["fetch_attempts_total"].labels(outcome="success").inc()
                    METRICS["fetch_latency_seconds"].observe(time.monotonic() - start_time)
                    page = FetchedPage(
                        url=url,
                        final_url=raw.final_url,
                        status=raw.status,
                        html=raw.text,
                        fetched_at=fetched_at,
                        attempts=attempt,
                    )
                    if self.cache is not None:
                        self.cache.set(url, page)
                    logger.info("Fetched listing page", url=url, status=raw.status, attempts=attempt)
                    return page

                last_status = raw.status
                last_error = f"HTTP {raw.status}: {raw.reason}".rstrip(": ")
                METRICS["fetch_attempts_total"].labels(outcome="http_error").inc()
                logger.warning(
                    "Unexpected status", url=url, status=raw.status, attempt=attempt, max_attempts=max_attempts
                )

            if attempt < max_attempts:
                await asyncio.sleep(self._calculate_backoff_delay(attempt))

        METRICS["fetch_latency_seconds"].observe(time.monotonic() - start_time)
        logger.error("Giving up on listing page", url=url, attempts=max_attempts, error=last_error)
        raise FetchError(url, last_error, attempts=max_attempts, status=last_status)

    def clear_cache(self) -> int:
        return self.cache.clear() if self.cache is not None else 0

    def get_stats(self) -> Dict[str, Any]:
        return {
            "initialized": self._is_initialized,
            "cached_pages": len(self.cache) if self.cache is not None else 0,
            "max_attempts": self.config.max_attempts,
            "timeout": self.config.timeout,
        }
