"""
Tests for listing fetcher retry behavior.

These tests exercise the public ``fetch`` API against mocked HTTP
responses: retries on bad statuses, network errors and timeouts, user
agent rotation, the page cache and the error raised on exhaustion.
"""

import asyncio
from datetime import datetime, timezone
from unittest.mock import patch

import aiohttp
import pytest
import pytest_asyncio
from aioresponses import aioresponses

from homelens.cache import TTLCache
from homelens.config import FetchConfig
from homelens.crawler.http_client import FetchedPage, ListingFetcher
from homelens.crawler.user_agents import DESKTOP_AGENTS, UserAgentRotator
from homelens.errors import FetchError

URL = "https://www.rightmove.co.uk/properties/123456789"
FIXED_NOW = datetime(2025, 10, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def fetch_config() -> FetchConfig:
    return FetchConfig(backoff_base_seconds=0, cache_ttl_seconds=0, timeout=2.0)


@pytest_asyncio.fixture
async def fetcher(fetch_config):
    async with ListingFetcher(fetch_config, clock=lambda: FIXED_NOW) as client:
        yield client


def sent_user_agents(mocked: aioresponses) -> list:
    calls = [call for key, calls in mocked.requests.items() for call in calls]
    return [call.kwargs["headers"]["User-Agent"] for call in calls]


@pytest.mark.unit
class TestListingFetcherRetryBehavior:
    @pytest.mark.asyncio
    async def test_success_on_first_attempt(self, fetcher):
        with aioresponses() as m:
            m.get(URL, status=200, body="<html>ok</html>")
            page = await fetcher.fetch(URL)

        assert isinstance(page, FetchedPage)
        assert page.status == 200
        assert page.html == "<html>ok</html>"
        assert page.attempts == 1
        assert page.fetched_at == FIXED_NOW
        assert page.url == URL

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [403, 429, 500, 503])
    async def test_retry_on_bad_status_then_success(self, fetcher, status):
        with aioresponses() as m:
            m.get(URL, status=status, body="")
            m.get(URL, status=200, body="<html>second</html>")
            page = await fetcher.fetch(URL)

        assert page.html == "<html>second</html>"
        assert page.attempts == 2

    @pytest.mark.asyncio
    async def test_retry_on_network_error(self, fetcher):
        with aioresponses() as m:
            m.get(URL, exception=aiohttp.ClientConnectionError("connection reset"))
            m.get(URL, status=200, body="<html>ok</html>")
            page = await fetcher.fetch(URL)

        assert page.attempts == 2

    @pytest.mark.asyncio
    async def test_retry_on_timeout(self, fetcher):
        with aioresponses() as m:
            m.get(URL, exception=asyncio.TimeoutError())
            m.get(URL, exception=asyncio.TimeoutError())
            m.get(URL, status=200, body="<html>ok</html>")
            page = await fetcher.fetch(URL)

        assert page.attempts == 3

    @pytest.mark.asyncio
    async def test_exhaustion_raises_fetch_error_with_last_status(self, fetcher):
        with aioresponses() as m:
            m.get(URL, status=503, repeat=True)
            with pytest.raises(FetchError) as exc_info:
                await fetcher.fetch(URL)

        error = exc_info.value
        assert error.attempts == 3
        assert error.status == 503
        assert error.url == URL
        assert "503" in str(error)

    @pytest.mark.asyncio
    async def test_exhaustion_after_network_errors_has_no_status(self, fetcher):
        with aioresponses() as m:
            m.get(URL, exception=aiohttp.ClientConnectionError("refused"), repeat=True)
            with pytest.raises(FetchError) as exc_info:
                await fetcher.fetch(URL)

        assert exc_info.value.status is None
        assert "refused" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_max_attempts_is_respected(self):
        config = FetchConfig(backoff_base_seconds=0, cache_ttl_seconds=0, max_attempts=5)
        async with ListingFetcher(config) as client:
            with aioresponses() as m:
                m.get(URL, status=500, repeat=True)
                with pytest.raises(FetchError) as exc_info:
                    await client.fetch(URL)
                assert len(sent_user_agents(m)) == 5

        assert exc_info.value.attempts == 5

    @pytest.mark.asyncio
    async def test_backoff_between_attempts_only(self, fetcher):
        with patch.object(ListingFetcher, "_calculate_backoff_delay", autospec=True, return_value=0.0) as backoff:
            with aioresponses() as m:
                m.get(URL, status=500, repeat=True)
                with pytest.raises(FetchError):
                    await fetcher.fetch(URL)

        assert [call.args[1] for call in backoff.call_args_list] == [1, 2]

    @pytest.mark.asyncio
    async def test_user_agent_rotates_across_attempts(self, fetcher, fetch_config):
        with aioresponses() as m:
            m.get(URL, status=403)
            m.get(URL, status=403)
            m.get(URL, status=200, body="ok")
            await fetcher.fetch(URL)
            agents = sent_user_agents(m)

        assert agents[0] == fetch_config.user_agent
        assert len(set(agents)) == 3

    @pytest.mark.asyncio
    async def test_fetch_requires_initialization(self, fetch_config):
        client = ListingFetcher(fetch_config)
        with pytest.raises(RuntimeError):
            await client.fetch(URL)


@pytest.mark.unit
class TestBackoffDelay:
    def test_exponential_with_jitter(self):
        client = ListingFetcher(FetchConfig(backoff_base_seconds=1.0))
        for attempt, base in [(1, 1.0), (2, 2.0), (3, 4.0)]:
            delay = client._calculate_backoff_delay(attempt)
            assert base * 0.8 <= delay <= base * 1.2

    def test_zero_base_means_no_delay(self):
        client = ListingFetcher(FetchConfig(backoff_base_seconds=0))
        assert client._calculate_backoff_delay(3) == 0


@pytest.mark.unit
class TestPageCache:
    @pytest.mark.asyncio
    async def test_cached_page_is_returned_without_a_request(self, fetch_config):
        cache = TTLCache(60)
        async with ListingFetcher(fetch_config, cache=cache, clock=lambda: FIXED_NOW) as client:
            with aioresponses() as m:
                m.get(URL, status=200, body="<html>cached</html>")
                first = await client.fetch(URL)
                second = await client.fetch(URL)
                assert len(sent_user_agents(m)) == 1

        assert second is first
        assert second.fetched_at == FIXED_NOW
        assert len(cache) == 1

    @pytest.mark.asyncio
    async def test_use_cache_false_refetches(self, fetch_config):
        cache = TTLCache(60)
        async with ListingFetcher(fetch_config, cache=cache) as client:
            with aioresponses() as m:
                m.get(URL, status=200, body="one")
                m.get(URL, status=200, body="two")
                await client.fetch(URL)
                page = await client.fetch(URL, use_cache=False)

        assert page.html == "two"
        assert client.clear_cache() == 1

    @pytest.mark.asyncio
    async def test_failures_are_not_cached(self, fetch_config):
        cache = TTLCache(60)
        async with ListingFetcher(fetch_config, cache=cache) as client:
            with aioresponses() as m:
                m.get(URL, status=500, repeat=True)
                with pytest.raises(FetchError):
                    await client.fetch(URL)

        assert len(cache) == 0


@pytest.mark.unit
class TestUserAgentRotator:
    def test_first_attempt_uses_primary(self):
        rotator = UserAgentRotator("primary-agent")
        assert rotator.for_attempt(1) == "primary-agent"

    def test_retries_walk_the_pool_deterministically(self):
        rotator = UserAgentRotator(DESKTOP_AGENTS[0])
        later = [rotator.for_attempt(n) for n in range(2, 2 + len(rotator.pool))]
        assert DESKTOP_AGENTS[0] not in later
        assert later == rotator.pool
        assert rotator.for_attempt(2 + len(rotator.pool)) == rotator.pool[0]

    def test_rotation_disabled(self):
        rotator = UserAgentRotator("primary-agent", rotate=False)
        assert {rotator.for_attempt(n) for n in range(1, 6)} == {"primary-agent"}
