"""
Tests for the trending category cache: staleness against an injected clock, last-known-good
behaviour on failure, and the latest-blogs listing.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest
from pymongo.errors import AutoReconnect

from blog_platform.services.trending_cache import TrendingCategoryCache, sample_published_categories


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.mark.asyncio
async def test_sample_is_reused_within_window(clock):
    sampler = AsyncMock(return_value=["Tech", "Art"])
    cache = TrendingCategoryCache(sampler=sampler, clock=clock, sample_size=2, window_seconds=7200)

    assert await cache.get_categories() == ["Tech", "Art"]
    clock.advance(7199)
    assert await cache.get_categories() == ["Tech", "Art"]

    sampler.assert_awaited_once_with(2)


@pytest.mark.asyncio
async def test_sample_is_redrawn_after_window(clock):
    sampler = AsyncMock(side_effect=[["Tech"], ["Food"]])
    cache = TrendingCategoryCache(sampler=sampler, clock=clock, sample_size=1, window_seconds=7200)

    assert await cache.get_categories() == ["Tech"]
    clock.advance(7201)
    assert cache.is_stale()
    assert await cache.get_categories() == ["Food"]


@pytest.mark.asyncio
async def test_failed_refresh_keeps_last_known_good(clock):
    sampler = AsyncMock(side_effect=[["Tech"], AutoReconnect("connection lost")])
    cache = TrendingCategoryCache(sampler=sampler, clock=clock, sample_size=1, window_seconds=60)

    await cache.refresh()
    clock.advance(120)

    assert await cache.get_categories() == ["Tech"]
    assert cache.categories == ["Tech"]


@pytest.mark.asyncio
async def test_failed_refresh_backs_off_before_sampling_again(clock):
    sampler = AsyncMock(side_effect=[["Tech"], ConnectionError("store down"), ["Food"]])
    cache = TrendingCategoryCache(sampler=sampler, clock=clock, sample_size=1, window_seconds=10, retry_seconds=30)

    await cache.get_categories()
    clock.advance(100)
    for _ in range(5):
        assert await cache.get_categories() == ["Tech"]
    assert sampler.await_count == 2

    clock.advance(29)
    assert await cache.get_categories() == ["Tech"]
    assert sampler.await_count == 2

    clock.advance(2)
    assert await cache.get_categories() == ["Food"]
    assert sampler.await_count == 3


@pytest.mark.asyncio
async def test_concurrent_stale_reads_share_one_refresh(clock):
    sampler = AsyncMock(return_value=["Tech"])
    cache = TrendingCategoryCache(sampler=sampler, clock=clock, sample_size=1, window_seconds=60)

    results = await asyncio.gather(*(cache.get_categories() for _ in range(5)))

    assert results == [["Tech"]] * 5
    sampler.assert_awaited_once_with(1)


@pytest.mark.asyncio
async def test_empty_sample_is_retried_on_next_access(clock):
    sampler = AsyncMock(side_effect=[[], ["Tech"]])
    cache = TrendingCategoryCache(sampler=sampler, clock=clock, sample_size=1, window_seconds=7200)

    assert await cache.get_categories() == []
    assert await cache.get_categories() == ["Tech"]


@pytest.mark.asyncio
async def test_sampler_draws_distinct_published_categories(make_post):
    await make_post(category="Tech")
    await make_post(category="Tech")
    await make_post(category="Art")
    await make_post(category="Secret", status="pending")

    categories = await sample_published_categories(5)

    assert sorted(categories) == ["Art", "Tech"]


@pytest.mark.asyncio
async def test_latest_blogs_filters_by_trending_categories(clock, make_post):
    tech = await make_post(category="Tech")
    await make_post(category="Art")
    await make_post(category="Tech", status="rejected")
    cache = TrendingCategoryCache(sampler=AsyncMock(return_value=["Tech"]), clock=clock, sample_size=1)

    result = await cache.latest_blogs(limit=10)

    assert result["categories"] == ["Tech"]
    assert [post["_id"] for post in result["blogs"]] == [tech["_id"]]


@pytest.mark.asyncio
async def test_latest_blogs_without_categories(clock):
    cache = TrendingCategoryCache(sampler=AsyncMock(return_value=[]), clock=clock)
    assert await cache.latest_blogs() == {"categories": [], "blogs": []}
