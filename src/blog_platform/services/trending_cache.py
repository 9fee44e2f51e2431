"""
# Trending Category Cache

A small random sample of categories among approved posts, used to bias the public "latest
blogs" listing. The sample is re-drawn on a fixed interval by a background task and lazily on
access once it is older than the window.

The cache is an owned object with an injected clock and sampler, so staleness can be simulated
without waiting on wall-clock time. A failed refresh keeps the last-known-good sample and holds
off further lazy refreshes for `retry_seconds`, so a store outage costs one slow request per
retry period rather than one per request. A stale or empty sample only degrades ranking, never
correctness.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pymongo import DESCENDING
from pymongo.errors import PyMongoError

from blog_platform.config import settings
from blog_platform.database import POSTS_COLLECTION, db_manager
from blog_platform.managers.logging_manager import get_logger
from blog_platform.models.blog_models import PostStatus
from blog_platform.services.blog_metrics import blog_metrics

logger = get_logger(prefix="[TrendingCache]")

Sampler = Callable[[int], Awaitable[List[str]]]


async def sample_published_categories(size: int) -> List[str]:
    """Draw up to `size` distinct categories at random from approved posts."""
    pipeline = [
        {"$match": {"status": PostStatus.APPROVED.value}},
        {"$group": {"_id": "$category"}},
        {"$sample": {"size": size}},
    ]
    cursor = db_manager.get_collection(POSTS_COLLECTION).aggregate(pipeline)
    groups = await cursor.to_list(length=size)
    return [group["_id"] for group in groups if group.get("_id")]


class TrendingCategoryCache:
    """
    Time-boxed sample of trending categories.

    Args:
        sampler (Sampler): Coroutine returning up to N categories.
        clock (Callable[[], float]): Monotonic time source in seconds.
        sample_size (int): Number of categories to keep.
        window_seconds (float): Age after which the sample is considered stale.
        retry_seconds (float): Pause after a failed refresh before the store is sampled again.
    """

    def __init__(
        self,
        sampler: Sampler = sample_published_categories,
        clock: Callable[[], float] = time.monotonic,
        sample_size: Optional[int] = None,
        window_seconds: Optional[float] = None,
        retry_seconds: Optional[float] = None,
    ):
        self.sampler = sampler
        self.clock = clock
        self.sample_size = sample_size or settings.TRENDING_SAMPLE_SIZE
        self.window_seconds = window_seconds or settings.TRENDING_REFRESH_SECONDS
        self.retry_seconds = retry_seconds or settings.TRENDING_RETRY_SECONDS
        self._categories: List[str] = []
        self._last_refresh: Optional[float] = None
        self._retry_after: Optional[float] = None
        self._lock = asyncio.Lock()

    @property
    def categories(self) -> List[str]:
        return list(self._categories)

    def is_stale(self) -> bool:
        if self._retry_after is not None and self.clock() < self._retry_after:
            return False
        if self._last_refresh is None or not self._categories:
            return True
        return self.clock() - self._last_refresh > self.window_seconds

    async def refresh(self, only_if_stale: bool = False) -> List[str]:
        """
        Re-draw the sample. On failure the previous sample is kept and returned.

        Args:
            only_if_stale (bool): Skip the draw when another caller refreshed while this one
                waited for the lock.
        """
        async with self._lock:
            if only_if_stale and not self.is_stale():
                return list(self._categories)
            try:
                sample = await self.sampler(self.sample_size)
            except (PyMongoError, ConnectionError) as e:
                blog_metrics.record_trending_refresh("failed")
                self._retry_after = self.clock() + self.retry_seconds
                logger.error("Trending refresh failed, keeping %s: %s", self._categories, e)
                return list(self._categories)

            self._categories = list(sample)
            self._last_refresh = self.clock()
            self._retry_after = None
            blog_metrics.record_trending_refresh("success", time.time())
            logger.info("Trending categories refreshed: %s", self._categories)
            return list(self._categories)

    async def get_categories(self) -> List[str]:
        """Current sample, refreshed first when empty or older than the window."""
        if self.is_stale():
            return await self.refresh(only_if_stale=True)
        return list(self._categories)

    async def latest_blogs(self, limit: Optional[int] = None) -> Dict[str, Any]:
        """
        Newest approved posts in the trending categories.

        Returns:
            Dict[str, Any]: `{"categories": [...], "blogs": [...]}`.
        """
        limit = limit or settings.LATEST_BLOGS_DEFAULT_LIMIT
        categories = await self.get_categories()
        if not categories:
            return {"categories": [], "blogs": []}

        query = {"status": PostStatus.APPROVED.value, "category": {"$in": categories}}
        cursor = db_manager.get_collection(POSTS_COLLECTION).find(query).sort("published_at", DESCENDING).limit(limit)
        blogs = await cursor.to_list(length=limit)
        return {"categories": categories, "blogs": blogs}

    async def run_periodic_refresh(self):
        """Background loop re-drawing the sample every window until cancelled."""
        logger.info("Trending refresh loop started (every %ss)", self.window_seconds)
        while True:
            try:
                await self.refresh()
                await asyncio.sleep(self.window_seconds)
            except asyncio.CancelledError:
                logger.info("Trending refresh loop cancelled")
                break
            except Exception as e:
                logger.error("Trending refresh loop error: %s", e, exc_info=True)
                await asyncio.sleep(60)


trending_cache = TrendingCategoryCache()
