import time
from typing import Callable, List, NamedTuple, Optional

from pymongo import ASCENDING, DESCENDING
from structlog import get_logger

from marketplace.config import settings

logger = get_logger()


class CachedCategories(NamedTuple):
    from_cache: bool
    data: List[dict]


class CategoryCache:
    """Process-local cache of the active category list.

    Not synchronised: two concurrent refreshes may both hit the database and
    the last one to finish wins. Both compute the same result.
    """

    def __init__(self, ttl_seconds: float = 60.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._data: Optional[List[dict]] = None
        self._stored_at = 0.0

    def is_fresh(self) -> bool:
        return self._data is not None and self._clock() - self._stored_at < self.ttl_seconds

    async def get(self, db) -> CachedCategories:
        if self.is_fresh():
            logger.info("Category cache hit", size=len(self._data))
            return CachedCategories(True, self._data)

        logger.info("Category cache miss")
        categories = await db.categories.find({"isActive": True}).sort(
            [("sortOrder", ASCENDING), ("createdAt", DESCENDING)]
        ).to_list(length=None)
        self._data = categories
        self._stored_at = self._clock()
        return CachedCategories(False, categories)

    def invalidate(self):
        self._data = None
        self._stored_at = 0.0


category_cache = CategoryCache(ttl_seconds=settings.CATEGORY_CACHE_TTL_SECONDS)


async def get_cached_categories(db) -> CachedCategories:
    return await category_cache.get(db)


def clear_categories_cache():
    category_cache.invalidate()
    logger.info("Category cache cleared")
