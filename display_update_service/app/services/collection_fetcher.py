# display_update_service/app/services/collection_fetcher.py
import logging
import time
from typing import Callable, List, Optional

from ..data_sources.interface import ICollectionScheduleSource
from ..models import RawCollectionEntry

logger = logging.getLogger(__name__)


class ScheduleCache:
    """Last successful schedule fetch, with the time it was taken.

    One instance per process. Not locked: fetches are issued one at a time.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self.data: Optional[List[RawCollectionEntry]] = None
        self.timestamp: Optional[float] = None

    def age(self) -> Optional[float]:
        if self.timestamp is None:
            return None
        return self._clock() - self.timestamp

    def is_fresh(self) -> bool:
        age = self.age()
        if self.data is None or age is None:
            return False
        if age >= self.ttl_seconds:
            logger.info(f"CollectionFetcher: Cache expired (age: {round(age / 60)} minutes)")
            return False
        return True

    def store(self, data: List[RawCollectionEntry]) -> None:
        self.data = data
        self.timestamp = self._clock()

    def clear(self) -> None:
        self.data = None
        self.timestamp = None


class CollectionFetcher:
    def __init__(self, source: ICollectionScheduleSource, cache: ScheduleCache):
        self.source = source
        self.cache = cache

    async def fetch(self) -> List[RawCollectionEntry]:
        """
        Returns the upcoming collection schedule. Never raises.

        Fresh cache is served without a network call. On a failed fetch the cached
        list is served regardless of its age, or an empty list if nothing was ever
        fetched.
        """
        if self.cache.is_fresh():
            logger.info("CollectionFetcher: Using cached schedule.")
            return list(self.cache.data)

        try:
            collections = await self.source.get_collections()
        except Exception as e:
            logger.error(f"CollectionFetcher: Schedule fetch failed: {e}")
            if self.cache.data is not None:
                logger.warning("CollectionFetcher: Using expired cache due to fetch failure.")
                return list(self.cache.data)
            logger.warning("CollectionFetcher: No cache available, returning empty schedule.")
            return []

        self.cache.store(collections)
        logger.info(f"CollectionFetcher: Fetched {len(collections)} collections, cache refreshed.")
        return list(collections)

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info("CollectionFetcher: Cache cleared.")
