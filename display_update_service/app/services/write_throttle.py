# display_update_service/app/services/write_throttle.py
import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class WriteThrottle:
    """Serializes store writes and spaces them at least 1/writes_per_second apart.

    Holders of a slot run one at a time (semaphore of size 1); a new slot is not
    granted until the minimum interval since the previous one has elapsed.
    """

    def __init__(
        self,
        writes_per_second: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if writes_per_second <= 0:
            raise ValueError("writes_per_second must be positive")
        self.min_interval = 1.0 / writes_per_second
        self._clock = clock
        self._sleep = sleep
        self._semaphore = asyncio.Semaphore(1)
        self._last_write_at: Optional[float] = None

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        async with self._semaphore:
            if self._last_write_at is not None:
                wait = self.min_interval - (self._clock() - self._last_write_at)
                if wait > 0:
                    logger.debug(f"WriteThrottle: waiting {wait:.3f}s before next write")
                    await self._sleep(wait)
            try:
                yield
            finally:
                self._last_write_at = self._clock()
