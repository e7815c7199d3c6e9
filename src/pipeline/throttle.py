"""
Stage Throttles

Bounded-concurrency limiters for the three pipeline stages. One set of
throttles is created per process and shared by every cycle, so the limits
apply to the whole run rather than to each cycle.
"""

import asyncio
import functools
import logging
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


class StageThrottle:
    """
    Admits at most `limit` concurrent invocations of a coroutine function.

    Callers beyond the limit suspend until a slot frees; other stages keep
    running in the meantime.
    """

    def __init__(self, name: str, limit: int):
        if limit < 1:
            raise ValueError(f"Throttle '{name}' limit must be >= 1, got {limit}")
        self.name = name
        self.limit = limit
        self.in_flight = 0
        self.peak = 0
        self._semaphore = asyncio.Semaphore(limit)

    async def run(self, fn: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        async with self._semaphore:
            self.in_flight += 1
            self.peak = max(self.peak, self.in_flight)
            try:
                return await fn(*args, **kwargs)
            finally:
                self.in_flight -= 1

    def wrap(self, fn: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        """Return a throttled version of `fn`."""
        @functools.wraps(fn)
        async def throttled(*args, **kwargs):
            return await self.run(fn, *args, **kwargs)
        return throttled

    def __repr__(self):
        return f"StageThrottle({self.name!r}, limit={self.limit}, in_flight={self.in_flight})"


class StageThrottles:
    """The fetch, extract and publish throttles of one run."""

    def __init__(self, fetch: StageThrottle, extract: StageThrottle, publish: StageThrottle):
        self.fetch = fetch
        self.extract = extract
        self.publish = publish

    @classmethod
    def create(cls, fetch_limit: int, extract_limit: int, publish_limit: int) -> "StageThrottles":
        throttles = cls(
            fetch=StageThrottle("fetch", fetch_limit),
            extract=StageThrottle("extract", extract_limit),
            publish=StageThrottle("publish", publish_limit),
        )
        logger.info(
            f"Throttles: fetch={fetch_limit}, extract={extract_limit}, publish={publish_limit}"
        )
        return throttles
