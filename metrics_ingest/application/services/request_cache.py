"""TTL request cache with single-flight coalescing."""

import asyncio
import time
from dataclasses import dataclass
from functools import partial
from typing import Any, Awaitable, Callable

import structlog

from metrics_ingest.infrastructure.observability.metrics import cache_lookups

logger = structlog.get_logger()

Producer = Callable[[], Awaitable[Any]]


@dataclass(frozen=True)
class CacheEntry:
    """Cached value and the monotonic time it was stored."""

    key: str
    value: Any
    cached_at: float


class RequestCache:
    """Process-local read cache that runs one producer per key at a time.

    One instance belongs to one session or tenant context. Call ``clear()``
    on logout or tenant switch so values never leak across tenants. Only
    read paths go through it; sync writes never do.
    """

    def __init__(
        self,
        name: str = "default",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize empty cache."""
        self.name = name
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._in_flight: dict[str, asyncio.Future] = {}

    async def get_or_compute(self, key: str, ttl: float, producer: Producer) -> Any:
        """Return the cached value for key, computing it at most once concurrently.

        Args:
            key: Cache key.
            ttl: Maximum age in seconds of a cached value that may be returned.
            producer: Zero-argument coroutine function computing the value.

        Returns:
            The cached or freshly computed value. A producer failure is
            raised to every caller that joined the same computation and is
            never cached.
        """
        in_flight = self._in_flight.get(key)
        if in_flight is not None:
            cache_lookups.labels(cache=self.name, outcome="coalesced").inc()
            return await asyncio.shield(in_flight)

        entry = self._entries.get(key)
        if entry is not None:
            if self._clock() - entry.cached_at < ttl:
                cache_lookups.labels(cache=self.name, outcome="hit").inc()
                return entry.value
            del self._entries[key]

        cache_lookups.labels(cache=self.name, outcome="miss").inc()
        task = asyncio.ensure_future(producer())
        # Registered before the first await so concurrent callers join it
        self._in_flight[key] = task
        task.add_done_callback(partial(self._settle, key))
        return await asyncio.shield(task)

    def _settle(self, key: str, task: asyncio.Future) -> None:
        """Deregister a finished computation and cache its result on success."""
        if self._in_flight.get(key) is not task:
            # Invalidated while in flight; the result must not repopulate the cache
            if not task.cancelled():
                task.exception()
            return

        del self._in_flight[key]

        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning("request_cache_producer_failed", cache=self.name, key=key, error=str(error))
            return

        self._entries[key] = CacheEntry(key=key, value=task.result(), cached_at=self._clock())

    def invalidate(self, key: str) -> None:
        """Drop the entry and any in-flight marker for key."""
        self._entries.pop(key, None)
        self._in_flight.pop(key, None)

    def clear(self) -> None:
        """Drop everything (logout, tenant switch)."""
        self._entries.clear()
        self._in_flight.clear()
        logger.debug("request_cache_cleared", cache=self.name)

    def __len__(self) -> int:
        return len(self._entries)
