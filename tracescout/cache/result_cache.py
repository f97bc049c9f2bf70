"""
TTL result cache with in-flight request coalescing.

Wraps idempotent async operations (feed fetches, evaluator calls) so that
repeated pipeline runs within the TTL reuse earlier results, and so that
concurrent runs asking for the same key share one upstream call. Sharing is
a correctness property here: the feeds behind the cache are rate-limited
and a duplicate burst can get a run throttled.

Usage:
    cache = ResultCache(ttl_seconds=300)
    items = await cache.get_or_compute(cache_key("github", 60), lambda: fetcher.fetch(60))
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sized
from dataclasses import dataclass
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def cache_key(source_name: str, ceiling: int) -> str:
    """Cache key for one source at one item-count ceiling."""
    return f"{source_name}-{ceiling}"


@dataclass
class _CacheEntry:
    payload: Any
    expires_at: float


@dataclass
class _InFlight:
    task: asyncio.Task
    waiters: int = 0


class ResultCache:
    """
    Process-local async cache keyed by caller-supplied strings.

    Guarantees:
    - A live entry short-circuits the wrapped operation entirely.
    - Concurrent misses on one key await a single shared task.
    - Empty sized payloads (``len(payload) == 0``) and failures are not
      stored, so a transient empty or failed upstream response is retried
      on the next call instead of being frozen for the TTL.
    - If every caller waiting on a shared task is cancelled, the task
      itself is cancelled rather than left running.

    Args:
        ttl_seconds: Lifetime of a stored entry.
        clock: Monotonic clock; injectable for tests.
    """

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, _CacheEntry] = {}
        self._in_flight: dict[str, _InFlight] = {}
        self._stats = {
            "hits": 0,
            "misses": 0,
            "coalesced": 0,
            "stores": 0,
            "skipped_empty": 0,
        }

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def _live_entry(self, key: str) -> _CacheEntry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            del self._entries[key]
            return None
        return entry

    def is_cached(self, key: str) -> bool:
        """Check whether ``key`` currently holds a live entry."""
        return self._live_entry(key) is not None

    async def get_or_compute(
        self,
        key: str,
        fn: Callable[[], Awaitable[T]],
        ttl_seconds: float | None = None,
    ) -> T:
        """
        Return the cached payload for ``key`` or compute it with ``fn``.

        Args:
            key: Cache key (see ``cache_key``).
            fn: Zero-argument coroutine factory for the wrapped operation.
            ttl_seconds: Per-call TTL override.

        Returns:
            The cached or freshly computed payload.

        Raises:
            Whatever ``fn`` raises; every coalesced waiter sees the same error.
        """
        entry = self._live_entry(key)
        if entry is not None:
            self._stats["hits"] += 1
            logger.debug("Cache hit for %s", key)
            return entry.payload

        flight = self._in_flight.get(key)
        if flight is None:
            self._stats["misses"] += 1
            task = asyncio.ensure_future(self._run(key, fn, ttl_seconds))
            flight = _InFlight(task=task)
            self._in_flight[key] = flight
            task.add_done_callback(lambda t, k=key: self._forget(k, t))
        else:
            self._stats["coalesced"] += 1
            logger.debug("Joining in-flight computation for %s", key)

        flight.waiters += 1
        try:
            return await asyncio.shield(flight.task)
        except asyncio.CancelledError:
            # This caller still counts as a waiter until the finally block
            if flight.waiters == 1 and not flight.task.done():
                logger.debug("Last waiter for %s cancelled; cancelling computation", key)
                flight.task.cancel()
                # A caller arriving before the task unwinds must start afresh
                if self._in_flight.get(key) is flight:
                    del self._in_flight[key]
            raise
        finally:
            flight.waiters -= 1

    async def _run(
        self,
        key: str,
        fn: Callable[[], Awaitable[T]],
        ttl_seconds: float | None,
    ) -> T:
        payload = await fn()
        if isinstance(payload, Sized) and not isinstance(payload, (str, bytes)) and len(payload) == 0:
            self._stats["skipped_empty"] += 1
            logger.debug("Not caching empty payload for %s", key)
            return payload

        ttl = self._ttl if ttl_seconds is None else ttl_seconds
        self._entries[key] = _CacheEntry(payload=payload, expires_at=self._clock() + ttl)
        self._stats["stores"] += 1
        return payload

    def _forget(self, key: str, task: asyncio.Task) -> None:
        flight = self._in_flight.get(key)
        if flight is not None and flight.task is task:
            del self._in_flight[key]
        # Retrieve the exception so an unawaited failure is not reported as
        # "never retrieved" when every waiter was cancelled first.
        if not task.cancelled():
            task.exception()

    def invalidate(self, key: str) -> None:
        """Drop the entry for ``key`` (in-flight work is left alone)."""
        self._entries.pop(key, None)

    def clear(self) -> None:
        """Drop every stored entry."""
        self._entries.clear()

    def get_stats(self) -> dict[str, int]:
        """Return hit/miss counters and current sizes."""
        return {
            **self._stats,
            "entries": len(self._entries),
            "in_flight": len(self._in_flight),
        }
