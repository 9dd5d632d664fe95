"""Async keyed query cache shared by the permission and entitlement lookups."""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Generic, Hashable, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class QueryCancelledError(Exception):
    """Raised to waiters whose in-flight query was cancelled or invalidated."""

    def __init__(self, key: Any):
        super().__init__(f"Query for {key!r} was cancelled")
        self.key = key


class KeyedQueryCache(Generic[K, V]):
    """
    Runs at most one fetch per key at a time and keeps each result for `ttl` seconds.

    Concurrent callers for the same key share the in-flight task. `invalidate`
    cancels the in-flight fetch and drops the cached value, so a fetch started
    before a write can never repopulate the cache after it.
    """

    def __init__(
        self,
        fetch: Callable[[K], Awaitable[V]],
        ttl: float = 60,
        timeout: Optional[float] = None,
        max_size: int = 500,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._fetch = fetch
        self._ttl = ttl
        self._timeout = timeout
        self._max_size = max_size
        self._clock = clock
        self._entries: Dict[K, Tuple[V, float]] = {}
        self._inflight: Dict[K, asyncio.Task] = {}

    def peek(self, key: K) -> Optional[V]:
        """Return the cached value if still fresh, without fetching"""
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expiry = entry
        if self._clock() >= expiry:
            del self._entries[key]
            return None
        return value

    async def get(self, key: K) -> V:
        cached = self.peek(key)
        if cached is not None:
            return cached
        task = self._inflight.get(key)
        if task is None or task.done():
            task = asyncio.ensure_future(self._run(key))
            self._inflight[key] = task
        try:
            # Shielded so one waiter timing out does not cancel the fetch for the others
            return await asyncio.wait_for(asyncio.shield(task), self._timeout)
        except asyncio.CancelledError:
            if task.cancelled():
                raise QueryCancelledError(key) from None
            raise

    async def _run(self, key: K) -> V:
        try:
            value = await self._fetch(key)
            if self._inflight.get(key) is asyncio.current_task():
                self._store(key, value)
            return value
        finally:
            if self._inflight.get(key) is asyncio.current_task():
                del self._inflight[key]

    def _store(self, key: K, value: V) -> None:
        if key not in self._entries and len(self._entries) >= self._max_size:
            self._evict_expired()
        if len(self._entries) < self._max_size or key in self._entries:
            self._entries[key] = (value, self._clock() + self._ttl)

    def _evict_expired(self) -> None:
        now = self._clock()
        for stale_key in [k for k, (_, expiry) in self._entries.items() if now >= expiry]:
            del self._entries[stale_key]

    def cancel(self, key: K) -> bool:
        """Cancel the in-flight fetch for key. Returns True if one was running."""
        task = self._inflight.pop(key, None)
        if task is None or task.done():
            return False
        task.cancel()
        logger.debug(f"Cancelled in-flight query for {key!r}")
        return True

    def invalidate(self, key: Optional[K] = None) -> None:
        """Drop one key (or everything when key is None) and cancel matching in-flight fetches"""
        if key is None:
            for inflight_key in list(self._inflight):
                self.cancel(inflight_key)
            self._entries.clear()
            return
        self.cancel(key)
        self._entries.pop(key, None)
