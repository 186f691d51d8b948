"""
Keyed response cache with pluggable consistency strategies,
request coalescing and stale-while-revalidate.
"""
import asyncio
import functools
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Set, TypeVar, Union

from .core import CacheConfig, CacheEntry, CacheSource, CacheStrategy
from .coalescer import RequestCoalescer
from ..resilience.retry import RetryOptions, retry_with_backoff

logger = logging.getLogger("cache.manager")

T = TypeVar("T")


class RequestCache:
    """
    Response cache layered over arbitrary async fetch functions with:
    - Per-call strategy (cache-first, network-first, stale-while-revalidate)
    - Request coalescing: one in-flight fetch per key, shared by all callers
    - Background revalidation as tracked tasks whose failures are logged
    - Hit/miss statistics

    Instances are owned by the application and passed to consumers.
    """

    def __init__(
        self,
        default_config: Optional[CacheConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        retry_options: Optional[RetryOptions] = None,
    ):
        """
        Initialize the request cache.

        Args:
            default_config: ttl and strategy used when a call gives none
            clock: Monotonic time source in seconds
            retry_options: When set, every fetch runs through retry_with_backoff
        """
        self._cache: Dict[str, CacheEntry] = {}
        self._coalescer = RequestCoalescer()
        self._default_config = default_config or CacheConfig()
        self._clock = clock
        self._retry_options = retry_options

        # Detached revalidation tasks, kept referenced until done
        self._background: Set[asyncio.Task] = set()

        # Stats tracking
        self._stats = {
            "hits_fresh": 0,
            "hits_stale": 0,
            "misses": 0,
            "coalesced": 0,
            "fallbacks": 0,
            "revalidations": 0,
            "revalidation_failures": 0,
        }

    @property
    def default_config(self) -> CacheConfig:
        return self._default_config

    @property
    def retry_options(self) -> Optional[RetryOptions]:
        return self._retry_options

    async def get(
        self,
        cache_key: str,
        fetch_fn: Callable[[], Awaitable[T]],
        config: Optional[CacheConfig] = None,
        *,
        ttl: Optional[float] = None,
        strategy: Optional[Union[CacheStrategy, str]] = None,
    ) -> T:
        """
        Get data from cache or fetch it.

        Args:
            cache_key: Unique cache key
            fetch_fn: Zero-argument coroutine function producing the data
            config: Per-call CacheConfig (defaults to the cache's own)
            ttl: Override of config.ttl_seconds
            strategy: Override of config.strategy

        Returns:
            The cached or fetched data

        Raises:
            Exception: Whatever fetch_fn raised, when no fallback applies
        """
        # An in-flight fetch wins over any strategy or cache state
        pending = self._coalescer.pending(cache_key)
        if pending is not None:
            logger.debug(f"Coalescing request for {cache_key}")
            self._stats["coalesced"] += 1
            return await self._coalescer.wait(pending)

        cfg = (config or self._default_config).with_overrides(ttl, strategy)
        entry = self._cache.get(cache_key)
        now = self._clock()

        if cfg.strategy is CacheStrategy.CACHE_FIRST:
            if entry is not None and entry.is_fresh(now, cfg.ttl_seconds):
                return self._hit(cache_key, entry, CacheSource.FRESH, now)
            return await self._fetch_and_cache(cache_key, fetch_fn)

        if cfg.strategy is CacheStrategy.NETWORK_FIRST:
            try:
                return await self._fetch_and_cache(cache_key, fetch_fn)
            except Exception as e:
                if entry is None:
                    raise
                logger.warning(f"Network failed, using cached data for {cache_key}: {e!r}")
                self._stats["fallbacks"] += 1
                return entry.data

        # stale-while-revalidate
        if entry is None:
            return await self._fetch_and_cache(cache_key, fetch_fn)

        if entry.is_fresh(now, cfg.ttl_seconds):
            return self._hit(cache_key, entry, CacheSource.FRESH, now)

        self._trigger_background_revalidate(cache_key, fetch_fn)
        return self._hit(cache_key, entry, CacheSource.STALE, now)

    def _hit(self, cache_key: str, entry: CacheEntry, source: CacheSource, now: float) -> Any:
        if source is CacheSource.FRESH:
            logger.debug(f"CACHE HIT (fresh): {cache_key} [age={entry.age(now):.1f}s]")
            self._stats["hits_fresh"] += 1
        else:
            logger.info(
                f"CACHE HIT (stale, revalidating): {cache_key} "
                f"[age={entry.age(now):.1f}s]"
            )
            self._stats["hits_stale"] += 1
        return entry.data

    async def _fetch_and_cache(
        self,
        cache_key: str,
        fetch_fn: Callable[[], Awaitable[T]],
    ) -> T:
        """Fetch through the coalescer and store the result on success."""
        logger.info(f"CACHE MISS: {cache_key}")
        self._stats["misses"] += 1
        task = self._start_fetch(cache_key, fetch_fn)
        return await self._coalescer.wait(task)

    def _start_fetch(self, cache_key: str, fetch_fn: Callable[[], Awaitable[Any]]) -> asyncio.Task:
        if self._retry_options is not None:
            fetch_fn = functools.partial(retry_with_backoff, fetch_fn, self._retry_options)

        # Registration is synchronous: no other caller can slip in before it
        return self._coalescer.start(
            cache_key,
            fetch_fn,
            on_success=lambda data: self._store(cache_key, data),
        )

    def _store(self, cache_key: str, data: Any) -> None:
        """Store data in cache."""
        self._cache[cache_key] = CacheEntry(data=data, fetched_at=self._clock())

    def _trigger_background_revalidate(
        self,
        cache_key: str,
        fetch_fn: Callable[[], Awaitable[Any]],
    ) -> None:
        """Refresh a stale entry without blocking the caller."""
        logger.debug(f"Background revalidation started: {cache_key}")
        task = self._start_fetch(cache_key, fetch_fn)
        self._background.add(task)

        def on_done(t: asyncio.Task) -> None:
            self._background.discard(t)
            if t.cancelled():
                return
            error = t.exception()
            if error is not None:
                self._stats["revalidation_failures"] += 1
                logger.warning(f"Background revalidation failed: {cache_key} - {error!r}")
            else:
                self._stats["revalidations"] += 1
                logger.debug(f"Background revalidation complete: {cache_key}")

        task.add_done_callback(on_done)

    async def wait_for_background(self) -> None:
        """Wait until every running background revalidation has finished."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def prefetch(
        self,
        cache_key: str,
        fetch_fn: Callable[[], Awaitable[Any]],
    ) -> None:
        """
        Warm the cache for a key.

        No-op when the key already has an entry or an in-flight fetch.
        """
        if cache_key in self._cache or cache_key in self._coalescer:
            logger.debug(f"Prefetch skipped: {cache_key}")
            return
        await self._fetch_and_cache(cache_key, fetch_fn)

    def invalidate(self, cache_key: str) -> bool:
        """
        Invalidate a specific cache entry.

        A fetch already in flight for the key still answers its waiters
        but no longer writes its result back.

        Returns:
            True if entry was found and removed
        """
        if self._coalescer.forget(cache_key):
            logger.debug(f"Detached in-flight fetch: {cache_key}")
        if cache_key in self._cache:
            del self._cache[cache_key]
            logger.info(f"Invalidated cache: {cache_key}")
            return True
        return False

    def invalidate_by_prefix(self, prefix: str) -> int:
        """
        Invalidate all cache entries whose key starts with prefix.

        In-flight fetches for matching keys are detached as in invalidate().

        Returns:
            Number of entries invalidated
        """
        self._coalescer.forget_prefix(prefix)
        to_delete = [k for k in self._cache if k.startswith(prefix)]
        for key in to_delete:
            del self._cache[key]
        if to_delete:
            logger.info(f"Invalidated {len(to_delete)} entries with prefix '{prefix}'")
        return len(to_delete)

    def clear(self) -> int:
        """
        Clear all cache entries and forget pending fetches.

        Returns:
            Number of entries cleared
        """
        count = len(self._cache)
        self._cache.clear()
        self._coalescer.forget_all()
        logger.info(f"Cleared {count} cache entries")
        return count

    def __contains__(self, cache_key: str) -> bool:
        return cache_key in self._cache

    def __len__(self) -> int:
        return len(self._cache)

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        total_hits = self._stats["hits_fresh"] + self._stats["hits_stale"]
        total_requests = total_hits + self._stats["misses"]
        hit_rate = (total_hits / total_requests * 100) if total_requests > 0 else 0

        return {
            "size": len(self._cache),
            "pending_requests": self._coalescer.active_requests,
            "keys": list(self._cache.keys()),
            **self._stats,
            "hit_rate_percent": round(hit_rate, 1),
            "revalidating_count": len(self._background),
        }
