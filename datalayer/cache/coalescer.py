"""
Request coalescing to prevent duplicate upstream fetches.

When multiple concurrent callers ask for the same key, only one
fetch runs and all callers share its result (or its exception).
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

logger = logging.getLogger("cache.coalescer")

FetchFn = Callable[[], Awaitable[Any]]


class RequestCoalescer:
    """
    Pending table: at most one in-flight fetch per key.

    Pattern:
    - start() registers the fetch task under its key synchronously,
      before the event loop can switch to another caller
    - Other callers find it with pending() and await it through wait()
    - When the fetch completes its slot is removed, success or failure
    - No locks: the check and the registration are never separated by an await

    Usage:
        coalescer = RequestCoalescer()
        task = coalescer.pending(key) or coalescer.start(key, fetch_fn)
        result = await coalescer.wait(task)
    """

    def __init__(self):
        self._in_flight: Dict[str, asyncio.Task] = {}

    def pending(self, cache_key: str) -> Optional[asyncio.Task]:
        """Return the in-flight fetch for a key, if any."""
        return self._in_flight.get(cache_key)

    def start(
        self,
        cache_key: str,
        fetch_fn: FetchFn,
        on_success: Optional[Callable[[Any], None]] = None,
    ) -> asyncio.Task:
        """
        Register and start a fetch for a key.

        Args:
            cache_key: Unique key for this request
            fetch_fn: Zero-argument coroutine function to call
            on_success: Called with the result before the slot is released

        Returns:
            The task resolving the key (shared among all concurrent callers)

        Raises:
            RuntimeError: If a fetch is already registered for the key
        """
        if cache_key in self._in_flight:
            raise RuntimeError(f"Fetch already in flight for {cache_key}")

        task = asyncio.ensure_future(self._run(cache_key, fetch_fn, on_success))
        self._in_flight[cache_key] = task
        task.add_done_callback(_retrieve_exception)
        logger.debug(f"Initiating fetch for {cache_key}")
        return task

    async def wait(self, task: asyncio.Task) -> Any:
        """
        Await a shared fetch.

        Cancelling one waiter never cancels the fetch the others share.
        """
        return await asyncio.shield(task)

    async def _run(
        self,
        cache_key: str,
        fetch_fn: FetchFn,
        on_success: Optional[Callable[[Any], None]],
    ) -> Any:
        me = asyncio.current_task()
        try:
            result = await fetch_fn()
            # A forgotten slot must not repopulate the cache
            if on_success is not None and self._in_flight.get(cache_key) is me:
                on_success(result)
            return result
        except Exception as e:
            logger.debug(f"Fetch failed for {cache_key}: {e!r}")
            raise
        finally:
            if self._in_flight.get(cache_key) is me:
                del self._in_flight[cache_key]

    def forget(self, cache_key: str) -> bool:
        """
        Drop the pending slot for a key.

        The running fetch still completes and its waiters still get the
        result, but it no longer writes back; new callers start a fresh fetch.
        """
        return self._in_flight.pop(cache_key, None) is not None

    def forget_prefix(self, prefix: str) -> int:
        """Drop every pending slot whose key starts with prefix."""
        keys = [k for k in self._in_flight if k.startswith(prefix)]
        for key in keys:
            del self._in_flight[key]
        return len(keys)

    def forget_all(self) -> int:
        """Drop every pending slot."""
        count = len(self._in_flight)
        self._in_flight.clear()
        return count

    @property
    def active_requests(self) -> int:
        """Number of currently in-flight requests."""
        return len(self._in_flight)

    def __contains__(self, cache_key: str) -> bool:
        return cache_key in self._in_flight

    def get_stats(self) -> Dict[str, Any]:
        """Get coalescer statistics."""
        return {
            "active_requests": len(self._in_flight),
            "active_keys": list(self._in_flight.keys()),
        }


def _retrieve_exception(task: asyncio.Task) -> None:
    # Marks the exception as retrieved when every waiter has gone away
    if not task.cancelled():
        task.exception()
