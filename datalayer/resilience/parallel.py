"""Concurrent fan-out of independent fetches."""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Mapping

logger = logging.getLogger("resilience.parallel")


async def fetch_parallel(
    requests: Mapping[str, Callable[[], Awaitable[Any]]],
) -> Dict[str, Any]:
    """
    Run named fetches concurrently and map each name to its result.

    All or nothing: the first failure fails the whole call with that
    error. The other fetches are not cancelled.

    Args:
        requests: name -> zero-argument coroutine function

    Returns:
        name -> result, in the order of `requests`
    """
    names = list(requests.keys())
    try:
        results = await asyncio.gather(*(requests[name]() for name in names))
    except Exception as e:
        logger.error(f"Parallel fetch of {names} failed: {e!r}")
        raise
    return dict(zip(names, results))
