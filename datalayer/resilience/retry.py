"""
Retry with exponential backoff for transient backend failures.

Only failures that look temporary are retried:
- connectivity errors (ConnectionError, TimeoutError)
- messages mentioning a failed fetch or exhausted client resources
- backend error codes known to be transient (PGRST301, PGRST302)

Everything else propagates on the first attempt.
"""
import asyncio
import logging
from dataclasses import dataclass, replace
from functools import wraps
from typing import Any, Awaitable, Callable, Generic, List, Mapping, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger("resilience.retry")

T = TypeVar("T")

TRANSIENT_ERROR_CODES = frozenset({"PGRST301", "PGRST302"})
TRANSIENT_MESSAGE_MARKERS = ("fetch", "INSUFFICIENT_RESOURCES")


@dataclass(frozen=True)
class RetryOptions:
    """Backoff schedule. Delays are in seconds."""
    max_retries: int = 3
    initial_delay: float = 0.1
    max_delay: float = 2.0
    backoff_multiplier: float = 2.0

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be >= 0")
        if self.backoff_multiplier < 1:
            raise ValueError(f"backoff_multiplier must be >= 1, got {self.backoff_multiplier}")

    def delay_for(self, retry_index: int) -> float:
        """Sleep before retry number retry_index (0-based)."""
        return min(self.initial_delay * self.backoff_multiplier ** retry_index, self.max_delay)

    def schedule(self) -> List[float]:
        """Every sleep a fully failing call goes through."""
        return [self.delay_for(i) for i in range(self.max_retries)]


DEFAULT_RETRY_OPTIONS = RetryOptions()


@dataclass
class QueryResult(Generic[T]):
    """A backend response that reports failure in a field instead of raising."""
    data: Optional[T] = None
    error: Any = None

    @property
    def ok(self) -> bool:
        return self.error is None


class TransientQueryError(Exception):
    """Carries a QueryResult whose error is transient through the retry loop."""

    def __init__(self, result: Any):
        self.result = result
        super().__init__(f"Transient query error: {_field(result, 'error')!r}")


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def is_transient_error(error: Any) -> bool:
    """
    Classify a failure as worth retrying.

    Accepts exceptions as well as error objects/mappings exposing
    `message` and `code`, as returned by query builders.
    """
    if error is None:
        return False
    if isinstance(error, TransientQueryError):
        return True
    if isinstance(error, (ConnectionError, TimeoutError, asyncio.TimeoutError)):
        return True

    message = _field(error, "message")
    if message is None and isinstance(error, BaseException):
        message = str(error)
    if message and any(marker in str(message) for marker in TRANSIENT_MESSAGE_MARKERS):
        return True

    return _field(error, "code") in TRANSIENT_ERROR_CODES


def _resolve_options(options: Optional[RetryOptions], overrides: dict) -> RetryOptions:
    options = options or DEFAULT_RETRY_OPTIONS
    return replace(options, **overrides) if overrides else options


def _log_retry(options: RetryOptions) -> Callable[[RetryCallState], None]:
    def before_sleep(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            f"Retry attempt {retry_state.attempt_number}/{options.max_retries} "
            f"after {delay:.2f}s: {error!r}"
        )
    return before_sleep


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    options: Optional[RetryOptions] = None,
    *,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    **overrides: Any,
) -> T:
    """
    Call fn, retrying transient failures with exponential backoff.

    Args:
        fn: Zero-argument coroutine function
        options: Backoff schedule (defaults: 3 retries, 0.1s doubling, 2s cap)
        sleep: Awaitable sleep, replaceable in tests
        **overrides: Individual RetryOptions fields

    Returns:
        fn's result

    Raises:
        Exception: fn's exception unchanged, immediately if not transient,
            otherwise the last one after max_retries retries
    """
    options = _resolve_options(options, overrides)
    retrying = AsyncRetrying(
        stop=stop_after_attempt(options.max_retries + 1),
        wait=wait_exponential(
            multiplier=options.initial_delay,
            exp_base=options.backoff_multiplier,
            max=options.max_delay,
        ),
        retry=retry_if_exception(is_transient_error),
        before_sleep=_log_retry(options),
        sleep=sleep,
        reraise=True,
    )
    return await retrying(fn)


async def query_with_retry(
    query_fn: Callable[[], Awaitable[Any]],
    options: Optional[RetryOptions] = None,
    *,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    **overrides: Any,
) -> Any:
    """
    Retry a backend query that returns a (data, error) pair.

    A transient `error` is retried like a raised exception. A permanent
    `error` (e.g. not found) is a valid answer: the pair comes back
    unchanged on the first attempt. When retries run out the last pair is
    returned with its error set; exceptions raised by query_fn itself
    follow retry_with_backoff.
    """
    async def attempt():
        result = await query_fn()
        if is_transient_error(_field(result, "error")):
            raise TransientQueryError(result)
        return result

    try:
        return await retry_with_backoff(attempt, options, sleep=sleep, **overrides)
    except TransientQueryError as exhausted:
        logger.warning(f"Query still failing after retries: {exhausted}")
        return exhausted.result


def with_backoff(options: Optional[RetryOptions] = None, **overrides: Any):
    """Decorator form of retry_with_backoff for async functions."""
    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            return await retry_with_backoff(lambda: func(*args, **kwargs), options, **overrides)
        return wrapper
    return decorator
