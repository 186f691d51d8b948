"""
Failure recovery helpers: retry with backoff and concurrent fan-out.
"""
from .retry import (
    DEFAULT_RETRY_OPTIONS,
    TRANSIENT_ERROR_CODES,
    QueryResult,
    RetryOptions,
    TransientQueryError,
    is_transient_error,
    query_with_retry,
    retry_with_backoff,
    with_backoff,
)
from .parallel import fetch_parallel

__all__ = [
    "DEFAULT_RETRY_OPTIONS",
    "TRANSIENT_ERROR_CODES",
    "QueryResult",
    "RetryOptions",
    "TransientQueryError",
    "is_transient_error",
    "query_with_retry",
    "retry_with_backoff",
    "with_backoff",
    "fetch_parallel",
]
