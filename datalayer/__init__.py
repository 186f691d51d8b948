"""
Client-side data-access resiliency layer: response caching, TTL store,
retry with backoff and parallel fetching.
"""
from datalayer.cache import (
    CacheConfig,
    CacheKeys,
    CacheStrategy,
    CacheTTL,
    DataCategory,
    RequestCache,
    TTLStore,
    get_ttl_for_category,
)
from datalayer.resilience import (
    QueryResult,
    RetryOptions,
    fetch_parallel,
    is_transient_error,
    query_with_retry,
    retry_with_backoff,
    with_backoff,
)

__all__ = [
    "CacheConfig",
    "CacheKeys",
    "CacheStrategy",
    "CacheTTL",
    "DataCategory",
    "RequestCache",
    "TTLStore",
    "get_ttl_for_category",
    "QueryResult",
    "RetryOptions",
    "fetch_parallel",
    "is_transient_error",
    "query_with_retry",
    "retry_with_backoff",
    "with_backoff",
]
