"""
Response caching with per-call strategies, request coalescing and a TTL store.
"""
from .core import CacheConfig, CacheEntry, CacheSource, CacheStrategy
from .ttl_policies import (
    TTL_CONFIG,
    CacheKeys,
    CacheTTL,
    DataCategory,
    get_ttl_for_category,
)
from .coalescer import RequestCoalescer
from .manager import RequestCache
from .ttl_store import TTLStore

__all__ = [
    # Core types
    "CacheConfig",
    "CacheEntry",
    "CacheSource",
    "CacheStrategy",
    # TTL policies
    "TTL_CONFIG",
    "CacheKeys",
    "CacheTTL",
    "DataCategory",
    "get_ttl_for_category",
    # Coalescing
    "RequestCoalescer",
    # Caches
    "RequestCache",
    "TTLStore",
]
