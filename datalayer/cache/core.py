"""
Core cache data structures.
"""
from dataclasses import dataclass
from typing import Any, Optional, Union
from enum import Enum


class CacheStrategy(Enum):
    """Consistency strategies for keyed response caching."""
    CACHE_FIRST = "cache-first"                       # fresh entry wins, no network
    NETWORK_FIRST = "network-first"                   # network wins, entry is fallback
    STALE_WHILE_REVALIDATE = "stale-while-revalidate" # serve entry, refresh in background

    @classmethod
    def parse(cls, value: Union["CacheStrategy", str]) -> "CacheStrategy":
        """Accept either a member or its string value."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(s.value for s in cls)
            raise ValueError(f"Unknown cache strategy {value!r} (expected one of: {allowed})")


class CacheSource(Enum):
    """Freshness of a cache hit."""
    FRESH = "fresh"   # Within TTL
    STALE = "stale"   # Past TTL, served while revalidating


DEFAULT_TTL_SECONDS = 300.0  # 5 minutes
DEFAULT_STRATEGY = CacheStrategy.STALE_WHILE_REVALIDATE


@dataclass
class CacheEntry:
    """
    A cached value with the monotonic time it was stored.

    The entry keeps its own ttl for stores that fix it at write time;
    the request cache passes the caller's ttl per lookup instead.
    """
    data: Any
    fetched_at: float
    ttl_seconds: Optional[float] = None

    def age(self, now: float) -> float:
        """Seconds since data was stored."""
        return now - self.fetched_at

    def is_fresh(self, now: float, ttl_seconds: Optional[float] = None) -> bool:
        """Fresh while age < ttl."""
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        return self.age(now) < ttl

    def is_expired(self, now: float) -> bool:
        """Expired once age > own ttl; used by the TTL store for eviction."""
        return self.age(now) > self.ttl_seconds


@dataclass
class CacheConfig:
    """
    Per-call configuration for RequestCache.get().
    """
    ttl_seconds: float = DEFAULT_TTL_SECONDS
    strategy: CacheStrategy = DEFAULT_STRATEGY

    def __post_init__(self):
        self.strategy = CacheStrategy.parse(self.strategy)
        if self.ttl_seconds < 0:
            raise ValueError(f"ttl_seconds must be >= 0, got {self.ttl_seconds}")

    def with_overrides(
        self,
        ttl: Optional[float] = None,
        strategy: Optional[Union[CacheStrategy, str]] = None,
    ) -> "CacheConfig":
        """Return a copy with any non-None override applied."""
        return CacheConfig(
            ttl_seconds=self.ttl_seconds if ttl is None else ttl,
            strategy=self.strategy if strategy is None else strategy,
        )
