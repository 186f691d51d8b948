"""
Short-lived in-memory cache with a time-to-live per entry.

- process-local (no cross-worker coherence)
- string keys, prefix deletion for grouped invalidation
- soft size limit: expired entries are reclaimed when the store is full,
  fresh entries are never evicted
"""
import logging
import time
from typing import Any, Callable, Dict, Optional

from .core import CacheEntry, DEFAULT_TTL_SECONDS

logger = logging.getLogger("cache.ttl_store")

DEFAULT_MAX_SIZE = 100


class TTLStore:
    """
    Mapping from string key to value, each entry with its own TTL.

    Usage:
        store = TTLStore()
        store.set("user:42", profile, ttl_seconds=CacheTTL.STATIC)
        profile = store.get("user:42")   # None once expired
    """

    def __init__(
        self,
        max_size: int = DEFAULT_MAX_SIZE,
        default_ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_size < 1:
            raise ValueError(f"max_size must be >= 1, got {max_size}")
        if default_ttl_seconds < 0:
            raise ValueError(f"default_ttl_seconds must be >= 0, got {default_ttl_seconds}")
        self._entries: Dict[str, CacheEntry] = {}
        self.max_size = max_size
        self.default_ttl_seconds = default_ttl_seconds
        self._clock = clock

    def set(self, key: str, data: Any, ttl_seconds: Optional[float] = None) -> None:
        """Insert or replace an entry, stamped now."""
        if ttl_seconds is None:
            ttl_seconds = self.default_ttl_seconds
        elif ttl_seconds < 0:
            raise ValueError(f"ttl_seconds must be >= 0, got {ttl_seconds}")

        if len(self._entries) >= self.max_size:
            removed = self.cleanup()
            if removed:
                logger.debug(f"Reclaimed {removed} expired entries")

        self._entries[key] = CacheEntry(
            data=data,
            fetched_at=self._clock(),
            ttl_seconds=ttl_seconds,
        )

        if len(self._entries) > self.max_size:
            logger.warning(
                f"TTL store holds {len(self._entries)} fresh entries "
                f"(soft limit {self.max_size})"
            )

    def get(self, key: str) -> Optional[Any]:
        """Return the value if present and not expired, else None."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._entries[key]
            return None
        return entry.data

    def has(self, key: str) -> bool:
        """Same expiry rules as get(); expired entries are dropped."""
        entry = self._entries.get(key)
        if entry is None:
            return False
        if entry.is_expired(self._clock()):
            del self._entries[key]
            return False
        return True

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def delete_by_prefix(self, prefix: str) -> int:
        """Delete every key starting with prefix. Returns the count removed."""
        to_delete = [k for k in self._entries if k.startswith(prefix)]
        for key in to_delete:
            del self._entries[key]
        if to_delete:
            logger.debug(f"Deleted {len(to_delete)} entries with prefix '{prefix}'")
        return len(to_delete)

    def clear(self) -> None:
        self._entries.clear()

    def cleanup(self) -> int:
        """Remove expired entries. Returns the count removed."""
        now = self._clock()
        expired = [k for k, e in self._entries.items() if e.is_expired(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.has(key)

    def get_stats(self) -> Dict[str, Any]:
        """Size and keys, for debugging. No side effects."""
        return {
            "size": len(self._entries),
            "keys": list(self._entries.keys()),
            "max_size": self.max_size,
        }
