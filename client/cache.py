"""
Short-lived query cache for API reads.

Entries are keyed by a query key such as ("books", filters) or ("book", 12).
Mutations invalidate every entry whose key starts with a given prefix.
"""

import time
from typing import Any, Callable, Dict, Hashable, Optional, Tuple

import structlog

logger = structlog.get_logger(__name__)

QueryKey = Tuple[Hashable, ...]


def make_key(name: str, *parts: Any) -> QueryKey:
    """
    Build a hashable query key.

    Dict parts (filters) become sorted tuples of their non-empty items so that
    equivalent filters share one entry.
    """
    key = [name]
    for part in parts:
        if isinstance(part, dict):
            key.append(tuple(sorted(
                (k, v) for k, v in part.items() if v is not None and v != ""
            )))
        else:
            key.append(part)
    return tuple(key)


class QueryCache:
    """TTL cache for query results."""

    def __init__(self, ttl_seconds: float = 30.0, clock: Optional[Callable[[], float]] = None):
        """
        Initialize the cache.

        Args:
            ttl_seconds: How long an entry stays fresh
            clock: Time source, defaults to time.monotonic
        """
        self.ttl_seconds = ttl_seconds
        self.clock = clock or time.monotonic
        self._entries: Dict[QueryKey, Tuple[float, Any]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: QueryKey) -> bool:
        return self._lookup(key) is not None

    def _lookup(self, key: QueryKey) -> Optional[Tuple[float, Any]]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, _ = entry
        if self.clock() - stored_at >= self.ttl_seconds:
            del self._entries[key]
            return None
        return entry

    def get(self, key: QueryKey, default: Any = None) -> Any:
        """Return a fresh cached value or the default."""
        entry = self._lookup(key)
        return entry[1] if entry else default

    def set(self, key: QueryKey, value: Any) -> None:
        self._entries[key] = (self.clock(), value)

    def get_or_fetch(self, key: QueryKey, fetch: Callable[[], Any]) -> Any:
        """
        Return the cached value for key, calling fetch on a miss.

        Args:
            key: Query key
            fetch: Zero-argument callable producing the value

        Returns:
            Cached or freshly fetched value
        """
        entry = self._lookup(key)
        if entry is not None:
            return entry[1]

        value = fetch()
        self.set(key, value)
        return value

    def invalidate(self, *prefix: Hashable) -> int:
        """
        Drop every entry whose key starts with prefix.

        Returns:
            Number of entries removed
        """
        stale = [key for key in self._entries if key[:len(prefix)] == prefix]
        for key in stale:
            del self._entries[key]
        if stale:
            logger.debug("Query cache invalidated", prefix=prefix, removed=len(stale))
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()
