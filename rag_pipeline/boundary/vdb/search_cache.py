"""
Search result cache.

Bounded, TTL-expiring map from a search key to its response. Past
capacity the oldest entry is evicted. Shared across requests; all access
happens on the event loop thread so no locking is needed.

Dependencies: None
System role: Query result caching for the retrieval service
"""

import hashlib
import json
import logging
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)


def build_cache_key(
    query: str,
    user_id: str | None,
    filters: dict[str, Any] | None,
    limit: int,
    threshold: float,
    search_type: str,
) -> str:
    """Stable hash over everything that changes a search result."""
    raw = json.dumps(
        {
            "query": query.strip().lower(),
            "user_id": user_id,
            "filters": filters or {},
            "limit": limit,
            "threshold": round(threshold, 4),
            "search_type": search_type,
        },
        sort_keys=True,
        default=str,
    )
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class SearchCache:
    """OrderedDict-backed cache with capacity and TTL (max_size <= 0 disables storing)."""

    def __init__(
        self,
        max_size: int = 200,
        ttl_s: float = 900.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._max_size = max_size
        self._ttl_s = ttl_s
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, Any]] = OrderedDict()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None
        stored_at, value = entry
        if self._clock() - stored_at > self._ttl_s:
            del self._entries[key]
            self.misses += 1
            return None
        self.hits += 1
        return value

    def set(self, key: str, value: Any) -> None:
        if self._max_size <= 0:
            return
        if key in self._entries:
            del self._entries[key]
        elif len(self._entries) >= self._max_size:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"{__name__}:set - Evicted {evicted[:12]}")
        self._entries[key] = (self._clock(), value)

    def clear(self) -> None:
        self._entries.clear()

    def stats(self) -> dict[str, Any]:
        return {
            "size": len(self._entries),
            "max_size": self._max_size,
            "ttl_s": self._ttl_s,
            "hits": self.hits,
            "misses": self.misses,
        }
