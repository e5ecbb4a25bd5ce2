"""
Read-through cache for availability query results.

Entries expire after a TTL and are never invalidated by bookings, so callers
may observe results up to ``cache_ttl_minutes`` old.
"""

import hashlib
from datetime import datetime, timedelta
from threading import Lock
from typing import Any, Callable, Dict, List, Optional, Tuple

from services.availability.models.query import AvailabilityQuery, AvailabilityResult
from services.common.logging_config import get_logger

logger = get_logger(__name__)


class QueryCache:
    """In-memory TTL cache keyed by the query's filtering parameters."""

    def __init__(
        self,
        ttl_minutes: int,
        clock: Callable[[], datetime],
        enabled: bool = True,
    ):
        """Initialize the query cache.

        Args:
            ttl_minutes: Lifetime of each entry
            clock: Returns the current aware datetime
            enabled: When False, every lookup misses and nothing is stored
        """
        self.ttl = timedelta(minutes=ttl_minutes)
        self.enabled = enabled
        self._clock = clock
        self._lock = Lock()
        self._entries: Dict[str, Tuple[datetime, List[AvailabilityResult]]] = {}
        self.hits = 0
        self.misses = 0

    @staticmethod
    def _generate_cache_key(query: AvailabilityQuery) -> str:
        return hashlib.sha256(query.cache_key().encode("utf-8")).hexdigest()

    def get(self, query: AvailabilityQuery) -> Optional[List[AvailabilityResult]]:
        """Get cached results for the query.

        Returns:
            Deep copies of the cached results, or None on a miss or expiry
        """
        if not self.enabled:
            return None

        key = self._generate_cache_key(query)
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry[0] <= now:
                if entry is not None:
                    del self._entries[key]
                self.misses += 1
                return None
            self.hits += 1
            results = entry[1]

        logger.debug("Query cache hit", cache_key=key)
        return [r.model_copy(deep=True) for r in results]

    def set(self, query: AvailabilityQuery, results: List[AvailabilityResult]) -> None:
        if not self.enabled:
            return

        key = self._generate_cache_key(query)
        expiry = self._clock() + self.ttl
        with self._lock:
            self._entries[key] = (expiry, [r.model_copy(deep=True) for r in results])

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [key for key, (expiry, _) in self._entries.items() if expiry <= now]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "entries": len(self),
            "hits": self.hits,
            "misses": self.misses,
            "ttl_minutes": int(self.ttl.total_seconds() // 60),
        }
