"""
Exchange-rate cache.

Keeps the last provider result together with the time it was fetched so
refreshes inside the freshness window (default: 1 hour) skip the network.
"""

import logging
import time
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Optional

from storefront.storage.kv_store import KVStore

logger = logging.getLogger(__name__)

CACHE_KEY = "exchangeRateCache"

DEFAULT_RATE_TTL = 60 * 60  # 1 hour


@dataclass
class CachedRate:
    """Cached rate entry. ``timestamp`` is epoch milliseconds."""

    rate: float
    timestamp: int

    def age_seconds(self, now: float) -> float:
        return now - self.timestamp / 1000

    def is_expired(self, ttl_seconds: int, now: float) -> bool:
        """Check if this cache entry is older than the freshness window."""
        return self.age_seconds(now) >= ttl_seconds

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CachedRate":
        return cls(rate=float(data["rate"]), timestamp=int(data["timestamp"]))


class RateCache:
    """
    Single-entry TTL cache for the USD rate, persisted in the key-value store.
    """

    def __init__(
        self,
        kv_store: KVStore,
        ttl_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the rate cache.

        Args:
            kv_store: Persistence substrate.
            ttl_seconds: Freshness window in seconds.
            clock: Returns the current epoch time in seconds.
        """
        self.kv_store = kv_store
        self.ttl_seconds = ttl_seconds or DEFAULT_RATE_TTL
        self.clock = clock
        self._hits = 0
        self._misses = 0

    def _read(self) -> Optional[CachedRate]:
        raw = self.kv_store.get_json(CACHE_KEY)
        if raw is None:
            return None
        try:
            cached = CachedRate.from_dict(raw)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring malformed rate cache entry: {e}")
            return None
        if cached.rate <= 0:
            return None
        return cached

    def get_fresh(self) -> Optional[CachedRate]:
        """
        Get the cached rate if it is still inside the freshness window.

        Returns:
            CachedRate if present and fresh, None otherwise.
        """
        cached = self._read()
        if cached is None or cached.is_expired(self.ttl_seconds, self.clock()):
            self._misses += 1
            return None
        self._hits += 1
        return cached

    def store(self, rate: float) -> CachedRate:
        """Cache a freshly fetched rate stamped with the current time."""
        entry = CachedRate(rate=float(rate), timestamp=int(self.clock() * 1000))
        self.kv_store.set_json(CACHE_KEY, entry.to_dict())
        return entry

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        cached = self._read()
        return {
            "cached_rate": cached.rate if cached else None,
            "age_seconds": round(cached.age_seconds(self.clock()), 1) if cached else None,
            "ttl_seconds": self.ttl_seconds,
            "hits": self._hits,
            "misses": self._misses,
        }
