"""
Namespaced TTL cache for rendered weather reports.
"""
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from .config import CACHE_TTL_SECONDS
from .metrics import cache_evictions, cache_lookups

CURRENT = "current"
FORECAST = "forecast"


@dataclass(frozen=True)
class CacheEntry:
    text: str
    timestamp: float


def current_cache_key(city: str) -> str:
    """Cache key for current conditions of a city."""
    return city.lower()


def forecast_cache_key(city: str, days: int) -> str:
    """Cache key for a forecast; each day count is a separate entry."""
    return f"{city.lower()}_{days}"


class WeatherCache:
    """
    Holds rendered report text per namespace for a fixed expiry window.

    Expired entries are never swept; they read as absent and are replaced
    by the next write to the same key. ``max_entries`` optionally bounds each
    namespace, evicting the oldest entry to make room for a new key.
    """

    NAMESPACES = (CURRENT, FORECAST)

    def __init__(
        self,
        ttl_seconds: float = CACHE_TTL_SECONDS,
        max_entries: Optional[int] = None,
        time_func: Callable[[], float] = time.monotonic,
    ):
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be at least 1")

        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._time_func = time_func
        self._namespaces: Dict[str, Dict[str, CacheEntry]] = {
            namespace: {} for namespace in self.NAMESPACES
        }

    def _entries(self, namespace: str) -> Dict[str, CacheEntry]:
        try:
            return self._namespaces[namespace]
        except KeyError:
            raise KeyError(f"Unknown cache namespace: {namespace}") from None

    def get(self, namespace: str, key: str) -> Optional[CacheEntry]:
        """Return the entry for key if it is still within the expiry window."""
        entry = self._entries(namespace).get(key)

        if entry is None:
            cache_lookups.labels(namespace=namespace, result="miss").inc()
            return None

        if self._time_func() - entry.timestamp < self.ttl_seconds:
            cache_lookups.labels(namespace=namespace, result="hit").inc()
            return entry

        cache_lookups.labels(namespace=namespace, result="expired").inc()
        return None

    def set(self, namespace: str, key: str, text: str) -> None:
        """Store text under key, replacing any previous entry."""
        entries = self._entries(namespace)

        if (
            self.max_entries is not None
            and key not in entries
            and len(entries) >= self.max_entries
        ):
            oldest = min(entries, key=lambda k: entries[k].timestamp)
            del entries[oldest]
            cache_evictions.labels(namespace=namespace).inc()

        entries[key] = CacheEntry(text=text, timestamp=self._time_func())

    def clear(self) -> None:
        """Clear all cached data."""
        for entries in self._namespaces.values():
            entries.clear()

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._namespaces.values())
