"""
Bounded LRU cache with per-entry expiry for derived business metrics.

One instance lives on the application (``app.state.metrics_cache``) and is
handed to services through a FastAPI dependency.
"""

import logging
import threading
import time
from collections import OrderedDict
from typing import Any, Callable, Dict, Iterable, Optional, Set, Tuple

logger = logging.getLogger(__name__)

KEY_SEPARATOR = ":"


def make_key(namespace: str, *parts: Any) -> str:
    """Build a composite key such as ``business-metrics:42``."""
    return KEY_SEPARATOR.join([namespace, *(str(part) for part in parts)])


def _key_prefixes(key: str) -> Iterable[str]:
    # "a:b:c" is registered under "a" and "a:b"
    parts = key.split(KEY_SEPARATOR)
    for i in range(1, len(parts)):
        yield KEY_SEPARATOR.join(parts[:i])


class MetricsCache:
    """LRU + TTL cache; prefix invalidation walks an explicit prefix index."""

    def __init__(self, default_ttl: int = 300, max_size: int = 1000, clock: Callable[[], float] = time.monotonic):
        self.default_ttl = default_ttl
        self.max_size = max_size
        self._clock = clock

        self._cache: "OrderedDict[str, Tuple[Any, float]]" = OrderedDict()  # key -> (value, expiry)
        self._prefix_index: Dict[str, Set[str]] = {}
        self._lock = threading.RLock()

        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                self._misses += 1
                return None

            value, expiry_time = entry
            if self._clock() > expiry_time:
                self._remove(key)
                self._misses += 1
                return None

            self._cache.move_to_end(key)
            self._hits += 1
            return value

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        with self._lock:
            expiry_time = self._clock() + (ttl if ttl is not None else self.default_ttl)

            if key in self._cache:
                del self._cache[key]
            self._cache[key] = (value, expiry_time)

            for prefix in _key_prefixes(key):
                self._prefix_index.setdefault(prefix, set()).add(key)

            while len(self._cache) > self.max_size:
                self._evict_lru()

    def invalidate(self, key: str) -> bool:
        with self._lock:
            if key in self._cache:
                self._remove(key)
                return True
            return False

    def invalidate_prefix(self, prefix: str) -> int:
        """Drop every key registered under ``prefix`` (or equal to it)."""
        with self._lock:
            keys = set(self._prefix_index.get(prefix, ()))
            if prefix in self._cache:
                keys.add(prefix)

            for key in keys:
                self._remove(key)

            if keys:
                logger.debug(f"Invalidated {len(keys)} cache entries under '{prefix}'")
            return len(keys)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
            self._prefix_index.clear()

    def get_stats(self) -> Dict[str, Any]:
        total_requests = self._hits + self._misses
        hit_rate = (self._hits / total_requests * 100) if total_requests > 0 else 0

        return {
            "size": len(self._cache),
            "max_size": self.max_size,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": f"{hit_rate:.2f}%",
            "evictions": self._evictions,
        }

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def _evict_lru(self) -> None:
        if self._cache:
            key = next(iter(self._cache))
            self._remove(key)
            self._evictions += 1

    def _remove(self, key: str) -> None:
        self._cache.pop(key, None)
        for prefix in _key_prefixes(key):
            keys = self._prefix_index.get(prefix)
            if keys is None:
                continue
            keys.discard(key)
            if not keys:
                del self._prefix_index[prefix]
