"""
  In-process caches

  Named TTL caches (cachetools) created on first use:

    products     1000 entries, 2 h
    categories    100 entries, 24 h
    users         500 entries, 30 min
    anything else 1000 entries, 1 h

  Caches are per process; each API instance keeps its own copy.
"""
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Hashable, Optional

from cachetools import TTLCache

logger = logging.getLogger(__name__)

PRODUCTS = "products"
CATEGORIES = "categories"
USERS = "users"


@dataclass(frozen=True)
class CacheSpec:
    max_entries: int
    ttl_seconds: float


CACHE_SPECS = {
    PRODUCTS: CacheSpec(max_entries=1000, ttl_seconds=2 * 60 * 60),
    CATEGORIES: CacheSpec(max_entries=100, ttl_seconds=24 * 60 * 60),
    USERS: CacheSpec(max_entries=500, ttl_seconds=30 * 60),
}
DEFAULT_SPEC = CacheSpec(max_entries=1000, ttl_seconds=60 * 60)


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


class CacheManager:
    def __init__(self, timer: Callable[[], float] = time.monotonic):
        self._timer = timer
        self._caches: dict[str, TTLCache] = {}
        self._stats: dict[str, CacheStats] = {}

    def get(self, name: str) -> TTLCache:
        cache = self._caches.get(name)
        if cache is None:
            spec = CACHE_SPECS.get(name, DEFAULT_SPEC)
            cache = TTLCache(maxsize=spec.max_entries, ttl=spec.ttl_seconds, timer=self._timer)
            self._caches[name] = cache
            self._stats[name] = CacheStats()
        return cache

    async def get_or_load(self, name: str, key: Hashable, loader: Callable[[], Awaitable[Any]]) -> Any:
        """
        Return the cached value for `key`, loading and storing it on a miss.

        Exceptions from `loader` propagate and nothing is cached.
        """
        cache = self.get(name)
        stats = self._stats[name]
        try:
            value = cache[key]
        except KeyError:
            stats.misses += 1
        else:
            stats.hits += 1
            return value

        value = await loader()
        cache[key] = value
        return value

    def evict(self, name: str, key: Hashable) -> None:
        self.get(name).pop(key, None)

    def evict_matching(self, name: str, predicate: Callable[[Hashable], bool]) -> int:
        cache = self.get(name)
        keys = [key for key in list(cache.keys()) if predicate(key)]
        for key in keys:
            cache.pop(key, None)
        return len(keys)

    def clear(self, name: Optional[str] = None) -> None:
        """Clear one cache, or all of them when `name` is None."""
        names = [name] if name is not None else list(self._caches)
        for cache_name in names:
            self.get(cache_name).clear()
        logger.debug("Cache cleared: %s", ", ".join(names) or "-")

    def stats(self, name: str) -> CacheStats:
        self.get(name)
        return self._stats[name]
