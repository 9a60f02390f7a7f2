"""
Main cache orchestration: memory layer over a backing store, with coalesced wrap().
"""
import logging
from typing import Dict, Optional, Callable, Any, List

from .core import resolve
from .coalescer import RequestCoalescer
from .memory import MemoryLayer
from .stores import BackingStore, create_store
from .ttl_policies import TTL, resolve_ttl

logger = logging.getLogger("cache.manager")


class CacheManager:
    """
    Two-tier cache used by every destination adapter.

    - Optional in-process memory layer in front of a pluggable backing store
    - Per-key TTL, either literal milliseconds or a deferred computation
    - wrap() coalesces concurrent misses so fetch functions run once per key

    The memory layer and in-flight registry belong to this instance only; they
    are not shared between processes.
    """

    def __init__(
        self,
        store: BackingStore,
        use_memory_cache: bool = True,
        memory_cache_timeout: Optional[float] = None,
        memory_cache_max_entries: Optional[int] = None,
        memory_layer: Optional[MemoryLayer] = None,
    ):
        """
        Initialize the cache manager.

        Args:
            store: Backing store, owned by the caller
            use_memory_cache: Keep an in-memory layer on top of the store
            memory_cache_timeout: Ceiling (ms) on how long values live in memory,
                None to use each key's own TTL
            memory_cache_max_entries: Optional size bound for the memory layer
            memory_layer: Pre-built memory layer, overrides the three options above
        """
        self.store = store
        # An empty MemoryLayer is falsy (it has __len__), so test against None
        if memory_layer is None:
            memory_layer = MemoryLayer(
                enabled=use_memory_cache,
                ceiling_ms=memory_cache_timeout,
                max_entries=memory_cache_max_entries,
            )
        self.memory = memory_layer
        self._coalescer = RequestCoalescer()

        # Stats tracking
        self._stats = {
            "hits_memory": 0,
            "hits_store": 0,
            "misses": 0,
            "upstream_fetches": 0,
        }

    async def get(self, cache_key: str) -> Optional[Any]:
        """
        Get a cached value.

        Returns:
            The value from the memory layer or backing store, or None if neither
            holds a live value
        """
        value = self.memory.get(cache_key)
        if value is not None:
            logger.debug(f"CACHE HIT (memory): {cache_key}")
            self._stats["hits_memory"] += 1
            return value

        # A store hit does not populate the memory layer; only set() does
        value = await self.store.fetch(cache_key)
        if value is not None:
            logger.debug(f"CACHE HIT (store): {cache_key}")
            self._stats["hits_store"] += 1
            return value

        self._stats["misses"] += 1
        return None

    async def set(self, cache_key: str, value: Any, ttl: Optional[TTL] = None) -> None:
        """
        Set a key in both layers.

        Args:
            cache_key: Unique key name for this cache entry
            value: Value to store
            ttl: Milliseconds, or a (possibly async) callable returning milliseconds.
                Defaults to one hour.

        Raises:
            InvalidTTLError: If the TTL does not resolve to a non-negative number
        """
        # Resolve first so a failing TTL leaves both layers untouched
        ttl_ms = await resolve_ttl(ttl)

        # The store always receives the full TTL; the memory layer may clamp it
        await self.store.store(cache_key, value, ttl_ms)
        self.memory.set(cache_key, value, ttl_ms)

    async def wrap(
        self,
        cache_key: str,
        fetch_fn: Callable[[], Any],
        ttl: Optional[TTL] = None,
    ) -> Any:
        """
        Return the cached value for a key, fetching and storing it on a miss.

        Concurrent calls for the same key share one lookup-fetch-store operation,
        so fetch_fn runs at most once at a time per key. If it raises, every
        waiting caller receives the exception, nothing is cached, and the next
        call retries.

        Args:
            cache_key: Unique key name for this cache entry
            fetch_fn: Called when the key is not cached; may be sync or async
            ttl: TTL for the stored result, as for set()
        """
        async def load():
            cached = await self.get(cache_key)
            if cached is not None:
                return cached

            logger.info(f"CACHE MISS: {cache_key}")
            self._stats["upstream_fetches"] += 1
            value = await resolve(fetch_fn())
            await self.set(cache_key, value, ttl)
            return value

        return await self._coalescer.get_or_fetch(cache_key, load)

    async def get_keys(self, prefix: str = "") -> List[str]:
        """
        Get all cached keys starting with prefix.

        Served by the backing store alone; the memory layer has no key view.
        """
        return await self.store.enumerate(prefix)

    def clear_memory(self) -> int:
        """
        Clear the memory layer.

        Returns:
            Number of entries cleared
        """
        count = self.memory.clear()
        logger.info(f"Cleared {count} memory cache entries")
        return count

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        total_hits = self._stats["hits_memory"] + self._stats["hits_store"]
        total_requests = total_hits + self._stats["misses"]
        hit_rate = (total_hits / total_requests * 100) if total_requests > 0 else 0

        return {
            "memory_enabled": self.memory.enabled,
            "memory_entries": len(self.memory),
            "hits_memory": self._stats["hits_memory"],
            "hits_store": self._stats["hits_store"],
            "misses": self._stats["misses"],
            "upstream_fetches": self._stats["upstream_fetches"],
            "hit_rate_percent": round(hit_rate, 1),
            "coalescer": self._coalescer.get_stats(),
        }


# Global cache manager instance
_cache_manager: Optional[CacheManager] = None


def get_cache_manager() -> CacheManager:
    """Get or create the global cache manager from application settings."""
    global _cache_manager
    if _cache_manager is None:
        from config.settings import settings

        _cache_manager = CacheManager(
            store=create_store(settings),
            use_memory_cache=settings.use_memory_cache,
            memory_cache_timeout=settings.memory_cache_timeout,
            memory_cache_max_entries=settings.memory_cache_max_entries,
        )
    return _cache_manager


def reset_cache_manager() -> None:
    """Drop the global cache manager so the next call rebuilds it."""
    global _cache_manager
    _cache_manager = None
