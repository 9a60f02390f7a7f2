"""
In-process memory layer sitting in front of a backing store.

Not coherent across processes: each process keeps its own table, so a
memory_cache_timeout ceiling is the way to bound staleness in multi-process
deployments.
"""
import time
import logging
from typing import Any, Callable, Dict, Optional

from .core import CacheEntry

logger = logging.getLogger("cache.memory")


class MemoryLayer:
    """
    Read cache of CacheEntry objects keyed by cache key.

    Reads and writes are synchronous and never suspend, so they are atomic
    relative to other coroutines on the same event loop.

    Usage:
        layer = MemoryLayer(ceiling_ms=60_000)
        layer.set("parcasterix:v2:getWaitTimeData:[]", data, ttl_ms=3_600_000)
        layer.get("parcasterix:v2:getWaitTimeData:[]")  # lives for 60s, not 1h
    """

    def __init__(
        self,
        enabled: bool = True,
        ceiling_ms: Optional[float] = None,
        max_entries: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the memory layer.

        Args:
            enabled: When False the layer is inert and every call is a no-op miss
            ceiling_ms: Upper bound on how long any value may live in memory
            max_entries: Optional bound on the table size
            clock: Monotonic clock returning seconds
        """
        self.enabled = enabled
        self.ceiling_ms = ceiling_ms
        self.max_entries = max_entries
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def effective_ttl(self, ttl_ms: float) -> float:
        """Duration a value written with ttl_ms will actually live in memory."""
        if self.ceiling_ms is None:
            return ttl_ms
        return min(self.ceiling_ms, ttl_ms)

    def get(self, key: str) -> Optional[Any]:
        """Return the live value for key, or None if absent or expired."""
        if not self.enabled:
            return None
        entry = self._entries.get(key)
        if entry is None or not entry.is_live(self._clock()):
            return None
        return entry.value

    def set(self, key: str, value: Any, ttl_ms: float) -> None:
        """Store value, clamping its lifetime to the configured ceiling."""
        if not self.enabled:
            return
        if (
            self.max_entries is not None
            and key not in self._entries
            and len(self._entries) >= self.max_entries
        ):
            self._make_room()
        expires_at = self._clock() + self.effective_ttl(ttl_ms) / 1000.0
        self._entries[key] = CacheEntry(value=value, expires_at=expires_at)

    def purge_expired(self) -> int:
        """
        Drop all expired entries.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        expired = [k for k, entry in self._entries.items() if not entry.is_live(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def _make_room(self) -> None:
        if self.purge_expired():
            return
        # Table is full of live entries: evict the one closest to expiry
        victim = min(self._entries, key=lambda k: self._entries[k].expires_at)
        del self._entries[victim]
        logger.debug(f"Memory layer full, evicted {victim}")

    def clear(self) -> int:
        """Remove every entry, returning how many there were."""
        count = len(self._entries)
        self._entries.clear()
        return count

    def __len__(self) -> int:
        return len(self._entries)
