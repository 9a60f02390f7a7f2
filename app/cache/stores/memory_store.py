"""
Dictionary-backed store, for tests and single-process deployments.
"""
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from .base import BackingStore


class InMemoryStore(BackingStore):
    """Plain dict of (expires_at, value) pairs honouring each key's TTL."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._items: Dict[str, Tuple[float, Any]] = {}

    async def fetch(self, key: str) -> Optional[Any]:
        item = self._items.get(key)
        if item is None:
            return None
        expires_at, value = item
        if self._clock() > expires_at:
            # Expired
            self._items.pop(key, None)
            return None
        return value

    async def store(self, key: str, value: Any, ttl_ms: float) -> None:
        self._items[key] = (self._clock() + ttl_ms / 1000.0, value)

    async def enumerate(self, prefix: str = "") -> List[str]:
        now = self._clock()
        return [
            key
            for key, (expires_at, _) in self._items.items()
            if key.startswith(prefix) and now <= expires_at
        ]
