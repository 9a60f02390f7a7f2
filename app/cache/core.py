"""
Core cache data structures.
"""
import inspect
from dataclasses import dataclass
from typing import Any


# Default time-to-live when a caller does not supply one (1 hour, in milliseconds)
DEFAULT_TTL_MS = 3_600_000


@dataclass
class CacheEntry:
    """
    A value held by the memory layer.

    expires_at is an absolute reading of the memory layer's clock (seconds).
    """
    value: Any
    expires_at: float

    def is_live(self, now: float) -> bool:
        """Entries stay valid up to and including their expiry instant."""
        return now <= self.expires_at


async def resolve(value: Any) -> Any:
    """Await value if it is awaitable, otherwise return it unchanged."""
    if inspect.isawaitable(value):
        return await value
    return value
