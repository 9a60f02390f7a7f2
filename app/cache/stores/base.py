"""
Backing store capability used by the cache manager.
"""
from typing import Any, List, Optional

from ..errors import MissingImplementationError


class BackingStore:
    """
    Durable key/value storage behind the cache.

    Implementations override all three operations:
    - fetch(key): stored value, or None if never stored or expired. Never raises
      for a missing key.
    - store(key, value, ttl_ms): keep value for at least ttl_ms, overwriting any
      previous value and TTL for key.
    - enumerate(prefix): keys currently valid whose name starts with prefix
      (empty prefix matches everything), in any order.

    Operations that are not overridden raise MissingImplementationError when
    called, so a mis-wired store fails loudly instead of acting as an empty cache.
    """

    async def fetch(self, key: str) -> Optional[Any]:
        raise MissingImplementationError(type(self).__name__, "fetch")

    async def store(self, key: str, value: Any, ttl_ms: float) -> None:
        raise MissingImplementationError(type(self).__name__, "store")

    async def enumerate(self, prefix: str = "") -> List[str]:
        raise MissingImplementationError(type(self).__name__, "enumerate")
