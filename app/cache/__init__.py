"""
Two-tier caching module with dynamic TTLs and request coalescing.
"""
from .core import CacheEntry, DEFAULT_TTL_MS
from .errors import CacheError, InvalidTTLError, MissingImplementationError
from .ttl_policies import (
    TTL,
    TTL_CONFIG,
    DataCategory,
    get_ttl_for_category,
    minutes,
    resolve_ttl,
)
from .memory import MemoryLayer
from .coalescer import RequestCoalescer
from .stores import BackingStore, DatabaseStore, FileStore, InMemoryStore, create_store
from .manager import CacheManager, get_cache_manager, reset_cache_manager

__all__ = [
    # Core types
    "CacheEntry",
    "DEFAULT_TTL_MS",
    # Errors
    "CacheError",
    "InvalidTTLError",
    "MissingImplementationError",
    # TTL policies
    "TTL",
    "TTL_CONFIG",
    "DataCategory",
    "get_ttl_for_category",
    "minutes",
    "resolve_ttl",
    # Layers
    "MemoryLayer",
    "RequestCoalescer",
    # Backing stores
    "BackingStore",
    "DatabaseStore",
    "FileStore",
    "InMemoryStore",
    "create_store",
    # Manager
    "CacheManager",
    "get_cache_manager",
    "reset_cache_manager",
]
