"""
Backing store implementations.
"""
from .base import BackingStore
from .memory_store import InMemoryStore
from .file_store import FileStore
from .database_store import DatabaseStore

__all__ = [
    "BackingStore",
    "InMemoryStore",
    "FileStore",
    "DatabaseStore",
    "create_store",
]


def create_store(settings) -> BackingStore:
    """
    Build the backing store named by settings.cache_backend.

    Raises:
        ValueError: If the backend name is unknown
    """
    backend = settings.cache_backend.lower()
    if backend == "memory":
        return InMemoryStore()
    if backend == "file":
        return FileStore(settings.cache_directory)
    if backend == "database":
        return DatabaseStore(settings.cache_database_url)
    raise ValueError(f"Unknown cache backend: {settings.cache_backend!r}")
