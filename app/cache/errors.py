"""
Exceptions raised by the caching layer.
"""


class CacheError(Exception):
    """Base class for cache errors."""


class MissingImplementationError(CacheError, NotImplementedError):
    """
    Raised when a backing store operation has not been implemented.

    Lets integrators tell "no backing store wired up" apart from "key absent".
    """

    def __init__(self, store: str, operation: str):
        super().__init__(f"Missing implementation {store}.{operation}()")
        self.store = store
        self.operation = operation


class InvalidTTLError(CacheError, ValueError):
    """Raised when a TTL does not resolve to a non-negative number of milliseconds."""
