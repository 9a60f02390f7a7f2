"""
Shared fixtures: a controllable clock and a backing store that records calls.
"""
import pytest

from app.cache import CacheManager, InMemoryStore, MemoryLayer


class FakeClock:
    """Clock returning seconds that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class CountingStore(InMemoryStore):
    """In-memory store that counts calls and remembers the TTL of each write."""

    def __init__(self, clock):
        super().__init__(clock=clock)
        self.fetch_calls = 0
        self.store_calls = 0
        self.enumerate_calls = 0
        self.ttls = {}

    async def fetch(self, key):
        self.fetch_calls += 1
        return await super().fetch(key)

    async def store(self, key, value, ttl_ms):
        self.store_calls += 1
        self.ttls[key] = ttl_ms
        await super().store(key, value, ttl_ms)

    async def enumerate(self, prefix=""):
        self.enumerate_calls += 1
        return await super().enumerate(prefix)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def counting_store(clock):
    return CountingStore(clock)


@pytest.fixture
def make_manager(clock, counting_store):
    """Build a CacheManager over the counting store sharing the fake clock."""

    def _make(use_memory_cache=True, memory_cache_timeout=None, max_entries=None):
        layer = MemoryLayer(
            enabled=use_memory_cache,
            ceiling_ms=memory_cache_timeout,
            max_entries=max_entries,
            clock=clock,
        )
        return CacheManager(store=counting_store, memory_layer=layer)

    return _make
