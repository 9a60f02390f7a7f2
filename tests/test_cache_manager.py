"""
Tests for the cache facade: memory layer, backing store and TTL resolution.
"""
import pytest

from app.cache import (
    DEFAULT_TTL_MS,
    CacheManager,
    InMemoryStore,
    InvalidTTLError,
    MemoryLayer,
    resolve_ttl,
)


# =============================================================================
# get / set
# =============================================================================

@pytest.mark.asyncio
async def test_get_missing_key_returns_none(make_manager):
    manager = make_manager()
    assert await manager.get("nothing") is None


@pytest.mark.asyncio
async def test_memory_hit_skips_backing_store(make_manager, counting_store):
    """A live memory entry is returned without touching the store."""
    manager = make_manager()
    await manager.set("park:1", {"name": "Parc Asterix"}, 10_000)

    assert await manager.get("park:1") == {"name": "Parc Asterix"}
    assert await manager.get("park:1") == {"name": "Parc Asterix"}
    assert counting_store.fetch_calls == 0


@pytest.mark.asyncio
async def test_store_hit_does_not_populate_memory(make_manager, counting_store):
    manager = make_manager()
    await counting_store.store("park:1", "from-store", 10_000)

    assert await manager.get("park:1") == "from-store"
    assert await manager.get("park:1") == "from-store"
    assert counting_store.fetch_calls == 2
    assert len(manager.memory) == 0


@pytest.mark.asyncio
async def test_memory_disabled_forwards_everything(make_manager, counting_store):
    manager = make_manager(use_memory_cache=False)
    await manager.set("k", "v", 10_000)

    assert await manager.get("k") == "v"
    assert counting_store.fetch_calls == 1
    assert len(manager.memory) == 0


def test_empty_memory_layer_is_used_as_given():
    layer = MemoryLayer(enabled=False, ceiling_ms=500)
    manager = CacheManager(store=InMemoryStore(), memory_layer=layer)

    assert manager.memory is layer
    assert manager.memory.enabled is False
    assert manager.memory.effective_ttl(10_000) == 500


def test_memory_options_build_a_layer():
    manager = CacheManager(
        store=InMemoryStore(), use_memory_cache=False, memory_cache_timeout=250
    )

    assert manager.memory.enabled is False
    assert manager.memory.effective_ttl(10_000) == 250


@pytest.mark.asyncio
async def test_default_ttl_is_one_hour(make_manager, counting_store):
    manager = make_manager()
    await manager.set("k", "v")
    assert counting_store.ttls["k"] == 3_600_000
    assert DEFAULT_TTL_MS == 3_600_000


@pytest.mark.asyncio
async def test_set_overwrites_previous_value(make_manager):
    manager = make_manager()
    await manager.set("k", "old", 10_000)
    await manager.set("k", "new", 10_000)
    assert await manager.get("k") == "new"


# =============================================================================
# Expiry and memory ceiling
# =============================================================================

@pytest.mark.asyncio
async def test_memory_ceiling_clamps_memory_but_not_store(make_manager, counting_store, clock):
    manager = make_manager(memory_cache_timeout=500)
    await manager.set("k", "v", 10_000)

    assert counting_store.ttls["k"] == 10_000

    clock.advance(0.4)
    assert manager.memory.get("k") == "v"

    clock.advance(0.2)
    assert manager.memory.get("k") is None
    # Still served by the store, which holds the full TTL
    assert await manager.get("k") == "v"
    assert counting_store.fetch_calls == 1


@pytest.mark.asyncio
async def test_ceiling_larger_than_ttl_uses_ttl(make_manager, clock):
    manager = make_manager(memory_cache_timeout=60_000)
    await manager.set("k", "v", 50)

    clock.advance(0.06)
    assert manager.memory.get("k") is None


@pytest.mark.asyncio
async def test_expired_memory_entry_falls_through_to_store(make_manager, counting_store, clock):
    manager = make_manager()
    await manager.set("k", "v", 50)

    clock.advance(0.06)
    assert manager.memory.get("k") is None
    # Store shares the clock, so its copy has expired too
    assert await manager.get("k") is None
    assert counting_store.fetch_calls == 1


@pytest.mark.asyncio
async def test_entry_is_live_at_exact_expiry(make_manager, clock):
    manager = make_manager()
    await manager.set("k", "v", 1_000)

    clock.advance(1.0)
    assert manager.memory.get("k") == "v"


# =============================================================================
# TTL resolution
# =============================================================================

@pytest.mark.asyncio
async def test_deferred_ttl_is_resolved(make_manager, counting_store):
    manager = make_manager()
    await manager.set("sync", "v", lambda: 1_234)

    async def compute_ttl():
        return 5_678

    await manager.set("async", "v", compute_ttl)

    assert counting_store.ttls == {"sync": 1_234, "async": 5_678}


@pytest.mark.asyncio
async def test_failing_deferred_ttl_leaves_prior_entry(make_manager, counting_store):
    manager = make_manager()
    await manager.set("k", "old", 10_000)

    def broken_ttl():
        raise RuntimeError("no ttl today")

    with pytest.raises(RuntimeError):
        await manager.set("k", "new", broken_ttl)

    assert manager.memory.get("k") == "old"
    assert counting_store.store_calls == 1


@pytest.mark.asyncio
async def test_invalid_ttl_aborts_set(make_manager, counting_store):
    manager = make_manager()
    await manager.set("k", "old", 10_000)

    with pytest.raises(InvalidTTLError):
        await manager.set("k", "new", -1)
    with pytest.raises(ValueError):
        await manager.set("k", "new", lambda: "soon")

    assert await manager.get("k") == "old"
    assert counting_store.store_calls == 1


@pytest.mark.asyncio
async def test_resolve_ttl_accepts_zero_and_rejects_bool():
    assert await resolve_ttl(0) == 0
    assert await resolve_ttl(None) == DEFAULT_TTL_MS
    with pytest.raises(InvalidTTLError):
        await resolve_ttl(True)
    with pytest.raises(InvalidTTLError):
        await resolve_ttl(float("nan"))


# =============================================================================
# Keys
# =============================================================================

@pytest.mark.asyncio
async def test_get_keys_filters_by_prefix(make_manager, counting_store):
    manager = make_manager()
    for key in ("a:1", "a:2", "b:1"):
        await manager.set(key, key, 10_000)

    assert set(await manager.get_keys("a:")) == {"a:1", "a:2"}
    assert set(await manager.get_keys()) == {"a:1", "a:2", "b:1"}
    assert counting_store.enumerate_calls == 2


# =============================================================================
# Memory layer hardening
# =============================================================================

def test_memory_layer_evicts_when_full(clock):
    layer = MemoryLayer(max_entries=2, clock=clock)
    layer.set("short", 1, 1_000)
    layer.set("long", 2, 60_000)
    layer.set("new", 3, 60_000)

    # The entry closest to expiry made room
    assert layer.get("short") is None
    assert layer.get("long") == 2
    assert layer.get("new") == 3
    assert len(layer) == 2


def test_memory_layer_prefers_purging_expired(clock):
    layer = MemoryLayer(max_entries=2, clock=clock)
    layer.set("stale", 1, 10)
    layer.set("fresh", 2, 1_000)
    clock.advance(0.5)
    layer.set("newer", 3, 60_000)

    assert layer.get("fresh") == 2
    assert layer.get("newer") == 3


def test_purge_expired_counts_removed(clock):
    layer = MemoryLayer(clock=clock)
    layer.set("a", 1, 10)
    layer.set("b", 2, 10)
    layer.set("c", 3, 10_000)
    clock.advance(1)

    assert layer.purge_expired() == 2
    assert len(layer) == 1


# =============================================================================
# Stats
# =============================================================================

@pytest.mark.asyncio
async def test_stats_track_hits_and_misses(make_manager, counting_store):
    manager = make_manager()
    await manager.set("k", "v", 10_000)
    await counting_store.store("store-only", "v", 10_000)

    await manager.get("k")
    await manager.get("store-only")
    await manager.get("missing")

    stats = manager.get_stats()
    assert stats["hits_memory"] == 1
    assert stats["hits_store"] == 1
    assert stats["misses"] == 1
    assert stats["hit_rate_percent"] == pytest.approx(66.7)
    assert stats["memory_entries"] == 1
