"""
Tests for wrap() and request coalescing.
"""
import asyncio
import gc

import pytest

from app.cache import RequestCoalescer


# =============================================================================
# wrap()
# =============================================================================

@pytest.mark.asyncio
async def test_concurrent_wraps_fetch_once(make_manager):
    """Ten concurrent callers for one uncached key share a single fetch."""
    manager = make_manager()
    calls = 0

    async def slow_fetch():
        nonlocal calls
        calls += 1
        await asyncio.sleep(0.1)
        return {"waitTime": 15}

    results = await asyncio.gather(
        *(manager.wrap("wait-times", slow_fetch, 60_000) for _ in range(10))
    )

    assert calls == 1
    assert all(result is results[0] for result in results)
    assert results[0] == {"waitTime": 15}


@pytest.mark.asyncio
async def test_wrap_stores_result_with_ttl(make_manager, counting_store):
    manager = make_manager()

    result = await manager.wrap("k", lambda: "fetched", 60_000)

    assert result == "fetched"
    assert counting_store.ttls["k"] == 60_000
    assert await manager.get("k") == "fetched"


@pytest.mark.asyncio
async def test_wrap_returns_cached_value_without_fetching(make_manager):
    manager = make_manager()
    await manager.set("k", "cached", 10_000)

    def fetch():
        raise AssertionError("fetch should not run on a hit")

    assert await manager.wrap("k", fetch) == "cached"


@pytest.mark.asyncio
async def test_wrap_after_settle_reads_cache(make_manager):
    manager = make_manager()
    calls = 0

    async def fetch():
        nonlocal calls
        calls += 1
        return calls

    assert await manager.wrap("k", fetch, 10_000) == 1
    assert await manager.wrap("k", fetch, 10_000) == 1
    assert calls == 1


@pytest.mark.asyncio
async def test_different_keys_fetch_independently(make_manager):
    manager = make_manager()
    seen = []

    async def fetch_for(key):
        seen.append(key)
        await asyncio.sleep(0.01)
        return key.upper()

    results = await asyncio.gather(
        manager.wrap("a", lambda: fetch_for("a")),
        manager.wrap("b", lambda: fetch_for("b")),
    )

    assert results == ["A", "B"]
    assert sorted(seen) == ["a", "b"]


# =============================================================================
# Failures
# =============================================================================

@pytest.mark.asyncio
async def test_failure_reaches_all_waiters_and_does_not_poison(make_manager, counting_store):
    manager = make_manager()

    async def failing_fetch():
        await asyncio.sleep(0.05)
        raise ConnectionError("upstream down")

    results = await asyncio.gather(
        *(manager.wrap("k", failing_fetch) for _ in range(5)),
        return_exceptions=True,
    )

    assert all(isinstance(r, ConnectionError) for r in results)
    assert counting_store.store_calls == 0
    assert not manager._coalescer.is_in_flight("k")

    async def working_fetch():
        return "recovered"

    assert await manager.wrap("k", working_fetch) == "recovered"


@pytest.mark.asyncio
async def test_sync_fetch_raising_still_settles(make_manager):
    manager = make_manager()

    def explode():
        raise ValueError("bad payload")

    with pytest.raises(ValueError):
        await manager.wrap("k", explode)

    assert manager._coalescer.active_requests == 0
    assert await manager.wrap("k", lambda: "ok") == "ok"


@pytest.mark.asyncio
async def test_failed_ttl_fails_wrap_without_caching(make_manager):
    manager = make_manager()

    with pytest.raises(ValueError):
        await manager.wrap("k", lambda: "value", -5)

    assert await manager.get("k") is None
    assert manager._coalescer.active_requests == 0


# =============================================================================
# RequestCoalescer
# =============================================================================

@pytest.mark.asyncio
async def test_registry_entry_removed_once_settled():
    coalescer = RequestCoalescer()
    release = asyncio.Event()

    async def fetch():
        await release.wait()
        return 42

    first = asyncio.ensure_future(coalescer.get_or_fetch("k", fetch))
    second = asyncio.ensure_future(coalescer.get_or_fetch("k", fetch))
    await asyncio.sleep(0)

    assert coalescer.is_in_flight("k")
    stats = coalescer.get_stats()
    assert stats["active_keys"] == ["k"]
    assert stats["coalesced"] == 1

    release.set()
    assert await first == 42
    assert await second == 42
    assert coalescer.active_requests == 0


@pytest.mark.asyncio
async def test_cancelled_waiter_does_not_cancel_shared_fetch():
    coalescer = RequestCoalescer()
    release = asyncio.Event()

    async def fetch():
        await release.wait()
        return "done"

    initiator = asyncio.ensure_future(coalescer.get_or_fetch("k", fetch))
    waiter = asyncio.ensure_future(coalescer.get_or_fetch("k", fetch))
    await asyncio.sleep(0)

    initiator.cancel()
    await asyncio.sleep(0)
    release.set()

    assert await waiter == "done"
    assert initiator.cancelled()


@pytest.mark.asyncio
async def test_failure_with_every_waiter_cancelled_is_not_reported_unretrieved():
    loop = asyncio.get_running_loop()
    reported = []
    loop.set_exception_handler(lambda _loop, context: reported.append(context))
    coalescer = RequestCoalescer()
    release = asyncio.Event()

    async def fetch():
        await release.wait()
        raise RuntimeError("upstream down")

    try:
        waiter = asyncio.ensure_future(coalescer.get_or_fetch("k", fetch))
        await asyncio.sleep(0)
        task = coalescer._in_flight["k"].task

        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

        release.set()
        while not task.done():
            await asyncio.sleep(0)
        await asyncio.sleep(0)

        assert not coalescer.is_in_flight("k")
        assert coalescer.get_stats()["failed"] == 1
        del task, waiter
        gc.collect()
    finally:
        loop.set_exception_handler(None)

    assert not [c for c in reported if "never retrieved" in c.get("message", "")]
