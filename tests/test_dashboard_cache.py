"""Unit tests for DashboardCache, driven by a fake monotonic clock."""
import asyncio

import pytest

from commissions.dashboard_cache import CacheEntry, CacheState, DashboardCache


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class CountingFetcher:
    """Returns 1, 2, 3... and can be held open with an Event."""

    def __init__(self, gate: asyncio.Event = None, error: Exception = None):
        self.calls = 0
        self.gate = gate
        self.error = error

    async def __call__(self):
        self.calls += 1
        call = self.calls
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return call


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return DashboardCache(fresh_ttl=60, stale_ttl=300, clock=clock)


@pytest.mark.asyncio
async def test_stale_while_revalidate_timeline(cache, clock):
    fetch = CountingFetcher()

    # t=0: miss, caller waits for the fetch
    assert await cache.get("commission_stats", fetch) == 1
    assert fetch.calls == 1

    # t=30: fresh, no fetch
    clock.now = 30
    assert await cache.get("commission_stats", fetch) == 1
    assert fetch.calls == 1

    # t=90: stale, ten concurrent callers get the old value and one refresh runs
    clock.now = 90
    results = await asyncio.gather(*(cache.get("commission_stats", fetch) for _ in range(10)))
    assert results == [1] * 10
    await cache.drain()
    assert fetch.calls == 2
    assert cache.state("commission_stats") is CacheState.FRESH

    # t=400: refreshed at 90, so expired after 390; the caller waits again
    clock.now = 400
    assert cache.state("commission_stats") is CacheState.EXPIRED
    assert await cache.get("commission_stats", fetch) == 3
    assert fetch.calls == 3

    stats = cache.stats()
    assert stats["hits"] == 1
    assert stats["stale_hits"] == 10
    assert stats["misses"] == 2
    assert stats["refreshes"] == 1
    assert stats["refresh_failures"] == 0


@pytest.mark.asyncio
async def test_refreshed_value_served_after_drain(cache, clock):
    fetch = CountingFetcher()
    await cache.get("k", fetch)
    clock.now = 61
    assert await cache.get("k", fetch) == 1
    await cache.drain()
    assert await cache.get("k", fetch) == 2


@pytest.mark.asyncio
async def test_concurrent_misses_share_one_fetch(cache):
    gate = asyncio.Event()
    fetch = CountingFetcher(gate=gate)

    waiters = [asyncio.ensure_future(cache.get("k", fetch)) for _ in range(5)]
    await asyncio.sleep(0)
    gate.set()
    results = await asyncio.gather(*waiters)

    assert results == [1] * 5
    assert fetch.calls == 1


@pytest.mark.asyncio
async def test_foreground_error_propagates_and_is_not_cached(cache):
    failing = CountingFetcher(error=RuntimeError("warehouse down"))

    with pytest.raises(RuntimeError, match="warehouse down"):
        await cache.get("k", failing)

    assert cache.state("k") is CacheState.MISS
    assert await cache.get("k", CountingFetcher()) == 1


@pytest.mark.asyncio
async def test_background_failure_keeps_last_good_payload(clock):
    seen = []
    cache = DashboardCache(
        fresh_ttl=60, stale_ttl=300, clock=clock,
        on_refresh_error=lambda key, exc: seen.append((key, exc)),
    )
    await cache.get("k", CountingFetcher())

    clock.now = 90
    error = RuntimeError("timeout")
    assert await cache.get("k", CountingFetcher(error=error)) == 1
    await cache.drain()

    assert seen == [("k", error)]
    assert cache.stats()["refresh_failures"] == 1
    assert cache.state("k") is CacheState.STALE
    assert await cache.get("k", CountingFetcher()) == 1, "Old payload is still served"
    await cache.close()


@pytest.mark.asyncio
async def test_failing_error_handler_does_not_escape(clock):
    def broken_handler(key, exc):
        raise ValueError("handler bug")

    cache = DashboardCache(fresh_ttl=60, stale_ttl=300, clock=clock, on_refresh_error=broken_handler)
    await cache.get("k", CountingFetcher())
    clock.now = 90
    await cache.get("k", CountingFetcher(error=RuntimeError("boom")))
    await cache.drain()
    assert cache.stats()["refresh_failures"] == 1


@pytest.mark.asyncio
async def test_invalidate_during_refresh_does_not_repopulate(cache, clock):
    await cache.get("k", CountingFetcher())
    clock.now = 90
    gate = asyncio.Event()
    slow = CountingFetcher(gate=gate)

    await cache.get("k", slow)
    await asyncio.sleep(0)
    assert slow.calls == 1

    cache.invalidate(["k"])
    gate.set()
    await cache.drain()

    assert cache.state("k") is CacheState.MISS


@pytest.mark.asyncio
async def test_invalidate_all_during_load(cache):
    gate = asyncio.Event()
    slow = CountingFetcher(gate=gate)

    waiter = asyncio.ensure_future(cache.get("k", slow))
    await asyncio.sleep(0)
    cache.invalidate()
    gate.set()

    assert await waiter == 1, "The waiting caller still gets its result"
    assert cache.state("k") is CacheState.MISS


@pytest.mark.asyncio
async def test_invalidate_only_named_keys(cache):
    await cache.get("a", CountingFetcher())
    await cache.get("b", CountingFetcher())

    cache.invalidate(["a"])

    assert cache.state("a") is CacheState.MISS
    assert cache.state("b") is CacheState.FRESH


@pytest.mark.asyncio
async def test_cancelled_caller_does_not_cancel_shared_fetch(cache):
    gate = asyncio.Event()
    fetch = CountingFetcher(gate=gate)

    first = asyncio.ensure_future(cache.get("k", fetch))
    second = asyncio.ensure_future(cache.get("k", fetch))
    await asyncio.sleep(0)
    first.cancel()
    gate.set()

    assert await second == 1
    assert fetch.calls == 1
    assert cache.state("k") is CacheState.FRESH


@pytest.mark.asyncio
async def test_per_call_ttls(cache, clock):
    await cache.get("short", CountingFetcher(), fresh_ttl=5, stale_ttl=10)
    clock.now = 7
    assert cache.state("short") is CacheState.STALE
    clock.now = 11
    assert cache.state("short") is CacheState.EXPIRED


@pytest.mark.asyncio
async def test_expired_entries_are_evicted_on_store(cache, clock):
    """Per-affiliate history keys that are never read again do not pile up."""
    for i in range(1000):
        await cache.get(f"rate_history:{i}", CountingFetcher())
    assert cache.stats()["entries"] == 1000

    clock.now = 10000
    await cache.get("commission_stats", CountingFetcher())

    assert cache.stats()["entries"] == 1
    assert cache.state("rate_history:0") is CacheState.MISS


@pytest.mark.asyncio
async def test_expired_entry_dropped_even_when_reload_fails(cache, clock):
    await cache.get("k", CountingFetcher())
    clock.now = 301

    with pytest.raises(RuntimeError):
        await cache.get("k", CountingFetcher(error=RuntimeError("db down")))

    assert cache.stats()["entries"] == 0
    assert cache.state("k") is CacheState.MISS


@pytest.mark.asyncio
async def test_close_drains_and_rejects_new_reads(clock):
    async with DashboardCache(fresh_ttl=60, stale_ttl=300, clock=clock) as cache:
        await cache.get("k", CountingFetcher())
        clock.now = 90
        refresh = CountingFetcher()
        await cache.get("k", refresh)

    assert refresh.calls == 1, "In-flight refresh finished before close returned"
    assert cache.stats()["entries"] == 0
    with pytest.raises(RuntimeError):
        await cache.get("k", CountingFetcher())


class TestConfiguration:
    def test_stale_ttl_shorter_than_fresh_is_rejected(self):
        with pytest.raises(ValueError):
            DashboardCache(fresh_ttl=60, stale_ttl=30)

    def test_negative_fresh_ttl_is_rejected(self):
        with pytest.raises(ValueError):
            DashboardCache(fresh_ttl=-1, stale_ttl=30)

    def test_defaults_come_from_settings(self):
        cache = DashboardCache()
        assert cache._fresh_ttl == 60
        assert cache._stale_ttl == 300


class TestCacheEntry:
    def test_state_boundaries(self):
        entry = CacheEntry(key="k", payload=1, created_at=0, fresh_until=60, stale_until=300)
        assert entry.state(60) is CacheState.FRESH
        assert entry.state(60.5) is CacheState.STALE
        assert entry.state(300) is CacheState.STALE
        assert entry.state(300.5) is CacheState.EXPIRED
