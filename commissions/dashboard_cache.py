"""Stale-while-revalidate cache for dashboard aggregates.

Each key moves through

    MISS -> FRESH -> STALE -> EXPIRED (same as MISS)

FRESH entries are served without calling the fetcher. STALE entries are
served immediately while a single background task per key refreshes them.
MISS and EXPIRED keys make the caller wait for the fetch; concurrent callers
for the same key share that one fetch.

Every fetch is tagged with the key's epoch at launch. invalidate() bumps the
epoch, so a fetch that was already in flight finishes but never writes its
result back into the cache.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable, Optional

import settings

logger = logging.getLogger(__name__)

Fetcher = Callable[[], Awaitable[Any]]
RefreshErrorHandler = Callable[[str, BaseException], None]


class CacheState(str, Enum):
    MISS = "miss"
    FRESH = "fresh"
    STALE = "stale"
    EXPIRED = "expired"


@dataclass
class CacheEntry:
    key: str
    payload: Any
    created_at: float
    fresh_until: float
    stale_until: float

    def state(self, now: float) -> CacheState:
        if now <= self.fresh_until:
            return CacheState.FRESH
        if now <= self.stale_until:
            return CacheState.STALE
        return CacheState.EXPIRED


def _check_ttls(fresh_ttl: float, stale_ttl: float) -> None:
    if fresh_ttl < 0:
        raise ValueError(f"fresh_ttl must be >= 0, got {fresh_ttl}")
    if stale_ttl < fresh_ttl:
        raise ValueError(f"stale_ttl ({stale_ttl}) must be >= fresh_ttl ({fresh_ttl})")


class DashboardCache:
    """Per-key cache with single-flight refresh.

    Usage:
        async with DashboardCache() as cache:
            stats = await cache.get("commission_stats", load_stats)
            cache.invalidate(["commission_stats"])

    fresh_ttl and stale_ttl are seconds measured from when the payload was
    fetched; both default to the DASHBOARD_*_TTL_SECONDS settings. clock must
    be monotonic and is injectable for tests.
    """

    def __init__(
        self,
        fresh_ttl: Optional[float] = None,
        stale_ttl: Optional[float] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        on_refresh_error: Optional[RefreshErrorHandler] = None,
    ) -> None:
        self._fresh_ttl = settings.DASHBOARD_FRESH_TTL_SECONDS if fresh_ttl is None else fresh_ttl
        self._stale_ttl = settings.DASHBOARD_STALE_TTL_SECONDS if stale_ttl is None else stale_ttl
        _check_ttls(self._fresh_ttl, self._stale_ttl)

        self._clock = clock
        self._on_refresh_error = on_refresh_error
        self._entries: dict[str, CacheEntry] = {}
        self._epochs: dict[str, int] = {}
        self._generation = 0
        self._loading: dict[str, asyncio.Task] = {}
        self._refreshing: dict[str, asyncio.Task] = {}
        self._tasks: set[asyncio.Task] = set()
        self._closed = False
        self._counters = {
            "hits": 0,
            "stale_hits": 0,
            "misses": 0,
            "refreshes": 0,
            "refresh_failures": 0,
        }

    async def __aenter__(self) -> "DashboardCache":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def state(self, key: str) -> CacheState:
        entry = self._entries.get(key)
        if entry is None:
            return CacheState.MISS
        return entry.state(self._clock())

    def stats(self) -> dict[str, int]:
        return {**self._counters, "entries": len(self._entries)}

    async def get(
        self,
        key: str,
        fetcher: Fetcher,
        fresh_ttl: Optional[float] = None,
        stale_ttl: Optional[float] = None,
    ) -> Any:
        """Return the payload for key, fetching or refreshing as its state requires.

        Errors from a foreground fetch propagate to every waiting caller.
        Cancelling a caller never cancels the shared fetch.
        """
        if self._closed:
            raise RuntimeError("DashboardCache is closed")
        fresh_ttl = self._fresh_ttl if fresh_ttl is None else fresh_ttl
        stale_ttl = self._stale_ttl if stale_ttl is None else stale_ttl
        _check_ttls(fresh_ttl, stale_ttl)

        entry = self._entries.get(key)
        state = entry.state(self._clock()) if entry is not None else CacheState.MISS
        if state is CacheState.EXPIRED:
            del self._entries[key]

        if state is CacheState.FRESH:
            self._counters["hits"] += 1
            return entry.payload

        if state is CacheState.STALE:
            self._counters["stale_hits"] += 1
            if key not in self._refreshing:
                self._start_refresh(key, fetcher, fresh_ttl, stale_ttl)
            return entry.payload

        self._counters["misses"] += 1
        task = self._loading.get(key)
        if task is None:
            task = self._spawn(
                self._loading, key, self._fetch(key, fetcher, fresh_ttl, stale_ttl, self._token(key))
            )
        return await asyncio.shield(task)

    def invalidate(self, keys: Optional[Iterable[str]] = None) -> None:
        """Drop the named keys, or every key when keys is None.

        In-flight fetches for those keys keep running for their current
        waiters but will not write their results back.
        """
        if keys is None:
            self._generation += 1
            self._entries.clear()
            self._epochs.clear()
            self._loading.clear()
            self._refreshing.clear()
            logger.debug("Dashboard cache cleared")
            return
        for key in keys:
            self._epochs[key] = self._epochs.get(key, 0) + 1
            self._entries.pop(key, None)
            self._loading.pop(key, None)
            self._refreshing.pop(key, None)
            logger.debug("Dashboard cache key %s invalidated", key)

    async def drain(self) -> None:
        """Wait until every in-flight fetch and refresh has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        """Refuse new reads, finish in-flight work and drop every entry."""
        self._closed = True
        await self.drain()
        self._entries.clear()
        self._loading.clear()
        self._refreshing.clear()

    def _token(self, key: str) -> tuple[int, int]:
        return self._generation, self._epochs.get(key, 0)

    def _spawn(self, registry: dict[str, asyncio.Task], key: str, coro: Awaitable[Any]) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        registry[key] = task
        self._tasks.add(task)

        def _done(finished: asyncio.Task) -> None:
            self._tasks.discard(finished)
            if registry.get(key) is finished:
                del registry[key]
            # Mark the exception retrieved when every waiter was cancelled.
            if not finished.cancelled():
                finished.exception()

        task.add_done_callback(_done)
        return task

    def _start_refresh(self, key: str, fetcher: Fetcher, fresh_ttl: float, stale_ttl: float) -> None:
        self._counters["refreshes"] += 1
        self._spawn(self._refreshing, key, self._refresh(key, fetcher, fresh_ttl, stale_ttl, self._token(key)))

    async def _fetch(
        self, key: str, fetcher: Fetcher, fresh_ttl: float, stale_ttl: float, token: tuple[int, int]
    ) -> Any:
        payload = await fetcher()
        self._store(key, payload, fresh_ttl, stale_ttl, token)
        return payload

    async def _refresh(
        self, key: str, fetcher: Fetcher, fresh_ttl: float, stale_ttl: float, token: tuple[int, int]
    ) -> None:
        try:
            payload = await fetcher()
        except Exception as exc:
            self._counters["refresh_failures"] += 1
            logger.warning("Background refresh of dashboard key %s failed", key, exc_info=True)
            if self._on_refresh_error is not None:
                try:
                    self._on_refresh_error(key, exc)
                except Exception:
                    logger.exception("on_refresh_error handler failed for key %s", key)
            return
        self._store(key, payload, fresh_ttl, stale_ttl, token)

    def _store(self, key: str, payload: Any, fresh_ttl: float, stale_ttl: float, token: tuple[int, int]) -> None:
        if token != self._token(key):
            logger.debug("Discarding result for invalidated dashboard key %s", key)
            return
        now = self._clock()
        self._evict_expired(now)
        self._entries[key] = CacheEntry(
            key=key,
            payload=payload,
            created_at=now,
            fresh_until=now + fresh_ttl,
            stale_until=now + stale_ttl,
        )

    def _evict_expired(self, now: float) -> None:
        expired = [key for key, entry in self._entries.items() if now > entry.stale_until]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Evicted %d expired dashboard cache entries", len(expired))
