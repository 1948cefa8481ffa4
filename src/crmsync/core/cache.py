"""Process-wide TTL cache for enrichment lookups, with per-tenant key prefixing.

TTLCache wraps a cachetools.TLRUCache whose time-to-use function reads each
entry's own TTL, so every ``set`` can pick its expiry. There is no size bound
(maxsize is infinite) and no LRU eviction in practice. Expired entries are
dropped lazily on read and by a background sweep task started from the
application lifespan.

TenantCache wraps the shared store and prefixes every key with
t:{tenant_id}: so that two tenants whose CRMs issue the same contact ids
never read each other's cached owners.

No locking: the service runs on one event loop and the cache never awaits,
so a write is visible to the next read of any request.
"""

from __future__ import annotations

import asyncio
import math
import time
from collections.abc import Callable
from typing import Any, NamedTuple

import cachetools
import structlog

from src.crmsync.core.monitoring import record_cache_lookup

logger = structlog.get_logger(__name__)

DEFAULT_TTL_SECONDS = 3600
DEFAULT_SWEEP_INTERVAL_SECONDS = 300


class _Entry(NamedTuple):
    value: Any
    ttl_seconds: float


def _entry_expiry(key: str, entry: _Entry, now: float) -> float:
    return now + entry.ttl_seconds


class TTLCache:
    """In-memory cache with per-entry expiry, backed by cachetools.TLRUCache.

    Args:
        clock: Monotonic clock returning seconds. Injectable for tests.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._store: cachetools.TLRUCache[str, _Entry] = cachetools.TLRUCache(
            maxsize=math.inf, ttu=_entry_expiry, timer=clock
        )
        self._sweeper: asyncio.Task[None] | None = None

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None if absent or expired."""
        self._store.expire()
        entry = self._store.get(key)
        record_cache_lookup(hit=entry is not None)
        return entry.value if entry is not None else None

    def set(self, key: str, value: Any, ttl_seconds: float = DEFAULT_TTL_SECONDS) -> None:
        if ttl_seconds <= 0:
            # TLRUCache skips already-expired inserts, which would keep a stale value.
            self.delete(key)
            return
        self._store[key] = _Entry(value, ttl_seconds)

    def delete(self, key: str) -> None:
        try:
            del self._store[key]
        except KeyError:
            pass

    def clear(self) -> None:
        self._store.clear()

    def clear_prefix(self, prefix: str) -> int:
        """Remove every live key starting with ``prefix``. Returns the number removed."""
        self._store.expire()
        doomed = [key for key in self._store if key.startswith(prefix)]
        for key in doomed:
            self.delete(key)
        return len(doomed)

    def sweep(self) -> int:
        """Evict all expired entries. Returns the number evicted."""
        return len(self._store.expire())

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, key: object) -> bool:
        return key in self._store

    # ── Background sweep ────────────────────────────────────────────────

    @property
    def sweeper_running(self) -> bool:
        return self._sweeper is not None and not self._sweeper.done()

    def start_sweeper(self, interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS) -> None:
        """Schedule periodic eviction on the running event loop (idempotent)."""
        if self.sweeper_running:
            return
        self._sweeper = asyncio.create_task(self._sweep_loop(interval_seconds))
        logger.info("cache.sweeper_started", interval_seconds=interval_seconds)

    async def stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None
        logger.info("cache.sweeper_stopped")

    async def _sweep_loop(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            evicted = self.sweep()
            if evicted:
                logger.debug("cache.swept", evicted=evicted, remaining=len(self))


class TenantCache:
    """Tenant-scoped view over a TTLCache that auto-prefixes keys with t:{tenant_id}:."""

    def __init__(self, cache: TTLCache, tenant_id: str) -> None:
        self._cache = cache
        self._tenant_id = tenant_id

    @property
    def tenant_id(self) -> str:
        return self._tenant_id

    def _key(self, key: str) -> str:
        return f"t:{self._tenant_id}:{key}"

    def get(self, key: str) -> Any | None:
        return self._cache.get(self._key(key))

    def set(self, key: str, value: Any, ttl_seconds: float = DEFAULT_TTL_SECONDS) -> None:
        self._cache.set(self._key(key), value, ttl_seconds)

    def delete(self, key: str) -> None:
        self._cache.delete(self._key(key))

    def clear(self) -> int:
        """Drop only this tenant's entries."""
        return self._cache.clear_prefix(self._key(""))


# ── Module-level cache (process-wide singleton) ────────────────────────────

_cache: TTLCache | None = None


def get_cache() -> TTLCache:
    """Get or create the process-wide cache."""
    global _cache
    if _cache is None:
        _cache = TTLCache()
    return _cache


def get_tenant_cache(tenant_id: str) -> TenantCache:
    return TenantCache(get_cache(), tenant_id)
