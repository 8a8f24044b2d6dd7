"""Per-tenant engine cache.

Owned by one ``ConnectionManager``. Reads are plain dict lookups; first
creation of an engine for a tenant is serialized per tenant id so
concurrent first requests converge on a single pool. A tenant's lock
lives only while some task holds or waits on it.
"""

import asyncio
import time
import weakref
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncEngine


logger = structlog.get_logger()


@dataclass
class CacheEntry:
    engine: AsyncEngine
    created_at: float
    last_used: float


class ConnectionCache:
    """Tenant id to ``AsyncEngine`` map with insert-if-absent semantics.

    Args:
        clock: Monotonic time source, injectable for tests
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[int, CacheEntry] = {}
        self._locks: weakref.WeakValueDictionary[int, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, tenant_id: object) -> bool:
        return tenant_id in self._entries

    def _lock_for(self, tenant_id: int) -> asyncio.Lock:
        lock = self._locks.get(tenant_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[tenant_id] = lock
        return lock

    def get(self, tenant_id: int) -> AsyncEngine | None:
        """Return the cached engine without locking, or None."""
        entry = self._entries.get(tenant_id)
        if entry is None:
            return None
        entry.last_used = self._clock()
        self.hits += 1
        return entry.engine

    async def get_or_create(
        self,
        tenant_id: int,
        factory: Callable[[], Awaitable[AsyncEngine]],
    ) -> AsyncEngine:
        """Return the cached engine, creating it once if absent.

        Args:
            tenant_id: Tenant the engine belongs to
            factory: Coroutine function building a new engine

        Returns:
            The single cached engine for the tenant

        Raises:
            Whatever ``factory`` raises; nothing is cached in that case.
        """
        engine = self.get(tenant_id)
        if engine is not None:
            return engine

        async with self._lock_for(tenant_id):
            # Another task may have filled the slot while we waited
            engine = self.get(tenant_id)
            if engine is not None:
                return engine

            self.misses += 1
            engine = await factory()
            now = self._clock()
            self._entries[tenant_id] = CacheEntry(
                engine=engine, created_at=now, last_used=now
            )
            return engine

    async def invalidate(self, tenant_id: int) -> bool:
        """Drop and dispose the engine for one tenant.

        Returns:
            True if an engine was cached
        """
        async with self._lock_for(tenant_id):
            entry = self._entries.pop(tenant_id, None)
        if entry is None:
            return False
        await entry.engine.dispose()
        return True

    async def evict_idle(self, max_idle_seconds: float) -> list[int]:
        """Dispose engines unused for longer than ``max_idle_seconds``.

        Returns:
            Tenant ids that were evicted
        """
        cutoff = self._clock() - max_idle_seconds
        idle = [
            tenant_id
            for tenant_id, entry in list(self._entries.items())
            if entry.last_used < cutoff
        ]
        evicted = []
        for tenant_id in idle:
            async with self._lock_for(tenant_id):
                entry = self._entries.get(tenant_id)
                # Re-check: the engine may have been used meanwhile
                if entry is None or entry.last_used >= cutoff:
                    continue
                del self._entries[tenant_id]
            await entry.engine.dispose()
            evicted.append(tenant_id)
        return evicted

    async def clear(self) -> int:
        """Dispose every cached engine.

        Returns:
            Number of engines disposed
        """
        entries = list(self._entries.items())
        self._entries.clear()
        for tenant_id, entry in entries:
            try:
                await entry.engine.dispose()
            except Exception as e:
                logger.warning(
                    "tenant_pool_dispose_failed", tenant_id=tenant_id, error=str(e)
                )
        return len(entries)

    def stats(self) -> dict[str, Any]:
        """Cache counters for health and CLI output."""
        return {
            "size": len(self._entries),
            "tenant_ids": sorted(self._entries),
            "hits": self.hits,
            "misses": self.misses,
        }
