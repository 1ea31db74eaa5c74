"""Simple in-memory TTL cache. No Redis needed for MVP.

Note: Each uvicorn worker has its own cache instance. With --workers 2,
availability may be fetched twice (once per worker). This is acceptable for
this project's scale — the cache still eliminates repeated upstream calls
within the same worker.

Expired entries are dropped lazily on read, and a background task sweeps the
whole store so keys that are never read again do not accumulate.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    data: Any
    stored_at: float
    ttl: float

    def expired(self, now: float) -> bool:
        return now - self.stored_at > self.ttl


class TTLCache:
    def __init__(
        self,
        default_ttl: float = 300,
        sweep_interval: float = 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl = default_ttl
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._store: dict[str, CacheEntry] = {}
        self._sweep_task: asyncio.Task | None = None
        self.hits = 0
        self.misses = 0

    def get(self, key: str, default: Any = None) -> Any:
        entry = self._store.get(key)
        if entry is None:
            self.misses += 1
            return default
        if entry.expired(self._clock()):
            del self._store[key]
            self.misses += 1
            return default
        self.hits += 1
        return entry.data

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        self._store[key] = CacheEntry(
            data=value,
            stored_at=self._clock(),
            ttl=self.default_ttl if ttl is None else ttl,
        )

    def delete(self, key: str) -> None:
        self._store.pop(key, None)

    def clear(self) -> None:
        self._store.clear()

    def sweep(self) -> int:
        """Evict every expired entry. Returns the number removed."""
        now = self._clock()
        expired = [key for key, entry in self._store.items() if entry.expired(now)]
        for key in expired:
            del self._store[key]
        if expired:
            logger.debug("Swept %d expired cache entries", len(expired))
        return len(expired)

    def stats(self) -> dict:
        return {"entries": len(self._store), "hits": self.hits, "misses": self.misses}

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, key: str) -> bool:
        entry = self._store.get(key)
        return entry is not None and not entry.expired(self._clock())

    # -- background sweep ------------------------------------------------

    @property
    def sweeping(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    async def start(self) -> None:
        """Start the periodic sweep on the running event loop."""
        if self.sweeping:
            return
        self._sweep_task = asyncio.create_task(self._sweep_loop())
        logger.info("Cache sweeper started (interval=%ss)", self.sweep_interval)

    async def stop(self) -> None:
        if self._sweep_task is None:
            return
        self._sweep_task.cancel()
        try:
            await self._sweep_task
        except asyncio.CancelledError:
            pass
        self._sweep_task = None
        logger.info("Cache sweeper stopped")

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            self.sweep()
