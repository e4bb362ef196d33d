"""Application-scoped performance context: cache, storage, tracker and metrics."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Request

from ..config import settings
from ..security.throttle import RequestTracker
from .monitor import PerformanceMonitor
from .optimizer import estimate_cache_size, optimize_cache, preserved_entries
from .query_cache import QueryCache
from .storage import KeyValueStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClearResult:
    removed_entries: int
    preserved_entries: int
    storage_keys_removed: int
    cleared_at: float


class PerformanceContext:
    """Everything the cache/telemetry layer mutates, owned by one application."""

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.time,
        tracker: RequestTracker | None = None,
    ) -> None:
        self._clock = clock
        self.cache = QueryCache(clock=clock)
        self.tracker = tracker or RequestTracker()
        self.monitor = PerformanceMonitor()
        self.local = KeyValueStore("local")
        self.session = KeyValueStore("session")
        self.last_clear: float | None = None

    def storage(self, area: str) -> KeyValueStore:
        if area == "local":
            return self.local
        if area == "session":
            return self.session
        raise KeyError(area)

    def clear_cache(
        self,
        *,
        preserve_auth: bool = False,
        preserve_user_data: bool = False,
        preserve_recent: bool = False,
    ) -> ClearResult:
        """Wipe the cache except the preserved entries and reset counters."""
        now = self._clock()
        kept = preserved_entries(
            self.cache,
            preserve_auth=preserve_auth,
            preserve_recent=preserve_recent,
            now=now,
        )
        before = len(self.cache)
        self.cache.clear()
        for entry in kept:
            self.cache.set(entry.key, entry.data, updated_at=entry.updated_at)

        storage_removed = self.local.clear(keep_user_data=preserve_user_data)
        storage_removed += self.session.clear(keep_user_data=preserve_user_data)

        self.cache.reset_stats()
        self.last_clear = now
        logger.info("Cache cleared: %d removed, %d preserved", before - len(kept), len(kept))
        return ClearResult(
            removed_entries=before - len(kept),
            preserved_entries=len(kept),
            storage_keys_removed=storage_removed,
            cleared_at=now,
        )

    def optimize(self) -> int:
        return optimize_cache(self.cache, now=self._clock())

    def snapshot(self) -> dict:
        size = estimate_cache_size(self.cache, now=self._clock())
        return {
            "cache": size.as_dict(),
            "cache_hits": self.cache.hits,
            "cache_misses": self.cache.misses,
            "hit_rate": round(self.cache.hit_rate, 4),
            "average_latency_ms": round(self.monitor.average_latency_ms, 2),
            "slowest_routes": [
                {"route": route, "avg_ms": avg} for route, avg in self.monitor.slowest()
            ],
            "routes": self.monitor.route_stats(),
            "requests": self.tracker.stats(),
            "last_clear": self.last_clear,
        }

    def reset(self) -> None:
        self.cache.clear()
        self.cache.reset_stats()
        self.tracker.reset()
        self.monitor.reset()
        self.local.clear()
        self.session.clear()
        self.last_clear = None


class CacheMaintenance:
    """Periodically runs priority eviction on a context's cache."""

    def __init__(self, context: PerformanceContext) -> None:
        self.context = context
        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

    def start(self) -> None:
        if self._task is not None or not settings.cache_maintenance_enabled:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run_loop(), name="portal-cache-maintenance")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stop_event.set()
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        finally:
            self._task = None

    async def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            await asyncio.sleep(settings.cache_cleanup_interval_seconds)
            try:
                self.context.optimize()
            except Exception:
                logger.exception("Cache maintenance failed")


def get_performance(request: Request) -> PerformanceContext:
    """FastAPI dependency returning the application's performance context."""
    return request.app.state.performance
