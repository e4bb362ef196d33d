"""In-process query cache with observer counts and hit/miss accounting."""

from __future__ import annotations

import json
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Hashable, Iterator

CacheKey = tuple[Hashable, ...]


def key_text(key: CacheKey) -> str:
    """JSON spelling of a key, used for substring matching."""
    return json.dumps(list(key), default=str)


@dataclass
class CacheEntry:
    key: CacheKey
    data: Any
    updated_at: float
    observers: int = 0
    meta: dict = field(default_factory=dict)

    def age(self, now: float) -> float:
        return now - self.updated_at


class QueryCache:
    """Keyed store of loaded query results.

    ``observers`` counts active consumers of a key; entries with observers are
    never evicted by the optimizer.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._entries: dict[CacheKey, CacheEntry] = {}
        self._observers: dict[CacheKey, int] = {}
        self.hits = 0
        self.misses = 0

    def now(self) -> float:
        return self._clock()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._entries

    def get(self, key: CacheKey) -> CacheEntry | None:
        return self._entries.get(key)

    def set(self, key: CacheKey, data: Any, *, updated_at: float | None = None) -> CacheEntry:
        entry = CacheEntry(
            key=key,
            data=data,
            updated_at=self._clock() if updated_at is None else updated_at,
            observers=self._observers.get(key, 0),
        )
        self._entries[key] = entry
        return entry

    def remove(self, key: CacheKey) -> bool:
        return self._entries.pop(key, None) is not None

    def invalidate_prefix(self, *prefix: Hashable) -> int:
        """Drop every entry whose key starts with ``prefix``."""
        doomed = [k for k in self._entries if k[: len(prefix)] == prefix]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def clear(self) -> None:
        self._entries.clear()

    def entries(self) -> list[CacheEntry]:
        return list(self._entries.values())

    def reset_stats(self) -> None:
        self.hits = 0
        self.misses = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return (self.hits / total) if total else 0.0

    def _adjust_observers(self, key: CacheKey, delta: int) -> None:
        count = max(0, self._observers.get(key, 0) + delta)
        if count:
            self._observers[key] = count
        else:
            self._observers.pop(key, None)
        entry = self._entries.get(key)
        if entry is not None:
            entry.observers = count

    @contextmanager
    def observe(self, key: CacheKey) -> Iterator[None]:
        """Mark ``key`` as in use for the duration of the block."""
        self._adjust_observers(key, 1)
        try:
            yield
        finally:
            self._adjust_observers(key, -1)

    async def fetch(
        self,
        key: CacheKey,
        loader: Callable[[], Awaitable[Any]],
        *,
        stale_after: float,
    ) -> Any:
        """Return fresh cached data, or load, store and return it."""
        with self.observe(key):
            entry = self._entries.get(key)
            if entry is not None and entry.age(self._clock()) <= stale_after:
                self.hits += 1
                return entry.data
            self.misses += 1
            data = await loader()
            self.set(key, data)
            return data
