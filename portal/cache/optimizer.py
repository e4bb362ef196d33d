"""Cache size estimation, priority eviction and selective clearing."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Iterable

from ..config import settings
from .query_cache import CacheEntry, CacheKey, QueryCache, key_text

logger = logging.getLogger(__name__)

BYTES_PER_CHAR = 2
AUTH_KEY_MARKERS = ("auth", "user", "profile")


def entry_size(entry: CacheEntry) -> int | None:
    """Estimated bytes for an entry's data, or None if it cannot be serialized."""
    if entry.data is None:
        return 0
    try:
        return len(json.dumps(entry.data)) * BYTES_PER_CHAR
    except (TypeError, ValueError, OverflowError):
        return None


@dataclass(frozen=True)
class CacheSizeReport:
    total_bytes: int = 0
    entry_count: int = 0
    large_entries: int = 0
    old_entries: int = 0

    @property
    def total_kb(self) -> float:
        return round(self.total_bytes / 1024, 2)

    def as_dict(self) -> dict:
        return {
            "total_bytes": self.total_bytes,
            "total_kb": self.total_kb,
            "entry_count": self.entry_count,
            "large_entries": self.large_entries,
            "old_entries": self.old_entries,
        }


def estimate_cache_size(
    cache: QueryCache,
    *,
    now: float | None = None,
    large_bytes: int | None = None,
    max_age: float | None = None,
) -> CacheSizeReport:
    """Approximate the cache footprint. Never mutates the cache."""
    current = cache.now() if now is None else now
    large = settings.cache_large_entry_bytes if large_bytes is None else large_bytes
    oldest = settings.cache_max_age_seconds if max_age is None else max_age

    total = large_count = old_count = 0
    entries = cache.entries()
    for entry in entries:
        if entry.data is None:
            continue
        size = entry_size(entry)
        if size is None:
            continue
        total += size
        if size > large:
            large_count += 1
        if entry.age(current) > oldest:
            old_count += 1

    return CacheSizeReport(
        total_bytes=total,
        entry_count=len(entries),
        large_entries=large_count,
        old_entries=old_count,
    )


@dataclass
class EvictionPlan:
    high: list[CacheKey] = field(default_factory=list)
    medium: list[CacheKey] = field(default_factory=list)
    low: list[CacheKey] = field(default_factory=list)

    def ordered(self) -> list[CacheKey]:
        return [*self.high, *self.medium, *self.low]

    def __len__(self) -> int:
        return len(self.high) + len(self.medium) + len(self.low)


def plan_eviction(
    cache: QueryCache,
    *,
    now: float | None = None,
    stale_after: float | None = None,
    max_age: float | None = None,
    large_bytes: int | None = None,
) -> EvictionPlan:
    """Classify unobserved entries by eviction priority.

    high: older than max age and large; medium: older than twice max age;
    low: older than the stale time. Entries that cannot be sized are medium
    once they pass max age.

    "Large" is measured in estimated bytes (JSON characters x 2), so the
    default 50 000 byte threshold is met by about 25 000 characters of data.
    """
    current = cache.now() if now is None else now
    stale = settings.cache_stale_seconds if stale_after is None else stale_after
    oldest = settings.cache_max_age_seconds if max_age is None else max_age
    large = settings.cache_large_entry_bytes if large_bytes is None else large_bytes

    plan = EvictionPlan()
    for entry in cache.entries():
        if entry.observers > 0:
            continue
        age = entry.age(current)
        size = entry_size(entry)
        if size is None:
            if age > oldest:
                plan.medium.append(entry.key)
            continue
        if age > oldest and size > large:
            plan.high.append(entry.key)
        elif age > oldest * 2:
            plan.medium.append(entry.key)
        elif age > stale:
            plan.low.append(entry.key)
    return plan


def optimize_cache(cache: QueryCache, **thresholds) -> int:
    """Evict by priority (high, then medium, then low). Returns the count removed."""
    plan = plan_eviction(cache, **thresholds)
    removed = sum(1 for key in plan.ordered() if cache.remove(key))
    if removed:
        logger.info(
            "Cache optimized: removed %d entries (high=%d medium=%d low=%d)",
            removed, len(plan.high), len(plan.medium), len(plan.low),
        )
    return removed


def clear_stale_entries(
    cache: QueryCache,
    *,
    max_age: float | None = None,
    only_large: bool = False,
    preserve_keys: Iterable[str] = (),
    now: float | None = None,
) -> int:
    """Drop entries older than ``max_age``; optionally only the large ones."""
    current = cache.now() if now is None else now
    oldest = settings.cache_max_age_seconds if max_age is None else max_age
    markers = tuple(preserve_keys)

    removed = 0
    for entry in cache.entries():
        if markers and any(marker in key_text(entry.key) for marker in markers):
            continue
        if entry.age(current) <= oldest:
            continue
        if only_large:
            size = entry_size(entry)
            if size is None or size <= settings.cache_large_entry_bytes:
                continue
        if cache.remove(entry.key):
            removed += 1
    return removed


def preserved_entries(
    cache: QueryCache,
    *,
    preserve_auth: bool,
    preserve_recent: bool,
    now: float | None = None,
    recent_seconds: float | None = None,
) -> list[CacheEntry]:
    """Entries a selective clear keeps.

    Auth preservation matches ``auth``, ``user`` or ``profile`` anywhere in the
    key's JSON text, so unrelated keys containing those words are kept too.
    """
    current = cache.now() if now is None else now
    window = settings.cache_recent_seconds if recent_seconds is None else recent_seconds

    kept: list[CacheEntry] = []
    for entry in cache.entries():
        text = key_text(entry.key).lower()
        if preserve_auth and any(marker in text for marker in AUTH_KEY_MARKERS):
            kept.append(entry)
        elif preserve_recent and entry.age(current) < window:
            kept.append(entry)
    return kept
