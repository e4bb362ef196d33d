"""Query cache, eviction planning, selective clear and the performance context."""

from __future__ import annotations

import pytest

from portal.cache.context import PerformanceContext
from portal.cache.optimizer import (
    clear_stale_entries,
    entry_size,
    estimate_cache_size,
    optimize_cache,
    plan_eviction,
)
from portal.cache.query_cache import QueryCache
from portal.cache.storage import KeyValueStore
from portal.security.throttle import RequestTracker


class FakeClock:
    def __init__(self, now: float = 10_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


BIG = "x" * 30_000  # 60 000 estimated bytes
THRESHOLDS = dict(stale_after=300, max_age=1800, large_bytes=50_000)


def test_entry_size_is_json_chars_times_two():
    cache = QueryCache(clock=FakeClock())
    entry = cache.set(("k",), {"a": 1})
    assert entry_size(entry) == len('{"a": 1}') * 2
    assert entry_size(cache.set(("none",), None)) == 0
    assert entry_size(cache.set(("bad",), object())) is None


def test_estimate_cache_size_flags_large_and_old():
    clock = FakeClock()
    cache = QueryCache(clock=clock)
    cache.set(("small",), [1, 2, 3])
    cache.set(("big",), BIG)
    cache.set(("old",), "v", updated_at=clock.now - 4000)
    cache.set(("unserializable",), {1, 2})

    report = estimate_cache_size(cache, large_bytes=50_000, max_age=1800)
    assert report.entry_count == 4
    assert report.large_entries == 1
    assert report.old_entries == 1
    assert report.total_bytes == (len("[1, 2, 3]") + len(f'"{BIG}"') + len('"v"')) * 2
    assert len(cache) == 4


def test_estimate_skips_empty_entries():
    clock = FakeClock()
    cache = QueryCache(clock=clock)
    cache.set(("empty",), None, updated_at=clock.now - 4000)
    cache.set(("old",), "v", updated_at=clock.now - 4000)

    report = estimate_cache_size(cache, large_bytes=50_000, max_age=1800)
    assert report.entry_count == 2
    assert report.old_entries == 1


def test_large_threshold_is_in_bytes_not_characters():
    clock = FakeClock()
    cache = QueryCache(clock=clock)
    old = clock.now - 4000
    # 25 001 chars of JSON are 50 002 bytes; 24 000 chars are 48 000
    cache.set(("over",), "x" * 24_999, updated_at=old)
    cache.set(("under",), "x" * 23_998, updated_at=old)

    plan = plan_eviction(cache, now=clock.now, **THRESHOLDS)
    assert plan.high == [("over",)]
    assert plan.medium == [("under",)]


@pytest.mark.asyncio
async def test_fetch_counts_hits_and_misses():
    clock = FakeClock()
    cache = QueryCache(clock=clock)
    calls = []

    async def loader():
        calls.append(1)
        return {"n": len(calls)}

    assert await cache.fetch(("stats",), loader, stale_after=60) == {"n": 1}
    assert await cache.fetch(("stats",), loader, stale_after=60) == {"n": 1}
    assert (cache.hits, cache.misses) == (1, 1)

    clock.now += 61
    assert await cache.fetch(("stats",), loader, stale_after=60) == {"n": 2}
    assert cache.misses == 2
    assert cache.hit_rate == pytest.approx(1 / 3)
    assert cache.get(("stats",)).observers == 0


def test_observed_entry_counts_observers():
    cache = QueryCache(clock=FakeClock())
    cache.set(("k",), 1)
    with cache.observe(("k",)):
        with cache.observe(("k",)):
            assert cache.get(("k",)).observers == 2
        assert cache.get(("k",)).observers == 1
    assert cache.get(("k",)).observers == 0


def test_invalidate_prefix():
    cache = QueryCache(clock=FakeClock())
    cache.set(("analytics", "messaging", "u1", 30), 1)
    cache.set(("analytics", "messaging", "u1", 7), 2)
    cache.set(("analytics", "messaging", "u2", 30), 3)
    assert cache.invalidate_prefix("analytics", "messaging", "u1") == 2
    assert len(cache) == 1


def test_old_and_large_entry_is_evicted_before_merely_old():
    clock = FakeClock()
    cache = QueryCache(clock=clock)
    cache.set(("old-large",), BIG, updated_at=clock.now - 2000)
    cache.set(("very-old",), "v", updated_at=clock.now - 4000)
    cache.set(("stale",), "v", updated_at=clock.now - 400)
    cache.set(("fresh",), "v")

    plan = plan_eviction(cache, **THRESHOLDS)
    assert plan.high == [("old-large",)]
    assert plan.medium == [("very-old",)]
    assert plan.low == [("stale",)]
    order = plan.ordered()
    assert order.index(("old-large",)) < order.index(("very-old",)) < order.index(("stale",))

    assert optimize_cache(cache, **THRESHOLDS) == 3
    assert cache.entries()[0].key == ("fresh",)


def test_observed_entry_is_never_evicted():
    clock = FakeClock()
    cache = QueryCache(clock=clock)
    cache.set(("active",), BIG, updated_at=clock.now - 100_000)
    with cache.observe(("active",)):
        assert len(plan_eviction(cache, **THRESHOLDS)) == 0
        assert optimize_cache(cache, **THRESHOLDS) == 0
    assert ("active",) in cache


def test_unserializable_old_entry_is_medium_priority():
    clock = FakeClock()
    cache = QueryCache(clock=clock)
    cache.set(("set",), {1, 2}, updated_at=clock.now - 2000)
    cache.set(("set-fresh",), {1, 2}, updated_at=clock.now - 400)
    plan = plan_eviction(cache, **THRESHOLDS)
    assert plan.medium == [("set",)]
    assert plan.low == []


def test_clear_stale_entries_respects_preserve_keys_and_only_large():
    clock = FakeClock()
    cache = QueryCache(clock=clock)
    cache.set(("old-small",), "v", updated_at=clock.now - 2000)
    cache.set(("old-large",), BIG, updated_at=clock.now - 2000)
    cache.set(("auth", "session"), "v", updated_at=clock.now - 2000)
    cache.set(("fresh",), "v")

    assert clear_stale_entries(cache, max_age=1800, only_large=True) == 1
    assert ("old-large",) not in cache
    assert clear_stale_entries(cache, max_age=1800, preserve_keys=["auth"]) == 1
    assert ("auth", "session") in cache
    assert ("fresh",) in cache


def test_storage_clear_keeps_user_data_when_asked():
    store = KeyValueStore("local")
    store.set("user_prefs", {"theme": "dark"})
    store.set("auth_token", "t")
    store.set("webp_support", True)

    assert store.clear(keep_user_data=True) == 1
    assert sorted(store.keys()) == ["auth_token", "user_prefs"]
    assert store.clear() == 2
    assert len(store) == 0


def _seeded_context(clock: FakeClock) -> PerformanceContext:
    perf = PerformanceContext(clock=clock)
    perf.cache.set(("auth", "session"), "s", updated_at=clock.now - 1000)
    perf.cache.set(("profile", "u1"), "p", updated_at=clock.now - 1000)
    perf.cache.set(("analytics", "messaging"), "a", updated_at=clock.now - 10)
    perf.cache.set(("services", "catalog"), "c", updated_at=clock.now - 1000)
    perf.local.set("user_settings", 1)
    perf.local.set("image_format", "webp")
    perf.session.set("auth_redirect", "/x")
    return perf


def test_clear_cache_without_preservation_wipes_everything():
    clock = FakeClock()
    perf = _seeded_context(clock)
    perf.cache.hits = 5

    result = perf.clear_cache()
    assert result.removed_entries == 4
    assert result.preserved_entries == 0
    assert result.storage_keys_removed == 3
    assert len(perf.cache) == 0
    assert perf.cache.hits == 0
    assert perf.last_clear == clock.now


def test_clear_cache_preserves_auth_and_recent_entries():
    clock = FakeClock()
    perf = _seeded_context(clock)

    result = perf.clear_cache(preserve_auth=True, preserve_recent=True, preserve_user_data=True)
    kept = {entry.key for entry in perf.cache.entries()}
    assert kept == {("auth", "session"), ("profile", "u1"), ("analytics", "messaging")}
    assert result.preserved_entries == 3
    # Preserved entries keep their original timestamps
    assert perf.cache.get(("auth", "session")).updated_at == clock.now - 1000
    assert perf.local.keys() == ["user_settings"]
    assert perf.session.keys() == ["auth_redirect"]


def test_clear_cache_preserve_recent_only():
    clock = FakeClock()
    perf = _seeded_context(clock)
    perf.clear_cache(preserve_recent=True)
    assert [e.key for e in perf.cache.entries()] == [("analytics", "messaging")]


def test_context_snapshot_and_reset():
    clock = FakeClock()
    perf = PerformanceContext(clock=clock, tracker=RequestTracker(window_seconds=60, clock=clock))
    perf.cache.set(("k",), [1])
    perf.monitor.record("GET /api/contacts", 12.0)
    perf.monitor.record("GET /api/contacts", 18.0)
    perf.tracker.track("u1")

    snap = perf.snapshot()
    assert snap["cache"]["entry_count"] == 1
    assert snap["average_latency_ms"] == 15.0
    assert snap["routes"]["GET /api/contacts"]["count"] == 2
    assert snap["requests"]["tracked"] == 1

    perf.reset()
    snap = perf.snapshot()
    assert snap["cache"]["entry_count"] == 0
    assert snap["routes"] == {}
    assert snap["requests"]["tracked"] == 0


def test_storage_area_lookup():
    perf = PerformanceContext()
    assert perf.storage("local") is perf.local
    assert perf.storage("session") is perf.session
    with pytest.raises(KeyError):
        perf.storage("cookies")
