"""Request tracker and backoff delay."""

from __future__ import annotations

from portal.security.throttle import RequestTracker, backoff_delay


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_tracker_allows_up_to_limit_then_throttles():
    clock = FakeClock()
    tracker = RequestTracker(window_seconds=60, default_limit=500, clock=clock)

    results = [tracker.track("user-1") for _ in range(500)]
    assert all(results)
    assert tracker.count("user-1") == 500

    assert tracker.track("user-1") is False
    assert tracker.is_throttled("user-1")
    # Stays throttled for the rest of the window
    assert tracker.track("user-1") is False
    assert tracker.track("user-2") is True


def test_tracker_resets_on_window_boundary():
    clock = FakeClock()
    tracker = RequestTracker(window_seconds=60, default_limit=2, clock=clock)
    assert tracker.track("a")
    assert tracker.track("a")
    assert not tracker.track("a")

    clock.now += 59
    assert not tracker.track("a")

    clock.now += 1
    assert not tracker.is_throttled("a")
    assert tracker.track("a")
    assert tracker.count("a") == 1


def test_tracker_per_call_limit_overrides_default():
    tracker = RequestTracker(window_seconds=60, default_limit=500, clock=FakeClock())
    assert tracker.track("x", limit=1)
    assert not tracker.track("x", limit=1)


def test_tracker_reset_and_stats():
    tracker = RequestTracker(window_seconds=60, default_limit=1, clock=FakeClock())
    tracker.track("a")
    tracker.track("a")
    stats = tracker.stats()
    assert stats["tracked"] == 1
    assert stats["throttled"] == ["a"]

    tracker.reset()
    assert tracker.stats() == {"tracked": 0, "throttled": [], "window_seconds": 60}


def test_backoff_first_retry_is_base_plus_jitter():
    assert backoff_delay(0, base=1.0, cap=30.0, rng=lambda: 0.0) == 1.0
    assert backoff_delay(0, base=1.0, cap=30.0, rng=lambda: 0.999) == 1.999


def test_backoff_is_non_decreasing_and_capped():
    delays = [backoff_delay(n, base=1.0, cap=30.0, rng=lambda: 0.5) for n in range(12)]
    assert delays == sorted(delays)
    assert delays[-1] == 30.0
    assert max(delays) <= 30.0


def test_backoff_handles_huge_retry_counts():
    assert backoff_delay(10_000, base=1.0, cap=30.0, rng=lambda: 0.0) == 30.0
