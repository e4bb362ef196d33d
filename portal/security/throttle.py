"""Per-identifier request tracking and retry backoff."""

from __future__ import annotations

import logging
import random
import time
from typing import Callable

from ..config import settings

logger = logging.getLogger(__name__)


class RequestTracker:
    """Fixed-window request counter.

    Counts calls per identifier inside one shared window. Once an identifier
    reaches its limit it is throttled: every further call is refused until the
    window resets, at which point all counts and throttles are cleared.
    This is client self-throttling; it does not protect a server.
    """

    def __init__(
        self,
        *,
        window_seconds: float | None = None,
        default_limit: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.window_seconds = (
            window_seconds if window_seconds is not None else settings.request_window_seconds
        )
        self.default_limit = default_limit if default_limit is not None else settings.request_limit
        self._clock = clock
        self._counts: dict[str, int] = {}
        self._throttled: set[str] = set()
        self._window_started = clock()

    def _roll_window(self) -> None:
        now = self._clock()
        if now - self._window_started >= self.window_seconds:
            self._counts.clear()
            self._throttled.clear()
            self._window_started = now

    def track(self, identifier: str, limit: int | None = None) -> bool:
        """Record one request; return False when the identifier must back off."""
        self._roll_window()
        cap = self.default_limit if limit is None else limit

        if identifier in self._throttled:
            return False

        count = self._counts.get(identifier, 0)
        if count >= cap:
            self._throttled.add(identifier)
            logger.warning("Rate limit exceeded for %s (%d requests)", identifier, count)
            return False

        self._counts[identifier] = count + 1
        return True

    def is_throttled(self, identifier: str) -> bool:
        self._roll_window()
        return identifier in self._throttled

    def count(self, identifier: str) -> int:
        self._roll_window()
        return self._counts.get(identifier, 0)

    def reset(self) -> None:
        self._counts.clear()
        self._throttled.clear()
        self._window_started = self._clock()

    def stats(self) -> dict:
        self._roll_window()
        return {
            "tracked": len(self._counts),
            "throttled": sorted(self._throttled),
            "window_seconds": self.window_seconds,
        }


def backoff_delay(
    retry_count: int,
    base: float | None = None,
    *,
    cap: float | None = None,
    rng: Callable[[], float] = random.random,
) -> float:
    """Exponential delay in seconds: ``min(base * 2**n + U(0, 1), cap)``."""
    base_seconds = settings.backoff_base_seconds if base is None else base
    cap_seconds = settings.backoff_max_seconds if cap is None else cap
    exponent = min(max(0, retry_count), 32)
    delay = base_seconds * (2 ** exponent) + rng()
    return min(delay, cap_seconds)
