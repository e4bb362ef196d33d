"""Per-route request timing stats."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field

MAX_SAMPLES = 20


@dataclass
class RouteTiming:
    samples: deque[float] = field(default_factory=lambda: deque(maxlen=MAX_SAMPLES))
    count: int = 0
    min_ms: float | None = None
    max_ms: float | None = None

    def add(self, duration_ms: float) -> None:
        self.samples.append(duration_ms)
        self.count += 1
        self.min_ms = duration_ms if self.min_ms is None else min(self.min_ms, duration_ms)
        self.max_ms = duration_ms if self.max_ms is None else max(self.max_ms, duration_ms)

    @property
    def avg_ms(self) -> float:
        return sum(self.samples) / len(self.samples) if self.samples else 0.0

    def as_dict(self) -> dict:
        return {
            "count": self.count,
            "avg_ms": round(self.avg_ms, 2),
            "min_ms": round(self.min_ms or 0.0, 2),
            "max_ms": round(self.max_ms or 0.0, 2),
            "last_ms": round(self.samples[-1], 2) if self.samples else 0.0,
            "samples": len(self.samples),
        }


class PerformanceMonitor:
    def __init__(self) -> None:
        self._routes: dict[str, RouteTiming] = {}

    def record(self, route: str, duration_ms: float) -> None:
        self._routes.setdefault(route, RouteTiming()).add(duration_ms)

    def route_stats(self) -> dict[str, dict]:
        return {route: timing.as_dict() for route, timing in sorted(self._routes.items())}

    @property
    def average_latency_ms(self) -> float:
        samples = [s for timing in self._routes.values() for s in timing.samples]
        return sum(samples) / len(samples) if samples else 0.0

    def slowest(self, limit: int = 5) -> list[tuple[str, float]]:
        ranked = sorted(
            ((route, timing.avg_ms) for route, timing in self._routes.items()),
            key=lambda item: item[1],
            reverse=True,
        )
        return [(route, round(avg, 2)) for route, avg in ranked[:limit]]

    def reset(self) -> None:
        self._routes.clear()
