"""
Counters and duration windows for the feed and simulator loops.

Exposed as-is on ``/api/status``.
"""

import time
from dataclasses import dataclass

from tradesim.config.constants import METRICS_WINDOW_SIZE
from tradesim.utils.buffers import RollingWindow


@dataclass(slots=True, frozen=True)
class DurationStats:
    """Aggregated durations over the retained samples, in microseconds."""

    count: int = 0
    min_us: int = 0
    max_us: int = 0
    avg_us: float = 0.0
    p50_us: int = 0
    p95_us: int = 0

    @classmethod
    def from_samples(cls, samples: list[int]) -> "DurationStats":
        if not samples:
            return cls()
        ordered = sorted(samples)
        n = len(ordered)
        return cls(
            count=n,
            min_us=ordered[0],
            max_us=ordered[-1],
            avg_us=sum(ordered) / n,
            p50_us=ordered[n // 2],
            p95_us=ordered[min(n - 1, int(n * 0.95))],
        )

    def to_dict(self) -> dict[str, float | int]:
        return {
            "count": self.count,
            "minMs": self.min_us / 1000,
            "maxMs": self.max_us / 1000,
            "avgMs": round(self.avg_us / 1000, 3),
            "p50Ms": self.p50_us / 1000,
            "p95Ms": self.p95_us / 1000,
        }


class MetricsCollector:
    """
    Named counters plus a rolling window of durations per operation.

    Counter names in use: ``feed_fetch_attempts``, ``feed_fetch_successes``,
    ``feed_fetch_failures``, ``feed_rate_limited``, ``feed_cache_hits``,
    ``feed_budget_exhausted``, ``simulator_ticks``, ``simulator_errors``,
    ``arbitrages_completed``. Durations: ``price_fetch``, ``simulation_tick``.
    """

    def __init__(self, window_size: int = METRICS_WINDOW_SIZE) -> None:
        self._window_size = window_size
        self._durations: dict[str, RollingWindow[int]] = {}
        self._counters: dict[str, int] = {}
        self._started = time.monotonic()

    def record_duration(self, name: str, duration_us: int) -> None:
        """Add one duration sample in microseconds."""
        window = self._durations.get(name)
        if window is None:
            window = self._durations[name] = RollingWindow(self._window_size)
        window.append(duration_us)

    def increment_counter(self, name: str, value: int = 1) -> None:
        self._counters[name] = self._counters.get(name, 0) + value

    def get_counter(self, name: str) -> int:
        return self._counters.get(name, 0)

    def get_duration_stats(self, name: str) -> DurationStats:
        window = self._durations.get(name)
        return DurationStats.from_samples(window.to_list() if window else [])

    @property
    def uptime_seconds(self) -> float:
        return time.monotonic() - self._started

    def to_dict(self) -> dict[str, object]:
        """Wire form for the status route."""
        return {
            "uptimeSeconds": round(self.uptime_seconds, 1),
            "counters": dict(sorted(self._counters.items())),
            "durations": {
                name: self.get_duration_stats(name).to_dict() for name in sorted(self._durations)
            },
        }
