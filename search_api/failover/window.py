"""
Sliding window of recent health-probe outcomes.

The window keeps the last ``capacity`` probe results in arrival order and
derives the aggregate statistics the rollback policy looks at.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of one health check against the search engine."""

    latency_ms: float
    succeeded: bool
    error: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def as_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "latency_ms": round(self.latency_ms, 2),
            "succeeded": self.succeeded,
            "error": self.error,
        }


@dataclass(frozen=True)
class WindowSnapshot:
    """Aggregate health statistics over the current window contents."""

    error_rate: float = 0.0
    avg_latency_successful: float = 0.0
    consecutive_failures: int = 0
    sample_count: int = 0


class MetricsWindow:
    """Bounded FIFO of ``ProbeResult`` objects.

    An empty window reports itself as healthy (all statistics zero) so a
    freshly started controller never trips before it has data.

    Not thread-safe on its own; ``FailoverController`` serialises access.
    """

    def __init__(self, capacity: int = 20):
        if capacity < 1:
            raise ValueError("window capacity must be at least 1")
        self.capacity = capacity
        self._results: deque[ProbeResult] = deque(maxlen=capacity)

    def __len__(self) -> int:
        return len(self._results)

    def record(self, result: ProbeResult) -> None:
        self._results.append(result)

    def clear(self) -> None:
        self._results.clear()

    def recent(self, n: int) -> list[ProbeResult]:
        """Return the last ``n`` results, oldest first."""
        if n <= 0:
            return []
        return list(self._results)[-n:]

    def snapshot(self) -> WindowSnapshot:
        total = len(self._results)
        if total == 0:
            return WindowSnapshot()

        latencies = [r.latency_ms for r in self._results if r.succeeded]
        failed = total - len(latencies)

        trailing = 0
        for result in reversed(self._results):
            if result.succeeded:
                break
            trailing += 1

        return WindowSnapshot(
            error_rate=failed / total,
            avg_latency_successful=(sum(latencies) / len(latencies)) if latencies else 0.0,
            consecutive_failures=trailing,
            sample_count=total,
        )
