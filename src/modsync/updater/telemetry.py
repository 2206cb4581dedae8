"""In-process counters, timings and events for one updater run.

A Telemetry instance is created by the updater entry point and handed to the
components that record into it.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime

logger = logging.getLogger(__name__)


@dataclass
class MetricSummary:
    """Aggregates of one metric."""

    name: str
    count: int
    total: float = 0.0
    average: float = 0.0
    minimum: float = 0.0
    maximum: float = 0.0
    p95: float = 0.0

    def __str__(self) -> str:
        if self.total == 0 and self.maximum == 0:
            return f"{self.name}: count={self.count}"
        return (
            f"{self.name}: count={self.count} avg={self.average:.1f} "
            f"min={self.minimum:.1f} max={self.maximum:.1f} p95={self.p95:.1f}"
        )


@dataclass
class TelemetrySummary:
    """Snapshot of everything recorded so far."""

    uptime: float
    metrics: list[MetricSummary] = field(default_factory=list)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def get(self, name: str) -> MetricSummary | None:
        return next((m for m in self.metrics if m.name == name), None)

    def __str__(self) -> str:
        lines = [f"=== Telemetry Summary (uptime {self.uptime:.1f}s) ==="]
        lines.extend(f"  {m}" for m in self.metrics)
        return "\n".join(lines)


def _percentile(values: list[float], fraction: float) -> float:
    if not values:
        return 0.0
    ordered = sorted(values)
    index = max(0, min(math.ceil(fraction * len(ordered)) - 1, len(ordered) - 1))
    return ordered[index]


class Telemetry:
    """Collects metrics for the current run."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._started = time.monotonic()
        self._values: dict[str, list[float]] = {}
        self._counts: dict[str, int] = {}

    def record_metric(self, name: str, value: float) -> None:
        with self._lock:
            self._values.setdefault(name, []).append(value)
            self._counts[name] = self._counts.get(name, 0) + 1

    def record_event(self, name: str) -> None:
        key = f"event:{name}"
        with self._lock:
            self._counts[key] = self._counts.get(key, 0) + 1

    @contextmanager
    def operation(self, name: str) -> Iterator[None]:
        """Time a block, recording its duration and success or failure."""
        start = time.monotonic()
        success = False
        try:
            yield
            success = True
        finally:
            self.record_metric(f"{name}.duration_ms", (time.monotonic() - start) * 1000)
            self.record_event(f"{name}.{'success' if success else 'failure'}")

    def summary(self) -> TelemetrySummary:
        with self._lock:
            metrics = []
            for name in sorted(self._counts):
                values = self._values.get(name, [])
                metrics.append(
                    MetricSummary(
                        name=name,
                        count=self._counts[name],
                        total=sum(values),
                        average=sum(values) / len(values) if values else 0.0,
                        minimum=min(values, default=0.0),
                        maximum=max(values, default=0.0),
                        p95=_percentile(values, 0.95),
                    )
                )
            return TelemetrySummary(uptime=time.monotonic() - self._started, metrics=metrics)

    def clear(self) -> None:
        with self._lock:
            self._values.clear()
            self._counts.clear()
