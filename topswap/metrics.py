"""Swap metrics for observability.

Provides Prometheus-compatible metrics for:
- Swap counts by topology class and outcome
- Swap durations (provision through removal)
- Drain status checks and cleanup failures
"""

from collections import defaultdict
from dataclasses import dataclass, field
from threading import Lock
from typing import Any

# Swaps wait on an external drain, so buckets run from sub-second to half an hour.
DEFAULT_BUCKETS = [0.1, 0.5, 1.0, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0, 600.0, 1800.0]


@dataclass
class Histogram:
    """Cumulative-bucket histogram for duration tracking."""

    buckets: list[float] = field(default_factory=lambda: list(DEFAULT_BUCKETS))
    counts: dict[float, int] = field(default_factory=lambda: defaultdict(int))
    sum: float = 0.0
    count: int = 0

    def observe(self, value: float) -> None:
        """Record an observation."""
        self.sum += value
        self.count += 1
        for bucket in self.buckets:
            if value <= bucket:
                self.counts[bucket] += 1

    def to_prometheus(self, name: str, labels: str = "") -> str:
        """Render in Prometheus histogram format."""
        extra = f", {labels}" if labels else ""
        label_str = f"{{{labels}}}" if labels else ""
        lines = [
            f'{name}_bucket{{le="{bucket}"{extra}}} {self.counts[bucket]}'
            for bucket in self.buckets
        ]
        lines.append(f'{name}_bucket{{le="+Inf"{extra}}} {self.count}')
        lines.append(f"{name}_sum{label_str} {self.sum}")
        lines.append(f"{name}_count{label_str} {self.count}")
        return "\n".join(lines)


class MetricsRegistry:
    """Thread-safe registry of counters, gauges and histograms."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._counters: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
        self._gauges: dict[str, dict[str, float]] = defaultdict(lambda: defaultdict(float))
        self._histograms: dict[str, dict[str, Histogram]] = defaultdict(dict)

    def inc_counter(self, name: str, labels: dict[str, str] | None = None, value: int = 1) -> None:
        """Increment a counter metric."""
        label_key = self._labels_to_key(labels)
        with self._lock:
            self._counters[name][label_key] += value

    def set_gauge(self, name: str, value: float, labels: dict[str, str] | None = None) -> None:
        """Set a gauge metric."""
        label_key = self._labels_to_key(labels)
        with self._lock:
            self._gauges[name][label_key] = value

    def add_gauge(self, name: str, delta: float, labels: dict[str, str] | None = None) -> None:
        """Move a gauge metric up or down by delta."""
        label_key = self._labels_to_key(labels)
        with self._lock:
            self._gauges[name][label_key] += delta

    def observe_histogram(self, name: str, value: float, labels: dict[str, str] | None = None) -> None:
        """Record a histogram observation."""
        label_key = self._labels_to_key(labels)
        with self._lock:
            if label_key not in self._histograms[name]:
                self._histograms[name][label_key] = Histogram()
            self._histograms[name][label_key].observe(value)

    def reset(self) -> None:
        """Drop every recorded value."""
        with self._lock:
            self._counters.clear()
            self._gauges.clear()
            self._histograms.clear()

    def _labels_to_key(self, labels: dict[str, str] | None) -> str:
        if not labels:
            return ""
        return ",".join(f'{k}="{v}"' for k, v in sorted(labels.items()))

    def to_prometheus(self) -> str:
        """Generate Prometheus text format output."""
        lines = []

        with self._lock:
            for name, label_values in self._counters.items():
                lines.append(f"# TYPE {name} counter")
                for label_key, value in label_values.items():
                    label_str = f"{{{label_key}}}" if label_key else ""
                    lines.append(f"{name}{label_str} {value}")
                lines.append("")

            for name, label_values in self._gauges.items():
                lines.append(f"# TYPE {name} gauge")
                for label_key, value in label_values.items():
                    label_str = f"{{{label_key}}}" if label_key else ""
                    lines.append(f"{name}{label_str} {value}")
                lines.append("")

            for name, label_histograms in self._histograms.items():
                lines.append(f"# TYPE {name} histogram")
                for label_key, histogram in label_histograms.items():
                    lines.append(histogram.to_prometheus(name, label_key))
                lines.append("")

        return "\n".join(lines)

    def get_stats(self) -> dict[str, Any]:
        """Get metrics as a dictionary."""
        with self._lock:
            return {
                "counters": {k: dict(v) for k, v in self._counters.items()},
                "gauges": {k: dict(v) for k, v in self._gauges.items()},
                "histograms": {
                    k: {lk: {"count": h.count, "sum": h.sum} for lk, h in v.items()}
                    for k, v in self._histograms.items()
                },
            }


# Global metrics registry
metrics = MetricsRegistry()


def record_swap(topology_class: str, outcome: str, duration: float) -> None:
    """Record a finished (or aborted) swap."""
    metrics.inc_counter("topswap_swaps_total", {"topology_class": topology_class, "outcome": outcome})
    metrics.observe_histogram(
        "topswap_swap_duration_seconds", duration, {"topology_class": topology_class}
    )


def record_status_check(topology_class: str, state: str) -> None:
    """Record one drain status check and the state it observed."""
    metrics.inc_counter(
        "topswap_status_checks_total", {"topology_class": topology_class, "state": state}
    )


def record_cleanup_failure(topology_class: str, phase: str) -> None:
    """Record a removal that failed and needs manual cleanup."""
    metrics.inc_counter(
        "topswap_cleanup_failures_total", {"topology_class": topology_class, "phase": phase}
    )


def track_in_flight(topology_class: str, delta: int) -> None:
    """Adjust the number of swaps currently running for a class."""
    metrics.add_gauge("topswap_swaps_in_flight", delta, {"topology_class": topology_class})
