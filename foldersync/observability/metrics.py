"""
Metrics — In-process counters for sync passes.

Compatible with the Prometheus text exposition format. Metrics live only in
the running process; ``foldersync run`` accumulates them across passes.

## Usage

    from foldersync.observability.metrics import metrics

    metrics.increment("passes_total", labels={"outcome": "completed"})
    metrics.increment("actions_total", labels={"kind": "copied"})
    metrics.timing("pass_duration_seconds", 0.42)

    output = metrics.export_prometheus()
"""

from __future__ import annotations

import json
import time
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any, Dict, List, Optional

Labels = Optional[Dict[str, str]]


@dataclass
class MetricPoint:
    """A single metric data point."""

    name: str
    value: float
    timestamp: float
    labels: Dict[str, str] = field(default_factory=dict)


def labels_key(labels: Labels) -> str:
    if not labels:
        return ""
    return ",".join(f"{k}={v}" for k, v in sorted(labels.items()))


def parse_labels_key(key: str) -> Dict[str, str]:
    if not key:
        return {}
    return dict(pair.split("=", 1) for pair in key.split(","))


class Counter:
    """A monotonically increasing counter."""

    def __init__(self, name: str, help_text: str = ""):
        self.name = name
        self.help_text = help_text
        self._values: Dict[str, float] = defaultdict(float)
        self._lock = Lock()

    def inc(self, value: float = 1, labels: Labels = None) -> None:
        with self._lock:
            self._values[labels_key(labels)] += value

    def get(self, labels: Labels = None) -> float:
        return self._values.get(labels_key(labels), 0)

    def total(self) -> float:
        """Sum across all label sets."""
        return sum(self._values.values())

    def export(self) -> List[MetricPoint]:
        now = time.time()
        return [
            MetricPoint(self.name, value, now, parse_labels_key(key))
            for key, value in self._values.items()
        ]


class Gauge:
    """A value that can go up and down."""

    def __init__(self, name: str, help_text: str = ""):
        self.name = name
        self.help_text = help_text
        self._values: Dict[str, float] = {}
        self._lock = Lock()

    def set(self, value: float, labels: Labels = None) -> None:
        with self._lock:
            self._values[labels_key(labels)] = value

    def get(self, labels: Labels = None) -> float:
        return self._values.get(labels_key(labels), 0)

    def export(self) -> List[MetricPoint]:
        now = time.time()
        return [
            MetricPoint(self.name, value, now, parse_labels_key(key))
            for key, value in self._values.items()
        ]


class Histogram:
    """A histogram for pass durations."""

    DEFAULT_BUCKETS = (0.01, 0.05, 0.1, 0.5, 1, 5, 10, 30, 60, 300, float("inf"))

    def __init__(self, name: str, help_text: str = "", buckets: Optional[tuple] = None):
        self.name = name
        self.help_text = help_text
        self.buckets = buckets or self.DEFAULT_BUCKETS
        self._counts: Dict[str, Dict[float, int]] = defaultdict(lambda: defaultdict(int))
        self._sums: Dict[str, float] = defaultdict(float)
        self._totals: Dict[str, int] = defaultdict(int)
        self._lock = Lock()

    def observe(self, value: float, labels: Labels = None) -> None:
        key = labels_key(labels)
        with self._lock:
            self._sums[key] += value
            self._totals[key] += 1
            # store per-bucket hits; export() accumulates them
            for bucket in self.buckets:
                if value <= bucket:
                    self._counts[key][bucket] += 1
                    break

    def count(self, labels: Labels = None) -> int:
        return self._totals.get(labels_key(labels), 0)

    def sum(self, labels: Labels = None) -> float:
        return self._sums.get(labels_key(labels), 0.0)

    def export(self) -> List[MetricPoint]:
        points = []
        now = time.time()
        for key in list(self._totals.keys()):
            labels = parse_labels_key(key)
            cumulative = 0
            for bucket in self.buckets:
                cumulative += self._counts[key].get(bucket, 0)
                le = "+Inf" if bucket == float("inf") else str(bucket)
                points.append(MetricPoint(f"{self.name}_bucket", cumulative, now, {**labels, "le": le}))
            points.append(MetricPoint(f"{self.name}_sum", self._sums[key], now, labels))
            points.append(MetricPoint(f"{self.name}_count", self._totals[key], now, labels))
        return points


class MetricsRegistry:
    """
    Central registry for all metrics.

    Provides a simple interface and Prometheus/JSON export.
    """

    def __init__(self, prefix: str = "foldersync"):
        self.prefix = prefix
        self._counters: Dict[str, Counter] = {}
        self._gauges: Dict[str, Gauge] = {}
        self._histograms: Dict[str, Histogram] = {}
        self._lock = Lock()
        self._register_common_metrics()

    def _register_common_metrics(self) -> None:
        self.counter("passes_total", "Sync passes by outcome")
        self.counter("actions_total", "Action records by kind")
        self.histogram("pass_duration_seconds", "Sync pass duration")
        self.gauge("last_pass_timestamp_seconds", "Unix time the last pass ended")
        self.gauge("last_pass_actions", "Action records in the last pass")

    def _full_name(self, name: str) -> str:
        return f"{self.prefix}_{name}"

    def counter(self, name: str, help_text: str = "") -> Counter:
        full_name = self._full_name(name)
        with self._lock:
            if full_name not in self._counters:
                self._counters[full_name] = Counter(full_name, help_text)
            return self._counters[full_name]

    def gauge(self, name: str, help_text: str = "") -> Gauge:
        full_name = self._full_name(name)
        with self._lock:
            if full_name not in self._gauges:
                self._gauges[full_name] = Gauge(full_name, help_text)
            return self._gauges[full_name]

    def histogram(self, name: str, help_text: str = "") -> Histogram:
        full_name = self._full_name(name)
        with self._lock:
            if full_name not in self._histograms:
                self._histograms[full_name] = Histogram(full_name, help_text)
            return self._histograms[full_name]

    # Convenience methods
    def increment(self, name: str, value: float = 1, labels: Labels = None) -> None:
        self.counter(name).inc(value, labels)

    def set_gauge(self, name: str, value: float, labels: Labels = None) -> None:
        self.gauge(name).set(value, labels)

    def timing(self, name: str, seconds: float, labels: Labels = None) -> None:
        self.histogram(name).observe(seconds, labels)

    def export_prometheus(self) -> str:
        """Export metrics in Prometheus text format."""
        lines = []
        families = (
            ("counter", self._counters.values()),
            ("gauge", self._gauges.values()),
            ("histogram", self._histograms.values()),
        )
        for metric_type, family in families:
            for metric in family:
                lines.append(f"# HELP {metric.name} {metric.help_text}")
                lines.append(f"# TYPE {metric.name} {metric_type}")
                for point in metric.export():
                    lines.append(f"{point.name}{self._format_labels(point.labels)} {point.value}")
        return "\n".join(lines)

    def export_json(self) -> Dict[str, Any]:
        """Export metrics as JSON."""
        result: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "counters": {},
            "gauges": {},
            "histograms": {},
        }
        for name, counter in self._counters.items():
            result["counters"][name] = {
                labels_key(p.labels): p.value for p in counter.export()
            }
        for name, gauge in self._gauges.items():
            result["gauges"][name] = gauge.get()
        for name, histogram in self._histograms.items():
            result["histograms"][name] = {
                "sum": histogram.sum(),
                "count": histogram.count(),
            }
        return result

    def _format_labels(self, labels: Dict[str, str]) -> str:
        if not labels:
            return ""
        pairs = [f'{k}="{v}"' for k, v in sorted(labels.items())]
        return "{" + ",".join(pairs) + "}"


# Global metrics instance
metrics = MetricsRegistry()


def write_metrics_file(
    path: Path,
    output_format: str = "prometheus",
    registry: Optional[MetricsRegistry] = None,
) -> None:
    """
    Write the registry to ``path`` for a textfile collector.

    Uses atomic write (write to temp, then rename) so a scraper never reads
    a half-written file.
    """
    registry = registry or metrics
    if output_format == "json":
        content = json.dumps(registry.export_json(), indent=2)
    else:
        content = registry.export_prometheus()

    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_suffix(path.suffix + ".tmp")
    temp_path.write_text(content + "\n", encoding="utf-8")
    temp_path.replace(path)
