"""
Observability Module — Metrics and health checks.
"""

from .health import ComponentHealth, HealthChecker, HealthStatus, SystemHealth
from .metrics import Counter, Gauge, Histogram, MetricsRegistry, metrics

__all__ = [
    "metrics",
    "MetricsRegistry",
    "Counter",
    "Gauge",
    "Histogram",
    "HealthChecker",
    "HealthStatus",
    "SystemHealth",
    "ComponentHealth",
]
