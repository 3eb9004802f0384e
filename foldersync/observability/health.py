"""
Health Check — Service health status for monitoring.

Health is derived from the filesystem and the audit log only, so it can be
checked from a separate process while ``foldersync run`` is active.

## Usage

    from foldersync.observability.health import HealthChecker

    checker = HealthChecker(config)
    status = checker.check()

    if status.healthy:
        print("All systems operational")
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from ..config.loader import SyncConfig
from ..persistence.audit import MSG_FAILED, last_pass_end

logger = logging.getLogger(__name__)

# Pass freshness thresholds, in multiples of the sync interval
STALE_DEGRADED_FACTOR = 3
STALE_UNHEALTHY_FACTOR = 10


class HealthStatus(str, Enum):
    """Health status levels."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    """Health status of a single component."""

    name: str
    status: HealthStatus
    message: str = ""
    latency_ms: Optional[float] = None
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SystemHealth:
    """Overall service health status."""

    status: HealthStatus
    timestamp: str
    components: List[ComponentHealth]

    @property
    def healthy(self) -> bool:
        return self.status == HealthStatus.HEALTHY

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "timestamp": self.timestamp,
            "healthy": self.healthy,
            "components": [
                {
                    "name": c.name,
                    "status": c.status.value,
                    "message": c.message,
                    "latency_ms": c.latency_ms,
                    "details": c.details,
                }
                for c in self.components
            ],
        }


class HealthChecker:
    """
    Service health checker.

    Checks all components and provides aggregate status.
    """

    def __init__(self, config: SyncConfig, now: Optional[datetime] = None):
        self.config = config
        self._now = now

    def check(self) -> SystemHealth:
        """Run all health checks and return status."""
        components = [
            self._check_source(),
            self._check_replica(),
            self._check_audit_log(),
            self._check_pass_freshness(),
        ]

        statuses = [c.status for c in components]
        if HealthStatus.UNHEALTHY in statuses:
            overall = HealthStatus.UNHEALTHY
        elif HealthStatus.DEGRADED in statuses:
            overall = HealthStatus.DEGRADED
        else:
            overall = HealthStatus.HEALTHY

        return SystemHealth(
            status=overall,
            timestamp=(self._now or datetime.now()).isoformat(timespec="seconds"),
            components=components,
        )

    def _check_source(self) -> ComponentHealth:
        source = self.config.source
        if not source.is_dir():
            return ComponentHealth(
                name="source_folder",
                status=HealthStatus.UNHEALTHY,
                message=f"Source folder missing: {source}",
            )
        return ComponentHealth(
            name="source_folder",
            status=HealthStatus.HEALTHY,
            message=str(source),
        )

    def _check_replica(self) -> ComponentHealth:
        replica = self.config.replica
        if replica.exists() and not replica.is_dir():
            return ComponentHealth(
                name="replica_folder",
                status=HealthStatus.UNHEALTHY,
                message=f"Replica path is not a folder: {replica}",
            )
        if not replica.exists():
            return ComponentHealth(
                name="replica_folder",
                status=HealthStatus.DEGRADED,
                message=f"Replica folder not created yet: {replica}",
            )
        return ComponentHealth(
            name="replica_folder",
            status=HealthStatus.HEALTHY,
            message=str(replica),
        )

    def _check_audit_log(self) -> ComponentHealth:
        start = time.time()
        log_file = self.config.log_file

        if not log_file.exists():
            return ComponentHealth(
                name="audit_log",
                status=HealthStatus.DEGRADED,
                message=f"Audit log not found: {log_file}",
            )

        try:
            size = log_file.stat().st_size
            with log_file.open("r", encoding="utf-8", errors="replace") as f:
                entries = sum(1 for _ in f)
        except OSError as e:
            return ComponentHealth(
                name="audit_log",
                status=HealthStatus.DEGRADED,
                message=f"Audit log check failed: {e}",
            )

        return ComponentHealth(
            name="audit_log",
            status=HealthStatus.HEALTHY,
            message="Audit log accessible",
            latency_ms=(time.time() - start) * 1000,
            details={"size_bytes": size, "entries": entries},
        )

    def _check_pass_freshness(self) -> ComponentHealth:
        """Check that passes keep finishing at roughly the configured interval."""
        log_file = self.config.log_file
        try:
            last = last_pass_end(log_file) if log_file.exists() else None
        except OSError as e:
            return ComponentHealth(
                name="pass_freshness",
                status=HealthStatus.DEGRADED,
                message=f"Could not read audit log: {e}",
            )

        if last is None:
            return ComponentHealth(
                name="pass_freshness",
                status=HealthStatus.DEGRADED,
                message="No finished pass recorded yet",
            )

        ended_at, message = last
        now = self._now or datetime.now()
        age_seconds = max(0.0, (now - ended_at).total_seconds())
        interval = self.config.interval_seconds
        details = {"age_seconds": age_seconds, "last_marker": message}

        if age_seconds > interval * STALE_UNHEALTHY_FACTOR:
            status = HealthStatus.UNHEALTHY
        elif age_seconds > interval * STALE_DEGRADED_FACTOR or message.startswith(MSG_FAILED):
            status = HealthStatus.DEGRADED
        else:
            status = HealthStatus.HEALTHY

        return ComponentHealth(
            name="pass_freshness",
            status=status,
            message=f"Last pass ended {age_seconds:.0f}s ago ({message})",
            details=details,
        )
