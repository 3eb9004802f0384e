"""
Sync Pass — One complete reconciliation of the replica against the source.

A pass:
1. Opens the audit log (falling back to the default path if needed)
2. Writes the start marker
3. Streams every action record from the reconciler into the audit log
4. Writes the end marker (completed, cancelled or failed)
5. Closes the audit log and records metrics

A pass never raises for reconciliation problems. ``SourceMissing`` and
unexpected errors end the pass with ``outcome == "failed"``; a stop request
ends it with ``outcome == "cancelled"``.

## Pass ID Format

    P-{YYYYMMDD}T{HHMMSS}-{RANDOM}
    Example: P-20261017T093000-3F2A1C

## Usage

    from foldersync.engine.sync_pass import run_pass

    result = run_pass(config)
    print(f"{result.outcome}: {result.counts}")
"""

from __future__ import annotations

import logging
import threading
import time
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Literal, Optional
from uuid import uuid4

from ..config.loader import SyncConfig
from ..errors import PassCancelled, SourceMissing
from ..models.actions import ActionRecord
from ..observability.metrics import MetricsRegistry, metrics
from ..persistence.audit import AuditWriter
from .fs import Filesystem
from .reconcile import iter_reconcile

logger = logging.getLogger(__name__)

PassOutcome = Literal["completed", "cancelled", "failed"]


@dataclass
class PassResult:
    """Result of one sync pass."""

    pass_id: str
    started_at: datetime
    ended_at: Optional[datetime] = None
    duration_ms: int = 0

    outcome: PassOutcome = "completed"
    error: Optional[str] = None

    # Ordered as performed
    actions: List[ActionRecord] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.outcome == "completed"

    @property
    def counts(self) -> Dict[str, int]:
        """Number of records per kind."""
        return dict(Counter(a.kind for a in self.actions))

    @property
    def errors(self) -> List[ActionRecord]:
        return [a for a in self.actions if a.is_error]

    def summary(self) -> str:
        counts = self.counts
        return (
            f"created={counts.get('created', 0)} "
            f"copied={counts.get('copied', 0)} "
            f"deleted={counts.get('deleted', 0)} "
            f"errors={counts.get('error', 0)}"
        )


def generate_pass_id() -> str:
    """Generate a unique pass ID."""
    ts = datetime.now().strftime("%Y%m%dT%H%M%S")
    suffix = uuid4().hex[:6].upper()
    return f"P-{ts}-{suffix}"


def run_pass(
    config: SyncConfig,
    fs: Optional[Filesystem] = None,
    cancel: Optional[threading.Event] = None,
    audit: Optional[AuditWriter] = None,
    registry: Optional[MetricsRegistry] = None,
) -> PassResult:
    """
    Execute a single sync pass.

    Args:
        config: Resolved configuration (source, replica, log file)
        fs: Filesystem override (tests)
        cancel: Stop signal checked at every directory level
        audit: Already-open audit writer; when omitted one is opened on
               ``config.log_file`` and closed before returning
        registry: Metrics registry (defaults to the global one)

    Returns:
        PassResult with every action record
    """
    registry = registry or metrics
    start_time = time.monotonic()
    result = PassResult(pass_id=generate_pass_id(), started_at=datetime.now())

    owns_audit = audit is None
    if audit is None:
        audit = AuditWriter.open_with_fallback(config.log_file, config.default_log_file)

    logger.info(
        f"Starting pass {result.pass_id}: {config.source} → {config.replica}",
        extra={"pass_id": result.pass_id},
    )

    try:
        audit.pass_started()
        try:
            for record in iter_reconcile(config.source, config.replica, fs=fs, cancel=cancel):
                result.actions.append(record)
                audit.record(record)
        except PassCancelled:
            result.outcome = "cancelled"
            audit.pass_cancelled()
        except SourceMissing as e:
            result.outcome = "failed"
            result.error = str(e)
            logger.error(f"Pass {result.pass_id} skipped: {e}")
            audit.pass_failed(str(e))
        except Exception as e:
            result.outcome = "failed"
            result.error = f"{type(e).__name__}: {e}"
            logger.exception(f"Pass {result.pass_id} failed")
            audit.pass_failed(result.error)
        else:
            audit.pass_completed()
    finally:
        if owns_audit:
            audit.close()

    result.ended_at = datetime.now()
    elapsed = time.monotonic() - start_time
    result.duration_ms = int(elapsed * 1000)

    _record_metrics(registry, result, elapsed)

    logger.info(
        f"Pass {result.pass_id} {result.outcome} in {result.duration_ms}ms "
        f"({result.summary()})",
        extra={"pass_id": result.pass_id},
    )
    return result


def _record_metrics(registry: MetricsRegistry, result: PassResult, elapsed: float) -> None:
    registry.increment("passes_total", labels={"outcome": result.outcome})
    for kind, count in result.counts.items():
        registry.increment("actions_total", count, labels={"kind": kind})
    registry.timing("pass_duration_seconds", elapsed)
    registry.set_gauge("last_pass_timestamp_seconds", time.time())
    registry.set_gauge("last_pass_actions", len(result.actions))
