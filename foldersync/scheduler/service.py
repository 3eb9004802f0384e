"""
Sync Service — Run sync passes on a fixed interval until stopped.

The loop runs one pass to completion, then waits ``interval_seconds`` before
the next one, so passes never overlap. A failing pass is logged and the
loop carries on. SIGINT/SIGTERM set the stop event, which both ends the wait
and makes a running pass stop at its next directory level.

## Usage

    from foldersync.scheduler.service import SyncService

    service = SyncService(config)
    service.install_signal_handlers()
    service.run_forever()
"""

from __future__ import annotations

import logging
import signal
import threading
from typing import Callable, List, Optional

from ..config.loader import SyncConfig
from ..engine.fs import Filesystem
from ..engine.sync_pass import PassResult, run_pass
from ..observability.metrics import MetricsRegistry

logger = logging.getLogger(__name__)


class SyncService:
    """Periodic sync loop with a single in-flight pass."""

    def __init__(
        self,
        config: SyncConfig,
        fs: Optional[Filesystem] = None,
        registry: Optional[MetricsRegistry] = None,
        on_pass: Optional[Callable[[PassResult], None]] = None,
    ):
        self.config = config
        self.fs = fs
        self.registry = registry
        self.on_pass = on_pass
        self._stop = threading.Event()
        self._pass_lock = threading.Lock()
        self.passes_run = 0
        self.last_result: Optional[PassResult] = None

    @property
    def stopping(self) -> bool:
        return self._stop.is_set()

    def stop(self) -> None:
        """Request shutdown. Safe to call from a signal handler."""
        if not self._stop.is_set():
            logger.info("Stop requested")
        self._stop.set()

    def install_signal_handlers(self) -> None:
        """Stop the loop on SIGINT and SIGTERM (main thread only)."""

        def _handle(signum, frame):
            logger.info(f"Received {signal.Signals(signum).name}, shutting down...")
            self.stop()

        signal.signal(signal.SIGINT, _handle)
        signal.signal(signal.SIGTERM, _handle)

    # ------------------------------------------------------------------
    # Single pass
    # ------------------------------------------------------------------

    def run_once(self) -> Optional[PassResult]:
        """
        Run one pass unless another is still in flight.

        Returns None when a pass is already running.
        """
        if not self._pass_lock.acquire(blocking=False):
            logger.warning("Previous pass still running, skipping this one")
            return None
        try:
            result = run_pass(
                self.config,
                fs=self.fs,
                cancel=self._stop,
                registry=self.registry,
            )
            self.last_result = result
            if self.on_pass is not None:
                self.on_pass(result)
            return result
        finally:
            self.passes_run += 1
            self._pass_lock.release()

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def run_forever(self, max_passes: Optional[int] = None) -> List[PassResult]:
        """
        Run passes until stopped (or ``max_passes`` have run).

        Returns the results of the passes that produced one.
        """
        logger.info(f"╔{'═' * 50}╗")
        logger.info("║  Folder Sync — service mode")
        logger.info(f"║  Source:   {self.config.source}")
        logger.info(f"║  Replica:  {self.config.replica}")
        logger.info(f"║  Interval: {self.config.interval_seconds:g}s")
        logger.info(f"║  Log file: {self.config.log_file}")
        logger.info(f"╚{'═' * 50}╝")

        results: List[PassResult] = []
        started = 0
        while not self._stop.is_set():
            started += 1
            try:
                result = self.run_once()
                if result is not None:
                    results.append(result)
            except Exception:
                logger.exception("Sync loop error (will retry)")

            if max_passes is not None and started >= max_passes:
                break
            self._stop.wait(timeout=self.config.interval_seconds)

        logger.info(f"Service stopped after {started} pass(es)")
        return results
