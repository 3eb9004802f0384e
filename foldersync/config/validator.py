"""
Configuration Validator — Sanity checks on a resolved SyncConfig.

None of these checks stop the service. They exist so ``foldersync config``
and the startup log can say what is wrong before the first pass fails.

## Usage

    from foldersync.config.validator import ConfigValidator

    validator = ConfigValidator(config)
    for name, status in validator.validate_all().items():
        if not status.ok:
            print(f"{name}: {status.message}")
            print(f"  → {status.guidance}")
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from .loader import ENV_INTERVAL, ENV_LOG_FILE, ENV_REPLICA, ENV_SOURCE, SyncConfig

logger = logging.getLogger(__name__)


@dataclass
class ConfigStatus:
    """Result of a single configuration check."""

    check: str
    ok: bool
    message: str
    guidance: Optional[str] = None

    def to_dict(self) -> Dict:
        """Convert to dictionary for logging."""
        return {
            "check": self.check,
            "ok": self.ok,
            "message": self.message,
            "guidance": self.guidance,
        }


def _is_within(child: Path, parent: Path) -> bool:
    try:
        child.resolve().relative_to(parent.resolve())
        return True
    except ValueError:
        return False


def _nearest_existing(path: Path) -> Path:
    for candidate in [path, *path.parents]:
        if candidate.exists():
            return candidate
    return Path(".")


class ConfigValidator:
    """Validate a resolved configuration against the filesystem."""

    def __init__(self, config: SyncConfig):
        self.config = config

    def check_source(self) -> ConfigStatus:
        source = self.config.source
        if not source.exists():
            return ConfigStatus(
                check="source",
                ok=False,
                message=f"Source folder does not exist: {source}",
                guidance=f"Create it or point {ENV_SOURCE} at an existing folder",
            )
        if not source.is_dir():
            return ConfigStatus(
                check="source",
                ok=False,
                message=f"Source is not a folder: {source}",
                guidance=f"Point {ENV_SOURCE} at a folder",
            )
        return ConfigStatus(check="source", ok=True, message=f"{source}")

    def check_replica(self) -> ConfigStatus:
        replica = self.config.replica
        if replica.exists() and not replica.is_dir():
            return ConfigStatus(
                check="replica",
                ok=False,
                message=f"Replica is not a folder: {replica}",
                guidance=f"Point {ENV_REPLICA} at a folder or a path that does not exist yet",
            )
        if not replica.exists():
            return ConfigStatus(
                check="replica",
                ok=True,
                message=f"{replica} (will be created on first pass)",
            )
        return ConfigStatus(check="replica", ok=True, message=f"{replica}")

    def check_layout(self) -> ConfigStatus:
        source, replica = self.config.source, self.config.replica
        if source.resolve() == replica.resolve():
            return ConfigStatus(
                check="layout",
                ok=False,
                message="Source and replica are the same folder",
                guidance=f"Set {ENV_SOURCE} and {ENV_REPLICA} to different folders",
            )
        if _is_within(replica, source):
            return ConfigStatus(
                check="layout",
                ok=False,
                message="Replica is inside the source folder (it would mirror itself)",
                guidance=f"Move {ENV_REPLICA} outside of {ENV_SOURCE}",
            )
        if _is_within(source, replica):
            return ConfigStatus(
                check="layout",
                ok=False,
                message="Source is inside the replica folder",
                guidance=f"Move {ENV_SOURCE} outside of {ENV_REPLICA}",
            )
        return ConfigStatus(check="layout", ok=True, message="Source and replica are separate")

    def check_log_file(self) -> ConfigStatus:
        log_file = self.config.log_file
        if log_file.exists():
            writable = log_file.is_file() and os.access(log_file, os.W_OK)
        else:
            writable = os.access(_nearest_existing(log_file.parent), os.W_OK)
        if not writable:
            return ConfigStatus(
                check="log_file",
                ok=False,
                message=f"Log file is not writable: {log_file}",
                guidance=(
                    f"Fix permissions or set {ENV_LOG_FILE}; "
                    f"passes will log to {self.config.default_log_file} instead"
                ),
            )
        return ConfigStatus(check="log_file", ok=True, message=f"{log_file}")

    def check_interval(self) -> ConfigStatus:
        notes = [n for n in self.config.fallbacks if n.startswith(ENV_INTERVAL)]
        if notes:
            return ConfigStatus(
                check="interval",
                ok=False,
                message=notes[0],
                guidance=f"Set {ENV_INTERVAL} to a positive number of seconds",
            )
        return ConfigStatus(
            check="interval",
            ok=True,
            message=f"{self.config.interval_seconds:g}s between passes",
        )

    def validate_all(self) -> Dict[str, ConfigStatus]:
        """Run every check, keyed by check name."""
        results = [
            self.check_source(),
            self.check_replica(),
            self.check_layout(),
            self.check_log_file(),
            self.check_interval(),
        ]
        return {status.check: status for status in results}

    def log_status(self) -> None:
        """Log every check; problems at WARNING."""
        results = self.validate_all()
        problems = 0
        for name, status in results.items():
            if status.ok:
                logger.info(f"✓ {name}: {status.message}")
            else:
                problems += 1
                logger.warning(f"✗ {name}: {status.message}")
        logger.info(f"Config summary: {len(results) - problems} ok, {problems} with problems")


def check_config_on_startup(config: SyncConfig) -> None:
    """Run configuration check at startup (call from main)."""
    ConfigValidator(config).log_status()
