"""
Config Loader — Resolve sync settings from environment variables.

Configuration is resolved once at startup into an immutable ``SyncConfig``
and passed explicitly to the service. Nothing reads or writes the process
environment after that.

## Environment Variables

- SOURCE_FOLDER: Tree to mirror from (default: ./SourceFolder)
- REPLICA_FOLDER: Tree to mirror to (default: ./ReplicaFolder)
- SYNC_INTERVAL_SECONDS: Delay between passes (default: 60)
- LOG_FILE_PATH: Append-only audit log (default: ./log_file.log)

## Usage

    from foldersync.config.loader import load_config

    config = load_config()           # os.environ + cwd, fallbacks logged
    ensure_default_folders(config)   # create ./SourceFolder etc. if defaulted
"""

from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

ENV_SOURCE = "SOURCE_FOLDER"
ENV_REPLICA = "REPLICA_FOLDER"
ENV_INTERVAL = "SYNC_INTERVAL_SECONDS"
ENV_LOG_FILE = "LOG_FILE_PATH"

DEFAULT_SOURCE_NAME = "SourceFolder"
DEFAULT_REPLICA_NAME = "ReplicaFolder"
DEFAULT_LOG_NAME = "log_file.log"
DEFAULT_INTERVAL_SECONDS = 60.0


@dataclass(frozen=True)
class SyncConfig:
    """Resolved, immutable service configuration."""

    source: Path
    replica: Path
    interval_seconds: float
    log_file: Path
    default_log_file: Path

    # Which paths came from defaults rather than the environment
    source_defaulted: bool = False
    replica_defaulted: bool = False
    log_file_defaulted: bool = False

    # Human-readable notes for every fallback that was applied
    fallbacks: Tuple[str, ...] = field(default_factory=tuple)

    def with_overrides(
        self,
        source: Optional[Path] = None,
        replica: Optional[Path] = None,
        interval_seconds: Optional[float] = None,
        log_file: Optional[Path] = None,
    ) -> "SyncConfig":
        """Return a copy with explicit (e.g. CLI) values applied."""
        changes: Dict[str, Any] = {}
        if source is not None:
            changes.update(source=Path(source), source_defaulted=False)
        if replica is not None:
            changes.update(replica=Path(replica), replica_defaulted=False)
        if interval_seconds is not None:
            changes["interval_seconds"] = float(interval_seconds)
        if log_file is not None:
            changes.update(log_file=Path(log_file), log_file_defaulted=False)
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": str(self.source),
            "replica": str(self.replica),
            "interval_seconds": self.interval_seconds,
            "log_file": str(self.log_file),
            "source_defaulted": self.source_defaulted,
            "replica_defaulted": self.replica_defaulted,
            "log_file_defaulted": self.log_file_defaulted,
            "fallbacks": list(self.fallbacks),
        }


def _path_setting(raw: Optional[str], cwd: Path, default_name: str) -> Tuple[Path, bool]:
    value = (raw or "").strip()
    if not value:
        return cwd / default_name, True
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = cwd / path
    return path, False


def parse_interval(raw: Optional[str]) -> Tuple[float, Optional[str]]:
    """
    Parse a sync interval in seconds.

    Returns (interval, fallback_note). The note is None when the raw value
    was absent or valid.
    """
    if raw is None or not raw.strip():
        return DEFAULT_INTERVAL_SECONDS, None
    try:
        value = float(raw.strip())
    except ValueError:
        return DEFAULT_INTERVAL_SECONDS, (
            f"{ENV_INTERVAL}={raw!r} is not a number, using {DEFAULT_INTERVAL_SECONDS:g}s"
        )
    if not math.isfinite(value) or value <= 0:
        return DEFAULT_INTERVAL_SECONDS, (
            f"{ENV_INTERVAL}={raw!r} must be positive, using {DEFAULT_INTERVAL_SECONDS:g}s"
        )
    return value, None


def resolve_config(env: Mapping[str, str], cwd: Path) -> SyncConfig:
    """
    Resolve configuration from an environment mapping.

    Pure function: it neither touches the filesystem nor logs. Relative
    paths are resolved against ``cwd``.
    """
    cwd = Path(cwd)
    source, source_defaulted = _path_setting(env.get(ENV_SOURCE), cwd, DEFAULT_SOURCE_NAME)
    replica, replica_defaulted = _path_setting(env.get(ENV_REPLICA), cwd, DEFAULT_REPLICA_NAME)
    log_file, log_defaulted = _path_setting(env.get(ENV_LOG_FILE), cwd, DEFAULT_LOG_NAME)
    interval, interval_note = parse_interval(env.get(ENV_INTERVAL))

    fallbacks = []
    if interval_note:
        fallbacks.append(interval_note)

    return SyncConfig(
        source=source,
        replica=replica,
        interval_seconds=interval,
        log_file=log_file,
        default_log_file=cwd / DEFAULT_LOG_NAME,
        source_defaulted=source_defaulted,
        replica_defaulted=replica_defaulted,
        log_file_defaulted=log_defaulted,
        fallbacks=tuple(fallbacks),
    )


def load_config(
    env: Optional[Mapping[str, str]] = None,
    cwd: Optional[Path] = None,
) -> SyncConfig:
    """Resolve configuration from the process environment and log fallbacks."""
    config = resolve_config(
        env if env is not None else os.environ,
        cwd if cwd is not None else Path.cwd(),
    )
    for note in config.fallbacks:
        logger.warning(f"Configuration fallback: {note}")
    return config


def ensure_default_folders(config: SyncConfig) -> None:
    """Create the source/replica folders that were filled in from defaults."""
    if config.source_defaulted and not config.source.exists():
        config.source.mkdir(parents=True, exist_ok=True)
        logger.info(f"Created default source folder: {config.source}")
    if config.replica_defaulted and not config.replica.exists():
        config.replica.mkdir(parents=True, exist_ok=True)
        logger.info(f"Created default replica folder: {config.replica}")
    if config.log_file_defaulted:
        logger.info(f"Using default log file: {config.log_file}")
