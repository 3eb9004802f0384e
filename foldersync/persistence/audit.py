"""
Audit Log — Append-only, human-readable record of every sync action.

Each line is one event prefixed by a local timestamp:

    [2026-10-17 09:30:00] Synchronization started.
    [2026-10-17 09:30:00] Copied: /src/a.txt to /replica/a.txt
    [2026-10-17 09:30:00] Synchronization completed.

Lines are never edited, only appended. Every line is also emitted on the
``foldersync.audit`` logger so the console mirrors the file.

## Usage

    with AuditWriter.open_with_fallback(config.log_file, default_path) as audit:
        audit.pass_started()
        for record in iter_reconcile(source, replica):
            audit.record(record)
        audit.pass_completed()
"""

from __future__ import annotations

import contextlib
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import IO, Optional, Tuple

from ..errors import ConfigurationError
from ..models.actions import ActionRecord

logger = logging.getLogger(__name__)
console = logging.getLogger("foldersync.audit")

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

MSG_STARTED = "Synchronization started."
MSG_COMPLETED = "Synchronization completed."
MSG_CANCELLED = "Synchronization cancelled."
MSG_FAILED = "Synchronization failed"

_LINE_RE = re.compile(r"^\[(?P<ts>[^\]]+)\] (?P<message>.*)$")


def format_line(message: str, ts: Optional[datetime] = None) -> str:
    """Prefix ``message`` with a bracketed timestamp."""
    ts = ts or datetime.now()
    return f"[{ts.strftime(TIMESTAMP_FORMAT)}] {message}"


class AuditWriter:
    """
    Append-only audit log writer.

    A writer with ``path=None`` only mirrors to the console. The file is
    flushed after every line and closed when the writer is closed, which
    the pass runner does at the end of every pass. If a write fails the
    file is dropped and the rest of the pass is recorded on the console.
    """

    def __init__(self, path: Optional[Path]):
        self.path = path
        self._file: Optional[IO[str]] = None

    @classmethod
    def open_with_fallback(cls, path: Path, fallback: Path) -> "AuditWriter":
        """
        Open ``path`` for appending, falling back to ``fallback``.

        If neither can be opened the writer logs to the console only. An
        unwritable log path never stops a pass from running.
        """
        candidates = [path] if path == fallback else [path, fallback]
        for candidate in candidates:
            writer = cls(candidate)
            try:
                writer.open()
            except OSError as e:
                err = ConfigurationError(f"Log file is not writable ({e.strerror or e})", candidate)
                logger.warning(f"{err}, falling back")
                continue
            if candidate != path:
                logger.warning(f"Audit log redirected to default: {candidate}")
            return writer

        logger.error("No writable audit log, recording to console only")
        return cls(None)

    def open(self) -> "AuditWriter":
        if self.path is not None and self._file is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._file = self.path.open("a", encoding="utf-8")
        return self

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None

    def _abandon_file(self) -> None:
        # closing flushes, which can fail again on the same volume
        with contextlib.suppress(OSError):
            self._file.close()
        self._file = None

    @property
    def closed(self) -> bool:
        return self._file is None

    def __enter__(self) -> "AuditWriter":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def write(
        self,
        message: str,
        level: int = logging.INFO,
        ts: Optional[datetime] = None,
    ) -> str:
        """Append one line and mirror it to the console. Returns the line."""
        line = format_line(message, ts)
        if self._file is not None:
            try:
                self._file.write(line + "\n")
                self._file.flush()
            except OSError as e:
                logger.warning(
                    f"Audit log write failed ({e.strerror or e}), "
                    f"recording to console only: {self.path}"
                )
                self._abandon_file()
        console.log(level, message)
        return line

    def record(self, record: ActionRecord) -> str:
        """Append the line for one action record."""
        level = logging.ERROR if record.is_error else logging.INFO
        return self.write(record.describe(), level=level, ts=record.ts)

    def pass_started(self) -> str:
        return self.write(MSG_STARTED)

    def pass_completed(self) -> str:
        return self.write(MSG_COMPLETED)

    def pass_cancelled(self) -> str:
        return self.write(MSG_CANCELLED, level=logging.WARNING)

    def pass_failed(self, reason: str) -> str:
        return self.write(f"{MSG_FAILED}: {reason}", level=logging.ERROR)


def parse_line(line: str) -> Optional[Tuple[datetime, str]]:
    """Split an audit line into (timestamp, message), or None if malformed."""
    match = _LINE_RE.match(line.rstrip("\n"))
    if not match:
        return None
    try:
        ts = datetime.strptime(match.group("ts"), TIMESTAMP_FORMAT)
    except ValueError:
        return None
    return ts, match.group("message")


def last_pass_end(path: Path) -> Optional[Tuple[datetime, str]]:
    """
    Find the most recent end-of-pass marker in the audit log.

    Returns (timestamp, message) for the last completed, cancelled or
    failed marker, or None if the log has none.
    """
    last: Optional[Tuple[datetime, str]] = None
    with path.open("r", encoding="utf-8", errors="replace") as f:
        for line in f:
            parsed = parse_line(line)
            if parsed is None:
                continue
            _, message = parsed
            if message in (MSG_COMPLETED, MSG_CANCELLED) or message.startswith(MSG_FAILED):
                last = parsed
    return last
