"""
Errors — Exception taxonomy for sync passes and configuration.

Only pass-level and configuration failures are exceptions. Failures of a
single copy, delete or mkdir are converted into ``error`` action records
by the reconciler and never raised.

## Usage

    from foldersync.errors import SourceMissing

    try:
        result = run_pass(config)
    except SourceMissing as e:
        print(f"Pass skipped: {e}")
"""

from __future__ import annotations

import errno
from pathlib import Path
from typing import Optional, Union

ERROR_KIND_ACCESS_DENIED = "access_denied"
ERROR_KIND_IO_FAILURE = "io_failure"


class FolderSyncError(Exception):
    """Base class for all folder sync errors."""

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None):
        self.message = message
        self.path = str(path) if path is not None else None
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.path:
            return f"{self.message}: {self.path}"
        return self.message


class SourceMissing(FolderSyncError):
    """Raised when the source root does not exist or is not a directory."""

    def __init__(self, path: Union[str, Path]):
        super().__init__("Source folder does not exist", path)


class PassCancelled(FolderSyncError):
    """Raised when a stop was requested while a pass was running."""

    def __init__(self, path: Optional[Union[str, Path]] = None):
        super().__init__("Synchronization cancelled", path)


class ConfigurationError(FolderSyncError):
    """Raised when configuration is missing or invalid."""
    pass


def classify_os_error(exc: OSError) -> str:
    """Map an OSError to the error kind recorded in the audit log."""
    if isinstance(exc, PermissionError):
        return ERROR_KIND_ACCESS_DENIED
    if getattr(exc, "errno", None) in (errno.EACCES, errno.EPERM):
        return ERROR_KIND_ACCESS_DENIED
    return ERROR_KIND_IO_FAILURE
