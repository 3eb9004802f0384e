"""
Action Records — Immutable facts about one side effect of a sync pass.

Every mutation the reconciler performs (or attempts and fails) produces
exactly one record. Records are handed to the caller as soon as they are
created and are never changed afterwards.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ..errors import classify_os_error

ActionKind = Literal["created", "copied", "deleted", "error"]
ErrorKind = Literal["access_denied", "io_failure"]

PathLike = Union[str, Path]


class ActionRecord(BaseModel):
    """
    One filesystem side effect performed during a pass.

    For ``copied`` records ``path`` is the source file and ``target`` the
    replica file; every other kind only uses ``path``.
    """

    model_config = ConfigDict(frozen=True)

    kind: ActionKind
    path: str
    target: Optional[str] = None
    cause: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    ts: datetime = Field(default_factory=datetime.now)

    @classmethod
    def created(cls, path: PathLike) -> "ActionRecord":
        """Record a directory creation."""
        return cls(kind="created", path=str(path))

    @classmethod
    def copied(cls, source: PathLike, target: PathLike) -> "ActionRecord":
        """Record a file copy from source to replica."""
        return cls(kind="copied", path=str(source), target=str(target))

    @classmethod
    def deleted(cls, path: PathLike) -> "ActionRecord":
        """Record a file deletion in the replica."""
        return cls(kind="deleted", path=str(path))

    @classmethod
    def error(
        cls,
        path: PathLike,
        exc: OSError,
        target: Optional[PathLike] = None,
    ) -> "ActionRecord":
        """Record a failed operation on ``path`` (and ``target`` for copies)."""
        return cls(
            kind="error",
            path=str(path),
            target=str(target) if target is not None else None,
            cause=exc.strerror or str(exc),
            error_kind=classify_os_error(exc),
        )

    @property
    def is_error(self) -> bool:
        return self.kind == "error"

    def describe(self) -> str:
        """Audit log text for this record, without the timestamp."""
        if self.kind == "created":
            return f"Created folder: {self.path}"
        if self.kind == "copied":
            return f"Copied: {self.path} to {self.target}"
        if self.kind == "deleted":
            return f"Deleted: {self.path}"
        if self.target:
            return f"Error: copying {self.path} to {self.target}: {self.cause}"
        return f"Error: {self.path}: {self.cause}"
