"""
Filesystem Interface — The operations the reconciler needs.

The reconciler never touches ``os`` or ``shutil`` directly. It talks to a
``Filesystem`` so passes can run against the local disk in production and
against an in-memory fake in tests.
"""

from __future__ import annotations

import contextlib
import os
import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List


class Filesystem(ABC):
    """
    Abstract filesystem used by the reconciler.

    All methods raise ``OSError`` subclasses on failure. Listing methods
    return bare entry names in enumeration order.
    """

    @abstractmethod
    def is_dir(self, path: Path) -> bool:
        pass

    @abstractmethod
    def is_file(self, path: Path) -> bool:
        pass

    @abstractmethod
    def list_files(self, path: Path) -> List[str]:
        """Names of the regular files directly inside ``path``."""
        pass

    @abstractmethod
    def list_dirs(self, path: Path) -> List[str]:
        """Names of the directories directly inside ``path``."""
        pass

    @abstractmethod
    def make_dirs(self, path: Path) -> None:
        """Create ``path`` and any missing parents."""
        pass

    @abstractmethod
    def copy_file(self, source: Path, target: Path) -> None:
        """Copy bytes of ``source`` to ``target``. Fails if ``target`` exists."""
        pass

    @abstractmethod
    def remove_file(self, path: Path) -> None:
        pass


class LocalFilesystem(Filesystem):
    """Filesystem backed by the local disk."""

    COPY_BUFFER_SIZE = 1024 * 1024

    def is_dir(self, path: Path) -> bool:
        return path.is_dir()

    def is_file(self, path: Path) -> bool:
        return path.is_file()

    def list_files(self, path: Path) -> List[str]:
        with os.scandir(path) as entries:
            return [e.name for e in entries if e.is_file()]

    def list_dirs(self, path: Path) -> List[str]:
        with os.scandir(path) as entries:
            return [e.name for e in entries if e.is_dir()]

    def make_dirs(self, path: Path) -> None:
        path.mkdir(parents=True, exist_ok=True)

    def copy_file(self, source: Path, target: Path) -> None:
        with source.open("rb") as src:
            # "xb" refuses to clobber a file that appeared since the listing
            dst = target.open("xb")
            try:
                with dst:
                    shutil.copyfileobj(src, dst, self.COPY_BUFFER_SIZE)
            except OSError:
                # a partial copy would count as "present" on the next pass
                with contextlib.suppress(OSError):
                    target.unlink()
                raise

    def remove_file(self, path: Path) -> None:
        path.unlink()
