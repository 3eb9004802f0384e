"""
Shared fixtures for sync tests.

Provides temporary source/replica trees on disk, helpers to build and
snapshot them, and an in-memory filesystem that can inject failures into
individual operations.
"""

from __future__ import annotations

import errno
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest

from foldersync.config.loader import resolve_config
from foldersync.engine.fs import Filesystem
from foldersync.observability.metrics import MetricsRegistry


def write_tree(root: Path, files: Dict[str, str]) -> None:
    """Create ``files`` ({relative path: text}) under ``root``."""
    root.mkdir(parents=True, exist_ok=True)
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")


def snapshot(root: Path) -> Dict[str, str]:
    """Map of relative path → content for every file under ``root``."""
    return {
        p.relative_to(root).as_posix(): p.read_text(encoding="utf-8")
        for p in sorted(root.rglob("*"))
        if p.is_file()
    }


def dir_names(root: Path) -> List[str]:
    """Relative paths of every directory under ``root``."""
    return sorted(p.relative_to(root).as_posix() for p in root.rglob("*") if p.is_dir())


class MemoryFilesystem(Filesystem):
    """
    In-memory filesystem for reconciler tests.

    ``fail(op, path, exc)`` makes the next and every later ``op`` on
    ``path`` raise ``exc``. Ops: list, mkdir, copy, remove.
    """

    def __init__(self):
        self.dirs = {Path("/")}
        self.files: Dict[Path, bytes] = {}
        self.failures: Dict[Tuple[str, Path], Exception] = {}

    def fail(self, op: str, path, exc: Exception) -> None:
        self.failures[(op, Path(path))] = exc

    def _maybe_fail(self, op: str, path: Path) -> None:
        exc = self.failures.get((op, path))
        if exc is not None:
            raise exc

    def add_dir(self, path) -> None:
        path = Path(path)
        self.dirs.update([path, *path.parents])

    def add_file(self, path, data: bytes = b"") -> None:
        path = Path(path)
        self.add_dir(path.parent)
        self.files[path] = data

    def is_dir(self, path: Path) -> bool:
        return path in self.dirs

    def is_file(self, path: Path) -> bool:
        return path in self.files

    def _require_dir(self, path: Path) -> None:
        if path not in self.dirs:
            raise FileNotFoundError(errno.ENOENT, "No such file or directory", str(path))

    def list_files(self, path: Path) -> List[str]:
        self._maybe_fail("list", path)
        self._require_dir(path)
        return [p.name for p in self.files if p.parent == path]

    def list_dirs(self, path: Path) -> List[str]:
        self._maybe_fail("list", path)
        self._require_dir(path)
        return [p.name for p in self.dirs if p.parent == path and p != path]

    def make_dirs(self, path: Path) -> None:
        self._maybe_fail("mkdir", path)
        for p in [path, *path.parents]:
            if p in self.files:
                raise FileExistsError(errno.EEXIST, "File exists", str(p))
        self.add_dir(path)

    def copy_file(self, source: Path, target: Path) -> None:
        self._maybe_fail("copy", source)
        if source not in self.files:
            raise FileNotFoundError(errno.ENOENT, "No such file or directory", str(source))
        if target in self.files or target in self.dirs:
            raise FileExistsError(errno.EEXIST, "File exists", str(target))
        self._require_dir(target.parent)
        self.files[target] = self.files[source]

    def remove_file(self, path: Path) -> None:
        self._maybe_fail("remove", path)
        if path not in self.files:
            raise FileNotFoundError(errno.ENOENT, "No such file or directory", str(path))
        del self.files[path]


@pytest.fixture
def memfs() -> MemoryFilesystem:
    return MemoryFilesystem()


@pytest.fixture
def trees(tmp_path: Path) -> Tuple[Path, Path]:
    """Empty source folder and a not-yet-created replica path."""
    source = tmp_path / "SourceFolder"
    source.mkdir()
    return source, tmp_path / "ReplicaFolder"


@pytest.fixture
def make_config(tmp_path: Path):
    """Build a SyncConfig rooted at tmp_path, with overrides."""

    def _make(env: Optional[Dict[str, str]] = None, **overrides):
        return resolve_config(env or {}, tmp_path).with_overrides(**overrides)

    return _make


@pytest.fixture
def registry() -> MetricsRegistry:
    """Fresh metrics registry so tests don't see each other's counts."""
    return MetricsRegistry(prefix="test")
