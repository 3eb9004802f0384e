"""
Reconciler — Make a replica tree match a source tree.

For every directory level the reconciler runs three phases in order:

1. Copy: source files with no same-named file in the replica are copied
2. Delete: replica files with no same-named file in the source are removed
3. Recurse: every source subdirectory is reconciled against the replica
   directory of the same name

## Equality

Two files are "the same" when a file with that name exists on both sides.
Contents and timestamps are never compared, and an existing replica file
is never overwritten.

## Extra replica directories

Directories that exist only in the replica are left in place. Files are
deleted, directories are not. This matches the long-standing behavior of
the service and is kept on purpose until someone decides otherwise.

## Error containment

A failed copy or delete yields an ``error`` record and the phase moves on.
A failed mkdir or directory listing yields an ``error`` record and skips
that subtree only. The only exception that escapes is ``SourceMissing``,
raised before anything is touched, and ``PassCancelled`` when a stop was
requested.

## Usage

    from foldersync.engine.reconcile import iter_reconcile

    for record in iter_reconcile(source, replica, cancel=stop_event):
        audit.record(record)
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Iterator, List, Optional, Union

from ..errors import PassCancelled, SourceMissing
from ..models.actions import ActionRecord
from .fs import Filesystem, LocalFilesystem

logger = logging.getLogger(__name__)


def iter_reconcile(
    source: Union[str, Path],
    replica: Union[str, Path],
    fs: Optional[Filesystem] = None,
    cancel: Optional[threading.Event] = None,
) -> Iterator[ActionRecord]:
    """
    Reconcile ``replica`` against ``source``, yielding one record per action.

    Records are yielded as soon as the side effect happens, so a caller
    writing them to a log keeps everything done before a crash.

    Args:
        source: Root of the tree to mirror from (must be a directory)
        replica: Root of the tree to mirror to (created if missing)
        fs: Filesystem to operate on (defaults to the local disk)
        cancel: Event checked before each phase of every directory level

    Raises:
        SourceMissing: If ``source`` is not an existing directory
        PassCancelled: If ``cancel`` was set mid-traversal
    """
    fs = fs or LocalFilesystem()
    source = Path(source)
    replica = Path(replica)

    if not fs.is_dir(source):
        raise SourceMissing(source)

    yield from _reconcile_dir(fs, source, replica, cancel)


def reconcile(
    source: Union[str, Path],
    replica: Union[str, Path],
    fs: Optional[Filesystem] = None,
    cancel: Optional[threading.Event] = None,
) -> List[ActionRecord]:
    """Run ``iter_reconcile`` to completion and return all records."""
    return list(iter_reconcile(source, replica, fs=fs, cancel=cancel))


def _check_cancel(cancel: Optional[threading.Event], where: Path) -> None:
    if cancel is not None and cancel.is_set():
        logger.info(f"Stop requested, abandoning pass at {where}")
        raise PassCancelled(where)


def _reconcile_dir(
    fs: Filesystem,
    source: Path,
    replica: Path,
    cancel: Optional[threading.Event],
) -> Iterator[ActionRecord]:
    _check_cancel(cancel, source)

    if not fs.is_dir(replica):
        try:
            fs.make_dirs(replica)
        except OSError as e:
            logger.debug(f"mkdir failed for {replica}: {e}")
            yield ActionRecord.error(replica, e)
            return
        yield ActionRecord.created(replica)

    try:
        source_files = fs.list_files(source)
        source_dirs = fs.list_dirs(source)
    except OSError as e:
        yield ActionRecord.error(source, e)
        return

    # --- Copy phase ---
    _check_cancel(cancel, source)
    for name in source_files:
        source_file = source / name
        replica_file = replica / name
        if fs.is_file(replica_file):
            continue
        try:
            fs.copy_file(source_file, replica_file)
        except OSError as e:
            yield ActionRecord.error(source_file, e, target=replica_file)
            continue
        yield ActionRecord.copied(source_file, replica_file)

    # --- Delete phase ---
    _check_cancel(cancel, replica)
    try:
        replica_files = fs.list_files(replica)
    except OSError as e:
        yield ActionRecord.error(replica, e)
        return

    for name in replica_files:
        if fs.is_file(source / name):
            continue
        replica_file = replica / name
        try:
            fs.remove_file(replica_file)
        except OSError as e:
            yield ActionRecord.error(replica_file, e)
            continue
        yield ActionRecord.deleted(replica_file)

    # --- Recurse phase ---
    for name in source_dirs:
        yield from _reconcile_dir(fs, source / name, replica / name, cancel)
