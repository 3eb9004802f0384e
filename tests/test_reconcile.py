"""
Tests for the reconciler — copy/delete/recurse over real and in-memory trees.
"""

import errno
import threading
from pathlib import Path
from unittest.mock import patch

import pytest

from conftest import dir_names, snapshot, write_tree
from foldersync.engine.fs import LocalFilesystem
from foldersync.engine.reconcile import iter_reconcile, reconcile
from foldersync.errors import PassCancelled, SourceMissing


def kinds(records):
    return [r.kind for r in records]


class TestExampleScenario:
    """source={a.txt, sub/b.txt}, replica={a.txt, c.txt}."""

    def test_replica_matches_source(self, trees):
        source, replica = trees
        write_tree(source, {"a.txt": "A", "sub/b.txt": "B"})
        write_tree(replica, {"a.txt": "old A", "c.txt": "C"})

        records = reconcile(source, replica)

        assert snapshot(replica) == {"a.txt": "old A", "sub/b.txt": "B"}
        assert sorted(kinds(records)) == ["copied", "created", "deleted"]

    def test_records_name_the_affected_paths(self, trees):
        source, replica = trees
        write_tree(source, {"a.txt": "A", "sub/b.txt": "B"})
        write_tree(replica, {"a.txt": "A", "c.txt": "C"})

        records = reconcile(source, replica)

        deleted = [r for r in records if r.kind == "deleted"]
        created = [r for r in records if r.kind == "created"]
        copied = [r for r in records if r.kind == "copied"]
        assert deleted[0].path == str(replica / "c.txt")
        assert created[0].path == str(replica / "sub")
        assert copied[0].path == str(source / "sub" / "b.txt")
        assert copied[0].target == str(replica / "sub" / "b.txt")

    def test_phase_order_delete_before_recursion(self, trees):
        """Deletes at one level happen before any child directory is touched."""
        source, replica = trees
        write_tree(source, {"a.txt": "A", "sub/b.txt": "B"})
        write_tree(replica, {"a.txt": "A", "c.txt": "C"})

        records = reconcile(source, replica)

        assert kinds(records) == ["deleted", "created", "copied"]


class TestReconcileOnDisk:
    """Properties of a pass over real directories."""

    def test_creates_missing_replica_with_parents(self, tmp_path):
        source = tmp_path / "src"
        write_tree(source, {"x.txt": "X"})
        replica = tmp_path / "deep" / "nested" / "replica"

        records = reconcile(source, replica)

        assert replica.is_dir()
        assert records[0].kind == "created"
        assert records[0].path == str(replica)
        assert snapshot(replica) == {"x.txt": "X"}

    def test_existing_replica_root_is_not_reported_created(self, trees):
        source, replica = trees
        replica.mkdir()

        assert reconcile(source, replica) == []

    def test_convergence_at_every_depth(self, trees):
        source, replica = trees
        write_tree(source, {
            "top.txt": "1",
            "a/one.txt": "2",
            "a/b/two.txt": "3",
            "a/b/c/three.txt": "4",
            "z/last.txt": "5",
        })

        reconcile(source, replica)

        assert snapshot(replica) == snapshot(source)

    def test_idempotent_second_pass_is_empty(self, trees):
        source, replica = trees
        write_tree(source, {"a.txt": "A", "d/e/f.txt": "F"})
        write_tree(replica, {"stale.txt": "S", "d/stale.txt": "S"})

        first = reconcile(source, replica)
        second = reconcile(source, replica)

        assert first
        assert second == []

    def test_deletes_extra_files_at_every_depth(self, trees):
        source, replica = trees
        write_tree(source, {"keep.txt": "k", "sub/keep.txt": "k"})
        write_tree(replica, {
            "keep.txt": "k",
            "extra.txt": "x",
            "sub/keep.txt": "k",
            "sub/extra.txt": "x",
        })

        records = reconcile(source, replica)

        assert snapshot(replica) == {"keep.txt": "k", "sub/keep.txt": "k"}
        assert sorted(r.path for r in records if r.kind == "deleted") == sorted([
            str(replica / "extra.txt"),
            str(replica / "sub" / "extra.txt"),
        ])

    def test_replica_only_directories_are_left_alone(self, trees):
        """Files are deleted but directories missing from the source are kept."""
        source, replica = trees
        write_tree(source, {"a.txt": "A"})
        write_tree(replica, {"orphan/inner.txt": "I", "orphan/deeper/x.txt": "X"})

        records = reconcile(source, replica)

        assert "orphan" in dir_names(replica)
        assert snapshot(replica) == {
            "a.txt": "A",
            "orphan/deeper/x.txt": "X",
            "orphan/inner.txt": "I",
        }
        assert all(not r.path.startswith(str(replica / "orphan")) for r in records)

    def test_existing_file_is_never_overwritten(self, trees):
        source, replica = trees
        write_tree(source, {"same.txt": "new content", "sub/same.txt": "new"})
        write_tree(replica, {"same.txt": "old content", "sub/same.txt": "old"})

        records = reconcile(source, replica)

        assert records == []
        assert (replica / "same.txt").read_text() == "old content"
        assert (replica / "sub" / "same.txt").read_text() == "old"

    def test_copies_bytes_exactly(self, trees):
        source, replica = trees
        payload = bytes(range(256)) * 64
        (source / "blob.bin").write_bytes(payload)

        reconcile(source, replica)

        assert (replica / "blob.bin").read_bytes() == payload

    def test_empty_source_directories_are_mirrored(self, trees):
        source, replica = trees
        (source / "empty" / "nested").mkdir(parents=True)

        records = reconcile(source, replica)

        assert dir_names(replica) == ["empty", "empty/nested"]
        assert kinds(records) == ["created", "created", "created"]

    def test_replica_file_shadowing_a_source_directory(self, trees):
        """A replica file named like a source dir is deleted, then the dir is created."""
        source, replica = trees
        write_tree(source, {"thing/inside.txt": "I"})
        write_tree(replica, {"thing": "i am a file"})

        records = reconcile(source, replica)

        assert kinds(records) == ["deleted", "created", "copied"]
        assert snapshot(replica) == {"thing/inside.txt": "I"}


class TestSourceMissing:
    """A missing source aborts before anything is touched."""

    def test_missing_source_raises(self, tmp_path):
        with pytest.raises(SourceMissing) as exc_info:
            reconcile(tmp_path / "nope", tmp_path / "replica")

        assert "nope" in str(exc_info.value)

    def test_missing_source_leaves_replica_unmodified(self, tmp_path):
        replica = tmp_path / "replica"
        write_tree(replica, {"keep.txt": "K", "sub/keep.txt": "K"})
        before = snapshot(replica)

        with pytest.raises(SourceMissing):
            reconcile(tmp_path / "nope", replica)

        assert snapshot(replica) == before

    def test_missing_source_does_not_create_replica(self, tmp_path):
        replica = tmp_path / "replica"

        with pytest.raises(SourceMissing):
            reconcile(tmp_path / "nope", replica)

        assert not replica.exists()

    def test_source_that_is_a_file_is_missing(self, tmp_path):
        source = tmp_path / "file.txt"
        source.write_text("not a dir")

        with pytest.raises(SourceMissing):
            reconcile(source, tmp_path / "replica")


class TestCancellation:
    """Stop requests are honored at directory-level checkpoints."""

    def test_preset_cancel_does_nothing(self, trees):
        source, replica = trees
        write_tree(source, {"a.txt": "A"})
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(PassCancelled):
            reconcile(source, replica, cancel=cancel)

        assert not replica.exists()

    def test_cancel_mid_pass_keeps_completed_work(self, trees):
        source, replica = trees
        write_tree(source, {"a.txt": "A", "sub/b.txt": "B"})
        cancel = threading.Event()

        gen = iter_reconcile(source, replica, cancel=cancel)
        first = next(gen)
        cancel.set()

        with pytest.raises(PassCancelled):
            list(gen)

        assert first.kind == "created"
        assert replica.is_dir()
        assert not (replica / "a.txt").exists()

    def test_resuming_after_cancel_converges(self, trees):
        source, replica = trees
        write_tree(source, {"a.txt": "A", "sub/b.txt": "B", "sub/deeper/c.txt": "C"})
        cancel = threading.Event()

        with pytest.raises(PassCancelled):
            for record in iter_reconcile(source, replica, cancel=cancel):
                if record.kind == "copied":
                    cancel.set()

        assert snapshot(replica) != snapshot(source)
        reconcile(source, replica)

        assert snapshot(replica) == snapshot(source)


class TestErrorContainment:
    """Per-operation failures become error records and the pass continues."""

    def test_copy_failure_does_not_stop_other_copies(self, memfs):
        memfs.add_file("/src/bad.txt", b"bad")
        memfs.add_file("/src/good.txt", b"good")
        memfs.add_dir("/rep")
        memfs.fail("copy", "/src/bad.txt", PermissionError(errno.EACCES, "Permission denied"))

        records = reconcile(Path("/src"), Path("/rep"), fs=memfs)

        errors = [r for r in records if r.is_error]
        assert len(errors) == 1
        assert errors[0].path == "/src/bad.txt"
        assert errors[0].target == "/rep/bad.txt"
        assert errors[0].error_kind == "access_denied"
        assert memfs.files[Path("/rep/good.txt")] == b"good"
        assert Path("/rep/bad.txt") not in memfs.files

    def test_delete_failure_does_not_stop_other_deletes(self, memfs):
        memfs.add_dir("/src")
        memfs.add_file("/rep/locked.txt")
        memfs.add_file("/rep/free.txt")
        memfs.fail("remove", "/rep/locked.txt", OSError(errno.EBUSY, "Device or resource busy"))

        records = reconcile(Path("/src"), Path("/rep"), fs=memfs)

        errors = [r for r in records if r.is_error]
        assert len(errors) == 1
        assert errors[0].path == "/rep/locked.txt"
        assert errors[0].error_kind == "io_failure"
        assert errors[0].cause == "Device or resource busy"
        assert Path("/rep/free.txt") not in memfs.files
        assert Path("/rep/locked.txt") in memfs.files

    def test_mkdir_failure_skips_only_that_subtree(self, memfs):
        memfs.add_file("/src/blocked/child.txt")
        memfs.add_file("/src/blocked/deeper/grandchild.txt")
        memfs.add_file("/src/open/child.txt")
        memfs.add_dir("/rep")
        memfs.fail("mkdir", "/rep/blocked", PermissionError(errno.EACCES, "Permission denied"))

        records = reconcile(Path("/src"), Path("/rep"), fs=memfs)

        errors = [r for r in records if r.is_error]
        assert [e.path for e in errors] == ["/rep/blocked"]
        assert Path("/rep/open/child.txt") in memfs.files
        assert not any(str(p).startswith("/rep/blocked") for p in memfs.files)

    def test_replica_root_creation_failure_is_an_error_record(self, memfs):
        memfs.add_file("/src/a.txt")
        memfs.fail("mkdir", "/rep", PermissionError(errno.EACCES, "Permission denied"))

        records = reconcile(Path("/src"), Path("/rep"), fs=memfs)

        assert kinds(records) == ["error"]
        assert records[0].path == "/rep"

    def test_replica_path_occupied_by_file(self, memfs):
        memfs.add_file("/src/sub/a.txt")
        memfs.add_file("/rep/other/file")
        memfs.add_file("/rep/sub")  # a file where the directory should go
        memfs.fail("remove", "/rep/sub", PermissionError(errno.EPERM, "Operation not permitted"))

        records = reconcile(Path("/src"), Path("/rep"), fs=memfs)

        assert kinds(records) == ["error", "error"]
        assert records[0].path == "/rep/sub"  # failed delete
        assert records[1].path == "/rep/sub"  # failed mkdir
        assert Path("/rep/sub/a.txt") not in memfs.files

    def test_unlistable_source_subdirectory(self, memfs):
        memfs.add_file("/src/secret/hidden.txt")
        memfs.add_file("/src/public/shown.txt")
        memfs.add_dir("/rep")
        memfs.fail("list", "/src/secret", PermissionError(errno.EACCES, "Permission denied"))

        records = reconcile(Path("/src"), Path("/rep"), fs=memfs)

        errors = [r for r in records if r.is_error]
        assert [e.path for e in errors] == ["/src/secret"]
        assert Path("/rep/public/shown.txt") in memfs.files

    def test_error_records_describe_the_failure(self, memfs):
        memfs.add_file("/src/a.txt")
        memfs.add_dir("/rep")
        memfs.fail("copy", "/src/a.txt", OSError(errno.ENOSPC, "No space left on device"))

        (record,) = reconcile(Path("/src"), Path("/rep"), fs=memfs)

        assert record.describe() == "Error: copying /src/a.txt to /rep/a.txt: No space left on device"

    def test_failed_copy_is_retried_next_pass(self, memfs):
        memfs.add_file("/src/a.txt", b"A")
        memfs.add_dir("/rep")
        memfs.fail("copy", "/src/a.txt", OSError(errno.EIO, "Input/output error"))

        first = reconcile(Path("/src"), Path("/rep"), fs=memfs)
        memfs.failures.clear()
        second = reconcile(Path("/src"), Path("/rep"), fs=memfs)

        assert kinds(first) == ["error"]
        assert kinds(second) == ["copied"]
        assert memfs.files[Path("/rep/a.txt")] == b"A"


class TestLocalCopyFailure:
    """Tests for copy failures on the real disk."""

    def test_partial_copy_is_removed(self, trees):
        """Test a copy that dies mid-write leaves no file behind."""
        source, replica = trees
        write_tree(source, {"a.txt": "A"})
        replica.mkdir()

        def write_some_then_fail(src, dst, length=0):
            dst.write(b"partial")
            raise OSError(errno.ENOSPC, "No space left on device")

        with patch("foldersync.engine.fs.shutil.copyfileobj", side_effect=write_some_then_fail):
            records = reconcile(source, replica)

        assert kinds(records) == ["error"]
        assert records[0].error_kind == "io_failure"
        assert records[0].target == str(replica / "a.txt")
        assert not (replica / "a.txt").exists()

        assert kinds(reconcile(source, replica)) == ["copied"]
        assert (replica / "a.txt").read_text() == "A"

    def test_copy_refuses_to_overwrite(self, tmp_path):
        """Test copy_file fails instead of clobbering an existing target."""
        source = tmp_path / "a.txt"
        source.write_text("new")
        target = tmp_path / "b.txt"
        target.write_text("old")

        with pytest.raises(FileExistsError):
            LocalFilesystem().copy_file(source, target)

        assert target.read_text() == "old"
