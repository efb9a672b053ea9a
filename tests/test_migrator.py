"""
Integration tests for the migration engine.
"""

import errno
import filecmp
import os
import tempfile
from pathlib import Path

import pytest

import tree_mover.migrator as migrator_mod
import tree_mover.mover as mover_mod
from tree_mover.errors import (
    CleanupWarning,
    InvalidSourceError,
    MigrationFailedError,
    TransferError,
)
from tree_mover.migrator import TreeMigrator, cleanup_source, migrate_tree
from tree_mover.progress import ProgressReporter


def create_test_tree(structure: dict, base_path: Path) -> None:
    """Create folders (dict values) and files (str values) under base_path."""
    base_path.mkdir(parents=True, exist_ok=True)
    for name, content in structure.items():
        path = base_path / name
        if isinstance(content, dict):
            create_test_tree(content, path)
        else:
            path.write_text(content)


def cross_volume_rename(src, dst):
    raise OSError(errno.EXDEV, "Invalid cross-device link")


class RecordingProgress(ProgressReporter):
    """Progress reporter that records every signal."""

    def __init__(self):
        self.started = None
        self.advanced = 0
        self.warnings = []
        self.finished = None

    def start(self, total):
        self.started = total

    def advance(self, count=1):
        self.advanced += count

    def warning(self, message):
        self.warnings.append(message)

    def finish(self, message):
        self.finished = message


SAMPLE_TREE = {
    "docs": {
        "readme.txt": "read me",
        "nested": {"deep.txt": "deep"},
    },
    "empty_dir": {},
    "top.txt": "top",
}


class TestExampleScenario:
    """The a/, a/x.txt, b.txt walk-through."""

    def test_moves_everything_and_removes_source(self):
        """All three items arrive and the source root is removed."""
        with tempfile.TemporaryDirectory() as tmp:
            src = Path(tmp) / "src"
            dst = Path(tmp) / "dst"
            create_test_tree({"a": {"x.txt": "hi"}, "b.txt": "bye"}, src)

            summary = TreeMigrator(src, dst).run()

            assert (summary.total, summary.skipped, summary.processed, summary.failed) == (3, 0, 3, 0)
            assert summary.ok
            assert (dst / "a").is_dir()
            assert (dst / "a" / "x.txt").read_text() == "hi"
            assert (dst / "b.txt").read_text() == "bye"
            assert not src.exists()


class TestTreeMigrator:
    """Tests for TreeMigrator class."""

    def test_completeness(self):
        """Every file and folder arrives with identical content."""
        with tempfile.TemporaryDirectory() as tmp:
            src = Path(tmp) / "src"
            reference = Path(tmp) / "reference"
            dst = Path(tmp) / "dst"
            create_test_tree(SAMPLE_TREE, src)
            create_test_tree(SAMPLE_TREE, reference)

            summary = TreeMigrator(src, dst, workers=2).run()

            assert summary.total == 6
            assert summary.processed == 6
            assert (dst / "empty_dir").is_dir()
            comparison = filecmp.dircmp(reference, dst)
            assert comparison.left_only == [] and comparison.right_only == []
            for rel in ["top.txt", "docs/readme.txt", "docs/nested/deep.txt"]:
                assert filecmp.cmp(reference / rel, dst / rel, shallow=False)

    def test_idempotent_second_run(self):
        """A second run over the same items processes nothing."""
        with tempfile.TemporaryDirectory() as tmp:
            src = Path(tmp) / "src"
            dst = Path(tmp) / "dst"
            create_test_tree(SAMPLE_TREE, src)
            first = TreeMigrator(src, dst).run()

            # Same items show up at the source again
            create_test_tree(SAMPLE_TREE, src)
            second = TreeMigrator(src, dst).run()

            assert second.processed == 0
            assert second.skipped == first.processed == second.total
            assert second.outcomes == []
            # Nothing dispatched, so nothing was cleaned up
            assert (src / "top.txt").exists()

    def test_no_overwrite_of_existing_destination(self):
        """Pre-existing destination entries keep their content and count as skipped."""
        with tempfile.TemporaryDirectory() as tmp:
            src = Path(tmp) / "src"
            dst = Path(tmp) / "dst"
            create_test_tree({"keep.txt": "new", "other.txt": "other"}, src)
            create_test_tree({"keep.txt": "old"}, dst)

            summary = TreeMigrator(src, dst).run()

            assert (dst / "keep.txt").read_text() == "old"
            assert (dst / "other.txt").read_text() == "other"
            assert summary.skipped == 1
            assert summary.failed == 0
            assert summary.processed == 1
            # Skipped source file remains, so the root stays
            assert (src / "keep.txt").read_text() == "new"

    def test_empty_source(self):
        """An empty source succeeds and creates the destination root."""
        with tempfile.TemporaryDirectory() as tmp:
            src = Path(tmp) / "src"
            dst = Path(tmp) / "new" / "dst"
            src.mkdir()
            progress = RecordingProgress()

            summary = TreeMigrator(src, dst, progress=progress).run()

            assert summary.ok
            assert summary.total == 0
            assert dst.is_dir()
            assert progress.started is None
            assert "empty" in progress.finished

    def test_missing_source_raises(self):
        """A missing source root raises before any work."""
        with tempfile.TemporaryDirectory() as tmp:
            dst = Path(tmp) / "dst"

            with pytest.raises(InvalidSourceError):
                TreeMigrator(Path(tmp) / "missing", dst).run()

            assert not dst.exists()

    def test_destination_inside_source_rejected(self):
        """A destination nested in the source root is refused up front."""
        with tempfile.TemporaryDirectory() as tmp:
            src = Path(tmp) / "src"
            create_test_tree({"f.txt": "x"}, src)

            with pytest.raises(InvalidSourceError, match="inside"):
                TreeMigrator(src, src / "moved").run()

            assert (src / "f.txt").exists()
            assert not (src / "moved").exists()

    def test_cross_volume_fallback(self, monkeypatch):
        """When rename always fails, items are copied and sources removed."""
        monkeypatch.setattr(mover_mod, "same_volume_move", cross_volume_rename)

        with tempfile.TemporaryDirectory() as tmp:
            src = Path(tmp) / "src"
            dst = Path(tmp) / "dst"
            create_test_tree(SAMPLE_TREE, src)

            summary = TreeMigrator(src, dst).run()

            assert summary.ok
            assert (dst / "docs" / "nested" / "deep.txt").read_text() == "deep"
            assert (dst / "top.txt").read_text() == "top"
            assert not src.exists()

    def test_partial_failure(self, monkeypatch):
        """One failing item is reported, the rest finish, source is kept."""
        monkeypatch.setattr(mover_mod, "same_volume_move", cross_volume_rename)
        real_copy = mover_mod.copy_entry

        def copy_or_fail(src, dst, kind):
            if src.endswith("readme.txt"):
                raise PermissionError(errno.EACCES, "Permission denied", src)
            return real_copy(src, dst, kind)

        monkeypatch.setattr(mover_mod, "copy_entry", copy_or_fail)

        with tempfile.TemporaryDirectory() as tmp:
            src = Path(tmp) / "src"
            dst = Path(tmp) / "dst"
            create_test_tree(SAMPLE_TREE, src)
            progress = RecordingProgress()

            summary = TreeMigrator(src, dst, progress=progress).run()

            assert not summary.ok
            assert summary.failed == 1
            assert summary.processed == 5
            assert summary.first_failure.task.source_path.endswith("readme.txt")
            assert isinstance(summary.first_failure.error, TransferError)
            assert progress.advanced == 5
            assert "failed" in progress.finished
            # Other items arrived, the failed one stayed put
            assert (dst / "top.txt").read_text() == "top"
            assert not (dst / "docs" / "readme.txt").exists()
            assert (src / "docs" / "readme.txt").exists()
            # No cleanup after a failure, not even of emptied folders
            assert (src / "docs" / "nested").is_dir()

    def test_progress_signals(self):
        """Progress gets the pending count, one advance per item and a finish."""
        with tempfile.TemporaryDirectory() as tmp:
            src = Path(tmp) / "src"
            dst = Path(tmp) / "dst"
            create_test_tree(SAMPLE_TREE, src)
            create_test_tree({"top.txt": "already"}, dst)
            progress = RecordingProgress()

            TreeMigrator(src, dst, progress=progress).run()

            assert progress.started == 5
            assert progress.advanced == 5
            assert progress.finished.startswith("done")

    def test_single_worker(self):
        """A one-worker pool still migrates the whole tree."""
        with tempfile.TemporaryDirectory() as tmp:
            src = Path(tmp) / "src"
            dst = Path(tmp) / "dst"
            create_test_tree(SAMPLE_TREE, src)

            summary = TreeMigrator(src, dst, workers=1).run()

            assert summary.processed == 6
            assert not src.exists()


class TestMigrateTree:
    """Tests for migrate_tree function."""

    def test_returns_summary_on_success(self):
        """A clean run returns its summary."""
        with tempfile.TemporaryDirectory() as tmp:
            src = Path(tmp) / "src"
            create_test_tree({"f.txt": "x"}, src)

            summary = migrate_tree(src, Path(tmp) / "dst")

            assert summary.processed == 1

    def test_raises_first_failure(self, monkeypatch):
        """A failed item raises MigrationFailedError chained to its cause."""
        monkeypatch.setattr(mover_mod, "same_volume_move", cross_volume_rename)

        def failing_copy(src, dst, kind):
            raise PermissionError(errno.EACCES, "Permission denied", src)

        monkeypatch.setattr(mover_mod, "copy_entry", failing_copy)

        with tempfile.TemporaryDirectory() as tmp:
            src = Path(tmp) / "src"
            create_test_tree({"a.txt": "a", "b.txt": "b"}, src)

            with pytest.raises(MigrationFailedError) as exc_info:
                migrate_tree(src, Path(tmp) / "dst")

            error = exc_info.value
            assert isinstance(error.__cause__, TransferError)
            assert error.summary.failed == 2
            assert "a.txt" in str(error)


class TestCleanupSource:
    """Tests for cleanup_source function."""

    def test_removes_empty_tree(self):
        """Empty folders and the root are removed."""
        with tempfile.TemporaryDirectory() as tmp:
            src = Path(tmp) / "src"
            create_test_tree({"a": {"b": {}}, "c": {}}, src)

            warnings = cleanup_source(src)

            assert warnings == []
            assert not src.exists()

    def test_keeps_folders_with_leftovers(self):
        """A leftover file keeps its folder and the root."""
        with tempfile.TemporaryDirectory() as tmp:
            src = Path(tmp) / "src"
            create_test_tree({"a": {"left.txt": "x"}, "b": {}}, src)

            warnings = cleanup_source(src)

            assert warnings == []
            assert (src / "a" / "left.txt").exists()
            assert not (src / "b").exists()

    def test_missing_root_is_silent(self):
        """A root that no longer exists is not a problem."""
        with tempfile.TemporaryDirectory() as tmp:
            assert cleanup_source(Path(tmp) / "gone") == []

    def test_other_errors_become_warnings(self, monkeypatch, caplog):
        """Unexpected removal errors are logged and returned, not raised."""
        def failing_rmdir(path, *args, **kwargs):
            raise PermissionError(errno.EACCES, "Permission denied", path)

        with tempfile.TemporaryDirectory() as tmp:
            src = Path(tmp) / "src"
            src.mkdir()

            monkeypatch.setattr(migrator_mod.os, "rmdir", failing_rmdir)
            warnings = cleanup_source(src)
            monkeypatch.undo()

            assert len(warnings) == 1
            assert isinstance(warnings[0], CleanupWarning)
            assert "Could not remove" in caplog.text
            assert src.exists()

    def test_cleanup_warning_reaches_progress(self, monkeypatch):
        """The engine forwards cleanup warnings to the progress reporter."""
        def failing_cleanup(source_root):
            return [CleanupWarning("Could not remove source folder 'x': busy")]

        monkeypatch.setattr(migrator_mod, "cleanup_source", failing_cleanup)

        with tempfile.TemporaryDirectory() as tmp:
            src = Path(tmp) / "src"
            create_test_tree({"f.txt": "x"}, src)
            progress = RecordingProgress()

            summary = TreeMigrator(src, Path(tmp) / "dst", progress=progress).run()

            assert summary.ok
            assert len(summary.cleanup_warnings) == 1
            assert progress.warnings == ["Could not remove source folder 'x': busy"]
