"""
Migration engine tying the scanner, dispatcher and cleanup together.

This module is responsible for:
- Enumerating the source tree and filtering out finished items
- Ensuring the destination root exists
- Dispatching the remaining items to the worker pool
- Building the MigrationSummary for the run
- Removing the emptied source folders and root after a successful run
"""

import errno
import logging
import os
import time
from pathlib import Path
from typing import List, Optional, Union

from .dispatcher import DEFAULT_WORKERS, MigrationDispatcher
from .errors import CleanupWarning, InvalidSourceError
from .progress import NullProgress, ProgressReporter
from .scanner import enumerate_tasks, filter_pending
from .types import MigrationSummary
from .utils import (
    create_directory,
    from_extended_length_path,
    normalize_path,
    to_extended_length_path,
)

logger = logging.getLogger(__name__)

# Windows reports a non-empty directory with this code instead of ENOTEMPTY
ERROR_DIR_NOT_EMPTY = 145


def _check_roots(source_root: Path, dest_root: Path) -> None:
    """Refuse a destination that is the source root or lies inside it."""
    src = normalize_path(source_root)
    dst = normalize_path(dest_root)
    try:
        nested = os.path.commonpath([src, dst]) == src
    except ValueError:
        # Different drives
        nested = False
    if nested:
        raise InvalidSourceError(
            f"Destination {dst} is the source root or inside it: {src}"
        )


def _is_not_empty_error(error: OSError) -> bool:
    if error.errno in (errno.ENOTEMPTY, errno.EEXIST):
        return True
    return getattr(error, "winerror", None) == ERROR_DIR_NOT_EMPTY


def _remove_if_empty(path: str) -> Optional[CleanupWarning]:
    """Remove one directory if it is empty; report unexpected failures."""
    display = from_extended_length_path(path)

    try:
        os.rmdir(path)
    except FileNotFoundError:
        logger.debug(f"Already gone: {display}")
        return None
    except OSError as e:
        if _is_not_empty_error(e):
            logger.debug(f"Not empty, keeping: {display}")
            return None
        warning = CleanupWarning(f"Could not remove source folder '{display}': {e}")
        logger.warning(str(warning))
        return warning

    logger.debug(f"Removed empty source folder: {display}")
    return None


def cleanup_source(source_root: Union[str, Path]) -> List[CleanupWarning]:
    """
    Remove the emptied folders of the source tree, then the root itself.

    Folders are visited deepest first and only removed when empty, so
    anything left behind (e.g. written by another process during the
    run) keeps its parents and the root. Missing and non-empty folders
    are skipped silently; other failures are logged and returned as
    warnings instead of raised.

    Args:
        source_root: The migrated source directory

    Returns:
        List of CleanupWarning objects (empty when nothing went wrong)
    """
    root_x = to_extended_length_path(normalize_path(source_root))
    warnings: List[CleanupWarning] = []

    for dir_path, _, _ in os.walk(root_x, topdown=False):
        if dir_path == root_x:
            continue
        warning = _remove_if_empty(dir_path)
        if warning is not None:
            warnings.append(warning)

    warning = _remove_if_empty(root_x)
    if warning is not None:
        warnings.append(warning)
    elif not os.path.lexists(root_x):
        logger.info(f"Removed source root: {from_extended_length_path(root_x)}")

    return warnings


class TreeMigrator:
    """
    Moves the whole contents of a source tree into a destination tree.

    Safe to re-run: anything already present at the destination is
    skipped, never overwritten.
    """

    def __init__(
        self,
        source_root: Union[str, Path],
        dest_root: Union[str, Path],
        workers: int = DEFAULT_WORKERS,
        progress: Optional[ProgressReporter] = None
    ):
        """
        Initialize the migrator.

        Args:
            source_root: Directory whose contents are moved
            dest_root: Directory receiving the contents (created if missing)
            workers: Size of the worker pool
            progress: Optional progress reporter
        """
        self.source_root = Path(source_root)
        self.dest_root = Path(dest_root)
        self.progress = progress or NullProgress()
        self.dispatcher = MigrationDispatcher(workers=workers, progress=self.progress)

    def _finish_without_dispatch(self, summary: MigrationSummary, message: str) -> MigrationSummary:
        logger.info(message)
        self.progress.finish(message)
        return summary

    def _cleanup(self, summary: MigrationSummary) -> None:
        summary.cleanup_warnings = cleanup_source(self.source_root)
        for warning in summary.cleanup_warnings:
            self.progress.warning(str(warning))

    def run(self) -> MigrationSummary:
        """
        Perform the migration.

        Per-item failures do not raise: they are reported in the summary
        (see MigrationSummary.first_failure) after every dispatched item
        has finished. The source tree is only cleaned up when items were
        dispatched and none of them failed.

        Returns:
            MigrationSummary for the run

        Raises:
            InvalidSourceError: If the source root is missing or not a directory,
                or the destination lies inside it
            EnumerationError: If the source tree cannot be read
            DirectoryCreateError: If the destination root cannot be created
        """
        start = time.monotonic()

        logger.info(f"Migrating {self.source_root} -> {self.dest_root}")
        _check_roots(self.source_root, self.dest_root)
        tasks = enumerate_tasks(self.source_root, self.dest_root)
        create_directory(self.dest_root)

        if not tasks:
            summary = MigrationSummary()
            summary.elapsed = time.monotonic() - start
            return self._finish_without_dispatch(
                summary,
                "Source is empty, ensured destination directory exists."
            )

        to_process, skipped = filter_pending(tasks)

        if not to_process:
            summary = MigrationSummary(
                total=len(tasks),
                skipped=skipped,
                already_present=skipped
            )
            summary.elapsed = time.monotonic() - start
            return self._finish_without_dispatch(
                summary,
                f"All {len(tasks)} items already exist at destination. Nothing to move."
            )

        logger.info(f"Processing {len(to_process)} items ({skipped} skipped)")
        self.progress.start(len(to_process))

        outcomes = self.dispatcher.run(to_process)
        summary = MigrationSummary.from_outcomes(len(tasks), skipped, outcomes)
        summary.elapsed = time.monotonic() - start

        if summary.ok:
            self.progress.finish(f"done ({summary.describe()})")
            self._cleanup(summary)
        else:
            logger.error(f"Migration failed: {summary.first_failure.message}")
            self.progress.finish(f"failed ({summary.describe()})")

        logger.info(f"Migration finished in {summary.elapsed:.2f}s: {summary.describe()}")
        return summary


def migrate_tree(
    source_root: Union[str, Path],
    dest_root: Union[str, Path],
    workers: int = DEFAULT_WORKERS,
    progress: Optional[ProgressReporter] = None
) -> MigrationSummary:
    """
    Migrate source_root into dest_root, raising on the first failed item.

    Args:
        source_root: Directory whose contents are moved
        dest_root: Directory receiving the contents
        workers: Size of the worker pool
        progress: Optional progress reporter

    Returns:
        MigrationSummary for a fully successful run

    Raises:
        MigrationFailedError: If any item failed; chained to the first
            failure in dispatch order
    """
    summary = TreeMigrator(source_root, dest_root, workers, progress).run()
    summary.raise_for_failure()
    return summary
