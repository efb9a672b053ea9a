"""
Source tree enumeration and idempotency filtering.

This module is responsible for:
- Walking the source directory tree using os.scandir (fast)
- Producing one MoveTask per file, folder or symlink, paired with its
  destination by relative-path mapping
- Never following symbolic links (links are moved as leaves)
- Dropping tasks whose destination already exists
"""

import logging
import os
from pathlib import Path
from typing import List, Tuple, Union

from .errors import EnumerationError, InvalidSourceError
from .types import MoveTask
from .utils import (
    from_extended_length_path,
    normalize_path,
    path_exists,
    to_extended_length_path,
)

logger = logging.getLogger(__name__)


def enumerate_tasks(
    source_root: Union[str, Path],
    dest_root: Union[str, Path]
) -> List[MoveTask]:
    """
    Walk source_root and build the move task for every entry under it.

    The source root itself is not a task. Every directory appears before
    its own contents and siblings are sorted by name, so the result is
    deterministic for a given tree.

    Args:
        source_root: The directory whose contents are migrated
        dest_root: The directory the contents are migrated into

    Returns:
        List of MoveTask objects in enumeration order (may be empty)

    Raises:
        InvalidSourceError: If source_root doesn't exist or isn't a directory
        EnumerationError: If any directory or entry cannot be read
    """
    root_path = Path(source_root)

    if not root_path.exists():
        raise InvalidSourceError(f"Source root not found: {root_path}")

    if not root_path.is_dir():
        raise InvalidSourceError(f"Source root is not a directory: {root_path}")

    root_normalized = normalize_path(root_path)
    dest_normalized = normalize_path(dest_root)

    logger.info(f"Scanning entries under: {root_normalized}")

    tasks: List[MoveTask] = []
    dirs_scanned = 0
    pending = [to_extended_length_path(root_normalized)]

    while pending:
        dir_path = pending.pop()

        try:
            with os.scandir(dir_path) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            raise EnumerationError(
                f"Cannot scan directory {from_extended_length_path(dir_path)}: {e}"
            ) from e

        subdirs = []
        for entry in entries:
            entry_path = from_extended_length_path(entry.path)

            try:
                is_dir = entry.is_dir(follow_symlinks=False)
            except OSError as e:
                raise EnumerationError(f"Cannot access {entry_path}: {e}") from e

            try:
                rel_path = os.path.relpath(entry_path, root_normalized)
            except ValueError as e:
                raise EnumerationError(
                    f"Cannot compute relative path of {entry_path}: {e}"
                ) from e
            if rel_path in (os.curdir, os.pardir) or rel_path.startswith(os.pardir + os.sep):
                raise EnumerationError(
                    f"Entry {entry_path} is not under {root_normalized}"
                )

            tasks.append(MoveTask(
                source_path=entry_path,
                dest_path=os.path.join(dest_normalized, rel_path)
            ))

            if is_dir:
                subdirs.append(entry.path)

        dirs_scanned += 1
        if dirs_scanned % 10000 == 0:
            logger.info(f"Scanned {dirs_scanned} folders ({len(tasks)} entries)...")

        # Reversed so the alphabetically first subdirectory is scanned next
        pending.extend(reversed(subdirs))

    logger.info(f"Scan complete: {len(tasks)} entries found")
    return tasks


def filter_pending(tasks: List[MoveTask]) -> Tuple[List[MoveTask], int]:
    """
    Drop tasks whose destination already exists.

    Existence alone decides: a destination of a different type than the
    source (file vs folder) is not detected and is skipped all the same.

    Args:
        tasks: Tasks from enumerate_tasks()

    Returns:
        Tuple of (tasks still to process, number of tasks skipped)
    """
    to_process: List[MoveTask] = []
    skipped = 0

    for task in tasks:
        if path_exists(task.dest_path):
            logger.debug(f"Destination exists, skipping: {task.dest_path}")
            skipped += 1
        else:
            to_process.append(task)

    logger.info(f"{len(to_process)} entries to process, {skipped} already at destination")
    return to_process, skipped
