"""
Single-item mover for relocating one source entry to its destination.

This module is responsible for:
- Creating destination folders (folders are never moved in bulk)
- Moving files with an atomic rename when source and destination share a volume
- Falling back to copy + delete when the rename fails (e.g. across volumes)
- Never overwriting anything already present at the destination
- Treating a destination that appears mid-operation as a skip, not an error
"""

import errno
import logging
import os
import shutil
import stat
from typing import Callable, Optional

from .errors import TransferError
from .types import EntryKind, MoveTask, OutcomeStatus
from .utils import (
    create_directory,
    path_exists,
    same_volume_move,
    to_extended_length_path,
)

# Buffer size for the copy fallback
COPY_BUFFER_SIZE = 1024 * 1024

# Suffix of in-progress copies; a leftover one marks an interrupted copy
PARTIAL_SUFFIX = ".partial"

logger = logging.getLogger(__name__)

WarningCallback = Callable[[str], None]


def classify_entry(path: str) -> EntryKind:
    """
    Determine the type of a source entry without following symlinks.

    Args:
        path: The source path

    Returns:
        EntryKind for the path (MISSING if it no longer exists)

    Raises:
        TransferError: If the entry cannot be inspected
    """
    try:
        mode = os.lstat(to_extended_length_path(path)).st_mode
    except FileNotFoundError:
        return EntryKind.MISSING
    except OSError as e:
        raise TransferError(f"Cannot inspect {path}: {e}") from e

    if stat.S_ISLNK(mode):
        return EntryKind.SYMLINK
    if stat.S_ISDIR(mode):
        return EntryKind.DIRECTORY
    if stat.S_ISREG(mode):
        return EntryKind.FILE
    return EntryKind.OTHER


def _discard_partial(path: str) -> None:
    """Remove a partially written copy."""
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.error(f"Could not remove partial copy {path}: {e}")


def partial_path(dst: str) -> str:
    """Name of the temporary sibling a copy is written to before it is promoted."""
    return f"{dst}.{os.getpid()}{PARTIAL_SUFFIX}"


def _promote(tmp: str, dst: str) -> None:
    """Give a finished copy its final name without replacing anything."""
    try:
        os.link(tmp, dst)
    except FileExistsError:
        raise
    except OSError as e:
        # No hard links on this volume (e.g. FAT); fall back to a checked rename
        logger.debug(f"Hard link unavailable ({e}), renaming: {tmp}")
        if path_exists(dst):
            raise FileExistsError(errno.EEXIST, "File exists", dst) from e
        os.rename(tmp, dst)
        return

    try:
        os.unlink(tmp)
    except OSError as e:
        logger.warning(f"Could not remove temporary copy {tmp}: {e}")


def copy_entry(src: str, dst: str, kind: EntryKind) -> None:
    """
    Copy a file or symlink to a destination that must not exist yet.

    File data goes to a temporary sibling first and only takes the final
    name once complete, so dst is either absent or whole, even if the
    process dies mid-copy. An existing dst is never replaced. Symlinks
    are recreated as links pointing at the same target.

    Args:
        src: Source file or symlink
        dst: Destination path
        kind: EntryKind.FILE or EntryKind.SYMLINK

    Raises:
        FileExistsError: If dst exists (another writer got there first)
        OSError: For any other copy failure
    """
    src_x = to_extended_length_path(src)
    dst_x = to_extended_length_path(dst)

    if kind == EntryKind.SYMLINK:
        os.symlink(os.readlink(src_x), dst_x)
        return

    tmp_x = partial_path(dst_x)
    try:
        with open(src_x, "rb") as fsrc, open(tmp_x, "wb") as fdst:
            shutil.copyfileobj(fsrc, fdst, COPY_BUFFER_SIZE)

        try:
            shutil.copystat(src_x, tmp_x)
        except OSError as e:
            logger.warning(f"Copied {src} but could not preserve its metadata: {e}")

        _promote(tmp_x, dst_x)
    except BaseException:
        _discard_partial(tmp_x)
        raise


def move_item(
    task: MoveTask,
    on_warning: Optional[WarningCallback] = None
) -> OutcomeStatus:
    """
    Move a single entry from its source to its destination.

    Handles:
    - Existing destination (SKIPPED_EXISTS, checked before every write)
    - Folders: created at the destination, source left for the files below it
    - Files and symlinks: rename, or copy + delete when the rename fails
    - Special files and vanished sources: nothing to do (SUCCESS)

    Args:
        task: The MoveTask to perform
        on_warning: Optional callable receiving non-fatal warning messages

    Returns:
        OutcomeStatus.SUCCESS or OutcomeStatus.SKIPPED_EXISTS

    Raises:
        DirectoryCreateError: If a destination folder cannot be created
        TransferError: If a file cannot be moved or copied
    """
    src = task.source_path
    dst = task.dest_path

    if path_exists(dst):
        logger.debug(f"Destination already exists: {dst}")
        return OutcomeStatus.SKIPPED_EXISTS

    kind = classify_entry(src)

    if kind == EntryKind.DIRECTORY:
        create_directory(dst)
        logger.debug(f"Created folder: {dst}")
        return OutcomeStatus.SUCCESS

    if kind in (EntryKind.FILE, EntryKind.SYMLINK):
        return _move_file(src, dst, kind, on_warning)

    if kind == EntryKind.MISSING:
        logger.info(f"Source missing (already moved?): {src}")
    else:
        logger.info(f"Not a regular file, folder or symlink, leaving as is: {src}")
    return OutcomeStatus.SUCCESS


def _move_file(
    src: str,
    dst: str,
    kind: EntryKind,
    on_warning: Optional[WarningCallback]
) -> OutcomeStatus:
    """Move one file or symlink, falling back to copy + delete."""
    create_directory(os.path.dirname(dst))

    # Another worker may have created it while the parent was being made
    if path_exists(dst):
        logger.debug(f"Destination appeared, skipping: {dst}")
        return OutcomeStatus.SKIPPED_EXISTS

    try:
        same_volume_move(src, dst)
        logger.debug(f"Moved: {src} -> {dst}")
        return OutcomeStatus.SUCCESS
    except FileExistsError:
        logger.info(f"Destination appeared before the move, skipping: {dst}")
        return OutcomeStatus.SKIPPED_EXISTS
    except OSError as e:
        logger.debug(f"Rename failed ({e}), copying instead: {src}")

    try:
        copy_entry(src, dst, kind)
    except FileExistsError:
        logger.info(f"Destination appeared during copy, skipping: {dst}")
        return OutcomeStatus.SKIPPED_EXISTS
    except OSError as e:
        raise TransferError(f"Copy failed: {src} -> {dst}: {e}") from e

    logger.debug(f"Copied: {src} -> {dst}")

    try:
        os.unlink(to_extended_length_path(src))
    except OSError as e:
        message = f"Copied {src} but could not remove the source: {e}"
        logger.warning(message)
        if on_warning:
            on_warning(message)

    return OutcomeStatus.SUCCESS
