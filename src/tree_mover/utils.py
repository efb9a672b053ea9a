"""
Path helpers shared by the scanner, mover and migrator.

This module is responsible for:
- Normalizing paths to absolute form
- Converting to and from Windows extended-length (\\\\?\\) paths
- Existence checks that never follow symlinks
- Directory creation that tolerates long paths and "already exists"
- The atomic same-volume move that never replaces an existing file
"""

import logging
import os
import sys
from pathlib import Path
from typing import Union

from .errors import DirectoryCreateError

logger = logging.getLogger(__name__)

EXTENDED_PREFIX = "\\\\?\\"
EXTENDED_UNC_PREFIX = "\\\\?\\UNC\\"

PathLike = Union[str, Path]


def normalize_path(path: PathLike) -> str:
    """Return an absolute, normalized string form of path (no symlink resolution)."""
    return os.path.normpath(os.path.abspath(str(path)))


def to_extended_length_path(path: PathLike, force: bool = False) -> str:
    """
    Convert a path to the Windows extended-length form.

    Paths longer than MAX_PATH (260 characters) can only be handled by
    the Win32 API with the \\\\?\\ prefix. UNC paths (\\\\server\\share)
    become \\\\?\\UNC\\server\\share. On other platforms the path is
    returned unchanged unless force is set.

    Args:
        path: The path to convert
        force: Apply the conversion regardless of platform

    Returns:
        The extended-length path string
    """
    path_str = str(path)
    if sys.platform != "win32" and not force:
        return path_str

    if path_str.startswith(EXTENDED_PREFIX):
        return path_str

    if path_str.startswith("\\\\"):
        return EXTENDED_UNC_PREFIX + path_str[2:]

    return EXTENDED_PREFIX + path_str


def from_extended_length_path(path: PathLike) -> str:
    """Strip the extended-length prefix for human-readable output."""
    path_str = str(path)
    if path_str.startswith(EXTENDED_UNC_PREFIX):
        return "\\\\" + path_str[len(EXTENDED_UNC_PREFIX):]
    if path_str.startswith(EXTENDED_PREFIX):
        return path_str[len(EXTENDED_PREFIX):]
    return path_str


def path_exists(path: PathLike) -> bool:
    """
    Check whether anything occupies path.

    Dangling symlinks count as existing so they are never overwritten.
    """
    return os.path.lexists(to_extended_length_path(path))


def _makedirs_standard(path: str) -> None:
    os.makedirs(path, exist_ok=True)


def _makedirs_extended(path: str) -> None:
    os.makedirs(to_extended_length_path(path, force=True), exist_ok=True)


# Chosen once per process; callers only ever see create_directory()
_makedirs = _makedirs_extended if sys.platform == "win32" else _makedirs_standard


def create_directory(path: PathLike) -> None:
    """
    Create a directory and any missing parents.

    Succeeds when the directory already exists, including when another
    worker creates it concurrently. On Windows the extended-length form is
    used so destinations deeper than 260 characters can be created.

    Args:
        path: The directory to create

    Raises:
        DirectoryCreateError: If creation fails for any reason other than
            the directory already existing, including a file occupying
            the path
    """
    path_str = normalize_path(path)
    try:
        _makedirs(path_str)
    except FileExistsError as e:
        # exist_ok only covers directories
        if not os.path.isdir(to_extended_length_path(path_str)):
            raise DirectoryCreateError(
                f"Cannot create directory {path_str}: a file is in the way"
            ) from e
        logger.debug(f"Directory already exists: {path_str}")
    except OSError as e:
        raise DirectoryCreateError(
            f"Cannot create directory {path_str}: {e}"
        ) from e


def _link_then_unlink(src: str, dst: str) -> None:
    os.link(src, dst, follow_symlinks=False)
    try:
        os.unlink(src)
    except OSError:
        # Put things back so the caller sees an unchanged source and destination
        os.unlink(dst)
        raise


# Windows rename refuses to replace; POSIX rename would silently overwrite
_rename_no_replace = os.rename if sys.platform == "win32" else _link_then_unlink


def same_volume_move(src: PathLike, dst: PathLike) -> None:
    """
    Give src the name dst without ever replacing an existing dst.

    Atomic when both paths are on the same volume. Raises FileExistsError
    if dst is taken, and another OSError (e.g. EXDEV across volumes, or a
    file system without hard links) when the caller should copy instead.
    Both paths are unchanged whenever an error is raised.
    """
    _rename_no_replace(to_extended_length_path(src), to_extended_length_path(dst))
