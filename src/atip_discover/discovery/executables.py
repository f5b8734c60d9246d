"""List candidate executables in a directory (non-recursive)."""

from __future__ import annotations

import logging
import os
import platform
import stat
from pathlib import Path

logger = logging.getLogger(__name__)

WINDOWS_EXECUTABLE_SUFFIXES: frozenset[str] = frozenset({".exe", ".bat", ".cmd"})

_ANY_EXECUTE_BIT = stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH


def _is_executable(entry: os.DirEntry[str], windows: bool) -> bool:
    try:
        # follow_symlinks so a link to a regular file qualifies and a
        # dangling link or a link to a directory does not.
        if not entry.is_file(follow_symlinks=True):
            return False
        if windows:
            return Path(entry.name).suffix.lower() in WINDOWS_EXECUTABLE_SUFFIXES
        mode = entry.stat(follow_symlinks=True).st_mode
    except OSError:
        return False
    return bool(mode & _ANY_EXECUTE_BIT)


def enumerate_executables(directory: str | Path) -> list[Path]:
    """Return executable files directly inside ``directory``.

    Subdirectories are never descended into. On POSIX a file qualifies when
    any execute bit is set; on Windows when its suffix is ``.exe``,
    ``.bat`` or ``.cmd``.

    An unreadable or missing directory yields an empty list so that one bad
    directory cannot abort a multi-directory scan.

    Args:
        directory: Directory to list.

    Returns:
        Absolute paths, sorted by file name.
    """
    windows = platform.system() == "Windows"
    base = Path(directory).absolute()
    try:
        with os.scandir(base) as it:
            entries = list(it)
    except OSError as exc:
        logger.debug("Cannot read directory %s: %s", base, exc)
        return []

    found = [base / entry.name for entry in entries if _is_executable(entry, windows)]
    found.sort(key=lambda p: p.name)
    return found
