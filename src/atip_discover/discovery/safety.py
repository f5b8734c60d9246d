"""Safety gates for discovery.

Two questions are answered here before anything is executed:

- Is a directory safe to enumerate? The current directory is never safe
  (a classic PATH hijack vector), and on POSIX a directory must not be
  world-writable and must be owned by the current user or root.
- Is a binary name on the user's skip list? Patterns are exact names or
  shell globs such as ``test*``.

Glob patterns are interpreted with ``fnmatch.fnmatchcase``. A pattern the
glob syntax cannot interpret (for example an unclosed ``[``) never matches
as a glob; it can still match a name exactly. It is never a startup error.
"""

from __future__ import annotations

import fnmatch
import logging
import os
import platform
import stat
from collections.abc import Iterable
from pathlib import Path

logger = logging.getLogger(__name__)

CURRENT_DIRECTORY_REASON = "current directory not allowed"


def _is_windows() -> bool:
    return platform.system() == "Windows"


def _is_current_directory(path: str) -> bool:
    if path in ("", "."):
        return True
    try:
        return Path(path).resolve() == Path.cwd().resolve()
    except OSError:
        return False


def is_safe_path(path: str | Path) -> tuple[bool, str | None]:
    """Decide whether a directory may be enumerated for executables.

    Args:
        path: Directory to check.

    Returns:
        ``(True, None)`` if the directory is safe, otherwise ``(False, reason)``.
    """
    raw = str(path) if not isinstance(path, str) else path
    if _is_current_directory(raw):
        return False, CURRENT_DIRECTORY_REASON

    try:
        info = os.stat(raw)
    except OSError as exc:
        return False, f"failed to stat path {raw}: {exc}"

    if not stat.S_ISDIR(info.st_mode):
        return False, "not a directory"

    if _is_windows():
        return True, None

    if info.st_mode & stat.S_IWOTH:
        return False, "world-writable directory"

    uid = os.getuid()
    if info.st_uid != uid and info.st_uid != 0:
        return False, "directory owned by other user"

    return True, None


def matches_skip_list(name: str, patterns: Iterable[str]) -> bool:
    """Return True if ``name`` equals or glob-matches any skip pattern.

    Examples::

        matches_skip_list("curl", ["curl"])        # True
        matches_skip_list("curl-dev", ["curl*"])   # True
        matches_skip_list("wget", ["curl"])        # False
    """
    for pattern in patterns:
        if pattern == name:
            return True
        if fnmatch.fnmatchcase(name, pattern):
            return True
    return False


def filter_safe_directories(directories: Iterable[str]) -> list[str]:
    """Keep only directories that pass ``is_safe_path``.

    Rejections are logged and otherwise ignored; one unsafe directory never
    stops the others from being scanned.
    """
    safe: list[str] = []
    for directory in directories:
        ok, reason = is_safe_path(directory)
        if ok:
            safe.append(directory)
        else:
            logger.debug("Skipping directory %s: %s", directory, reason)
    return safe
