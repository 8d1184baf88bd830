"""File-System Access

This module implements the low-level file access used by the cache and the
lock manager: opening files while creating any missing parent directories,
and checking whether a path exists without mistaking a failed check for a
missing file.
"""

import enum
import errno
import logging
import os
from typing import Optional

__all__ = [
    "DIR_MODE",
    "FILE_MODE",
    "Presence",
    "exists",
    "open_file",
    "presence",
]


FILE_MODE = 0o600
DIR_MODE = 0o777

log = logging.getLogger(__name__)


class Presence(enum.Enum):
    """Outcome of a successful existence check

    A failed check is not represented here; it raises the `OSError` of the
    underlying `stat(2)` call instead.
    """

    ABSENT = "absent"
    PRESENT = "present"


def presence(path: str) -> Presence:
    """Check whether a path exists

    Run `stat(2)` on 'path'. `ENOENT` is reported as `Presence.ABSENT`, any
    other error is raised to the caller, since it means the state of the
    file-system could not be observed.

    Parameters
    ----------
    path
        The path to check. Symlinks are followed.

    Raises
    ------
    OSError
        If `stat(2)` fails with anything but `ENOENT`.
    """

    try:
        os.stat(path)
    except OSError as e:
        if e.errno == errno.ENOENT:
            return Presence.ABSENT
        raise
    return Presence.PRESENT


def exists(path: str) -> bool:
    """Return whether 'path' exists, raising if that cannot be determined"""
    return presence(path) is Presence.PRESENT


def open_file(path: str, flags: int, mode: int = FILE_MODE, *, known: Optional[Presence] = None) -> int:
    """Open a file, creating its parent directories if needed

    If 'path' does not exist yet, all missing parent directories are created
    with `DIR_MODE` (subject to the umask). The file is then opened via
    `os.open()` with the given flags. Whether the file itself is created is
    up to 'flags', e.g. `os.O_RDWR | os.O_CREAT`, or additionally `os.O_EXCL`
    to fail if it already exists.

    The returned file-descriptor is owned by the caller, who must close it.

    Parameters
    ----------
    path
        The file to open.
    flags
        Flags for `os.open()`. `O_CLOEXEC` is always added.
    mode
        File mode used if the file is created.
    known
        Result of a `presence()` check of 'path' the caller just ran. If
        given, 'path' is not checked again.

    Raises
    ------
    OSError
        Any error of the existence check, of the directory creation, or of the open call
        is raised unmodified. In particular `FileExistsError` if `O_EXCL` was
        given and the file exists.
    """

    if known is None:
        known = presence(path)

    if known is Presence.ABSENT:
        parent = os.path.dirname(path)
        if parent and presence(parent) is Presence.ABSENT:
            log.debug("creating directory %s", parent)
            # Another process may create the same directories in parallel.
            os.makedirs(parent, mode=DIR_MODE, exist_ok=True)

    return os.open(path, flags | os.O_CLOEXEC, mode)
