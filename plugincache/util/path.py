"""Path handling for cache entry names

Callers address cache entries and locks by a logical name, which is turned
into a file-system path below a root directory. These helpers never touch the
file-system, so a bad name is always rejected before any I/O happens.
"""
import os
import os.path
from typing import Union

from plugincache.exceptions import InvalidNameError

LOCK_SEGMENT = "lock"


def strip_name(name: str) -> str:
    """Strip all leading slashes from 'name'

    Names are always relative to a root. Callers are asked not to pass a
    leading slash, but it is stripped anyway.
    """
    return name.lstrip("/")


def check_name(name: str) -> str:
    """Validate a cache entry name and return it without leading slashes

    The name must not be empty, must not end in a slash, must not contain
    empty, `.` or `..` segments, and its final segment must not be `lock`,
    which is reserved for the lock directory.

    Raises
    ------
    InvalidNameError
        If any of the above rules is violated.
    """

    stripped = strip_name(name)
    if not stripped:
        raise InvalidNameError(name, "name is empty")

    segments = stripped.split("/")
    if segments[-1] == "":
        raise InvalidNameError(name, "name must not end in a slash")
    if "" in segments or "." in segments:
        raise InvalidNameError(name, "name must not contain empty or '.' segments")
    if ".." in segments:
        raise InvalidNameError(name, "name must not traverse out of the cache")
    if segments[-1] == LOCK_SEGMENT:
        raise InvalidNameError(name, "'lock' is a reserved name in the cache, please choose a different name")

    return stripped


def in_tree(path: str, tree: str) -> bool:
    """Return whether the normalized 'path' lies strictly below 'tree'"""
    path = os.path.normpath(os.path.abspath(path))
    tree = os.path.normpath(os.path.abspath(tree))
    return path.startswith(tree.rstrip(os.sep) + os.sep)


def resolve(root: Union[str, os.PathLike], name: str) -> str:
    """Map 'name' to a path below 'root'

    The name is validated with `check_name()` first. The result is 'root'
    and the stripped name joined together.
    """

    stripped = check_name(name)
    root = os.fspath(root)
    path = os.path.join(root, stripped)
    if not in_tree(path, root):
        raise InvalidNameError(name, "name must not traverse out of the cache")
    return path
