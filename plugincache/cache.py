"""Cache Entry Store

This module gives plugins a place to store data that outlives a single
invocation. Entries are plain files below a cache root, by default
`/var/cache`. The store does not lock anything on its own; callers that need
coherent access take the matching lock from `plugincache.lock` around their
accesses.

Callers that need to integrate with other libraries may just as well access
the files directly. This module then serves as the reference of where files
live and how they are opened.
"""

import logging
import os
from typing import Any, BinaryIO

from plugincache.exceptions import InvalidNameError
from plugincache.util import fs
from plugincache.util import path as pathutil

__all__ = [
    "DEFAULT_ROOT",
    "Cache",
]


DEFAULT_ROOT = "/var/cache"

log = logging.getLogger(__name__)


class Cache(os.PathLike):
    """Cache Entry Store

    Every entry is a regular file at `<root>/<name>`, created with mode
    `0o600` on first open. The `lock` directory directly below the root
    belongs to the lock manager and cannot be used for entries.
    """

    def __init__(self, root: Any = DEFAULT_ROOT):
        """Create a cache entry store

        This does not touch the file-system. The root directory and any
        sub-directories are created lazily when an entry is opened.

        Parameters:
        -----------
        root
            The path of the cache root.
        """

        self._root = os.fspath(root)

    def __fspath__(self) -> str:
        return self._root

    def __repr__(self):
        return f"Cache({self._root!r})"

    def path(self, name: str) -> str:
        """Return the absolute path of the entry 'name'

        Raises `InvalidNameError` if the name is not acceptable, see
        `plugincache.util.path.check_name()`. Entries must not be placed in
        the lock directory either.
        """

        p = pathutil.resolve(self._root, name)
        if pathutil.strip_name(name).split("/", 1)[0] == pathutil.LOCK_SEGMENT:
            raise InvalidNameError(name, "the 'lock' directory is reserved for locks")
        return p

    def open(self, name: str) -> BinaryIO:
        """Open a cache entry

        Open the entry for reading and writing, creating it (and its parent
        directories) if it does not exist. The returned binary file object is
        owned by the caller, who must close it, preferably via a
        `with`-statement. No lock is taken.

        Parameters:
        -----------
        name
            Name of the cache entry, relative to the cache root.
        """

        p = self.path(name)
        fd = fs.open_file(p, os.O_RDWR | os.O_CREAT)
        try:
            return os.fdopen(fd, "r+b")
        except BaseException:
            os.close(fd)
            raise

    def exists(self, name: str) -> bool:
        """Check whether a cache entry exists

        Returns `False` only if the entry does not exist. If its existence
        cannot be determined, the `OSError` of the `stat()` call is raised.
        """

        return fs.presence(self.path(name)) is fs.Presence.PRESENT

    def remove(self, name: str):
        """Remove a cache entry

        Raises `FileNotFoundError` if there is no such entry, or any other
        `OSError` if it cannot be unlinked.
        """

        p = self.path(name)
        os.unlink(p)
        log.debug("removed cache entry %s", p)

    def load(self, name: str) -> bytes:
        """Return the content of a cache entry

        Note that, like `open()`, this creates an empty entry if none
        exists. Check with `exists()` first if that matters.
        """

        with self.open(name) as f:
            return f.read()

    def store(self, name: str, data: bytes):
        """Replace the content of a cache entry with 'data'"""

        with self.open(name) as f:
            f.truncate(0)
            f.write(data)
