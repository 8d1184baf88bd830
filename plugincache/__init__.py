"""plugincache Module

The `plugincache` module lets independent plugin processes on one host share
cached data. Entries are files below a cache root, `Cache` opens, checks and
removes them. `LockManager` provides named locks based on exclusive file
creation, which callers take around their cache accesses.

The module-level functions operate on the default root `/var/cache`. Build a
`Cache` and a `LockManager` (or a `CacheConfig`) to use a different one.

The utility module `plugincache.util` provides the file-system and path
helpers both are built on.
"""

from typing import BinaryIO, Optional

from .cache import DEFAULT_ROOT, Cache
from .config import CacheConfig, load_config
from .exceptions import (CacheError, ConfigError, InvalidNameError,
                         LockCancelledError, LockTimeoutError)
from .lock import DEFAULT_INTERVAL, LockManager

__version__ = "1"

__all__ = [
    "Cache",
    "CacheConfig",
    "CacheError",
    "ConfigError",
    "DEFAULT_INTERVAL",
    "DEFAULT_ROOT",
    "InvalidNameError",
    "LockCancelledError",
    "LockManager",
    "LockTimeoutError",
    "acquire_lock",
    "entry_exists",
    "load_config",
    "open_entry",
    "release_lock",
    "remove_entry",
    "__version__",
]


def open_entry(name: str) -> BinaryIO:
    return Cache().open(name)


def entry_exists(name: str) -> bool:
    return Cache().exists(name)


def remove_entry(name: str):
    Cache().remove(name)


def acquire_lock(name: str):
    LockManager().acquire(name)


def release_lock(name: str, delay: Optional[float] = None):
    LockManager().release(name, delay=delay)
