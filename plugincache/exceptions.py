"""
Exceptions for plugincache

Filesystem faults are never wrapped in these types. They reach the caller as
the `OSError` raised by the failing system call.
"""

from typing import List, Optional


class CacheError(Exception):
    pass


class InvalidNameError(CacheError, ValueError):
    """Invalid Cache Entry Name

    Raised when a name cannot be mapped into the cache, either because it is
    empty, escapes the cache root, or uses the reserved `lock` segment. This
    is always detected before the file-system is touched.
    """

    def __init__(self, name: str, reason: str):
        super().__init__(f"invalid cache entry name '{name}': {reason}")
        self.name = name
        self.reason = reason


class LockTimeoutError(CacheError, TimeoutError):
    def __init__(self, name: str, timeout: float):
        super().__init__(f"could not acquire lock '{name}' within {timeout}s")
        self.name = name
        self.timeout = timeout


class LockCancelledError(CacheError):
    def __init__(self, name: str):
        super().__init__(f"acquisition of lock '{name}' was cancelled")
        self.name = name


class ConfigError(CacheError):
    """Invalid Configuration

    Carries every schema violation found, so all of them can be reported at
    once.
    """

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = errors or []

    def __str__(self):
        if not self.errors:
            return super().__str__()
        return super().__str__() + ":\n" + "\n".join(f"  {e}" for e in self.errors)
