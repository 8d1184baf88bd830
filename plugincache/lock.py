"""Cache Locks

This module implements named locks shared between independent processes on
the same host. A lock is a zero-byte marker file at `<root>/lock/<name>`: the
lock is held exactly while the file exists. Acquisition relies solely on the
atomicity of `open(2)` with `O_CREAT|O_EXCL`, there is no shared memory and no
signaling between processes.

Locks are anonymous. Any process that can remove the marker can release the
lock, there is no notion of an owner. There is no fairness either, waiters
poll the marker and whoever wins the exclusive create gets the lock.
"""

import contextlib
import errno
import logging
import os
import time
from typing import Any, Dict, Optional

from plugincache.cache import DEFAULT_ROOT
from plugincache.exceptions import LockCancelledError, LockTimeoutError
from plugincache.util import fs
from plugincache.util import path as pathutil

__all__ = [
    "DEFAULT_INTERVAL",
    "LockManager",
]


DEFAULT_INTERVAL = 0.000001

# Sentinel to tell an omitted timeout apart from an explicit `None`.
_DEFAULT: Any = object()

log = logging.getLogger(__name__)


class LockManager:
    """Named Lock Manager

    Manages the marker files below `<root>/lock/`. The manager keeps no state
    about the locks it took, so it can be shared freely and a lock taken by
    one process can be released by another.
    """

    _dirname_lock = pathutil.LOCK_SEGMENT

    _root: str
    _interval: float
    _timeout: Optional[float]
    _tracers: Dict[str, Any]

    def __init__(
        self,
        root: Any = DEFAULT_ROOT,
        interval: float = DEFAULT_INTERVAL,
        timeout: Optional[float] = None,
    ):
        """Create a lock manager

        Parameters:
        -----------
        root
            The cache root. Markers live in its `lock` sub-directory, which is
            created on first use.
        interval
            Seconds to sleep between two polls of a contended lock.
        timeout
            Default for the 'timeout' argument of `acquire()`. `None` waits
            forever.
        """

        if interval < 0:
            raise ValueError("interval must not be negative")
        if timeout is not None and timeout < 0:
            raise ValueError("timeout must not be negative")

        self._root = os.fspath(root)
        self._interval = interval
        self._timeout = timeout
        self._tracers = {}

    def __repr__(self):
        return f"LockManager({self._root!r}, interval={self._interval!r}, timeout={self._timeout!r})"

    def _trace(self, trace: str):
        """Run the trace-hook registered for 'trace', if any

        Tests use this to run code at specific points of the acquisition loop
        and trigger races on purpose. No hooks are registered during normal
        operation.
        """

        if trace in self._tracers:
            self._tracers[trace]()

    @property
    def root(self) -> str:
        return self._root

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def timeout(self) -> Optional[float]:
        return self._timeout

    def path(self, name: str) -> str:
        """Return the path of the marker file for 'name'"""

        return pathutil.resolve(os.path.join(self._root, self._dirname_lock), name)

    def is_locked(self, name: str) -> bool:
        """Check whether 'name' is currently locked

        This is a snapshot only. The state may change right after the check
        returns.
        """

        return fs.exists(self.path(name))

    def acquire(self, name: str, *, timeout: Optional[float] = _DEFAULT, cancel: Any = None):
        """Acquire a lock

        Spin until the marker for 'name' can be created exclusively. While the
        marker exists, the current thread sleeps for the configured interval
        and polls again. Losing the race for the exclusive create is treated
        the same way. Any other error aborts the acquisition.

        Without a timeout and a cancel-event this waits forever, so every
        holder must eventually release its lock.

        Parameters:
        -----------
        name
            Name of the lock. The same rules as for cache entries apply.
        timeout
            Seconds to wait before giving up with `LockTimeoutError`. Defaults
            to the timeout of the manager. `None` waits forever.
        cancel
            Object with an `is_set()` method, e.g. `threading.Event`. Once it
            is set, the acquisition gives up with `LockCancelledError`.

        Raises:
        -------
        InvalidNameError
            If the name is reserved or otherwise invalid.
        LockTimeoutError
            If the timeout elapsed.
        LockCancelledError
            If 'cancel' was set.
        OSError
            If the marker could not be checked or created.
        """

        if timeout is _DEFAULT:
            timeout = self._timeout

        marker = self.path(name)
        deadline = None if timeout is None else time.monotonic() + timeout

        while True:
            if cancel is not None and cancel.is_set():
                raise LockCancelledError(name)

            self._trace("acquire:check")
            state = fs.presence(marker)
            if state is fs.Presence.PRESENT:
                if deadline is not None and time.monotonic() >= deadline:
                    raise LockTimeoutError(name, timeout)
                time.sleep(self._interval)
                continue

            self._trace("acquire:create")
            try:
                fd = fs.open_file(marker, os.O_RDWR | os.O_CREAT | os.O_EXCL, known=state)
            except OSError as e:
                if e.errno != errno.EEXIST:
                    raise
                # Someone else created the marker since we checked it.
                continue

            # The existence of the marker is the lock, not the descriptor.
            os.close(fd)
            log.debug("acquired lock %s", marker)
            return

    def release(self, name: str, delay: Optional[float] = None):
        """Release a lock

        Remove the marker for 'name'. If 'delay' is given, sleep for that many
        seconds first. The lock stays held meanwhile, which gives a crude way
        to rate-limit whatever the lock protects.

        Raises:
        -------
        InvalidNameError
            If the name is reserved or otherwise invalid.
        FileNotFoundError
            If the lock is not held.
        OSError
            If the marker could not be removed.
        """

        marker = self.path(name)

        if delay is not None:
            if delay < 0:
                raise ValueError("delay must not be negative")
            time.sleep(delay)

        os.unlink(marker)
        log.debug("released lock %s", marker)

    @contextlib.contextmanager
    def locked(
        self,
        name: str,
        *,
        delay: Optional[float] = None,
        timeout: Optional[float] = _DEFAULT,
        cancel: Any = None,
    ):
        """Hold a lock for the duration of a with-statement

        Acquire the lock for 'name' and yield the name back to the caller.
        Once control returns, the lock is released after 'delay', regardless
        of whether the block raised.
        """

        self.acquire(name, timeout=timeout, cancel=cancel)
        try:
            yield name
        finally:
            self.release(name, delay=delay)
