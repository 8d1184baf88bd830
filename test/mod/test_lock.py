#
# Tests for the 'plugincache.lock' module.
#

# pylint: disable=protected-access

import multiprocessing
import os
import threading
import time

import pytest

from plugincache import Cache, LockManager
from plugincache.exceptions import (InvalidNameError, LockCancelledError,
                                    LockTimeoutError)


def _critical_section(root: str, name: str, rounds: int, active, peak, errors):
    locks = LockManager(root, interval=0.0005)
    for _ in range(rounds):
        locks.acquire(name)
        try:
            with active.get_lock():
                active.value += 1
                peak.value = max(peak.value, active.value)
            time.sleep(0.001)
            with active.get_lock():
                active.value -= 1
        except BaseException:  # pylint: disable=broad-except
            with errors.get_lock():
                errors.value += 1
            raise
        finally:
            locks.release(name)


def _acquire_and_report(root: str, name: str, queue):
    LockManager(root, interval=0.0005).acquire(name)
    queue.put(time.monotonic())


def test_path(locks, tmpdir):
    assert locks.path("foo") == os.path.join(tmpdir, "lock", "foo")
    assert locks.path("//foo/bar") == os.path.join(tmpdir, "lock", "foo", "bar")
    # The lock namespace is separate, so "lock" as first segment is fine.
    assert locks.path("lock/foo") == os.path.join(tmpdir, "lock", "lock", "foo")

    with pytest.raises(InvalidNameError):
        locks.path("foo/lock")


def test_arguments(tmpdir):
    with pytest.raises(ValueError):
        LockManager(tmpdir, interval=-1)
    with pytest.raises(ValueError):
        LockManager(tmpdir, timeout=-1)

    locks = LockManager(tmpdir, interval=0.5, timeout=3)
    assert locks.root == tmpdir
    assert locks.interval == 0.5
    assert locks.timeout == 3


def test_acquire_release(locks, tmpdir):
    #
    # Acquiring creates a zero-byte marker, releasing removes it.
    #

    marker = os.path.join(tmpdir, "lock", "report-cache")

    assert not locks.is_locked("report-cache")
    locks.acquire("report-cache")
    assert locks.is_locked("report-cache")
    assert os.path.isfile(marker)
    assert os.path.getsize(marker) == 0

    locks.release("report-cache")
    assert not locks.is_locked("report-cache")
    assert not os.path.exists(marker)


def test_release_unheld(locks):
    #
    # Releasing a lock nobody holds is an error, also on double-release.
    #

    with pytest.raises(FileNotFoundError):
        locks.release("foo")

    locks.acquire("foo")
    locks.release("foo")
    with pytest.raises(FileNotFoundError):
        locks.release("foo")


def test_anonymous_release(tmpdir):
    #
    # Locks have no owner, any manager on the same root may release them.
    #

    a = LockManager(tmpdir)
    b = LockManager(tmpdir)

    a.acquire("foo")
    b.release("foo")
    assert not a.is_locked("foo")


def test_reserved_names(locks, monkeypatch):
    #
    # Reserved names are rejected before the file-system is touched.
    #

    def no_io(*args, **kwargs):
        raise AssertionError("file-system accessed")

    monkeypatch.setattr(os, "stat", no_io)
    monkeypatch.setattr(os, "open", no_io)
    monkeypatch.setattr(os, "unlink", no_io)

    for name in ["foo/lock", "lock", "", "../foo", "foo/", "x/lock/.", "a/./b"]:
        with pytest.raises(InvalidNameError):
            locks.acquire(name)
        with pytest.raises(InvalidNameError):
            locks.release(name)
        with pytest.raises(InvalidNameError):
            locks.is_locked(name)


def test_malformed_name_leaves_no_state(locks, cache, tmpdir):
    #
    # A trailing slash must not create a directory in place of the marker or
    # the entry, which would make the lock look held forever.
    #

    with pytest.raises(InvalidNameError):
        locks.acquire("foo/", timeout=0)
    with pytest.raises(InvalidNameError):
        cache.open("bar/")
    with pytest.raises(InvalidNameError):
        cache.open("x/lock/.")
    assert not os.listdir(tmpdir)

    locks.acquire("foo", timeout=0)
    locks.release("foo")
    assert cache.exists("bar") is False


def test_acquire_stats_marker_once(locks, tmpdir, monkeypatch):
    #
    # An uncontended acquisition checks the marker once, plus its parent
    # directory before the exclusive create.
    #

    os.makedirs(os.path.join(tmpdir, "lock"))
    marker = os.path.join(tmpdir, "lock", "foo")
    stats = []
    real_stat = os.stat

    def counting_stat(path, *args, **kwargs):
        stats.append(path)
        return real_stat(path, *args, **kwargs)

    monkeypatch.setattr(os, "stat", counting_stat)
    locks.acquire("foo")
    monkeypatch.undo()

    assert stats.count(marker) == 1
    assert stats == [marker, os.path.dirname(marker)]
    locks.release("foo")


def test_check_fault(tmpdir):
    #
    # If the marker cannot be stats, acquisition fails instead of spinning.
    # Use a regular file as cache root, so `stat()` yields `ENOTDIR`.
    #

    root = os.path.join(tmpdir, "root")
    with open(root, "x", encoding="utf8"):
        pass

    locks = LockManager(root)
    with pytest.raises(NotADirectoryError):
        locks.acquire("foo")


def test_create_fault(locks, tmpdir):
    #
    # Errors of the exclusive create, other than `EEXIST`, are propagated.
    # Make `lock/foo` a file so `lock/foo/bar` cannot be created.
    #

    def _trace_create():
        with open(os.path.join(tmpdir, "lock", "foo"), "x", encoding="utf8"):
            pass

    os.makedirs(os.path.join(tmpdir, "lock"))
    locks._tracers = {"acquire:create": _trace_create}
    with pytest.raises(NotADirectoryError):
        locks.acquire("foo/bar")


def test_lost_race(locks, tmpdir):
    #
    # Another process creates the marker between our check and our create.
    # The acquisition must go back to waiting, and succeed once the marker
    # is removed.
    #

    state = {"create": 0}
    marker = os.path.join(tmpdir, "lock", "foo")

    def _trace_create():
        if state["create"] == 0:
            os.makedirs(os.path.dirname(marker), exist_ok=True)
            with open(marker, "x", encoding="utf8"):
                pass
            threading.Timer(0.05, os.unlink, args=[marker]).start()
        state["create"] += 1

    locks._tracers = {"acquire:create": _trace_create}
    locks.acquire("foo")

    assert state["create"] == 2
    assert locks.is_locked("foo")
    locks.release("foo")


def test_timeout(locks):
    #
    # Bounded waiting is opt-in, per call or per manager.
    #

    locks.acquire("foo")

    t0 = time.monotonic()
    with pytest.raises(LockTimeoutError) as e:
        locks.acquire("foo", timeout=0.1)
    assert time.monotonic() - t0 >= 0.1
    assert e.value.name == "foo"
    assert isinstance(e.value, TimeoutError)

    # A zero timeout is a try-lock.
    with pytest.raises(LockTimeoutError):
        locks.acquire("foo", timeout=0)

    bounded = LockManager(locks.root, interval=0.001, timeout=0.05)
    with pytest.raises(LockTimeoutError):
        bounded.acquire("foo")

    # An explicit `None` overrides the default of the manager.
    threading.Timer(0.1, locks.release, args=["foo"]).start()
    bounded.acquire("foo", timeout=None)
    bounded.release("foo")

    # Uncontended locks are acquired regardless of the timeout.
    bounded.acquire("bar", timeout=0)
    bounded.release("bar")


def test_cancel(locks):
    locks.acquire("foo")

    cancel = threading.Event()
    threading.Timer(0.05, cancel.set).start()
    with pytest.raises(LockCancelledError):
        locks.acquire("foo", cancel=cancel)

    assert locks.is_locked("foo")
    locks.release("foo")


def test_locked(locks):
    #
    # The context-manager releases the lock on all exit paths.
    #

    with locks.locked("foo") as name:
        assert name == "foo"
        assert locks.is_locked("foo")
    assert not locks.is_locked("foo")

    with pytest.raises(RuntimeError):
        with locks.locked("foo"):
            raise RuntimeError()
    assert not locks.is_locked("foo")


def test_release_delay(locks):
    #
    # A delayed release keeps the lock held for the whole delay, so a waiter
    # cannot get it earlier.
    #

    locks.acquire("foo")

    acquired = []

    def _wait():
        locks.acquire("foo")
        acquired.append(time.monotonic())

    waiter = threading.Thread(target=_wait)
    waiter.start()

    time.sleep(0.02)
    assert not acquired

    t0 = time.monotonic()
    locks.release("foo", delay=0.1)
    waiter.join(5)

    assert len(acquired) == 1
    assert acquired[0] - t0 >= 0.1
    locks.release("foo")

    with pytest.raises(ValueError):
        locks.release("foo", delay=-1)


def test_second_acquire_waits_for_release(tmpdir):
    #
    # A second process trying to take a held lock completes only after the
    # holder released it.
    #

    ctx = multiprocessing.get_context("fork")
    queue = ctx.Queue()
    locks = LockManager(tmpdir, interval=0.0005)

    locks.acquire("report-cache")
    proc = ctx.Process(target=_acquire_and_report, args=(tmpdir, "report-cache", queue))
    proc.start()

    time.sleep(0.2)
    assert queue.empty()

    t_release = time.monotonic()
    locks.release("report-cache")

    t_acquired = queue.get(timeout=10)
    proc.join(10)
    assert proc.exitcode == 0
    assert t_acquired >= t_release
    assert locks.is_locked("report-cache")
    locks.release("report-cache")


def test_mutual_exclusion(tmpdir):
    #
    # Several processes hammer the same lock. The number of processes inside
    # the critical section must never exceed one.
    #

    ctx = multiprocessing.get_context("fork")
    active = ctx.Value("i", 0)
    peak = ctx.Value("i", 0)
    errors = ctx.Value("i", 0)

    procs = [
        ctx.Process(target=_critical_section, args=(tmpdir, "shared", 10, active, peak, errors))
        for _ in range(4)
    ]
    for p in procs:
        p.start()
    for p in procs:
        p.join(60)

    assert [p.exitcode for p in procs] == [0, 0, 0, 0]
    assert errors.value == 0
    assert peak.value == 1
    assert active.value == 0
    assert not LockManager(tmpdir).is_locked("shared")


def test_mutual_exclusion_threads(locks):
    #
    # Same as `test_mutual_exclusion()`, but with threads sharing a single
    # manager.
    #

    state = {"active": 0, "peak": 0}
    guard = threading.Lock()

    def worker():
        for _ in range(10):
            with locks.locked("shared"):
                with guard:
                    state["active"] += 1
                    state["peak"] = max(state["peak"], state["active"])
                time.sleep(0.001)
                with guard:
                    state["active"] -= 1

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(60)

    assert state["peak"] == 1
    assert state["active"] == 0


def test_scenario(tmpdir):
    #
    # Two processes hand over a cache entry through the lock.
    #

    locks = LockManager(tmpdir, interval=0.0005)
    cache = Cache(tmpdir)

    locks.acquire("report-cache")
    with cache.open("report-cache") as f:
        f.write(b"v1")
    locks.release("report-cache")

    def _reader(queue):
        other_locks = LockManager(tmpdir, interval=0.0005)
        other_cache = Cache(tmpdir)
        other_locks.acquire("report-cache")
        try:
            with other_cache.open("report-cache") as f:
                queue.put(f.read())
        finally:
            other_locks.release("report-cache")

    ctx = multiprocessing.get_context("fork")
    queue = ctx.Queue()
    proc = ctx.Process(target=_reader, args=(queue,))
    proc.start()
    data = queue.get(timeout=10)
    proc.join(10)

    assert proc.exitcode == 0
    assert data == b"v1"

    cache.remove("report-cache")
    assert cache.exists("report-cache") is False
