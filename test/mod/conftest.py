"""Common fixtures and utilities"""

import tempfile

import pytest

from plugincache import Cache, LockManager


@pytest.fixture(name="tmpdir")
def tmpdir_fixture():
    with tempfile.TemporaryDirectory(dir="/var/tmp") as tmp:
        yield tmp


@pytest.fixture(name="cache")
def cache_fixture(tmpdir):
    return Cache(tmpdir)


@pytest.fixture(name="locks")
def locks_fixture(tmpdir):
    # Poll every millisecond rather than every microsecond, so waiting tests
    # do not keep a CPU busy.
    return LockManager(tmpdir, interval=0.001)
