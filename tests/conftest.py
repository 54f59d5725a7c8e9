"""
Pytest configuration and shared fixtures.
"""

import pytest

from secretsync.logger import StructuredLogger
from secretsync.records import SYNC_ANNOTATION, Partition, Record
from secretsync.storage import SqlStore


@pytest.fixture
def store(tmp_path):
    """A fresh SQLite-backed store."""
    s = SqlStore(tmp_path / "secretsync.db")
    yield s
    s.close()


@pytest.fixture
def quiet_logger() -> StructuredLogger:
    """Logger with console output off, for metrics assertions."""
    return StructuredLogger(name="secretsync.test", enable_console=False)


@pytest.fixture
def source_secret() -> Record:
    """Source secret in ns1 selecting namespaces labeled team=x."""
    return Record(
        namespace="ns1",
        name="A",
        data={"username": b"admin", "password": b"\x00\xffs3cr3t"},
        annotations={SYNC_ANNOTATION: "team=x"},
    )


@pytest.fixture
def cluster(store, source_secret):
    """ns1 holds the source, ns2 carries team=x. Returns the stored source."""
    store.apply_partition(Partition(name="ns1", labels={"team": "y"}))
    store.apply_partition(Partition(name="ns2", labels={"team": "x"}))
    return store.apply_record(source_secret)
