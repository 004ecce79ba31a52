"""
Shared pytest fixtures for the storage backend tests.
"""

import os
import tempfile
import threading
from collections import namedtuple

import pytest
import pytest_asyncio

from persist.backends.cassandra import CassandraBackend
from persist.backends.file import FileBackend
from persist.models.conf import CassandraConf

Row = namedtuple("Row", ["value"])


class FakePrepared:
    """Stands in for cassandra.query.PreparedStatement."""

    def __init__(self, query_string: str):
        self.query_string = query_string
        self.consistency_level = None


class FakeResponseFuture:
    """
    Mimics cassandra.cluster.ResponseFuture: the outcome is delivered to
    callbacks from another thread, like the driver's event loop does.
    """

    def __init__(self, rows=None, error: Exception | None = None):
        self._rows = rows
        self._error = error

    def add_callbacks(self, callback, errback):
        def deliver():
            if self._error is not None:
                errback(self._error)
            else:
                callback(self._rows)

        threading.Thread(target=deliver).start()


class FakeSession:
    """
    In-process table keyed by blob, served through prepare/execute_async.

    Set `error` to make every following statement fail through the errback,
    or `raise_on_execute` to make execute_async itself raise.
    """

    def __init__(self):
        self.rows: dict[bytes, bytes | None] = {}
        self.prepared: list[FakePrepared] = []
        self.executed: list[tuple[FakePrepared, tuple]] = []
        self.error: Exception | None = None
        self.raise_on_execute: Exception | None = None
        self.is_shutdown = False
        self._lock = threading.Lock()

    def prepare(self, query: str) -> FakePrepared:
        stmt = FakePrepared(query)
        self.prepared.append(stmt)
        return stmt

    def execute_async(self, statement: FakePrepared, params: tuple) -> FakeResponseFuture:
        if self.raise_on_execute is not None:
            raise self.raise_on_execute
        self.executed.append((statement, params))
        if self.error is not None:
            return FakeResponseFuture(error=self.error)

        query = statement.query_string
        with self._lock:
            if query.startswith("INSERT"):
                key, value = params
                self.rows[bytes(key)] = bytes(value)
                return FakeResponseFuture(rows=None)
            if query.startswith("SELECT"):
                (key,) = params
                if bytes(key) in self.rows:
                    return FakeResponseFuture(rows=[Row(self.rows[bytes(key)])])
                return FakeResponseFuture(rows=[])
        raise AssertionError(f"unexpected statement: {query}")

    def shutdown(self):
        self.is_shutdown = True


class FakeCluster:
    """Stands in for cassandra.cluster.Cluster."""

    def __init__(self, session: FakeSession, connect_error: Exception | None = None):
        self.session = session
        self.connect_error = connect_error
        self.keyspace = None
        self.is_shutdown = False

    def connect(self, keyspace=None):
        if self.connect_error is not None:
            raise self.connect_error
        self.keyspace = keyspace
        return self.session

    def shutdown(self):
        self.is_shutdown = True


@pytest.fixture
def temp_dir():
    """Provide a temporary directory that is cleaned up after test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def db_path(temp_dir):
    """Provide a path for the LMDB data file."""
    return os.path.join(temp_dir, "test.db")


@pytest.fixture
def fake_session():
    """Provide an empty fake Cassandra session."""
    return FakeSession()


@pytest.fixture
def fake_cluster(fake_session):
    """Provide a fake Cassandra cluster handing out `fake_session`."""
    return FakeCluster(fake_session)


@pytest.fixture
def cassandra_conf():
    """Provide cluster settings for tests."""
    return CassandraConf(
        hosts=("10.0.0.1", "10.0.0.2"),
        keyspace="persist_test",
        table="bloomfilter",
        consistency="local_quorum",
    )


@pytest_asyncio.fixture
async def file_backend(db_path):
    """Provide an opened FileBackend."""
    async with FileBackend(db_path) as backend:
        yield backend


@pytest_asyncio.fixture
async def cassandra_backend(fake_session, cassandra_conf):
    """Provide a CassandraBackend over the fake session."""
    async with CassandraBackend(fake_session, cassandra_conf) as backend:
        yield backend


@pytest_asyncio.fixture(params=["file", "cluster"])
async def backend(request, db_path, fake_session, cassandra_conf):
    """Provide each backend in turn, for contract tests."""
    if request.param == "file":
        async with FileBackend(db_path) as b:
            yield b
    else:
        async with CassandraBackend(fake_session, cassandra_conf) as b:
            yield b
