"""
Tests for backend selection at startup.
"""

import logging
import os

import pytest

from persist.backends import cassandra as cassandra_module
from persist.backends.cassandra import CassandraBackend
from persist.backends.file import FileBackend
from persist.backends.selector import create_backend
from persist.models.conf import BackendType, Conf, FileConf, parse_conf
from persist.models.exceptions import BackendInitError


class TestCreateBackend:
    """create_backend picks exactly one engine."""

    async def test_default_is_file(self, db_path):
        conf = parse_conf({"file": {"path": db_path}})

        backend = await create_backend(conf)
        try:
            assert isinstance(backend, FileBackend)
            await backend.put(b"key", b"value")
            assert await backend.get(b"key") == b"value"
        finally:
            await backend.close()

    async def test_unknown_kind_falls_back_to_file(self, db_path, caplog):
        conf = parse_conf({"backend": "redis", "file": {"path": db_path}})

        with caplog.at_level(logging.WARNING):
            backend = await create_backend(conf)
        try:
            assert isinstance(backend, FileBackend)
            assert "redis" in caplog.text
        finally:
            await backend.close()

    @pytest.mark.parametrize("kind", ["cluster", "cassandra", "CLUSTER"])
    async def test_cluster(self, monkeypatch, fake_cluster, kind):
        monkeypatch.setattr(cassandra_module, "new_cluster", lambda conf: fake_cluster)
        conf = parse_conf({"backend": kind, "cassandra": {"keyspace": "ks", "table": "t"}})

        backend = await create_backend(conf)
        try:
            assert isinstance(backend, CassandraBackend)
            assert fake_cluster.keyspace == "ks"
        finally:
            await backend.close()

    async def test_file_init_failure_propagates(self, temp_dir):
        blocker = os.path.join(temp_dir, "blocker")
        with open(blocker, "w") as f:
            f.write("x")
        conf = Conf(backend=BackendType.FILE, file=FileConf(path=os.path.join(blocker, "x.db")))

        with pytest.raises(BackendInitError):
            await create_backend(conf)

    async def test_cluster_init_failure_propagates(self, monkeypatch, fake_cluster):
        fake_cluster.connect_error = OSError("no hosts")
        monkeypatch.setattr(cassandra_module, "new_cluster", lambda conf: fake_cluster)

        with pytest.raises(BackendInitError):
            await create_backend(parse_conf({"backend": "cluster"}))
