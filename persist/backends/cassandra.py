"""
CassandraBackend - Key-value storage on a Cassandra cluster.
"""

import asyncio
import logging
from typing import Any

from cassandra import ConsistencyLevel

from persist.interfaces.backend import Backend
from persist.models.conf import CassandraConf
from persist.models.exceptions import BackendError, BackendInitError, ConfigError

logger = logging.getLogger(__name__)

# Expected schema: CREATE TABLE <table> (key blob PRIMARY KEY, value blob)
INSERT_QUERY = "INSERT INTO {table} (key, value) VALUES (?, ?)"
SELECT_QUERY = "SELECT value FROM {table} WHERE key = ? LIMIT 1"


def parse_consistency(name: str) -> int:
    """
    Map a consistency level name to the driver's ConsistencyLevel value.

    Args:
        name: Level name such as "one", "quorum", "local_quorum" (any case).

    Returns:
        The ConsistencyLevel constant.

    Raises:
        ConfigError: If the name is not a known consistency level.
    """
    key = name.strip().upper()
    if key not in ConsistencyLevel.name_to_value:
        raise ConfigError(f"unknown consistency level: {name!r}")
    return ConsistencyLevel.name_to_value[key]


def new_cluster(conf: CassandraConf) -> Any:
    """Build a driver Cluster for the configured contact points."""
    # Imported here: loading cassandra.cluster picks an event loop reactor
    from cassandra.cluster import Cluster

    return Cluster(
        contact_points=list(conf.hosts),
        port=conf.port,
        protocol_version=conf.protocol_version,
    )


class CassandraBackend(Backend):
    """
    Storage on a replicated Cassandra table.

    All calls share the single session created at startup; the driver
    owns connection pooling and per-query retries. The table name is
    interpolated into the statement text, so it must only ever come
    from trusted configuration.
    """

    def __init__(self, session: Any, conf: CassandraConf, cluster: Any = None) -> None:
        """
        Wrap an established session and prepare both statements.

        Args:
            session: Connected driver session bound to the keyspace.
            conf: Cluster backend settings.
            cluster: Cluster that owns the session, shut down on close().

        Raises:
            ConfigError: If the consistency level is unknown.
        """
        self._session = session
        self._cluster = cluster
        self._conf = conf
        self._consistency = parse_consistency(conf.consistency)

        self._insert = session.prepare(INSERT_QUERY.format(table=conf.table))
        self._insert.consistency_level = self._consistency
        self._select = session.prepare(SELECT_QUERY.format(table=conf.table))
        self._select.consistency_level = self._consistency

    @classmethod
    async def create(cls, conf: CassandraConf) -> "CassandraBackend":
        """
        Async factory, connects to the cluster off the event loop.

        Args:
            conf: Cluster backend settings.

        Returns:
            Connected CassandraBackend.

        Raises:
            ConfigError: If the consistency level is unknown.
            BackendInitError: If no session could be established.
        """
        # Fail on a bad level before touching the network
        parse_consistency(conf.consistency)

        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, cls._connect_sync, conf)

    @classmethod
    def _connect_sync(cls, conf: CassandraConf) -> "CassandraBackend":
        cluster = new_cluster(conf)
        try:
            session = cluster.connect(conf.keyspace)
            backend = cls(session, conf, cluster=cluster)
        except Exception as e:
            cluster.shutdown()
            raise BackendInitError(
                "cluster", f"cannot connect to {', '.join(conf.hosts)}: {e}"
            ) from e

        logger.info(
            f"Connected cluster backend to {', '.join(conf.hosts)} "
            f"({conf.keyspace}.{conf.table}, consistency {conf.consistency})"
        )
        return backend

    async def _execute(self, op: str, key: bytes, statement: Any, params: tuple) -> Any:
        """
        Run a statement asynchronously and wait for the driver's callback.

        Returns:
            The rows of the first result page.
        """
        loop = asyncio.get_running_loop()
        done: asyncio.Future = loop.create_future()

        def on_result(rows: Any) -> None:
            loop.call_soon_threadsafe(_resolve, done, rows, None)

        def on_error(exc: BaseException) -> None:
            loop.call_soon_threadsafe(_resolve, done, None, exc)

        try:
            response = self._session.execute_async(statement, params)
            response.add_callbacks(on_result, on_error)
            return await done
        except Exception as e:
            raise BackendError(op, key, f"{type(e).__name__}: {e}") from e

    async def put(self, key: bytes, value: bytes) -> bool:
        """
        Insert or overwrite the row for a key.

        Returns:
            True once the coordinator acknowledged the write.
        """
        await self._execute("put", key, self._insert, (key, value))
        return True

    async def get(self, key: bytes) -> bytes | None:
        """
        Select the value for a key.

        Returns:
            The stored bytes, or None if no row matches.
        """
        rows = await self._execute("get", key, self._select, (key,))
        if not rows:
            return None
        value = rows[0].value
        # An empty blob can come back as null
        return b"" if value is None else bytes(value)

    async def close(self) -> None:
        """Shut down the session and its cluster."""
        if self._session is not None:
            self._session.shutdown()
            self._session = None
        if self._cluster is not None:
            self._cluster.shutdown()
            self._cluster = None
            logger.info("Closed cluster backend")


def _resolve(done: asyncio.Future, result: Any, exc: BaseException | None) -> None:
    if done.cancelled():
        return
    if exc is not None:
        done.set_exception(exc)
    else:
        done.set_result(result)
