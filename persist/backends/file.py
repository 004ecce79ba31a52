"""
FileBackend - Embedded single-file key-value store on LMDB.
"""

import asyncio
import logging
import os
from pathlib import Path

import lmdb

from persist.interfaces.backend import Backend
from persist.models.conf import FileConf
from persist.models.exceptions import BackendError, BackendInitError

logger = logging.getLogger(__name__)


class FileBackend(Backend):
    """
    Durable local storage with no external service.

    Layout:
    - One LMDB data file at `path` (plus LMDB's `<path>-lock` file)
    - One named sub-database (the bucket) holding every record

    Concurrency:
    - Blocking LMDB calls run in the event loop's default executor
    - LMDB serializes write transactions; readers see a committed snapshot
    - put() does not return before its transaction has committed
    """

    # Default maximum size of the data file (1GB)
    DEFAULT_MAP_SIZE = 1024 * 1024 * 1024

    def __init__(
        self,
        path: str,
        bucket: str = "store",
        map_size: int = DEFAULT_MAP_SIZE,
        sync: bool = True,
    ) -> None:
        """
        Open (creating if absent) the data file and its bucket.

        Args:
            path: Path of the LMDB data file.
            bucket: Name of the sub-database holding the records.
            map_size: Maximum size of the data file in bytes.
            sync: If True, fsync on every commit.

        Raises:
            BackendInitError: If the file cannot be opened or the bucket created.
        """
        if not path or not path.strip():
            raise ValueError("path cannot be empty")
        if not bucket:
            raise ValueError("bucket cannot be empty")
        if map_size <= 0:
            raise ValueError(f"map_size must be positive, got {map_size}")

        self._path = os.path.abspath(path)
        self._bucket = bucket.encode("utf-8")
        self._map_size = map_size
        self._sync = sync

        self._env: lmdb.Environment | None = None
        self._db = None

        self._open()

    @classmethod
    async def create(cls, conf: FileConf) -> "FileBackend":
        """
        Async factory, opens the store off the event loop.

        Args:
            conf: Embedded backend settings.

        Returns:
            Opened FileBackend.
        """
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, lambda: cls(conf.path, conf.bucket, conf.map_size, conf.sync)
        )

    @property
    def path(self) -> str:
        return self._path

    def _open(self) -> None:
        try:
            Path(self._path).parent.mkdir(parents=True, exist_ok=True)
            env = lmdb.open(
                self._path,
                subdir=False,
                map_size=self._map_size,
                max_dbs=1,
                sync=self._sync,
            )
        except (OSError, lmdb.Error) as e:
            raise BackendInitError("file", f"cannot open {self._path}: {e}") from e

        # open_db(create=True) on an existing bucket just opens it
        try:
            db = env.open_db(self._bucket, create=True)
        except lmdb.Error as e:
            env.close()
            raise BackendInitError(
                "file", f"cannot create bucket {self._bucket.decode()!r}: {e}"
            ) from e

        self._env = env
        self._db = db
        logger.info(f"Opened file backend at {self._path} (bucket {self._bucket.decode()!r})")

    def _require_env(self) -> lmdb.Environment:
        if self._env is None:
            raise RuntimeError("FileBackend is closed")
        return self._env

    async def put(self, key: bytes, value: bytes) -> bool:
        """
        Write a value in its own transaction and wait for the commit.

        Args:
            key: The key to write. LMDB rejects empty keys and keys longer
                than its max key size (511 bytes by default).
            value: The bytes to store.

        Returns:
            True once committed.
        """
        self._require_env()
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self._put_sync, key, value)
        except lmdb.Error as e:
            raise BackendError("put", key, str(e)) from e

    def _put_sync(self, key: bytes, value: bytes) -> bool:
        # Commit happens on leaving the block; errors from it propagate
        with self._require_env().begin(write=True, db=self._db) as txn:
            txn.put(key, value)
        return True

    async def get(self, key: bytes) -> bytes | None:
        """
        Read a value in a read-only transaction.

        Args:
            key: The key to look up.

        Returns:
            The stored bytes, or None if the key is absent.
        """
        self._require_env()
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self._get_sync, key)
        except lmdb.Error as e:
            raise BackendError("get", key, str(e)) from e

    def _get_sync(self, key: bytes) -> bytes | None:
        with self._require_env().begin(write=False, db=self._db) as txn:
            return txn.get(key)

    async def close(self) -> None:
        """Close the LMDB environment. Safe to call more than once."""
        if self._env is not None:
            self._env.close()
            self._env = None
            self._db = None
            logger.info(f"Closed file backend at {self._path}")
