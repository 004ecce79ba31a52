"""
Backend abstract base class for key-value storage engines.
"""

from abc import ABC, abstractmethod


class Backend(ABC):
    """
    Contract shared by every storage engine.

    Callers only see bytes in and bytes out; which engine sits behind
    the interface is decided once at startup.

    Implementations:
    - FileBackend: Embedded single-file LMDB store
    - CassandraBackend: Cassandra cluster via a shared driver session

    Both methods must be safe to await concurrently from many tasks
    without any locking by the caller.
    """

    @abstractmethod
    async def put(self, key: bytes, value: bytes) -> bool:
        """
        Store a value, overwriting any previous value for the key.

        Args:
            key: The key to write.
            value: The bytes to store (may be empty).

        Returns:
            True once the write has been committed.

        Raises:
            BackendError: If the backing store rejected or failed the write.
        """
        pass

    @abstractmethod
    async def get(self, key: bytes) -> bytes | None:
        """
        Retrieve the most recently stored value for a key.

        Args:
            key: The key to look up.

        Returns:
            The stored bytes, or None if the key was never written.

        Raises:
            BackendError: If the backing store failed the read.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release the file handle or cluster session."""
        pass

    async def __aenter__(self) -> "Backend":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
