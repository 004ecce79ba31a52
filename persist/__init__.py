"""
Key-value persistence service.

Stores opaque byte values under byte keys through one of two engines:
- FileBackend - embedded single-file LMDB store
- CassandraBackend - table on a Cassandra cluster

Both implement the Backend interface:
- put(key, value) - insert or overwrite
- get(key) - latest value, or None if never written
"""

from persist.backends import CassandraBackend, FileBackend, create_backend
from persist.interfaces import Backend

__all__ = ["Backend", "CassandraBackend", "FileBackend", "create_backend"]
