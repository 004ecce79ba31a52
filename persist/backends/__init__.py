"""
Storage engine implementations.
"""

from persist.backends.cassandra import CassandraBackend
from persist.backends.file import FileBackend
from persist.backends.selector import create_backend

__all__ = ["CassandraBackend", "FileBackend", "create_backend"]
