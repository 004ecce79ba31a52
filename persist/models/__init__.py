"""
Configuration and error models for the persistence service.
"""

from persist.models.conf import BackendType, CassandraConf, Conf, FileConf, load_conf, parse_conf
from persist.models.exceptions import BackendError, BackendInitError, ConfigError

__all__ = [
    "BackendType",
    "CassandraConf",
    "Conf",
    "FileConf",
    "load_conf",
    "parse_conf",
    "BackendError",
    "BackendInitError",
    "ConfigError",
]
