"""
Service configuration loaded from a JSON file.
"""

import json
import logging
import re
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any

from persist.models.exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONF_PATH = "/etc/prestobloomfilterpersist.json"

# keyspace-qualified or bare CQL identifier, e.g. "persist.bloomfilter"
_TABLE_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")


class BackendType(Enum):
    """Kind of storage backend the service runs on."""

    FILE = "file"
    CLUSTER = "cluster"

    @classmethod
    def parse(cls, name: str | None) -> "BackendType | None":
        """
        Parse a backend kind from configuration.

        Returns:
            The matching BackendType, or None if the name is not recognized.
        """
        if name is None:
            return cls.FILE
        name = name.strip().lower()
        if name == "cassandra":
            return cls.CLUSTER
        for member in cls:
            if member.value == name:
                return member
        return None


@dataclass(frozen=True)
class FileConf:
    """Settings for the embedded LMDB backend."""

    path: str = "my.db"
    bucket: str = "store"
    map_size: int = 1024 * 1024 * 1024  # 1GB
    sync: bool = True


@dataclass(frozen=True)
class CassandraConf:
    """Settings for the Cassandra cluster backend."""

    hosts: tuple[str, ...] = ("127.0.0.1",)
    port: int = 9042
    keyspace: str = "persist"
    table: str = "bloomfilter"
    protocol_version: int = 4
    consistency: str = "quorum"


@dataclass(frozen=True)
class Conf:
    """Top-level service configuration."""

    backend: BackendType = BackendType.FILE
    backend_name: str = "file"
    listen_host: str = ""
    listen_port: int = 8081
    max_body_size: int = 10 * 1024 * 1024  # 10MB
    file: FileConf = field(default_factory=FileConf)
    cassandra: CassandraConf = field(default_factory=CassandraConf)


def _warn_unknown_keys(section: str, data: dict[str, Any], known: set[str]) -> None:
    for name in sorted(set(data) - known):
        where = f"{section}.{name}" if section else name
        logger.warning(f"Ignoring unknown configuration key {where!r}")


def _check_types(section: str, cls: type, data: dict[str, Any]) -> dict[str, Any]:
    """Keep known fields of a dataclass and verify their JSON types."""
    if not isinstance(data, dict):
        raise ConfigError(f"'{section}' must be an object")

    _warn_unknown_keys(section, data, {f.name for f in fields(cls)})

    kwargs = {}
    defaults = cls()
    for f in fields(cls):
        if f.name not in data:
            continue
        value = data[f.name]
        default = getattr(defaults, f.name)

        if isinstance(default, tuple):
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                raise ConfigError(f"'{section}.{f.name}' must be a list of strings")
            value = tuple(value)
        # bool is an int subclass, check it first
        elif isinstance(default, bool):
            if not isinstance(value, bool):
                raise ConfigError(f"'{section}.{f.name}' must be a boolean")
        elif isinstance(default, int):
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigError(f"'{section}.{f.name}' must be an integer")
        elif isinstance(default, str):
            if not isinstance(value, str):
                raise ConfigError(f"'{section}.{f.name}' must be a string")

        kwargs[f.name] = value
    return kwargs


def parse_conf(data: dict[str, Any]) -> Conf:
    """
    Build a Conf from already-decoded JSON.

    Args:
        data: Decoded configuration object.

    Returns:
        The validated configuration.

    Raises:
        ConfigError: If a field has the wrong type or an invalid value.
    """
    if not isinstance(data, dict):
        raise ConfigError("configuration must be a JSON object")

    _warn_unknown_keys(
        "", data,
        {"backend", "listen_host", "listen_port", "max_body_size", "file", "cassandra"},
    )

    backend_name = data.get("backend")
    if backend_name is not None and not isinstance(backend_name, str):
        raise ConfigError("'backend' must be a string")
    backend = BackendType.parse(backend_name)

    top = {}
    for name, expected in (("listen_host", str), ("listen_port", int), ("max_body_size", int)):
        if name not in data:
            continue
        value = data[name]
        if isinstance(value, bool) or not isinstance(value, expected):
            raise ConfigError(f"'{name}' must be of type {expected.__name__}")
        top[name] = value

    if not 0 <= top.get("listen_port", 8081) <= 65535:
        raise ConfigError(f"'listen_port' out of range: {top['listen_port']}")
    if top.get("max_body_size", 1) <= 0:
        raise ConfigError(f"'max_body_size' must be positive, got {top['max_body_size']}")

    file_conf = FileConf(**_check_types("file", FileConf, data.get("file", {})))
    if not file_conf.path.strip():
        raise ConfigError("'file.path' cannot be empty")
    if not file_conf.bucket:
        raise ConfigError("'file.bucket' cannot be empty")
    if file_conf.map_size <= 0:
        raise ConfigError(f"'file.map_size' must be positive, got {file_conf.map_size}")

    cassandra_conf = CassandraConf(
        **_check_types("cassandra", CassandraConf, data.get("cassandra", {}))
    )
    if not _TABLE_NAME_RE.match(cassandra_conf.table):
        raise ConfigError(f"'cassandra.table' is not a valid CQL identifier: {cassandra_conf.table!r}")
    if backend is BackendType.CLUSTER and not cassandra_conf.hosts:
        raise ConfigError("'cassandra.hosts' cannot be empty")

    return Conf(
        backend=backend or BackendType.FILE,
        backend_name=backend_name or BackendType.FILE.value,
        file=file_conf,
        cassandra=cassandra_conf,
        **top,
    )


def load_conf(path: str = DEFAULT_CONF_PATH) -> Conf:
    """
    Read the service configuration from a JSON file.

    Args:
        path: Path to the configuration JSON.

    Returns:
        The validated configuration.

    Raises:
        ConfigError: If the file cannot be read or is invalid.
    """
    try:
        with open(path, "rb") as f:
            data = json.load(f)
    except OSError as e:
        raise ConfigError(f"failed to read configuration: {e}", path=path) from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid JSON: {e}", path=path) from e

    try:
        return parse_conf(data)
    except ConfigError as e:
        raise ConfigError(str(e), path=path) from e
