"""
Backend selection - the only place that knows concrete engine types.
"""

import logging

from persist.backends.cassandra import CassandraBackend
from persist.backends.file import FileBackend
from persist.interfaces.backend import Backend
from persist.models.conf import BackendType, Conf

logger = logging.getLogger(__name__)


async def create_backend(conf: Conf) -> Backend:
    """
    Construct the configured backend.

    Called once at startup. Unrecognized backend kinds fall back to the
    file backend.

    Args:
        conf: Service configuration.

    Returns:
        The opened backend.

    Raises:
        BackendInitError: If the backing store cannot be opened.
        ConfigError: If the backend settings are invalid.
    """
    if BackendType.parse(conf.backend_name) is None:
        logger.warning(
            f"Unknown backend {conf.backend_name!r}, falling back to {BackendType.FILE.value!r}"
        )

    if conf.backend is BackendType.CLUSTER:
        return await CassandraBackend.create(conf.cassandra)
    return await FileBackend.create(conf.file)
