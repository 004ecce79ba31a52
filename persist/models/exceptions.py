"""
Custom exceptions for the persistence service.
"""


class ConfigError(ValueError):
    """
    Raised when the service configuration cannot be loaded or is invalid.

    Always fatal at startup.
    """

    def __init__(self, message: str, path: str | None = None):
        """
        Initialize configuration error.

        Args:
            message: What is wrong with the configuration.
            path: Configuration file the error came from, if any.
        """
        self.path = path
        if path:
            message = f"{path}: {message}"
        super().__init__(message)


class BackendInitError(Exception):
    """
    Raised when a backend cannot open its backing store.

    The service must not start serving when this is raised.
    """

    def __init__(self, backend: str, reason: str):
        self.backend = backend
        self.reason = reason
        super().__init__(f"Failed to initialize {backend} backend: {reason}")


class BackendError(Exception):
    """
    Raised when a single put/get call fails in the backing store.

    The underlying exception is available as ``__cause__``.
    """

    def __init__(self, op: str, key: bytes, reason: str):
        """
        Initialize backend error.

        Args:
            op: Operation that failed ("put" or "get").
            key: Key the operation was called with.
            reason: Description of the underlying failure.
        """
        self.op = op
        self.key = key
        self.reason = reason
        super().__init__(f"{op} {key!r} failed: {reason}")
