from __future__ import annotations
"""Exceptions raised by the storage adapter."""


class StorageError(RuntimeError):
    """Base class for object storage failures."""


class ConfigurationError(StorageError, ValueError):
    """Raised when a client is constructed with missing or invalid options."""


class RejectedError(StorageError):
    """Raised when the service answers a request with a 4xx status.

    These are never retried: the request itself has to change before it can
    succeed.
    """

    def __init__(self, status_code: int, body: str = "", *, method: str = "", url: str = ""):
        self.status_code = status_code
        self.body = body
        self.method = method
        self.url = url
        target = f" for {method} {url}" if method else ""
        detail = f": {body}" if body else ""
        super().__init__(f"Request rejected with status {status_code}{target}{detail}")


class TransportError(StorageError):
    """Raised when the service stays unavailable after every retry attempt."""

    def __init__(self, message: str, *, attempts: int = 1, status_code: int | None = None):
        self.attempts = attempts
        self.status_code = status_code
        super().__init__(message)


class TransferCancelledError(StorageError):
    """Raised when an upload or download is cancelled by the caller."""
