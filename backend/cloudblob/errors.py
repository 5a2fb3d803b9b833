"""
Exceptions raised by the storage layer.

Provider SDK errors (cloudinary.exceptions.Error) are not wrapped and
propagate to the caller unchanged.
"""
from typing import Optional


class StorageError(Exception):
    """Base exception for storage operations."""


class StorageConfigurationError(StorageError):
    """Raised when the service cannot be built (e.g. missing credentials)."""

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(
            "Cloudinary storage not configured. "
            f"Set {', '.join(missing)}."
        )


class StorageTransportError(StorageError):
    """
    An HTTP call made by the range downloader failed.

    Covers DNS/connect/TLS failures, request errors and non-2xx responses.
    The originating httpx exception is chained as __cause__.
    """

    def __init__(self, url: str, reason: str, status_code: Optional[int] = None):
        self.url = url
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"Request to {url} failed: {reason}")
