"""
Base class for storage services.
All services implement this interface so an attachment layer can use any
of them without knowing which provider is behind it.
"""
from abc import ABC, abstractmethod
from typing import BinaryIO, Callable, ContextManager, Dict, Optional, Union

from cloudblob.storage.download_utils import RangeLike
from cloudblob.storage.presign import Disposition
from cloudblob.utils.instrumentation import instrument


class StorageService(ABC):
    """
    Abstract storage service.

    Implementations must provide the storage verbs below. Each verb should
    run inside `self.instrument(<verb>, key=...)` so it is measured and
    logged the same way across providers.
    """

    def instrument(self, operation: str, **payload) -> ContextManager[None]:
        """Context manager recording metrics and a log event for `operation`."""
        return instrument(operation, **payload)

    @abstractmethod
    def upload(self, key: str, io: Union[BinaryIO, bytes, str], checksum: Optional[str] = None) -> None:
        """
        Store the content of `io` under `key`.

        Args:
            key: Storage key
            io: File object, raw bytes, local path or remote URL
            checksum: Optional checksum of the content
        """
        pass

    @abstractmethod
    def download(
        self,
        key: str,
        on_chunk: Optional[Callable[[bytes], None]] = None
    ) -> Optional[bytes]:
        """
        Return the content stored at `key`.

        Without `on_chunk` the whole content is returned. With `on_chunk`
        the content is streamed in chunks to the callback and None is
        returned.
        """
        pass

    @abstractmethod
    def download_chunk(self, key: str, byte_range: RangeLike) -> bytes:
        """Return the inclusive byte range of the content stored at `key`."""
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Delete the file at `key`."""
        pass

    @abstractmethod
    def delete_prefixed(self, prefix: str) -> None:
        """Delete every file whose key starts with `prefix`."""
        pass

    @abstractmethod
    def exist(self, key: str) -> bool:
        """Return True if a file exists at `key`."""
        pass

    @abstractmethod
    def url(
        self,
        key: str,
        expires_in: int,
        disposition: Union[Disposition, str],
        filename: str,
        content_type: str
    ) -> str:
        """Signed, temporary URL for reading the file at `key`."""
        pass

    @abstractmethod
    def url_for_direct_upload(
        self,
        key: str,
        expires_in: int,
        content_type: str,
        content_length: int,
        checksum: str
    ) -> str:
        """Signed, temporary URL a client can upload the file for `key` to."""
        pass

    @abstractmethod
    def headers_for_direct_upload(
        self,
        key: str,
        filename: str,
        content_type: str,
        content_length: int,
        checksum: str
    ) -> Dict[str, str]:
        """Headers to send with a `url_for_direct_upload` request."""
        pass
