"""
Cloudinary storage service.

Maps the storage verbs onto the cloudinary SDK. Downloads go through the
range downloader against the resource's secure delivery URL; everything
else is a direct SDK call.

Credentials are passed with every SDK call instead of through
cloudinary.config(), so several services with different accounts can live
in one process.
"""
import logging
from typing import Any, BinaryIO, Callable, Dict, Iterator, Optional, Union

import cloudinary.api
import cloudinary.uploader
import cloudinary.utils
import httpx

from cloudblob.config import DEFAULT_CHUNK_SIZE, CloudinaryCredentials, Settings
from cloudblob.storage.base import StorageService
from cloudblob.storage.download_utils import (
    DEFAULT_TIMEOUT,
    RangeLike,
    download_all,
    download_range,
    stream_download
)
from cloudblob.storage.presign import (
    Disposition,
    ResourceType,
    ResourceTypeResolver,
    direct_upload_headers,
    direct_upload_url,
    infer_resource_type,
    signed_url_options
)
from cloudblob.utils.logging import configure_logging

logger = logging.getLogger(__name__)

# Admin API page size for prefix listings (Cloudinary max is 500)
LIST_PAGE_SIZE = 500

# Resource types a prefix delete has to list; `auto` is upload-only
LISTED_RESOURCE_TYPES = (
    ResourceType.IMAGE.value,
    ResourceType.VIDEO.value,
    ResourceType.RAW.value,
)


class CloudinaryService(StorageService):
    """
    Storage service backed by Cloudinary.

    Keys are used as Cloudinary public ids. The resource type of a key is
    derived from the key by the resolver, so a file is always uploaded,
    looked up, signed and deleted under the same type.
    """

    def __init__(
        self,
        credentials: CloudinaryCredentials,
        resource_type_resolver: Optional[ResourceTypeResolver] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        timeout: Optional[float] = DEFAULT_TIMEOUT,
        verify_tls: bool = True,
        transport: Optional[httpx.BaseTransport] = None
    ):
        """
        Args:
            credentials: Cloudinary account credentials
            resource_type_resolver: key -> resource type, used by every
                verb; defaults to extension based inference
            chunk_size: Chunk size for streamed downloads
            timeout: HTTP timeout in seconds for downloads
            verify_tls: Verify TLS certificates of delivery URLs
            transport: Optional httpx transport for downloads
        """
        self._credentials = credentials
        self._resolve_resource_type = resource_type_resolver or infer_resource_type
        self.chunk_size = chunk_size
        self.timeout = timeout
        self.verify_tls = verify_tls
        self._transport = transport

        if not verify_tls:
            logger.warning(
                "TLS certificate verification is disabled for Cloudinary downloads"
            )

        logger.info(f"Cloudinary storage service initialized for cloud: {credentials.cloud_name}")

    @property
    def cloud_name(self) -> str:
        return self._credentials.cloud_name

    def upload(self, key: str, io: Union[BinaryIO, bytes, str], checksum: Optional[str] = None) -> None:
        with self.instrument("upload", key=key, checksum=checksum):
            cloudinary.uploader.upload(
                io,
                public_id=key,
                **self._sdk_options(resource_type=self._resource_type_for(key))
            )

    def download(
        self,
        key: str,
        on_chunk: Optional[Callable[[bytes], None]] = None
    ) -> Optional[bytes]:
        """
        Return the content of the file at `key`.

        Without `on_chunk` the body is fetched with a single GET and returned.
        With `on_chunk` the body is fetched with ranged GETs, one per chunk,
        and each chunk is handed to the callback before the next request.
        """
        if on_chunk is not None:
            with self.instrument("streaming_download", key=key):
                for chunk in self._stream_chunks(key):
                    on_chunk(chunk)
            return None

        with self.instrument("download", key=key):
            return download_all(self._url_for_public_id(key), **self._http_options())

    def stream(self, key: str) -> Iterator[bytes]:
        """Lazily yield the content of the file at `key` in chunks."""
        with self.instrument("streaming_download", key=key):
            yield from self._stream_chunks(key)

    def _stream_chunks(self, key: str) -> Iterator[bytes]:
        return stream_download(
            self._url_for_public_id(key),
            self.chunk_size,
            **self._http_options()
        )

    def download_chunk(self, key: str, byte_range: RangeLike) -> bytes:
        with self.instrument("download_chunk", key=key):
            return download_range(self._url_for_public_id(key), byte_range, **self._http_options())

    def delete(self, key: str) -> None:
        with self.instrument("delete", key=key):
            self._delete_resource_with_public_id(key, self._resource_type_for(key))

    def delete_prefixed(self, prefix: str) -> None:
        """
        Delete every resource whose key starts with `prefix`.

        Admin API listings are per resource type, so each type is listed.
        """
        with self.instrument("delete_prefixed", prefix=prefix):
            deleted = 0
            for resource_type in LISTED_RESOURCE_TYPES:
                for resource in self._find_resources_with_public_id_prefix(prefix, resource_type):
                    self._delete_resource_with_public_id(
                        resource['public_id'],
                        resource.get('resource_type', resource_type)
                    )
                    deleted += 1
            logger.debug(f"Deleted {deleted} resources with prefix {prefix}")

    def exist(self, key: str) -> bool:
        with self.instrument("exist", key=key):
            return self._resource_exists_with_public_id(key)

    def url(
        self,
        key: str,
        expires_in: int,
        disposition: Union[Disposition, str],
        filename: str,
        content_type: str,
        resource_type: Optional[str] = None
    ) -> str:
        """
        Signed, temporary URL for the file at `key`.

        The URL is valid for `expires_in` seconds. The resource type comes
        from the key, the same way `upload` chose it, unless given.
        """
        with self.instrument("url", key=key):
            options = signed_url_options(
                expires_in,
                resource_type=resource_type or self._resource_type_for(key),
                disposition=disposition
            )
            return self._signed_download_url_for_public_id(key, options)

    def url_for_direct_upload(
        self,
        key: str,
        expires_in: int,
        content_type: str,
        content_length: int,
        checksum: str,
        resource_type: Optional[str] = None
    ) -> str:
        """
        Signed, temporary URL a direct upload can be sent to.

        The resource type comes from the key so the uploaded file can be
        found again by `exist`, `url` and `delete`.
        """
        with self.instrument("url_for_direct_upload", key=key):
            options = signed_url_options(
                expires_in,
                resource_type=resource_type or self._resource_type_for(key)
            )
            return direct_upload_url(self._signed_download_url_for_public_id(key, options))

    def headers_for_direct_upload(
        self,
        key: str,
        filename: str,
        content_type: str,
        content_length: int,
        checksum: str
    ) -> Dict[str, str]:
        return direct_upload_headers(key, content_type)

    # SDK helpers

    def _resource_type_for(self, key: str) -> str:
        return self._resolve_resource_type(key)

    def _sdk_options(self, **options) -> Dict[str, Any]:
        return {**options, **self._credentials.as_options()}

    def _http_options(self) -> Dict[str, Any]:
        return {
            'timeout': self.timeout,
            'verify': self.verify_tls,
            'transport': self._transport,
        }

    def _resource_exists_with_public_id(self, public_id: str) -> bool:
        return bool(self._find_resource_with_public_id(public_id))

    def _find_resource_with_public_id(self, public_id: str) -> list:
        response = cloudinary.api.resources_by_ids(
            [public_id],
            **self._sdk_options(resource_type=self._resource_type_for(public_id))
        )
        return response['resources']

    def _find_resources_with_public_id_prefix(
        self,
        prefix: str,
        resource_type: str
    ) -> Iterator[Dict[str, Any]]:
        """Yield every uploaded resource of one type under `prefix`, following pagination."""
        next_cursor = None

        while True:
            kwargs = {
                'resource_type': resource_type,
                'type': 'upload',
                'prefix': prefix,
                'max_results': LIST_PAGE_SIZE,
            }
            if next_cursor:
                kwargs['next_cursor'] = next_cursor

            response = cloudinary.api.resources(**self._sdk_options(**kwargs))
            yield from response.get('resources', [])

            next_cursor = response.get('next_cursor')
            if not next_cursor:
                break

    def _delete_resource_with_public_id(self, public_id: str, resource_type: str) -> None:
        cloudinary.uploader.destroy(public_id, **self._sdk_options(resource_type=resource_type))

    def _url_for_public_id(self, public_id: str) -> str:
        response = cloudinary.api.resource(
            public_id,
            **self._sdk_options(resource_type=self._resource_type_for(public_id))
        )
        return response['secure_url']

    def _signed_download_url_for_public_id(self, public_id: str, options: Dict[str, Any]) -> str:
        return cloudinary.utils.private_download_url(
            public_id,
            None,
            **self._sdk_options(**options)
        )


def build_service(settings: Optional[Settings] = None, **overrides) -> CloudinaryService:
    """
    Build a CloudinaryService from settings.

    Also sets up JSON logging for the `cloudblob` loggers using the
    service name and log level from settings.

    Args:
        settings: Settings to read, defaults to the module level settings
        **overrides: Constructor arguments taking precedence over settings

    Raises:
        StorageConfigurationError: If Cloudinary credentials are missing
    """
    if settings is None:
        from cloudblob.config import settings as default_settings
        settings = default_settings

    configure_logging(settings.service_name, settings.log_level)

    kwargs = {
        'chunk_size': settings.download_chunk_size,
        'timeout': settings.http_timeout,
        'verify_tls': settings.verify_tls,
        **overrides
    }
    return CloudinaryService(settings.credentials(), **kwargs)
