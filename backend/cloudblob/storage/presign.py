"""
Signed URL option building.

Handles the pieces of `url` / `url_for_direct_upload` that are not plain
pass-through to the SDK:
1. Infer the Cloudinary resource type (image / video / raw) for a file
2. Map the disposition to Cloudinary's `attachment` flag
3. Compute the absolute expiry timestamp
4. Turn a signed download URL into a signed upload URL
"""
import enum
import os
import time
from typing import Any, Callable, Dict, Optional, Union


class Disposition(str, enum.Enum):
    """How the browser should present a downloaded file."""
    INLINE = "inline"
    ATTACHMENT = "attachment"

    @classmethod
    def coerce(cls, value: Union["Disposition", str]) -> "Disposition":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValueError(
                f"Invalid disposition {value!r}, expected 'inline' or 'attachment'"
            ) from None


class ResourceType(str, enum.Enum):
    """Cloudinary resource types."""
    IMAGE = "image"
    VIDEO = "video"
    RAW = "raw"
    AUTO = "auto"


# Formats Cloudinary delivers as images (it rasterises pdf/ai/psd pages)
IMAGE_FORMATS = frozenset({
    'jpg', 'jpeg', 'jpe', 'png', 'gif', 'webp', 'bmp', 'tif', 'tiff', 'ico',
    'svg', 'heic', 'heif', 'avif', 'jp2', 'jxr', 'psd', 'ai', 'eps', 'pdf',
})

# Cloudinary stores audio under the video resource type
VIDEO_FORMATS = frozenset({
    'mp4', 'mov', 'webm', 'ogv', 'mkv', 'avi', 'flv', 'wmv', 'm4v', '3gp',
    'mpeg', 'mpg', 'm3u8', 'ts',
    'mp3', 'm4a', 'wav', 'aac', 'ogg', 'flac', 'aiff', 'opus',
})

# MIME major type -> resource type, used when the filename has no extension
CONTENT_TYPE_RESOURCE_TYPES = {
    'image': ResourceType.IMAGE,
    'video': ResourceType.VIDEO,
    'audio': ResourceType.VIDEO,
}

# key -> resource type; must be a pure function of the key so every verb
# addresses the same Cloudinary resource
ResourceTypeResolver = Callable[[str], str]


def resource_type_for_format(extension: str) -> ResourceType:
    """
    Classify a file extension.

    Args:
        extension: Extension with or without the leading dot

    Returns:
        IMAGE, VIDEO or RAW
    """
    ext = extension.lower().lstrip('.')
    if ext in IMAGE_FORMATS:
        return ResourceType.IMAGE
    if ext in VIDEO_FORMATS:
        return ResourceType.VIDEO
    return ResourceType.RAW


def infer_resource_type(filename: Optional[str], content_type: Optional[str] = None) -> str:
    """
    Default resource type resolver, called with the key alone.

    Uses the filename (or key) extension when there is one, otherwise the major
    type of the MIME content type.
    """
    if filename:
        _, ext = os.path.splitext(filename)
        if ext:
            return resource_type_for_format(ext).value

    if content_type:
        major = content_type.split('/', 1)[0].lower()
        return CONTENT_TYPE_RESOURCE_TYPES.get(major, ResourceType.RAW).value

    return ResourceType.RAW.value


def signed_url_options(
    expires_in: int,
    resource_type: Optional[str] = None,
    delivery_type: str = "upload",
    disposition: Union[Disposition, str] = Disposition.INLINE,
    now: Optional[float] = None
) -> Dict[str, Any]:
    """
    Build the option dict for cloudinary.utils.private_download_url.

    Args:
        expires_in: URL lifetime in seconds
        resource_type: Resource type, `auto` when not given
        delivery_type: Cloudinary delivery type (upload, private, authenticated)
        disposition: INLINE or ATTACHMENT
        now: Current unix time, defaults to time.time()

    Returns:
        Options with resource_type, type, attachment and expires_at
    """
    if now is None:
        now = time.time()

    return {
        'resource_type': resource_type or ResourceType.AUTO.value,
        'type': delivery_type,
        'attachment': Disposition.coerce(disposition) is Disposition.ATTACHMENT,
        'expires_at': int(now + expires_in),
    }


def direct_upload_url(signed_download_url: str) -> str:
    """
    Derive the signed upload URL from a signed download URL.

    The SDK has no helper for signed upload URLs; the upload endpoint takes
    the same signature with `download` swapped for `upload`.
    """
    return signed_download_url.replace('download', 'upload', 1)


def direct_upload_headers(key: str, content_type: str) -> Dict[str, str]:
    """Headers a client must send along with a direct upload."""
    return {
        'Content-Type': content_type,
        'X-Unique-Upload-Id': key,
    }
