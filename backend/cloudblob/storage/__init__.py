"""
Storage module for Cloudinary-backed blob storage.

Downloads are served from Cloudinary delivery URLs with HTTP range requests;
every other verb is a Cloudinary SDK call.
"""
from cloudblob.storage.base import StorageService
from cloudblob.storage.cloudinary_service import CloudinaryService, build_service
from cloudblob.storage.download_utils import ByteRange, download_range, stream_download
from cloudblob.storage.presign import Disposition, ResourceType, infer_resource_type

__all__ = [
    "StorageService",
    "CloudinaryService",
    "build_service",
    "ByteRange",
    "download_range",
    "stream_download",
    "Disposition",
    "ResourceType",
    "infer_resource_type",
]
