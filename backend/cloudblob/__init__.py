"""
Cloudinary-backed blob storage service with ranged, chunked downloads.
"""
from cloudblob.config import CloudinaryCredentials, Settings
from cloudblob.errors import StorageConfigurationError, StorageError, StorageTransportError
from cloudblob.storage import CloudinaryService, build_service

__version__ = "0.1.0"

__all__ = [
    "CloudinaryCredentials",
    "CloudinaryService",
    "Settings",
    "StorageConfigurationError",
    "StorageError",
    "StorageTransportError",
    "build_service",
]
