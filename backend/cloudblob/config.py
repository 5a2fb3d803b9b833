"""
Configuration using Pydantic Settings.
All environment variables are loaded here with sensible defaults.
"""
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from cloudblob.errors import StorageConfigurationError

DEFAULT_CHUNK_SIZE = 5_242_880  # 5 MiB


class CloudinaryCredentials(BaseModel):
    """
    Immutable Cloudinary account credentials.

    Handed to the storage service at construction time and forwarded with
    every SDK call, so the SDK's process-wide config is never touched.
    """

    model_config = ConfigDict(frozen=True)

    cloud_name: str
    api_key: str
    api_secret: str
    # Extra SDK options (e.g. {"secure": True}) sent along with each call
    options: Dict[str, Any] = Field(default_factory=dict)

    def as_options(self) -> Dict[str, Any]:
        """Keyword arguments accepted by the cloudinary uploader/api/utils calls."""
        return {
            **self.options,
            "cloud_name": self.cloud_name,
            "api_key": self.api_key,
            "api_secret": self.api_secret,
        }


class Settings(BaseSettings):
    """Settings loaded from CLOUDBLOB_* environment variables."""

    # Cloudinary account
    cloudinary_cloud_name: Optional[str] = None
    cloudinary_api_key: Optional[str] = None
    cloudinary_api_secret: Optional[str] = None

    # Range downloader
    download_chunk_size: int = Field(default=DEFAULT_CHUNK_SIZE, gt=0)
    http_timeout: Optional[float] = 30.0  # seconds, None disables the timeout
    # Certificate verification for delivery URL downloads.
    # Turning it off reproduces the legacy adapter and is logged as a warning.
    verify_tls: bool = True

    # Logging
    service_name: str = "cloudblob"
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="CLOUDBLOB_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    def credentials(self) -> CloudinaryCredentials:
        """
        Build the immutable credentials for the storage service.

        Raises:
            StorageConfigurationError: If any credential variable is unset
        """
        values = {
            "CLOUDBLOB_CLOUDINARY_CLOUD_NAME": self.cloudinary_cloud_name,
            "CLOUDBLOB_CLOUDINARY_API_KEY": self.cloudinary_api_key,
            "CLOUDBLOB_CLOUDINARY_API_SECRET": self.cloudinary_api_secret,
        }
        missing = [name for name, value in values.items() if not value]
        if missing:
            raise StorageConfigurationError(missing)

        return CloudinaryCredentials(
            cloud_name=self.cloudinary_cloud_name,
            api_key=self.cloudinary_api_key,
            api_secret=self.cloudinary_api_secret,
        )


# Global settings instance
settings = Settings()
