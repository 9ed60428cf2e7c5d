# SPDX-License-Identifier: MIT
"""API server configuration."""

from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urlsplit

STORAGE_BACKENDS = ("local", "s3")
URL_SCHEMES = ("http", "https")


def _is_absolute_http(url: str) -> bool:
    parts = urlsplit(url)
    return parts.scheme in URL_SCHEMES and bool(parts.netloc)


class ConfigError(Exception):
    """Raised when configuration is invalid."""

    pass


@dataclass
class StorageConfig:
    """Archive storage configuration."""

    backend: str = "local"  # "local" or "s3"
    local_path: str = "upload"
    s3_bucket: Optional[str] = None
    s3_region: Optional[str] = None
    s3_prefix: str = ""
    s3_endpoint_url: Optional[str] = None
    s3_public_url: Optional[str] = None  # CDN in front of the bucket


@dataclass
class IndexConfig:
    """Metadata index configuration."""

    path: str = "appList.json"
    # Operator opt-in: move a corrupt snapshot aside instead of refusing to start
    reset_on_corruption: bool = False


@dataclass
class APIConfig:
    """Main API server configuration."""

    # Server settings
    title: str = "IPA Distribution Server"
    description: str = "Over-the-air distribution server for iOS application archives"
    version: str = "0.1.0"
    debug: bool = False
    public_url: str = ""

    # Sub-configurations
    storage: StorageConfig = field(default_factory=StorageConfig)
    index: IndexConfig = field(default_factory=IndexConfig)

    # API settings
    api_prefix: str = "/api"
    docs_url: str = "/docs"
    openapi_url: str = "/openapi.json"

    def validate(self) -> None:
        """Check settings that would otherwise fail on the first request.

        Raises:
            ConfigError: If the storage backend is unknown or incomplete, or a
                public URL is not an absolute http(s) URL.
        """
        if self.storage.backend not in STORAGE_BACKENDS:
            raise ConfigError(
                f"Unknown storage backend '{self.storage.backend}', "
                f"expected one of: {', '.join(STORAGE_BACKENDS)}"
            )
        if self.storage.backend == "s3" and not self.storage.s3_bucket:
            raise ConfigError("S3 storage backend requires IPA_SERVER_S3_BUCKET")
        if not self.index.path:
            raise ConfigError("Metadata index path must not be empty")
        for name, url in (
            ("IPA_SERVER_PUBLIC_URL", self.public_url),
            ("IPA_SERVER_S3_PUBLIC_URL", self.storage.s3_public_url),
        ):
            # Manifest asset URLs must be absolute for the device installer
            if url and not _is_absolute_http(url):
                raise ConfigError(f"{name} must be an absolute http(s) URL, got '{url}'")

    @classmethod
    def from_env(cls) -> "APIConfig":
        """Create configuration from environment variables."""
        import os

        config = cls()

        # Storage
        if storage_backend := os.getenv("IPA_SERVER_STORAGE_BACKEND"):
            config.storage.backend = storage_backend
        if local_path := os.getenv("IPA_SERVER_STORAGE_LOCAL_PATH"):
            config.storage.local_path = local_path
        if s3_bucket := os.getenv("IPA_SERVER_S3_BUCKET"):
            config.storage.s3_bucket = s3_bucket
        if s3_region := os.getenv("IPA_SERVER_S3_REGION"):
            config.storage.s3_region = s3_region
        if s3_prefix := os.getenv("IPA_SERVER_S3_PREFIX"):
            config.storage.s3_prefix = s3_prefix
        if s3_endpoint_url := os.getenv("IPA_SERVER_S3_ENDPOINT_URL"):
            config.storage.s3_endpoint_url = s3_endpoint_url
        if s3_public_url := os.getenv("IPA_SERVER_S3_PUBLIC_URL"):
            config.storage.s3_public_url = s3_public_url

        # Index
        if metadata_path := os.getenv("IPA_SERVER_METADATA_PATH"):
            config.index.path = metadata_path
        config.index.reset_on_corruption = (
            os.getenv("IPA_SERVER_RESET_CORRUPT_INDEX", "").lower() == "true"
        )

        if public_url := os.getenv("IPA_SERVER_PUBLIC_URL"):
            config.public_url = public_url

        # Debug
        config.debug = os.getenv("IPA_SERVER_DEBUG", "").lower() == "true"

        return config
