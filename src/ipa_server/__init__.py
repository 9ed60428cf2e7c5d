# SPDX-License-Identifier: MIT
"""Over-the-air distribution server for iOS application archives."""

__version__ = "0.1.0"

from .app import create_app
from .config import APIConfig, ConfigError, IndexConfig, StorageConfig
from .index import MetadataIndex
from .inspector import ArchiveMetadata, inspect_archive
from .manifest import ManifestError, ManifestGenerator
from .middleware.errors import (
    APIError,
    AppNotFoundError,
    BlobNotFoundError,
    DuplicateIDError,
    ErrorCode,
    IndexCorruptionError,
    InvalidArchiveError,
    InvalidRequestError,
    MissingDescriptorError,
    MissingRequiredFieldError,
    StorageError,
)
from .models import ApplicationRecord
from .service import DistributionService
from .storage import LocalStorage, S3Storage, Storage, create_storage

__all__ = [
    # App factory
    "create_app",
    # Configuration
    "APIConfig",
    "ConfigError",
    "IndexConfig",
    "StorageConfig",
    # Core
    "ApplicationRecord",
    "ArchiveMetadata",
    "DistributionService",
    "ManifestError",
    "ManifestGenerator",
    "MetadataIndex",
    "inspect_archive",
    # Storage
    "LocalStorage",
    "S3Storage",
    "Storage",
    "create_storage",
    # Errors
    "APIError",
    "AppNotFoundError",
    "BlobNotFoundError",
    "DuplicateIDError",
    "ErrorCode",
    "IndexCorruptionError",
    "InvalidArchiveError",
    "InvalidRequestError",
    "MissingDescriptorError",
    "MissingRequiredFieldError",
    "StorageError",
]
