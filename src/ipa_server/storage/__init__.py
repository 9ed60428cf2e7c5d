# SPDX-License-Identifier: MIT
"""Blob storage backends for archives and icons."""

from ..config import APIConfig
from .base import Storage
from .local import FILES_ROUTE, LocalStorage
from .s3 import S3Storage


def create_storage(config: APIConfig) -> Storage:
    """Instantiate the configured backend.

    Args:
        config: Server configuration

    Returns:
        Storage backend shared by all request handlers
    """
    storage = config.storage
    if storage.backend == "local":
        return LocalStorage(storage.local_path, public_url=config.public_url)
    elif storage.backend == "s3":
        return S3Storage(
            bucket=storage.s3_bucket or "",
            prefix=storage.s3_prefix,
            region=storage.s3_region,
            public_url=storage.s3_public_url,
            endpoint_url=storage.s3_endpoint_url,
        )
    else:
        raise ValueError(f"Unknown storage backend: {storage.backend}")


__all__ = ["FILES_ROUTE", "LocalStorage", "S3Storage", "Storage", "create_storage"]
