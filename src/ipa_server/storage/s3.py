# SPDX-License-Identifier: MIT
"""S3-compatible object storage backend.

This module encapsulates boto3 client creation and the object operations
the distribution service needs. Any S3-compatible service works when
``endpoint_url`` points at it.
"""

from __future__ import annotations

import logging
from typing import Any, BinaryIO, Optional
from urllib.parse import quote

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..middleware.errors import BlobNotFoundError, StorageError
from .base import Storage

logger = logging.getLogger(__name__)

_MISSING_CODES = {"404", "NoSuchKey", "NotFound"}


def create_s3_client(region: Optional[str] = None, endpoint_url: Optional[str] = None) -> Any:
    """Create a boto3 S3 client.

    Args:
        region: Optional AWS region name.
        endpoint_url: Optional endpoint for S3-compatible services.

    Returns:
        Boto3 S3 client.
    """
    session_kwargs: dict[str, str] = {}
    if region:
        session_kwargs["region_name"] = region
    session = boto3.session.Session(**session_kwargs)
    client_kwargs: dict[str, str] = {}
    if endpoint_url:
        client_kwargs["endpoint_url"] = endpoint_url
    return session.client("s3", **client_kwargs)


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


class S3Storage(Storage):
    """Stores blobs as objects in one bucket under an optional prefix.

    Args:
        bucket: Bucket name
        prefix: Key prefix prepended to every blob key
        region: Bucket region, used for the default public URL
        public_url: Base URL serving the bucket publicly (CDN); when unset the
            virtual-hosted bucket URL is used
        client: Preconfigured boto3 client; created from region/endpoint when None
        endpoint_url: Endpoint for S3-compatible services
    """

    def __init__(
        self,
        bucket: str,
        prefix: str = "",
        region: Optional[str] = None,
        public_url: Optional[str] = None,
        client: Any = None,
        endpoint_url: Optional[str] = None,
    ):
        self.bucket = bucket
        self.prefix = prefix.strip("/")
        self.region = region
        self.public_base = public_url.rstrip("/") if public_url else None
        self._s3 = client if client is not None else create_s3_client(region, endpoint_url)

    def object_key(self, key: str) -> str:
        """Full object key including the prefix."""
        return f"{self.prefix}/{key}" if self.prefix else key

    def put(self, key: str, stream: BinaryIO) -> None:
        object_key = self.object_key(key)
        try:
            self._s3.upload_fileobj(stream, self.bucket, object_key)
        except (BotoCoreError, ClientError) as e:
            raise StorageError(
                f"Failed to upload s3://{self.bucket}/{object_key}: {e}"
            ) from e
        logger.debug("Uploaded s3://%s/%s", self.bucket, object_key)

    def get(self, key: str) -> BinaryIO:
        object_key = self.object_key(key)
        try:
            response = self._s3.get_object(Bucket=self.bucket, Key=object_key)
        except ClientError as e:
            if _error_code(e) in _MISSING_CODES:
                raise BlobNotFoundError(key) from e
            raise StorageError(f"Failed to read s3://{self.bucket}/{object_key}: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"Failed to read s3://{self.bucket}/{object_key}: {e}") from e
        return response["Body"]

    def delete(self, key: str) -> None:
        # delete_object succeeds for absent keys, so check first
        if not self.exists(key):
            raise BlobNotFoundError(key)
        object_key = self.object_key(key)
        try:
            self._s3.delete_object(Bucket=self.bucket, Key=object_key)
        except (BotoCoreError, ClientError) as e:
            raise StorageError(
                f"Failed to delete s3://{self.bucket}/{object_key}: {e}"
            ) from e

    def exists(self, key: str) -> bool:
        object_key = self.object_key(key)
        try:
            self._s3.head_object(Bucket=self.bucket, Key=object_key)
        except ClientError as e:
            if _error_code(e) in _MISSING_CODES:
                return False
            raise StorageError(f"Failed to stat s3://{self.bucket}/{object_key}: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"Failed to stat s3://{self.bucket}/{object_key}: {e}") from e
        return True

    def public_url(self, key: str) -> str:
        path = quote(self.object_key(key))
        if self.public_base:
            return f"{self.public_base}/{path}"
        if self.region:
            return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{path}"
        return f"https://{self.bucket}.s3.amazonaws.com/{path}"

    def check(self) -> None:
        try:
            self._s3.head_bucket(Bucket=self.bucket)
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"S3 bucket '{self.bucket}' is not reachable: {e}") from e
