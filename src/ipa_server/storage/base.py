# SPDX-License-Identifier: MIT
"""Storage backend interface."""

from abc import ABC, abstractmethod
from typing import BinaryIO


class Storage(ABC):
    """Blob store for archives and icons.

    Implementations differ only in where bytes live and how public URLs are
    built. Instances are created once at startup and shared by all request
    threads, so they must not hold per-request state.
    """

    @abstractmethod
    def put(self, key: str, stream: BinaryIO) -> None:
        """Write a blob, replacing any existing one.

        Readers never observe a partially written blob.

        Raises:
            StorageError: On I/O failure.
        """

    @abstractmethod
    def get(self, key: str) -> BinaryIO:
        """Open a blob for reading. The caller closes the stream.

        Raises:
            BlobNotFoundError: If no blob exists under the key.
            StorageError: On I/O failure.
        """

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a blob.

        Raises:
            BlobNotFoundError: If no blob exists under the key.
            StorageError: On I/O failure.
        """

    @abstractmethod
    def exists(self, key: str) -> bool:
        """Check whether a blob exists."""

    @abstractmethod
    def public_url(self, key: str) -> str:
        """Externally fetchable URL for a key. Pure function of key and config."""

    def check(self) -> None:
        """Validate the backend at startup. Raises StorageError when unusable."""
