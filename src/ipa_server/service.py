# SPDX-License-Identifier: MIT
"""Distribution service tying together inspection, storage and the index."""

from __future__ import annotations

import hashlib
import io
import logging
import os
from typing import BinaryIO, Iterable, Optional

from .index import MetadataIndex
from .inspector import inspect_archive
from .middleware.errors import APIError, BlobNotFoundError
from .models.record import ApplicationRecord, generate_id
from .storage import Storage

logger = logging.getLogger(__name__)

ICON_NAME = "icon.png"


def archive_key(app_id: str, bundle_identifier: str) -> str:
    """Backend key of an application's archive."""
    safe_identifier = bundle_identifier.replace("/", "_").lstrip(".") or "app"
    return f"{app_id}/{safe_identifier}.ipa"


def icon_key(app_id: str) -> str:
    """Backend key of an application's icon."""
    return f"{app_id}/{ICON_NAME}"


def _digest_and_size(stream: BinaryIO) -> tuple[str, int]:
    sha256 = hashlib.sha256()
    size = 0
    stream.seek(0)
    for chunk in iter(lambda: stream.read(1024 * 1024), b""):
        sha256.update(chunk)
        size += len(chunk)
    stream.seek(0)
    return sha256.hexdigest(), size


class DistributionService:
    """Ingest, list, find and remove applications.

    Owns the metadata index exclusively; the storage backend is an immutable
    handle shared with the manifest generator.
    """

    def __init__(self, storage: Storage, index: MetadataIndex):
        self.storage = storage
        self.index = index

    def ingest(self, source: BinaryIO) -> ApplicationRecord:
        """Store an uploaded archive and record its metadata.

        The index is only touched after every blob write succeeded. If the
        index write fails the blobs stay behind unreferenced.

        Args:
            source: Readable, seekable archive stream

        Returns:
            The committed record

        Raises:
            InvalidArchiveError, MissingDescriptorError, MissingRequiredFieldError:
                The archive was rejected; nothing was stored.
            StorageError: A blob or the index snapshot could not be written.
        """
        metadata = inspect_archive(source)
        sha256, size = _digest_and_size(source)

        app_id = generate_id()
        archive_path = archive_key(app_id, metadata.bundle_identifier)
        icon_path = icon_key(app_id) if metadata.icon else None

        self.storage.put(archive_path, source)
        if metadata.icon:
            self.storage.put(icon_path, io.BytesIO(metadata.icon))

        record = ApplicationRecord(
            id=app_id,
            bundle_identifier=metadata.bundle_identifier,
            version=metadata.version,
            build=metadata.build,
            display_name=metadata.display_name,
            archive_path=archive_path,
            icon_path=icon_path,
            size=size,
            sha256=sha256,
        )
        try:
            self.index.add(record)
        except APIError:
            logger.error(
                "Index commit failed for %s, orphaned blobs: %s",
                app_id,
                ", ".join(record.blob_keys()),
            )
            raise

        logger.info(
            "Ingested %s %s (%s) as %s",
            record.bundle_identifier,
            record.version,
            record.display_name,
            record.id,
        )
        return record

    def remove(self, app_id: str) -> bool:
        """Delete an application's blobs and its index entry.

        Blob deletion is best effort: failures are logged and the index entry
        is removed regardless.

        Returns:
            False if the id is unknown.
        """
        record = self.index.find(app_id)
        if record is None:
            return False

        for key in record.blob_keys():
            try:
                self.storage.delete(key)
            except BlobNotFoundError:
                logger.warning("Blob %s of %s was already gone", key, app_id)
            except APIError as e:
                logger.warning("Could not delete blob %s of %s: %s", key, app_id, e)

        removed = self.index.remove(app_id)
        if removed:
            logger.info("Removed %s (%s %s)", app_id, record.bundle_identifier, record.version)
        return removed

    def find(self, app_id: str) -> Optional[ApplicationRecord]:
        return self.index.find(app_id)

    def list(self) -> list[ApplicationRecord]:
        return self.index.list()

    def orphaned_keys(self, keys: Iterable[str]) -> list[str]:
        """Filter a backend key listing down to keys no record references.

        Only keys under an application-id directory are considered, which keeps
        unrelated files (such as the index itself) out of the result.
        """
        referenced: set[str] = set()
        for record in self.index.list():
            referenced.update(record.blob_keys())
        orphans = []
        for key in keys:
            normalized = key.replace(os.sep, "/").lstrip("/")
            if normalized in referenced:
                continue
            head = normalized.split("/", 1)[0]
            if "/" in normalized and _looks_like_id(head):
                orphans.append(key)
        return orphans


def _looks_like_id(value: str) -> bool:
    return len(value) == 36 and value.count("-") == 4
