# SPDX-License-Identifier: MIT
"""Local filesystem storage backend."""

import contextlib
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import BinaryIO
from urllib.parse import quote

from ..middleware.errors import BlobNotFoundError, StorageError
from .base import Storage

logger = logging.getLogger(__name__)

# Route under which the app serves blobs of this backend
FILES_ROUTE = "/files"


class LocalStorage(Storage):
    """Stores blobs as files under a root directory.

    Args:
        root: Directory holding all blobs
        public_url: External base URL of this server; when empty, public URLs
            are server-relative paths
    """

    def __init__(self, root: Path | str, public_url: str = ""):
        self.root = Path(root)
        self.public_base = public_url.rstrip("/")

    def path_for(self, key: str) -> Path:
        """Resolve a key to a path inside the root.

        Raises:
            BlobNotFoundError: If the key escapes the root directory.
        """
        root = self.root.resolve()
        path = (root / key).resolve()
        if path == root or root not in path.parents:
            raise BlobNotFoundError(key)
        return path

    def put(self, key: str, stream: BinaryIO) -> None:
        dest = self.path_for(key)
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=dest.parent, prefix=f".{dest.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "wb") as tmp:
                    shutil.copyfileobj(stream, tmp)
                    tmp.flush()
                    os.fsync(tmp.fileno())
                os.replace(tmp_name, dest)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StorageError(f"Failed to write blob '{key}': {e}") from e
        logger.debug("Stored blob %s", key)

    def get(self, key: str) -> BinaryIO:
        path = self.path_for(key)
        try:
            return open(path, "rb")
        except (FileNotFoundError, IsADirectoryError) as e:
            raise BlobNotFoundError(key) from e
        except OSError as e:
            raise StorageError(f"Failed to read blob '{key}': {e}") from e

    def delete(self, key: str) -> None:
        path = self.path_for(key)
        try:
            path.unlink()
        except FileNotFoundError as e:
            raise BlobNotFoundError(key) from e
        except OSError as e:
            raise StorageError(f"Failed to delete blob '{key}': {e}") from e

        # Drop the per-app directory once it is empty
        parent = path.parent
        if parent != self.root.resolve():
            with contextlib.suppress(OSError):
                parent.rmdir()

    def exists(self, key: str) -> bool:
        try:
            return self.path_for(key).is_file()
        except BlobNotFoundError:
            return False

    def public_url(self, key: str) -> str:
        return f"{self.public_base}{FILES_ROUTE}/{quote(key)}"

    def check(self) -> None:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create storage directory '{self.root}': {e}") from e
        if not os.access(self.root, os.W_OK):
            raise StorageError(f"Storage directory '{self.root}' is not writable")
