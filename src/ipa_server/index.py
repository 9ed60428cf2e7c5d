# SPDX-License-Identifier: MIT
"""Durable metadata index of stored applications.

The whole index is one JSON array persisted with write-to-temp-then-replace.
Readers see an immutable snapshot object; writers build a new snapshot,
persist it and only then publish it, all under a single lock.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Mapping, Optional

from pydantic import TypeAdapter, ValidationError

from .middleware.errors import DuplicateIDError, IndexCorruptionError, StorageError
from .models.record import ApplicationRecord

logger = logging.getLogger(__name__)

_RECORDS_ADAPTER = TypeAdapter(list[ApplicationRecord])


@dataclass(frozen=True)
class _Snapshot:
    """Records in insertion order plus an id lookup table."""

    records: tuple[ApplicationRecord, ...] = ()
    by_id: Mapping[str, ApplicationRecord] = field(default_factory=dict)

    @classmethod
    def of(cls, records: Iterable[ApplicationRecord]) -> "_Snapshot":
        records = tuple(records)
        return cls(records=records, by_id={r.id: r for r in records})


class MetadataIndex:
    """Ordered collection of application records backed by a JSON file.

    Args:
        path: Snapshot file location
        reset_on_corruption: Move an unparseable snapshot aside and start
            empty instead of raising IndexCorruptionError
    """

    def __init__(self, path: Path | str, reset_on_corruption: bool = False):
        self.path = Path(path)
        self.reset_on_corruption = reset_on_corruption
        self._snapshot = _Snapshot()
        self._lock = threading.Lock()

    def load(self) -> None:
        """Read the snapshot from disk; a missing file yields an empty index.

        Raises:
            IndexCorruptionError: If the file cannot be parsed and resetting
                was not requested.
        """
        with self._lock:
            if not self.path.exists():
                logger.info("No metadata index at %s, starting empty", self.path)
                self._snapshot = _Snapshot()
                return

            try:
                records = self._parse(self.path.read_bytes())
            except IndexCorruptionError:
                if not self.reset_on_corruption:
                    raise
                aside = self._move_aside()
                logger.error("Corrupt metadata index moved to %s, starting empty", aside)
                self._snapshot = _Snapshot()
                return

            self._snapshot = _Snapshot.of(records)
            logger.info("Loaded %d application(s) from %s", len(records), self.path)

    def _parse(self, raw: bytes) -> list[ApplicationRecord]:
        try:
            records = _RECORDS_ADAPTER.validate_json(raw)
        except ValidationError as e:
            raise IndexCorruptionError(str(self.path), f"{e.error_count()} invalid value(s)") from e

        seen: set[str] = set()
        for record in records:
            if record.id in seen:
                raise IndexCorruptionError(str(self.path), f"duplicate id {record.id}")
            seen.add(record.id)
        return records

    def _move_aside(self) -> Path:
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
        aside = self.path.with_name(f"{self.path.name}.corrupt-{stamp}")
        os.replace(self.path, aside)
        return aside

    def _persist(self, records: tuple[ApplicationRecord, ...]) -> None:
        """Atomically replace the snapshot file.

        Raises:
            StorageError: If the snapshot could not be written; the previous
                file is left untouched.
        """
        payload = json.dumps(
            [r.model_dump(mode="json") for r in records],
            indent=2,
            ensure_ascii=False,
        ).encode("utf-8")

        directory = self.path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=directory, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "wb") as tmp:
                    tmp.write(payload)
                    tmp.flush()
                    os.fsync(tmp.fileno())
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StorageError(f"Failed to write metadata index {self.path}: {e}") from e

    def add(self, record: ApplicationRecord) -> ApplicationRecord:
        """Append a record and persist the new snapshot.

        Raises:
            DuplicateIDError: If a record with the same id exists.
            StorageError: If persisting failed; the index is unchanged.
        """
        with self._lock:
            current = self._snapshot
            if record.id in current.by_id:
                raise DuplicateIDError(record.id)
            updated = _Snapshot.of(current.records + (record,))
            self._persist(updated.records)
            self._snapshot = updated
        return record

    def remove(self, app_id: str) -> bool:
        """Drop a record and persist the new snapshot.

        Returns:
            False if no record has this id.

        Raises:
            StorageError: If persisting failed; the index is unchanged.
        """
        with self._lock:
            current = self._snapshot
            if app_id not in current.by_id:
                return False
            updated = _Snapshot.of(r for r in current.records if r.id != app_id)
            self._persist(updated.records)
            self._snapshot = updated
        return True

    def find(self, app_id: str) -> Optional[ApplicationRecord]:
        return self._snapshot.by_id.get(app_id)

    def list(self) -> list[ApplicationRecord]:
        """All records, most recently added first."""
        return list(reversed(self._snapshot.records))

    def ids(self) -> set[str]:
        return set(self._snapshot.by_id)

    def __len__(self) -> int:
        return len(self._snapshot.records)

    def __contains__(self, app_id: object) -> bool:
        return app_id in self._snapshot.by_id
