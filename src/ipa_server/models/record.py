# SPDX-License-Identifier: MIT
"""Pydantic models for stored application records."""

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator


def generate_id() -> str:
    """Return a fresh application id."""
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ApplicationRecord(BaseModel):
    """One stored archive.

    Records are immutable once created; the index replaces whole snapshots
    rather than editing records in place.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=generate_id)
    bundle_identifier: str = Field(min_length=1)
    version: str = Field(min_length=1)
    build: str | None = None
    display_name: str
    archive_path: str
    icon_path: str | None = None
    size: int = Field(ge=0)
    sha256: str = ""
    created_at: datetime = Field(default_factory=_utcnow)

    @field_validator("id", "archive_path")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    def blob_keys(self) -> list[str]:
        """Backend keys this record references."""
        keys = [self.archive_path]
        if self.icon_path:
            keys.append(self.icon_path)
        return keys
