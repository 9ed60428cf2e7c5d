# SPDX-License-Identifier: MIT
"""Install manifest generation for over-the-air installs.

The iOS installer fetches ``itms-services://?action=download-manifest&url=<manifest>``
and parses the property list below. Unknown keys, missing keys or wrong
nesting make the install fail silently on the device, so every document is
validated against ``MANIFEST_SCHEMA`` before it leaves the server.
"""

from __future__ import annotations

import plistlib
from typing import TYPE_CHECKING, Any, Optional
from urllib.parse import quote

from jsonschema import Draft202012Validator

from .storage import Storage

if TYPE_CHECKING:
    from .models.record import ApplicationRecord
    from .service import DistributionService

ASSET_SOFTWARE_PACKAGE = "software-package"
ASSET_DISPLAY_IMAGE = "display-image"
ASSET_FULL_SIZE_IMAGE = "full-size-image"
METADATA_KIND = "software"

_ASSET_SCHEMA: dict = {
    "type": "object",
    "required": ["kind", "url"],
    "additionalProperties": False,
    "properties": {
        "kind": {
            "type": "string",
            "enum": [ASSET_SOFTWARE_PACKAGE, ASSET_DISPLAY_IMAGE, ASSET_FULL_SIZE_IMAGE],
        },
        "url": {"type": "string", "pattern": r"^https?://\S+$"},
    },
}

MANIFEST_SCHEMA: dict = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "Over-the-air install manifest",
    "type": "object",
    "required": ["items"],
    "additionalProperties": False,
    "properties": {
        "items": {
            "type": "array",
            "minItems": 1,
            "maxItems": 1,
            "items": {
                "type": "object",
                "required": ["assets", "metadata"],
                "additionalProperties": False,
                "properties": {
                    "assets": {
                        "type": "array",
                        "minItems": 1,
                        "items": _ASSET_SCHEMA,
                        # The package asset must come first
                        "prefixItems": [
                            {
                                "allOf": [
                                    _ASSET_SCHEMA,
                                    {"properties": {"kind": {"const": ASSET_SOFTWARE_PACKAGE}}},
                                ]
                            }
                        ],
                    },
                    "metadata": {
                        "type": "object",
                        "required": ["bundle-identifier", "bundle-version", "kind", "title"],
                        "additionalProperties": False,
                        "properties": {
                            "bundle-identifier": {"type": "string", "minLength": 1},
                            "bundle-version": {"type": "string", "minLength": 1},
                            "kind": {"const": METADATA_KIND},
                            "title": {"type": "string", "minLength": 1},
                        },
                    },
                },
            },
        }
    },
}

_VALIDATOR = Draft202012Validator(MANIFEST_SCHEMA)


class ManifestError(Exception):
    """Raised when a generated manifest violates the installer schema."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        message = f"Install manifest invalid with {len(errors)} error(s)"
        if errors:
            message += f": {errors[0]}"
        super().__init__(message)


def validate_manifest(document: dict) -> None:
    """Validate a manifest dictionary.

    Raises:
        ManifestError: If the document does not match MANIFEST_SCHEMA.
    """
    errors = sorted(_VALIDATOR.iter_errors(document), key=lambda e: list(e.absolute_path))
    if errors:
        raise ManifestError(
            [f"{'/'.join(str(p) for p in e.absolute_path) or '<root>'}: {e.message}" for e in errors]
        )


def absolute_url(url: str, base_url: Optional[str]) -> str:
    """Prefix server-relative URLs with the base URL."""
    if url.startswith("/") and base_url:
        return base_url.rstrip("/") + url
    return url


def install_url(manifest_url: str) -> str:
    """The itms-services link that makes a device fetch a manifest."""
    return "itms-services://?action=download-manifest&url=" + quote(manifest_url, safe=":/")


class ManifestGenerator:
    """Projects application records into the installer's manifest schema."""

    def __init__(self, service: DistributionService, storage: Storage):
        self.service = service
        self.storage = storage

    def build(self, record: ApplicationRecord, base_url: Optional[str] = None) -> dict[str, Any]:
        """Build and validate the manifest dictionary for a record."""
        assets = [
            {
                "kind": ASSET_SOFTWARE_PACKAGE,
                "url": absolute_url(self.storage.public_url(record.archive_path), base_url),
            }
        ]
        if record.icon_path:
            icon_url = absolute_url(self.storage.public_url(record.icon_path), base_url)
            assets.append({"kind": ASSET_DISPLAY_IMAGE, "url": icon_url})
            assets.append({"kind": ASSET_FULL_SIZE_IMAGE, "url": icon_url})

        document = {
            "items": [
                {
                    "assets": assets,
                    "metadata": {
                        "bundle-identifier": record.bundle_identifier,
                        "bundle-version": record.version,
                        "kind": METADATA_KIND,
                        "title": record.display_name,
                    },
                }
            ]
        }
        validate_manifest(document)
        return document

    def render(self, record: ApplicationRecord, base_url: Optional[str] = None) -> bytes:
        """Serialize the manifest as an XML property list."""
        return plistlib.dumps(self.build(record, base_url), fmt=plistlib.FMT_XML, sort_keys=False)

    def generate(self, app_id: str, base_url: Optional[str] = None) -> Optional[bytes]:
        """Manifest for an application id, or None if the id is unknown."""
        record = self.service.find(app_id)
        if record is None:
            return None
        return self.render(record, base_url)
