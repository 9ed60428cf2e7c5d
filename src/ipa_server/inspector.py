# SPDX-License-Identifier: MIT
"""Extraction of application identity from .ipa archives.

An .ipa is a ZIP archive holding ``Payload/<Name>.app/``. The bundle's
``Info.plist`` names the application; the icon is located through the icon
keys of that plist. Nothing inside the archive is trusted: only the known
keys are read and every failure maps to one of the ingest errors.
"""

from __future__ import annotations

import logging
import plistlib
import posixpath
import re
import zipfile
import zlib
from dataclasses import dataclass
from typing import Any, BinaryIO, Optional
from xml.parsers.expat import ExpatError

from .icon import IconError, normalize_png
from .middleware.errors import (
    InvalidArchiveError,
    MissingDescriptorError,
    MissingRequiredFieldError,
)

logger = logging.getLogger(__name__)

# Payload/<Name>.app/Info.plist, with the bundle a direct child of Payload/
DESCRIPTOR_PATTERN = re.compile(r"^Payload/([^/]+\.app)/Info\.plist$")

KEY_IDENTIFIER = "CFBundleIdentifier"
KEY_SHORT_VERSION = "CFBundleShortVersionString"
KEY_BUILD = "CFBundleVersion"
KEY_DISPLAY_NAME = "CFBundleDisplayName"
KEY_NAME = "CFBundleName"

# zipfile raises these when an entry's compressed data is damaged
_ENTRY_READ_ERRORS = (zipfile.BadZipFile, OSError, RuntimeError, zlib.error, EOFError)

# Tried in order when the plist carries no icon keys at all
DEFAULT_ICON_NAMES = ["AppIcon", "Icon.png", "icon.png"]


@dataclass(frozen=True)
class ArchiveMetadata:
    """Identity extracted from an archive.

    Attributes:
        bundle_identifier: CFBundleIdentifier
        version: CFBundleShortVersionString, or CFBundleVersion when absent
        build: CFBundleVersion, if present
        display_name: CFBundleDisplayName, CFBundleName or the identifier
        bundle_path: Path of the .app directory inside the archive
        icon: Normalized PNG bytes of the best icon, if one was found
    """

    bundle_identifier: str
    version: str
    build: Optional[str]
    display_name: str
    bundle_path: str
    icon: Optional[bytes] = None


def _string_value(info: dict, key: str) -> Optional[str]:
    """Read a non-empty string key; other types count as absent."""
    value = info.get(key)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def find_descriptor(names: list[str]) -> Optional[str]:
    """Return the Info.plist path of the application bundle, if any."""
    matches = sorted(n for n in names if DESCRIPTOR_PATTERN.match(n))
    return matches[0] if matches else None


def parse_descriptor(data: bytes) -> dict[str, Any]:
    """Parse an XML or binary property list into a dictionary.

    Raises:
        InvalidArchiveError: If the data is not a dictionary plist.
    """
    try:
        info = plistlib.loads(data)
    except (
        plistlib.InvalidFileException,
        ExpatError,
        ValueError,
        TypeError,
        AttributeError,
    ) as e:
        raise InvalidArchiveError(f"Cannot parse Info.plist: {e}") from e
    if not isinstance(info, dict):
        raise InvalidArchiveError("Info.plist root is not a dictionary")
    return info


def icon_names(info: dict[str, Any]) -> list[str]:
    """Collect candidate icon file names from the bundle descriptor."""
    names: list[str] = []
    found_key = False

    for icons_key in ("CFBundleIcons", "CFBundleIcons~ipad"):
        icons = info.get(icons_key)
        if not isinstance(icons, dict):
            continue
        primary = icons.get("CFBundlePrimaryIcon")
        if isinstance(primary, dict):
            files = primary.get("CFBundleIconFiles")
            if isinstance(files, list):
                found_key = True
                names.extend(f for f in files if isinstance(f, str))
            icon_name = primary.get("CFBundleIconName")
            if isinstance(icon_name, str):
                found_key = True
                names.append(icon_name)

    files = info.get("CFBundleIconFiles")
    if isinstance(files, list):
        found_key = True
        names.extend(f for f in files if isinstance(f, str))

    single = info.get("CFBundleIconFile")
    if isinstance(single, str):
        found_key = True
        names.append(single)

    if not found_key:
        names = list(DEFAULT_ICON_NAMES)

    # Keep first occurrence order
    return list(dict.fromkeys(n for n in names if n))


def select_icon(zf: zipfile.ZipFile, bundle_path: str, names: list[str]) -> Optional[str]:
    """Pick the largest PNG in the bundle matching any candidate name.

    Candidates match by stem so ``AppIcon60x60`` finds ``AppIcon60x60@3x.png``.
    """
    prefix = bundle_path.rstrip("/") + "/"
    pngs = [
        zi
        for zi in zf.infolist()
        if zi.filename.startswith(prefix)
        and "/" not in zi.filename[len(prefix) :]
        and zi.filename.lower().endswith(".png")
    ]

    for name in names:
        stem = name[:-4] if name.lower().endswith(".png") else name
        matches = [
            zi for zi in pngs if posixpath.basename(zi.filename).startswith(stem)
        ]
        if matches:
            return max(matches, key=lambda zi: zi.file_size).filename
    return None


def _read_icon(zf: zipfile.ZipFile, path: str) -> Optional[bytes]:
    try:
        data = zf.read(path)
    except _ENTRY_READ_ERRORS as e:
        logger.warning("Cannot read icon %s: %s", path, e)
        return None
    try:
        return normalize_png(data)
    except IconError as e:
        logger.warning("Keeping icon %s as stored: %s", path, e)
        return data


def inspect_archive(source: BinaryIO) -> ArchiveMetadata:
    """Extract application metadata from an .ipa archive.

    Args:
        source: Readable, seekable binary stream positioned anywhere

    Returns:
        ArchiveMetadata for the application bundle

    Raises:
        InvalidArchiveError: Not a ZIP archive, or Info.plist is unparseable
        MissingDescriptorError: No Payload/*.app/Info.plist present
        MissingRequiredFieldError: Identifier or version missing from Info.plist
    """
    source.seek(0)
    try:
        with zipfile.ZipFile(source, "r") as zf:
            descriptor_path = find_descriptor(zf.namelist())
            if descriptor_path is None:
                raise MissingDescriptorError()
            try:
                info = parse_descriptor(zf.read(descriptor_path))
            except _ENTRY_READ_ERRORS as e:
                raise InvalidArchiveError(f"Cannot read {descriptor_path}: {e}") from e

            identifier = _string_value(info, KEY_IDENTIFIER)
            build = _string_value(info, KEY_BUILD)
            version = _string_value(info, KEY_SHORT_VERSION) or build

            missing = []
            if identifier is None:
                missing.append(KEY_IDENTIFIER)
            if version is None:
                missing.append(KEY_SHORT_VERSION)
            if missing:
                raise MissingRequiredFieldError(missing)

            display_name = (
                _string_value(info, KEY_DISPLAY_NAME)
                or _string_value(info, KEY_NAME)
                or identifier
            )

            bundle_path = posixpath.dirname(descriptor_path)
            icon_path = select_icon(zf, bundle_path, icon_names(info))
            icon = _read_icon(zf, icon_path) if icon_path else None
            if icon is None:
                logger.info("No icon found in %s", bundle_path)
    except (zipfile.BadZipFile, zlib.error, EOFError) as e:
        raise InvalidArchiveError(f"Invalid .ipa file: {e}") from e
    finally:
        source.seek(0)

    return ArchiveMetadata(
        bundle_identifier=identifier,
        version=version,
        build=build,
        display_name=display_name,
        bundle_path=bundle_path,
        icon=icon,
    )
