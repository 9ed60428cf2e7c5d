# SPDX-License-Identifier: MIT
"""Pytest fixtures for server tests."""

import io
import plistlib
import struct
import zipfile
import zlib
from collections.abc import AsyncGenerator, Callable
from typing import Any, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from ipa_server import APIConfig, create_app
from ipa_server.app import init_state
from ipa_server.index import MetadataIndex
from ipa_server.service import DistributionService
from ipa_server.storage import LocalStorage

PUBLIC_URL = "https://ipa.example.com"
PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


def _chunk(chunk_type: bytes, payload: bytes) -> bytes:
    crc = zlib.crc32(chunk_type + payload) & 0xFFFFFFFF
    return struct.pack(">I", len(payload)) + chunk_type + payload + struct.pack(">I", crc)


def _scanlines(width: int, height: int, pixels: bytes) -> bytes:
    stride = width * 4
    return b"".join(b"\x00" + pixels[y * stride : (y + 1) * stride] for y in range(height))


def build_png(width: int, height: int, rgba: bytes) -> bytes:
    """Standard 8-bit RGBA PNG, unfiltered scanlines."""
    header = struct.pack(">IIBBBBB", width, height, 8, 6, 0, 0, 0)
    return (
        PNG_SIGNATURE
        + _chunk(b"IHDR", header)
        + _chunk(b"IDAT", zlib.compress(_scanlines(width, height, rgba)))
        + _chunk(b"IEND", b"")
    )


def build_cgbi_png(width: int, height: int, rgba: bytes) -> bytes:
    """Apple-optimized PNG of the same image: BGRA, raw deflate, CgBI chunk.

    Alpha must be 255 everywhere so premultiplication is the identity.
    """
    bgra = bytearray(rgba)
    bgra[0::4], bgra[2::4] = bgra[2::4], bgra[0::4]
    deflater = zlib.compressobj(9, zlib.DEFLATED, -zlib.MAX_WBITS)
    raw = deflater.compress(_scanlines(width, height, bytes(bgra))) + deflater.flush()
    header = struct.pack(">IIBBBBB", width, height, 8, 6, 0, 0, 0)
    return (
        PNG_SIGNATURE
        + _chunk(b"CgBI", b"\x50\x00\x20\x02")
        + _chunk(b"IHDR", header)
        + _chunk(b"IDAT", raw)
        + _chunk(b"IEND", b"")
    )


def sample_pixels(width: int = 2, height: int = 2) -> bytes:
    """Opaque test image with distinct red and blue channels."""
    out = bytearray()
    for y in range(height):
        for x in range(width):
            out += bytes((10 + x, 100 + y, 200 - x, 255))
    return bytes(out)


def build_ipa(
    info: Optional[dict[str, Any]],
    app_name: str = "Example.app",
    icons: Optional[dict[str, bytes]] = None,
    binary_plist: bool = False,
    extra_files: Optional[dict[str, bytes]] = None,
) -> bytes:
    """Assemble an .ipa archive in memory.

    Args:
        info: Info.plist contents; None leaves the descriptor out
        app_name: Bundle directory name under Payload/
        icons: File name to PNG bytes, placed inside the bundle
        binary_plist: Encode Info.plist in binary format
        extra_files: Archive path to bytes for any other entries
    """
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        bundle = f"Payload/{app_name}"
        zf.writestr(f"{bundle}/Example", b"\xcf\xfa\xed\xfe binary")
        if info is not None:
            fmt = plistlib.FMT_BINARY if binary_plist else plistlib.FMT_XML
            zf.writestr(f"{bundle}/Info.plist", plistlib.dumps(info, fmt=fmt))
        for name, data in (icons or {}).items():
            zf.writestr(f"{bundle}/{name}", data)
        for path, data in (extra_files or {}).items():
            zf.writestr(path, data)
    return buffer.getvalue()


def corrupt_entry(archive: bytes, name: str, length: int = 40) -> bytes:
    """Overwrite the start of an entry's compressed data with 0xFF bytes.

    Entry sizes are left alone, so the archive still opens and only reading
    that entry fails inside the decompressor.
    """
    with zipfile.ZipFile(io.BytesIO(archive)) as zf:
        info = zf.getinfo(name)
    data = bytearray(archive)
    name_len, extra_len = struct.unpack(
        "<HH", data[info.header_offset + 26 : info.header_offset + 30]
    )
    start = info.header_offset + 30 + name_len + extra_len
    end = start + min(length, info.compress_size)
    data[start:end] = b"\xff" * (end - start)
    return bytes(data)


@pytest.fixture
def sample_info() -> dict[str, Any]:
    """Info.plist for com.example.app 1.2.3 named Example."""
    return {
        "CFBundleIdentifier": "com.example.app",
        "CFBundleShortVersionString": "1.2.3",
        "CFBundleVersion": "45",
        "CFBundleDisplayName": "Example",
        "CFBundleName": "ExampleApp",
        "CFBundleIcons": {
            "CFBundlePrimaryIcon": {"CFBundleIconFiles": ["AppIcon60x60"]},
        },
    }


@pytest.fixture
def icon_png() -> bytes:
    return build_png(2, 2, sample_pixels())


@pytest.fixture
def ipa_factory(sample_info, icon_png) -> Callable[..., bytes]:
    """Build archives; defaults to the sample app with a CgBI icon."""

    def factory(info: Any = ..., icons: Any = ..., **kwargs: Any) -> bytes:
        if info is ...:
            info = sample_info
        if icons is ...:
            icons = {"AppIcon60x60@2x.png": build_cgbi_png(2, 2, sample_pixels())}
        return build_ipa(info, icons=icons, **kwargs)

    return factory


@pytest.fixture
def sample_ipa(ipa_factory) -> bytes:
    return ipa_factory()


@pytest.fixture
def storage_dir(tmp_path):
    return tmp_path / "upload"


@pytest.fixture
def index_path(tmp_path):
    return tmp_path / "appList.json"


@pytest.fixture
def storage(storage_dir) -> LocalStorage:
    storage = LocalStorage(storage_dir, public_url=PUBLIC_URL)
    storage.check()
    return storage


@pytest.fixture
def index(index_path) -> MetadataIndex:
    index = MetadataIndex(index_path)
    index.load()
    return index


@pytest.fixture
def service(storage, index) -> DistributionService:
    return DistributionService(storage, index)


@pytest.fixture
def test_config(storage_dir, index_path) -> APIConfig:
    """Configuration pointing storage and index into a temp directory."""
    config = APIConfig()
    config.public_url = PUBLIC_URL
    config.storage.backend = "local"
    config.storage.local_path = str(storage_dir)
    config.index.path = str(index_path)
    return config


@pytest.fixture
def app(test_config: APIConfig):
    """Create test FastAPI application with storage and index initialized."""
    app = create_app(test_config)
    init_state(app)
    return app


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
