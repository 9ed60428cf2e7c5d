# SPDX-License-Identifier: MIT
"""Conversion of Apple-optimized ("CgBI") PNG icons to standard PNG.

Xcode rewrites PNGs inside application bundles: a ``CgBI`` chunk is placed
before ``IHDR``, image data is raw deflate without the zlib wrapper, pixels
are stored BGRA and alpha is premultiplied. Browsers cannot display these,
so icons are normalized before they are stored.
"""

from __future__ import annotations

import struct
import zlib

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"

# 8-bit RGBA is the only layout Xcode emits for CgBI icons
_BYTES_PER_PIXEL = 4
_COLOR_TYPE_RGBA = 6
# App Store icons top out at 1024x1024
_MAX_PIXELS = 4096 * 4096


class IconError(Exception):
    """Raised when PNG data cannot be parsed or converted."""

    pass


def _read_chunks(data: bytes) -> list[tuple[bytes, bytes]]:
    """Split PNG data into (type, payload) pairs."""
    if not data.startswith(PNG_SIGNATURE):
        raise IconError("Not a PNG file")

    chunks: list[tuple[bytes, bytes]] = []
    pos = len(PNG_SIGNATURE)
    while pos < len(data):
        if pos + 8 > len(data):
            raise IconError("Truncated chunk header")
        (length,) = struct.unpack(">I", data[pos : pos + 4])
        chunk_type = data[pos + 4 : pos + 8]
        payload = data[pos + 8 : pos + 8 + length]
        if len(payload) != length:
            raise IconError(f"Truncated {chunk_type!r} chunk")
        chunks.append((chunk_type, payload))
        pos += 12 + length
        if chunk_type == b"IEND":
            break
    return chunks


def _write_chunk(chunk_type: bytes, payload: bytes) -> bytes:
    crc = zlib.crc32(chunk_type + payload) & 0xFFFFFFFF
    return struct.pack(">I", len(payload)) + chunk_type + payload + struct.pack(">I", crc)


def _paeth(a: int, b: int, c: int) -> int:
    p = a + b - c
    pa, pb, pc = abs(p - a), abs(p - b), abs(p - c)
    if pa <= pb and pa <= pc:
        return a
    if pb <= pc:
        return b
    return c


def _unfilter(raw: bytes, width: int, height: int) -> bytearray:
    """Undo per-scanline PNG filtering."""
    bpp = _BYTES_PER_PIXEL
    stride = width * bpp
    if len(raw) < height * (stride + 1):
        raise IconError("Image data shorter than declared dimensions")

    pixels = bytearray(height * stride)
    prev = bytearray(stride)
    pos = 0
    for y in range(height):
        filter_type = raw[pos]
        line = bytearray(raw[pos + 1 : pos + 1 + stride])
        pos += stride + 1

        if filter_type == 1:  # Sub
            for i in range(bpp, stride):
                line[i] = (line[i] + line[i - bpp]) & 0xFF
        elif filter_type == 2:  # Up
            for i in range(stride):
                line[i] = (line[i] + prev[i]) & 0xFF
        elif filter_type == 3:  # Average
            for i in range(stride):
                left = line[i - bpp] if i >= bpp else 0
                line[i] = (line[i] + ((left + prev[i]) >> 1)) & 0xFF
        elif filter_type == 4:  # Paeth
            for i in range(stride):
                left = line[i - bpp] if i >= bpp else 0
                upper_left = prev[i - bpp] if i >= bpp else 0
                line[i] = (line[i] + _paeth(left, prev[i], upper_left)) & 0xFF
        elif filter_type != 0:
            raise IconError(f"Unknown filter type {filter_type} on row {y}")

        pixels[y * stride : (y + 1) * stride] = line
        prev = line
    return pixels


def _bgra_to_rgba(pixels: bytearray) -> None:
    """Swap channels and undo alpha premultiplication in place."""
    pixels[0::4], pixels[2::4] = pixels[2::4], pixels[0::4]
    for i in range(3, len(pixels), 4):
        alpha = pixels[i]
        if alpha == 0 or alpha == 255:
            continue
        for c in range(i - 3, i):
            pixels[c] = min(255, (pixels[c] * 255 + alpha // 2) // alpha)


def is_cgbi(data: bytes) -> bool:
    """Check whether PNG data carries the Apple CgBI chunk."""
    return data.startswith(PNG_SIGNATURE) and data[12:16] == b"CgBI"


def normalize_png(data: bytes) -> bytes:
    """Return a standard PNG for the given icon bytes.

    Standard PNGs are returned unchanged.

    Args:
        data: PNG file contents

    Returns:
        PNG bytes any decoder can read

    Raises:
        IconError: If the data is not a PNG or uses an unsupported CgBI layout
    """
    if not data.startswith(PNG_SIGNATURE):
        raise IconError("Not a PNG file")
    if not is_cgbi(data):
        return data

    chunks = _read_chunks(data)
    header = next((payload for chunk_type, payload in chunks if chunk_type == b"IHDR"), None)
    if header is None or len(header) != 13:
        raise IconError("Missing or malformed IHDR chunk")
    width, height, bit_depth, color_type, _, _, interlace = struct.unpack(">IIBBBBB", header)
    if bit_depth != 8 or color_type != _COLOR_TYPE_RGBA or interlace != 0:
        raise IconError(
            f"Unsupported CgBI layout (depth={bit_depth}, color={color_type}, interlace={interlace})"
        )

    if width * height > _MAX_PIXELS:
        raise IconError(f"Icon too large ({width}x{height})")

    compressed = b"".join(payload for chunk_type, payload in chunks if chunk_type == b"IDAT")
    expected = height * (width * _BYTES_PER_PIXEL + 1)
    try:
        inflater = zlib.decompressobj(-zlib.MAX_WBITS)
        # One byte past the declared size is enough to detect oversized data
        raw = inflater.decompress(compressed, expected + 1)
    except zlib.error as e:
        raise IconError(f"Corrupt image data: {e}") from e
    if len(raw) > expected:
        raise IconError("Image data larger than declared dimensions")

    pixels = _unfilter(raw, width, height)
    _bgra_to_rgba(pixels)

    stride = width * _BYTES_PER_PIXEL
    scanlines = b"".join(
        b"\x00" + bytes(pixels[y * stride : (y + 1) * stride]) for y in range(height)
    )

    out = [PNG_SIGNATURE]
    idat_written = False
    for chunk_type, payload in chunks:
        if chunk_type == b"CgBI":
            continue
        if chunk_type == b"IDAT":
            if not idat_written:
                out.append(_write_chunk(b"IDAT", zlib.compress(scanlines)))
                idat_written = True
            continue
        out.append(_write_chunk(chunk_type, payload))
    return b"".join(out)
