# SPDX-License-Identifier: MIT
"""Tests for CgBI icon normalization."""

import struct
import zlib

import pytest

from conftest import build_cgbi_png, build_png, sample_pixels
from ipa_server.icon import PNG_SIGNATURE, IconError, is_cgbi, normalize_png


def decode_rgba(png: bytes) -> tuple[int, int, bytes]:
    """Decode an unfiltered standard RGBA PNG produced by normalize_png."""
    pos = len(PNG_SIGNATURE)
    width = height = 0
    idat = b""
    types = []
    while pos < len(png):
        (length,) = struct.unpack(">I", png[pos : pos + 4])
        chunk_type = png[pos + 4 : pos + 8]
        payload = png[pos + 8 : pos + 8 + length]
        (crc,) = struct.unpack(">I", png[pos + 8 + length : pos + 12 + length])
        assert crc == zlib.crc32(chunk_type + payload) & 0xFFFFFFFF
        types.append(chunk_type)
        if chunk_type == b"IHDR":
            width, height = struct.unpack(">II", payload[:8])
        elif chunk_type == b"IDAT":
            idat += payload
        pos += 12 + length

    assert b"CgBI" not in types
    raw = zlib.decompress(idat)
    stride = width * 4
    rows = [raw[y * (stride + 1) : (y + 1) * (stride + 1)] for y in range(height)]
    assert all(row[0] == 0 for row in rows)
    return width, height, b"".join(row[1:] for row in rows)


class TestNormalizePng:
    """Tests for normalize_png."""

    def test_standard_png_unchanged(self):
        png = build_png(2, 2, sample_pixels())
        assert not is_cgbi(png)
        assert normalize_png(png) == png

    def test_cgbi_converted_to_rgba(self):
        pixels = sample_pixels(3, 2)
        cgbi = build_cgbi_png(3, 2, pixels)
        assert is_cgbi(cgbi)

        result = normalize_png(cgbi)

        assert not is_cgbi(result)
        width, height, decoded = decode_rgba(result)
        assert (width, height) == (3, 2)
        assert decoded == pixels

    def test_premultiplied_alpha_restored(self):
        # One pixel, half transparent, premultiplied BGRA (50, 25, 100, 128)
        stored = bytes((50, 25, 100, 128))
        deflater = zlib.compressobj(9, zlib.DEFLATED, -zlib.MAX_WBITS)
        raw = deflater.compress(b"\x00" + stored) + deflater.flush()

        def chunk(t, p):
            return struct.pack(">I", len(p)) + t + p + struct.pack(">I", zlib.crc32(t + p))

        png = (
            PNG_SIGNATURE
            + chunk(b"CgBI", b"\x50\x00\x20\x02")
            + chunk(b"IHDR", struct.pack(">IIBBBBB", 1, 1, 8, 6, 0, 0, 0))
            + chunk(b"IDAT", raw)
            + chunk(b"IEND", b"")
        )

        _, _, decoded = decode_rgba(normalize_png(png))

        r, g, b, a = decoded
        assert a == 128
        assert r == round(100 * 255 / 128)
        assert g == round(25 * 255 / 128)
        assert b == round(50 * 255 / 128)

    def test_sub_and_up_filters(self):
        # Filtered rows must be reconstructed before channels are swapped
        width, height = 2, 2
        pixels = sample_pixels(width, height)
        bgra = bytearray(pixels)
        bgra[0::4], bgra[2::4] = bgra[2::4], bgra[0::4]
        stride = width * 4

        row0 = bgra[:stride]
        sub = bytearray(row0)
        for i in range(4, stride):
            sub[i] = (row0[i] - row0[i - 4]) & 0xFF
        row1 = bgra[stride:]
        up = bytearray((row1[i] - row0[i]) & 0xFF for i in range(stride))

        deflater = zlib.compressobj(9, zlib.DEFLATED, -zlib.MAX_WBITS)
        raw = deflater.compress(b"\x01" + bytes(sub) + b"\x02" + bytes(up)) + deflater.flush()

        def chunk(t, p):
            return struct.pack(">I", len(p)) + t + p + struct.pack(">I", zlib.crc32(t + p))

        png = (
            PNG_SIGNATURE
            + chunk(b"CgBI", b"\x50\x00\x20\x02")
            + chunk(b"IHDR", struct.pack(">IIBBBBB", width, height, 8, 6, 0, 0, 0))
            + chunk(b"IDAT", raw)
            + chunk(b"IEND", b"")
        )

        _, _, decoded = decode_rgba(normalize_png(png))
        assert decoded == pixels

    def test_not_png(self):
        with pytest.raises(IconError, match="Not a PNG"):
            normalize_png(b"GIF89a")

    def test_corrupt_cgbi_data(self):
        cgbi = build_cgbi_png(2, 2, sample_pixels())
        # Damage the IDAT payload but keep lengths intact
        start = cgbi.index(b"IDAT") + 4
        damaged = cgbi[:start] + b"\xff" * 8 + cgbi[start + 8 :]
        with pytest.raises(IconError):
            normalize_png(damaged)


def with_header(png: bytes, width: int, height: int) -> bytes:
    """Replace the IHDR dimensions, keeping the image data as is."""
    start = png.index(b"IHDR")
    header = struct.pack(">IIBBBBB", width, height, 8, 6, 0, 0, 0)
    crc = struct.pack(">I", zlib.crc32(b"IHDR" + header) & 0xFFFFFFFF)
    return png[: start + 4] + header + crc + png[start + 4 + 13 + 4 :]


class TestNormalizeLimits:
    """Tests for images whose data does not fit their header."""

    def test_image_data_beyond_declared_size(self):
        tall = build_cgbi_png(2, 64, sample_pixels(2, 64))
        with pytest.raises(IconError, match="larger than declared"):
            normalize_png(with_header(tall, 2, 2))

    def test_huge_dimensions_rejected(self):
        cgbi = build_cgbi_png(2, 2, sample_pixels())
        with pytest.raises(IconError, match="too large"):
            normalize_png(with_header(cgbi, 50000, 50000))

    def test_short_image_data(self):
        cgbi = build_cgbi_png(2, 2, sample_pixels())
        with pytest.raises(IconError, match="shorter than declared"):
            normalize_png(with_header(cgbi, 2, 8))
