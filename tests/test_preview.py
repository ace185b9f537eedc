"""Tests for frame preview extraction."""

import struct

import numpy as np
import pytest
from PIL import Image

from conftest import bomb_png, build_dib_cur, noise_pixels, png_bytes
from pywincur.errors import ExtractionError
from pywincur.preview import (
    IEND_PATTERN,
    PNG_SIGNATURE,
    decode_dib_frame,
    ensure_square,
    extract_embedded_png,
    extract_preview,
)
from pywincur.wincur import encode_cur


def _gradient_pixels(width: int, height: int) -> np.ndarray:
    pixels = np.zeros((height, width, 4), np.ubyte)
    pixels[:, :, 0] = np.arange(width, dtype=np.ubyte)[None, :] * 10
    pixels[:, :, 1] = np.arange(height, dtype=np.ubyte)[:, None] * 7
    pixels[:, :, 2] = 200
    pixels[:, :, 3] = 255
    return pixels


class TestEmbeddedPng:
    """Signature / terminator scan."""

    def test_finds_png_inside_blob(self) -> None:
        png = png_bytes(noise_pixels(8, 8))
        blob = b'junk' * 10 + png + b'trailer'
        assert extract_embedded_png(blob) == png

    def test_first_match_wins(self) -> None:
        first = png_bytes(noise_pixels(8, 8, seed=1))
        second = png_bytes(noise_pixels(20, 20, seed=2))
        assert extract_embedded_png(first + second) == first

    def test_short_span_is_rejected(self) -> None:
        blob = PNG_SIGNATURE + bytes(20) + IEND_PATTERN
        assert extract_embedded_png(blob) is None

    def test_missing_terminator(self) -> None:
        png = png_bytes(noise_pixels(8, 8))
        assert extract_embedded_png(png[:-8]) is None

    def test_no_signature(self) -> None:
        assert extract_embedded_png(bytes(500)) is None
        assert extract_embedded_png(b'') is None


class TestDib:
    """Legacy 32 bit DIB frames."""

    def test_rows_and_channels_are_corrected(self) -> None:
        pixels = _gradient_pixels(16, 16)
        blob = build_dib_cur(pixels)

        image = extract_preview(blob)

        assert image.size == (16, 16)
        assert image.mode == 'RGBA'
        assert np.array_equal(np.asarray(image), pixels)

    def test_top_row_is_last_stored_row(self) -> None:
        pixels = _gradient_pixels(16, 16)
        blob = build_dib_cur(pixels)
        offset, = struct.unpack_from('<I', blob, 18)
        stride = 16 * 4
        last_row_start = offset + 40 + 15 * stride
        b, g, r, a = blob[last_row_start:last_row_start + 4]

        image = decode_dib_frame(blob)
        assert image.getpixel((0, 0)) == (r, g, b, a)

    def test_stored_height_is_halved(self) -> None:
        blob = build_dib_cur(_gradient_pixels(16, 16))
        stored_height, = struct.unpack_from('<I', blob, 22 + 8)
        assert stored_height == 32
        assert decode_dib_frame(blob).size == (16, 16)

    def test_non_square_frame(self) -> None:
        pixels = _gradient_pixels(16, 10)
        image = extract_preview(build_dib_cur(pixels))

        out = np.asarray(image)
        assert image.size == (16, 16)
        assert not out[:3].any()
        assert not out[13:].any()
        assert np.array_equal(out[3:13], pixels)

    def test_too_small(self) -> None:
        with pytest.raises(ExtractionError):
            decode_dib_frame(bytes(21))

    def test_zero_count(self) -> None:
        blob = bytearray(build_dib_cur(_gradient_pixels(4, 4)))
        blob[4:6] = b'\x00\x00'
        with pytest.raises(ExtractionError):
            decode_dib_frame(bytes(blob))

    def test_offset_out_of_range(self) -> None:
        blob = bytearray(build_dib_cur(_gradient_pixels(4, 4)))
        blob[18:22] = struct.pack('<I', 10000)
        with pytest.raises(ExtractionError, match="out of range"):
            decode_dib_frame(bytes(blob))

    def test_size_out_of_range(self) -> None:
        blob = bytearray(build_dib_cur(_gradient_pixels(4, 4)))
        blob[14:18] = struct.pack('<I', 0xFFFFFFFF)
        with pytest.raises(ExtractionError, match="out of range"):
            decode_dib_frame(bytes(blob))

    def test_wrong_header_size(self) -> None:
        blob = bytearray(build_dib_cur(_gradient_pixels(4, 4)))
        blob[22:26] = struct.pack('<I', 12)
        with pytest.raises(ExtractionError, match="header size"):
            decode_dib_frame(bytes(blob))

    def test_wrong_bit_depth(self) -> None:
        blob = bytearray(build_dib_cur(_gradient_pixels(4, 4)))
        blob[22 + 14:22 + 16] = struct.pack('<H', 24)
        with pytest.raises(ExtractionError, match="bit depth"):
            decode_dib_frame(bytes(blob))

    def test_huge_declared_dimensions(self) -> None:
        blob = bytearray(build_dib_cur(_gradient_pixels(4, 4)))
        blob[22 + 4:22 + 12] = struct.pack('<II', 0x7FFFFFFF, 0xFFFFFFFE)
        with pytest.raises(ExtractionError, match="truncated"):
            decode_dib_frame(bytes(blob))

    def test_truncated_pixels(self) -> None:
        blob = build_dib_cur(_gradient_pixels(8, 8))
        # keep the directory consistent, cut the pixel rows
        cut = 22 + 40 + 8 * 8 * 4 - 4
        blob = bytearray(blob[:cut])
        blob[14:18] = struct.pack('<I', cut - 22)
        with pytest.raises(ExtractionError, match="truncated"):
            decode_dib_frame(bytes(blob))


class TestExtractPreview:
    """Strategy order and square output."""

    def test_embedded_png_is_decoded(self, noise_image) -> None:
        image = noise_image(24, 24)
        preview = extract_preview(encode_cur(image))
        assert np.array_equal(np.asarray(preview), np.asarray(image))

    def test_non_square_png_is_centered(self, noise_image) -> None:
        image = noise_image(16, 10)
        preview = extract_preview(encode_cur(image))

        out = np.asarray(preview)
        assert preview.size == (16, 16)
        assert not out[:3].any()
        assert not out[13:].any()
        assert np.array_equal(out[3:13], np.asarray(image))

    def test_tall_png_is_centered(self, noise_image) -> None:
        preview = extract_preview(encode_cur(noise_image(5, 20)))
        out = np.asarray(preview)
        assert preview.size == (20, 20)
        assert not out[:, :7].any()
        assert not out[:, 12:].any()

    def test_png_wins_over_dib(self) -> None:
        blob = build_dib_cur(_gradient_pixels(4, 4)) + png_bytes(noise_pixels(8, 8))
        assert extract_preview(blob).size == (8, 8)

    def test_broken_png_falls_back_to_dib(self) -> None:
        pixels = _gradient_pixels(4, 4)
        broken = PNG_SIGNATURE + b'\x00' * 120 + IEND_PATTERN
        image = extract_preview(build_dib_cur(pixels) + broken)
        assert np.array_equal(np.asarray(image), pixels)

    def test_oversized_png_is_refused(self) -> None:
        frame = encode_cur(Image.new('RGBA', (1, 1)))[:22] + bomb_png()
        with pytest.raises(ExtractionError, match="Failed to decode embedded PNG"):
            extract_preview(frame)

    @pytest.mark.parametrize("data", [b'', bytes(10), bytes(22), b'\xff' * 300])
    def test_nothing_matches(self, data) -> None:
        with pytest.raises(ExtractionError):
            extract_preview(data)

    def test_always_square(self) -> None:
        rng = np.random.default_rng(7)
        for _ in range(20):
            width, height = (int(v) for v in rng.integers(1, 40, 2))
            pixels = noise_pixels(width, height, seed=width * height)
            for blob in (build_dib_cur(pixels), encode_cur(Image.fromarray(pixels))):
                try:
                    image = extract_preview(blob)
                except ExtractionError:
                    continue
                assert image.width == image.height == max(width, height)


class TestEnsureSquare:
    """Square padding."""

    def test_square_is_returned_as_is(self) -> None:
        image = Image.new('RGBA', (9, 9), (1, 2, 3, 4))
        assert ensure_square(image) is image

    def test_wide_image(self) -> None:
        image = Image.new('RGBA', (10, 4), (255, 0, 0, 255))
        square = ensure_square(image)
        assert square.size == (10, 10)
        assert square.getbbox() == (0, 3, 10, 7)
