"""Shared builders for cursor test data."""

import io
import struct
import zlib

import numpy as np
import pytest
from PIL import Image


def riff_chunk(tag: bytes, payload: bytes) -> bytes:
    pad = b'\x00' if len(payload) % 2 else b''
    return tag + struct.pack('<I', len(payload)) + payload + pad


def anih_payload(rate: int, n_frames: int = 1, n_steps: int = 1) -> bytes:
    # cbSize, nFrames, nSteps, iWidth, iHeight, iBitCount, nPlanes, iDispRate, bfAttributes
    return struct.pack('<9I', 36, n_frames, n_steps, 32, 32, 32, 1, rate, 1)


def build_ani(frames, rate=None, rates=None, sequence=None, wrap=True) -> bytes:
    body = b''
    if rate is not None:
        body += riff_chunk(b'anih', anih_payload(rate, len(frames), len(sequence or frames)))
    if rates is not None:
        body += riff_chunk(b'rate', struct.pack(f'<{len(rates)}I', *rates))
    if sequence is not None:
        body += riff_chunk(b'seq ', struct.pack(f'<{len(sequence)}I', *sequence))
    icons = b''.join(riff_chunk(b'icon', frame) for frame in frames)
    if wrap:
        body += riff_chunk(b'LIST', b'fram' + icons)
    else:
        body += icons
    return b'RIFF' + struct.pack('<I', len(body) + 4) + b'ACON' + body


def build_dib_cur(pixels: np.ndarray, hot_spot=(0, 0)) -> bytes:
    """legacy .cur with a 32 bit BGRA DIB, pixels is an (H, W, 4) RGBA array"""
    height, width = pixels.shape[:2]
    bgra = pixels[:, :, [2, 1, 0, 3]][::-1]
    xor_rows = bgra.astype(np.ubyte).tobytes()
    mask_stride = ((width + 31) // 32) * 4
    and_mask = bytes(mask_stride * height)
    bih = struct.pack('<IiiHHIIiiII', 40, width, height * 2, 1, 32, 0,
                      len(xor_rows) + len(and_mask), 0, 0, 0, 0)
    image_data = bih + xor_rows + and_mask
    header = struct.pack('<HHH', 0, 2, 1)
    entry = struct.pack('<BBBBHHII', width % 256, height % 256, 0, 0,
                        hot_spot[0], hot_spot[1], len(image_data), 22)
    return header + entry + image_data


def png_chunk(tag: bytes, payload: bytes) -> bytes:
    crc = zlib.crc32(tag + payload)
    return struct.pack('>I', len(payload)) + tag + payload + struct.pack('>I', crc)


def bomb_png(width: int = 60000, height: int = 60000) -> bytes:
    """well formed PNG header declaring far more pixels than Pillow will open"""
    ihdr = struct.pack('>IIBBBBB', width, height, 8, 6, 0, 0, 0)
    return (b'\x89PNG\r\n\x1a\n' + png_chunk(b'IHDR', ihdr)
            + png_chunk(b'IDAT', bytes(100)) + png_chunk(b'IEND', b''))


def noise_pixels(width: int, height: int, seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    pixels = rng.integers(0, 256, (height, width, 4), dtype=np.ubyte)
    pixels[:, :, 3] = 255
    return pixels


def png_bytes(image) -> bytes:
    if isinstance(image, np.ndarray):
        image = Image.fromarray(image)
    buf = io.BytesIO()
    image.save(buf, format='PNG')
    return buf.getvalue()


@pytest.fixture
def solid_png():
    """png bytes of a solid color image"""
    def make(width, height, color=(255, 0, 0, 255)):
        return png_bytes(Image.new('RGBA', (width, height), color))
    return make


@pytest.fixture
def noise_image():
    """RGBA image of random opaque pixels, large enough to not compress away"""
    def make(width, height, seed=0):
        return Image.fromarray(noise_pixels(width, height, seed))
    return make
