"""
Preview extraction for cursor frames.

A frame is either a .cur/.ico blob whose image is an embedded PNG, or a
legacy one holding a 32 bit BITMAPINFOHEADER DIB (bottom-up BGRA rows
followed by a 1 bit AND mask, which is ignored here). Previews are always
returned square.
"""


import io
import logging
import struct

import numpy as np
from PIL import Image, UnidentifiedImageError

from .errors import ExtractionError


__all__ = ['extract_preview', 'extract_embedded_png', 'decode_dib_frame',
           'ensure_square', 'encode_png', 'PNG_SIGNATURE', 'IEND_PATTERN']

log = logging.getLogger(__name__)

PNG_SIGNATURE = b'\x89PNG\r\n\x1a\n'
IEND_PATTERN = b'IEND\xaeB`\x82'  # chunk type plus its fixed CRC
MIN_EMBEDDED_PNG_SIZE = 100
BITMAPINFOHEADER_SIZE = 40


def extract_embedded_png(data: bytes):
    """return the first complete PNG found in data, or None"""
    start = data.find(PNG_SIGNATURE)
    if start < 0:
        return None
    end = data.find(IEND_PATTERN, start)
    if end < 0:
        return None
    end += len(IEND_PATTERN)
    if end - start <= MIN_EMBEDDED_PNG_SIZE:
        return None
    return bytes(data[start:end])


def _decode_png(png_bytes: bytes) -> Image.Image:
    try:
        with Image.open(io.BytesIO(png_bytes)) as im:
            return im.convert('RGBA')
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError,
            SyntaxError) as exc:
        raise ExtractionError(f'Failed to decode embedded PNG: {exc}') from exc


def decode_dib_frame(data: bytes) -> Image.Image:
    """rebuild an RGBA image from a .cur/.ico blob holding a 32 bit DIB"""
    if len(data) < 22:
        raise ExtractionError('frame too small for a cursor directory')

    count, = struct.unpack_from('<H', data, 4)
    if count == 0:
        raise ExtractionError('cursor directory has no images')

    size, offset = struct.unpack_from('<II', data, 14)
    if offset >= len(data) or offset + size > len(data):
        raise ExtractionError(
            f'image data out of range: offset={offset}, size={size}, len={len(data)}')

    image_data = memoryview(data)[offset:offset + size]
    if len(image_data) < BITMAPINFOHEADER_SIZE:
        raise ExtractionError('image data too small for a BITMAPINFOHEADER')

    header_size, width, double_height, _planes, bpp = struct.unpack_from(
        '<IIIHH', image_data, 0)
    if header_size != BITMAPINFOHEADER_SIZE:
        raise ExtractionError(f'unsupported bitmap header size {header_size}')

    # stored height covers the color rows plus the AND mask rows
    height = double_height // 2
    if bpp != 32:
        raise ExtractionError(f'unsupported bit depth {bpp}, only 32 bit frames are supported')
    if width == 0 or height == 0:
        raise ExtractionError(f'empty bitmap {width}x{height}')

    row_stride = ((width * 32 + 31) // 32) * 4
    needed = BITMAPINFOHEADER_SIZE + height * row_stride
    if needed > len(image_data):
        raise ExtractionError(
            f'pixel data truncated: need {needed} bytes, got {len(image_data)}')

    rows = np.frombuffer(image_data, np.ubyte, count=height * row_stride,
                         offset=BITMAPINFOHEADER_SIZE).reshape((height, row_stride))
    pixel_array = rows[:, :width * 4].reshape((height, width, 4))
    # rows are stored bottom-up, pixels as BGRA
    pixel_array = pixel_array[::-1]
    pixel_array = np.stack(
        (pixel_array[:, :, 2],
         pixel_array[:, :, 1],
         pixel_array[:, :, 0],
         pixel_array[:, :, 3]),
        axis=2)
    log.debug('decoded %dx%d DIB frame', width, height)
    return Image.fromarray(np.ascontiguousarray(pixel_array))


def ensure_square(image: Image.Image) -> Image.Image:
    """center image on a transparent square canvas of its larger side"""
    width, height = image.size
    if width == height:
        return image
    size = max(width, height)
    square = Image.new('RGBA', (size, size), (0, 0, 0, 0))
    square.paste(image.convert('RGBA'), ((size - width) // 2, (size - height) // 2))
    return square


def encode_png(image: Image.Image) -> bytes:
    buf = io.BytesIO()
    image.save(buf, format='PNG')
    return buf.getvalue()


def extract_preview(data: bytes) -> Image.Image:
    """decode a cursor frame into a square RGBA image

    An embedded PNG is preferred; the legacy DIB layout is only tried when no
    usable PNG is found.
    """
    png_error = None
    png_bytes = extract_embedded_png(data)
    if png_bytes is not None:
        try:
            image = _decode_png(png_bytes)
            log.debug('preview from embedded png, %dx%d', *image.size)
            return ensure_square(image)
        except ExtractionError as exc:
            png_error = exc

    try:
        image = decode_dib_frame(data)
    except ExtractionError as exc:
        if png_error is not None:
            raise ExtractionError(f'{png_error}; {exc}') from exc
        raise
    return ensure_square(image)
