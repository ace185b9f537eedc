"""
Encoder and header reader for the Windows .cur cursor format.

Only single image cursors with an embedded PNG payload are written:
    ICONDIR        6 bytes   reserved, type (2 = cursor), image count
    ICONDIRENTRY  16 bytes   width, height, colors, reserved,
                             hotspot x, hotspot y, payload size, payload offset
    PNG payload
Reference: https://learn.microsoft.com/en-us/previous-versions/ms997538(v=msdn.10)
"""


import io
import logging
import struct
from typing import Union

import numpy as np
from PIL import Image

from .cursor import MAX_CURSOR_SIZE, CursorHeader
from .errors import EncodeError, FormatError
from .preview import extract_preview


__all__ = ['encode_cur', 'read_cur_header', 'validate_cursor_dimensions',
           'open_cur', 'save_cur', 'ICONDIR_SIZE', 'ICONDIRENTRY_SIZE']

log = logging.getLogger(__name__)

ICONDIR_SIZE = 6
ICONDIRENTRY_SIZE = 16
CURSOR_TYPE = 2


def validate_cursor_dimensions(width: int, height: int):
    if width > MAX_CURSOR_SIZE or height > MAX_CURSOR_SIZE:
        raise EncodeError(
            f'Image dimensions must be {MAX_CURSOR_SIZE}x{MAX_CURSOR_SIZE} or smaller')


def _as_rgba_image(image) -> Image.Image:
    if isinstance(image, np.ndarray):
        if image.ndim != 3 or image.shape[2] != 4:
            raise FormatError(f'expected an (H, W, 4) RGBA array, got shape {image.shape}')
        validate_cursor_dimensions(image.shape[1], image.shape[0])
        return Image.fromarray(np.ascontiguousarray(image, dtype=np.ubyte))
    if not isinstance(image, Image.Image):
        raise FormatError(f'expected a PIL image or numpy array, got {type(image).__name__}')
    validate_cursor_dimensions(image.width, image.height)
    if image.mode != 'RGBA':
        image = image.convert('RGBA')
    return image


def _encode_png(image: Image.Image) -> bytes:
    buf = io.BytesIO()
    # fixed settings keep the output byte-identical for identical pixels
    image.save(buf, format='PNG', compress_level=9, optimize=False)
    return buf.getvalue()


def encode_cur(image, hotspot_x: int = 0, hotspot_y: int = 0) -> bytes:
    """encode an RGBA image as a single frame .cur file

    image is a PIL image or an (H, W, 4) uint8 array. The hotspot is clamped
    into the image bounds.
    """
    img = _as_rgba_image(image)
    width, height = img.size
    if width == 0 or height == 0:
        raise FormatError('cannot encode an empty image')

    hotspot_x = min(max(int(hotspot_x), 0), width - 1)
    hotspot_y = min(max(int(hotspot_y), 0), height - 1)

    png_bytes = _encode_png(img)
    image_offset = ICONDIR_SIZE + ICONDIRENTRY_SIZE

    # 256 does not fit in a byte, the format stores it as 0
    header = struct.pack('<HHH', 0, CURSOR_TYPE, 1)
    entry = struct.pack('<BBBBHHII',
        width % MAX_CURSOR_SIZE,
        height % MAX_CURSOR_SIZE,
        0,  # color count, 0 for true color
        0,
        hotspot_x,
        hotspot_y,
        len(png_bytes),
        image_offset,
        )
    log.debug('encoded %dx%d cursor, hotspot (%d, %d), %d byte png',
              width, height, hotspot_x, hotspot_y, len(png_bytes))
    return header + entry + png_bytes


def read_cur_header(data: bytes) -> CursorHeader:
    """decode the ICONDIR and the first ICONDIRENTRY of a .cur or .ico file"""
    if len(data) < ICONDIR_SIZE + ICONDIRENTRY_SIZE:
        raise FormatError('CUR file too small')

    reserved, image_type, count = struct.unpack_from('<HHH', data, 0)
    if reserved != 0 or image_type not in (1, 2):
        raise FormatError('Unrecognized file format, not an icon or cursor')
    if count == 0:
        raise FormatError('CUR file has no images')

    w, h, _colors, _reserved, xhot, yhot, size, offset = struct.unpack_from(
        '<BBBBHHII', data, ICONDIR_SIZE)
    return CursorHeader(
        width=w or MAX_CURSOR_SIZE,
        height=h or MAX_CURSOR_SIZE,
        hot_spot=(xhot, yhot),
        payload_size=size,
        payload_offset=offset,
        image_count=count,
        image_type=image_type,
    )


def save_cur(image, file: Union[io.BufferedWriter, str], hot_spot: tuple = (0, 0)):
    """encode and write a .cur file, nothing is written if encoding fails"""
    data = encode_cur(image, *hot_spot)
    if isinstance(file, str):
        with open(file, 'wb') as f:
            f.write(data)
    else:
        file.write(data)


def open_cur(file: Union[io.BufferedReader, str]):
    """load a .cur file, returns (header, square RGBA preview image)"""
    if isinstance(file, str):
        with open(file, 'rb') as f:
            data = f.read()
    else:
        data = file.read()

    return read_cur_header(data), extract_preview(data)
