"""
File level helpers around the codec: path in, bytes or path out.
"""


import logging
import os
from typing import Optional

from .ani import convert_ani_to_gif, extract_first_frame
from .compose import compose, render_svg_to_png_bytes
from .cursor import MAX_CURSOR_SIZE, RenderTransform, SourceImage, SourceKind
from .errors import ExtractionError, FormatError
from .preview import encode_png, extract_embedded_png, extract_preview
from .wincur import encode_cur


__all__ = ['convert_to_cur', 'preview_png_bytes', 'library_preview']

log = logging.getLogger(__name__)


def _extension(path: str) -> str:
    ext = os.path.splitext(path)[1]
    if not ext or ext == '.':
        raise FormatError('File has no extension')
    return ext[1:].lower()


def convert_to_cur(input_path: str, output_path: str, size: int = MAX_CURSOR_SIZE,
                   hotspot_x: int = 0, hotspot_y: int = 0, scale: float = 1.0,
                   offset_x: int = 0, offset_y: int = 0):
    """convert an svg/png/ico/bmp/jpg file into a .cur file

    size is clamped to 256. The output file is only written once the whole
    cursor has been built.
    """
    kind = SourceKind.from_extension(_extension(input_path))
    size = min(size, MAX_CURSOR_SIZE)

    with open(input_path, 'rb') as f:
        source = SourceImage(f.read(), kind)

    image = compose(source, RenderTransform(size, scale, offset_x, offset_y))
    data = encode_cur(image, hotspot_x, hotspot_y)

    with open(output_path, 'wb') as f:
        f.write(data)
    log.info('wrote %s (%d bytes) from %s', output_path, len(data), input_path)


def preview_png_bytes(data: bytes, ext: Optional[str] = None) -> bytes:
    """square PNG preview of a .cur, .ico or .ani payload

    For .ani files the first frame is used; if that fails the whole file is
    scanned for an embedded PNG.
    """
    ext = (ext or '').lower().lstrip('.')

    if ext == 'ani':
        frame = extract_first_frame(data)
        if frame is not None:
            try:
                return encode_png(extract_preview(frame))
            except ExtractionError as exc:
                log.debug('first ani frame has no preview: %s', exc)
        png = extract_embedded_png(data)
        if png is None:
            raise ExtractionError('No preview found in ANI file')
        return encode_png(extract_preview(png))

    return encode_png(extract_preview(data))


def library_preview(path: str):
    """preview bytes and mime type for a file in a cursor library

    Animated cursors are returned as a GIF when every frame can be decoded.
    """
    ext = _extension(path)
    with open(path, 'rb') as f:
        data = f.read()

    if ext == 'svg':
        return render_svg_to_png_bytes(data), 'image/png'
    if ext == 'ani':
        gif = convert_ani_to_gif(data)
        if gif is not None:
            return gif, 'image/gif'
    if ext in ('ani', 'cur', 'ico'):
        return preview_png_bytes(data, ext), 'image/png'
    raise FormatError(f'Unsupported file type: {ext}')
