"""
Rendering of source images onto the square cursor canvas.

The placement follows CSS `object-fit: contain` followed by
`transform: scale(s) translate(x, y)` around the canvas center, so a cursor
looks the same as its preview in an editor using those rules.
"""


import io
import logging
import math
import re
import xml.etree.ElementTree as ET

import numpy as np
from PIL import Image, UnidentifiedImageError

from .cursor import MAX_CURSOR_SIZE, RenderTransform, SourceImage, SourceKind
from .errors import DecodeError, FormatError


__all__ = ['compose', 'load_raster', 'load_svg', 'svg_size', 'render_svg_to_png_bytes']

log = logging.getLogger(__name__)

_UTF8_BOM = b'\xef\xbb\xbf'
# content box limit before clipping to the canvas, 64 MB of RGBA
MAX_RENDER_SIZE = 16 * MAX_CURSOR_SIZE
_LENGTH_RE = re.compile(r'^\s*([-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?)\s*([a-z%]*)\s*$')
# user units per unit, at 96 dpi like browsers and cairosvg
_UNITS = {
    '': 1.0,
    'px': 1.0,
    'pt': 96 / 72,
    'pc': 16.0,
    'in': 96.0,
    'cm': 96 / 2.54,
    'mm': 96 / 25.4,
}


def load_raster(data: bytes) -> Image.Image:
    """decode png/ico/bmp/jpg/... bytes to an RGBA image"""
    try:
        with Image.open(io.BytesIO(data)) as im:
            return im.convert('RGBA')
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError,
            SyntaxError) as exc:
        raise DecodeError(f'Failed to load image: {exc}') from exc


def _svg_candidates(data: bytes):
    yield data
    if data.startswith(_UTF8_BOM):
        yield data[len(_UTF8_BOM):]
    pos = data.find(b'<svg')
    if pos > 0:
        yield data[pos:]


def load_svg(data: bytes):
    """parse svg bytes, returns (usable svg bytes, root element)

    Files that fail to parse are retried without a BOM and then from the
    first `<svg` tag, which recovers most files with junk before the root.
    """
    if not data:
        raise DecodeError('SVG file is empty')

    first_error = None
    for candidate in _svg_candidates(data):
        try:
            root = ET.fromstring(candidate)
        except ET.ParseError as exc:
            if first_error is None:
                first_error = exc
            continue
        if root.tag.rsplit('}', 1)[-1] != 'svg':
            continue
        return candidate, root

    text = data.decode('utf-8', errors='replace')
    preview = text[:200]
    raise DecodeError(
        f'Failed to parse SVG: {first_error or "no <svg> root element"}. '
        f'File size: {len(data)} bytes. Preview: {preview}')


def _parse_length(value):
    if value is None:
        return None
    match = _LENGTH_RE.match(value)
    if not match or match.group(2) not in _UNITS:
        return None
    return float(match.group(1)) * _UNITS[match.group(2)]


def svg_size(root) -> tuple:
    """declared (width, height) of an svg root, zero sides are reported as 1"""
    width = _parse_length(root.get('width'))
    height = _parse_length(root.get('height'))

    view_box = root.get('viewBox')
    if view_box and (width is None or height is None):
        parts = re.split(r'[\s,]+', view_box.strip())
        if len(parts) == 4:
            try:
                vb_width, vb_height = float(parts[2]), float(parts[3])
            except ValueError:
                pass
            else:
                if width is None and height is None:
                    width, height = vb_width, vb_height
                elif width is None:
                    width = height * vb_width / vb_height if vb_height else vb_width
                else:
                    height = width * vb_height / vb_width if vb_width else vb_height

    # same fallback as browsers for an svg without any size
    if width is None:
        width = 300.0
    if height is None:
        height = 150.0

    # zero sized svgs would divide by zero below
    if width <= 0:
        width = 1.0
    if height <= 0:
        height = 1.0
    return width, height


def _rasterize_svg(svg_bytes: bytes, width: int, height: int) -> Image.Image:
    import cairosvg

    try:
        png_bytes = cairosvg.svg2png(
            bytestring=svg_bytes, output_width=width, output_height=height)
    except Exception as exc:
        raise DecodeError(f'Failed to render SVG: {exc}') from exc
    image = load_raster(png_bytes)
    if image.size != (width, height):
        # cairosvg can be off by one when it rounds the viewport
        image = image.resize((width, height), Image.Resampling.LANCZOS)
    return image


def _composite(canvas: np.ndarray, pixels: np.ndarray, x: int, y: int):
    """copy pixels onto canvas at (x, y), dropping anything outside"""
    size_y, size_x = canvas.shape[:2]
    h, w = pixels.shape[:2]

    x0, y0 = max(x, 0), max(y, 0)
    x1, y1 = min(x + w, size_x), min(y + h, size_y)
    if x0 >= x1 or y0 >= y1:
        return
    canvas[y0:y1, x0:x1] = pixels[y0 - y:y1 - y, x0 - x:x1 - x]


def compose(source: SourceImage, transform: RenderTransform = RenderTransform()) -> Image.Image:
    """render source on a transparent target_size square, returns an RGBA image

    The content box is centred, then moved by the offsets times user_scale.
    The resulting position is floored once per axis, so a fractional
    position such as 7.5 lands on pixel 7 and -0.5 lands on -1.
    Content boxes larger than MAX_RENDER_SIZE on a side are rejected
    rather than allocated.
    """
    transform.validate()
    size = int(transform.target_size)
    user_scale = float(transform.user_scale)

    if source.kind is SourceKind.VECTOR:
        svg_bytes, root = load_svg(source.data)
        src_w, src_h = svg_size(root)
    elif source.kind is SourceKind.RASTER:
        image = load_raster(source.data)
        src_w, src_h = image.size
        if src_w == 0 or src_h == 0:
            raise DecodeError('Failed to load image: image is empty')
    else:
        raise FormatError(f'Unsupported source kind: {source.kind!r}')

    fit_scale = min(size / src_w, size / src_h)
    scale = fit_scale * user_scale
    box_w, box_h = src_w * scale, src_h * scale
    if not (math.isfinite(box_w) and math.isfinite(box_h)) or max(box_w, box_h) > MAX_RENDER_SIZE:
        raise FormatError(
            f'scale too large: rendered image would exceed {MAX_RENDER_SIZE}x{MAX_RENDER_SIZE}')
    resized_w = round(box_w)
    resized_h = round(box_h)
    if resized_w == 0 or resized_h == 0:
        raise FormatError('scale too small: rendered image would be empty')

    if source.kind is SourceKind.VECTOR:
        # render at the final size, resizing a raster would blur it twice
        resized = _rasterize_svg(svg_bytes, resized_w, resized_h)
    elif (resized_w, resized_h) == image.size:
        resized = image
    else:
        resized = image.resize((resized_w, resized_h), Image.Resampling.LANCZOS)

    # offsets are pre-scale pixels, like a CSS translate after a scale
    try:
        final_x = (size - resized_w) / 2 + int(transform.offset_x) * user_scale
        final_y = (size - resized_h) / 2 + int(transform.offset_y) * user_scale
    except OverflowError as exc:
        raise FormatError(f'offset out of range: {exc}') from exc

    canvas = np.zeros((size, size, 4), np.ubyte)
    _composite(canvas, np.asarray(resized, dtype=np.ubyte),
               math.floor(final_x), math.floor(final_y))
    log.debug('composed %gx%g source at %dx%d, position (%g, %g) on %d canvas',
              src_w, src_h, resized_w, resized_h, final_x, final_y, size)
    return Image.fromarray(canvas)


def render_svg_to_png_bytes(data: bytes, size: int = MAX_CURSOR_SIZE) -> bytes:
    """render svg bytes as a size x size PNG with the default placement"""
    image = compose(SourceImage(data, SourceKind.VECTOR), RenderTransform(target_size=size))
    buf = io.BytesIO()
    image.save(buf, format='PNG')
    return buf.getvalue()
