"""
Decoder for the Windows animated cursor (.ani) format.

An .ani file is a RIFF container with form type 'ACON':
    'anih'          animation header, display rate in jiffies at byte 28
    'rate'          optional per step rates, u32 each
    'seq '          optional playback order, u32 frame indices
    'LIST' 'fram'   list of 'icon' chunks, each one a complete .cur/.ico file
Chunks are padded to an even size.
Reference: https://www.gdgsoft.com/anituner/help/aniformat.htm
"""


import io
import logging
import struct
from concurrent.futures import ThreadPoolExecutor

from PIL import Image

from .cursor import DEFAULT_RATE, AnimatedCursor
from .errors import ContainerFormatError, ExtractionError
from .preview import extract_preview


__all__ = ['parse_ani', 'extract_first_frame', 'frame_previews', 'convert_ani_to_gif']

log = logging.getLogger(__name__)

RIFF_MAGIC = b'RIFF'
ACON_MAGIC = b'ACON'
ANIH_RATE_OFFSET = 28


def _read_u32_list(payload: bytes) -> list:
    count = len(payload) // 4
    return list(struct.unpack_from(f'<{count}I', payload, 0))


def _iter_chunks(data: bytes, pos: int, end: int):
    """yield (tag, payload_start, declared_size) until fewer than 8 bytes remain"""
    while pos + 8 <= end:
        tag = bytes(data[pos:pos + 4])
        size, = struct.unpack_from('<I', data, pos + 4)
        yield tag, pos + 8, size
        pos += 8 + size
        if size % 2:
            pos += 1


def parse_ani(data: bytes) -> AnimatedCursor:
    """walk the RIFF chunks of an .ani file and collect its frames"""
    if len(data) < 20:
        raise ContainerFormatError('file too small')
    if data[0:4] != RIFF_MAGIC:
        raise ContainerFormatError('missing RIFF header')
    if data[8:12] != ACON_MAGIC:
        raise ContainerFormatError('missing ACON header')

    ani = AnimatedCursor()
    total = len(data)

    for tag, start, size in _iter_chunks(data, 12, total):
        # chunks claiming more than what is left are clamped
        payload = data[start:min(start + size, total)]

        if tag == b'anih':
            if len(payload) >= ANIH_RATE_OFFSET + 4:
                rate, = struct.unpack_from('<I', payload, ANIH_RATE_OFFSET)
                ani.default_rate = rate or DEFAULT_RATE
        elif tag == b'rate':
            ani.rates = _read_u32_list(payload)
        elif tag == b'seq ':
            ani.sequence = _read_u32_list(payload)
        elif tag == b'LIST':
            if payload[:4] != b'fram':
                log.debug('skipping LIST of type %r', payload[:4])
                continue
            list_end = min(start + size, total)
            for sub_tag, sub_start, sub_size in _iter_chunks(data, start + 4, list_end):
                if sub_tag != b'icon':
                    continue
                frame = data[sub_start:min(sub_start + sub_size, total)]
                if frame:
                    ani.frames.append(bytes(frame))
        elif tag == b'icon':
            if payload:
                ani.frames.append(bytes(payload))
        else:
            log.debug('skipping unknown chunk %r, %d bytes', tag, size)

    if not ani.frames:
        raise ContainerFormatError('ANI file has no frames', kind='no_frames')

    log.debug('parsed ani: %d frames, default rate %d, %d rates, %d steps',
              len(ani.frames), ani.default_rate, len(ani.rates), len(ani.sequence))
    return ani


def extract_first_frame(data: bytes):
    """first icon chunk of an .ani file, or None if the file can't be parsed"""
    try:
        return parse_ani(data).frames[0]
    except ContainerFormatError:
        return None


def _try_preview(frame: bytes):
    try:
        return extract_preview(frame)
    except ExtractionError as exc:
        log.debug('frame preview failed: %s', exc)
        return None


def frame_previews(ani: AnimatedCursor, max_workers: int = None) -> list:
    """render every playback step, returns [(image, delay_ms), ...]

    Frames are decoded on a thread pool; the result follows playback order.
    Steps whose frame can't be decoded or whose index is out of range are
    dropped.
    """
    order = ani.playback_order()
    delays = ani.delays_ms()
    blobs = [ani.frames[i] if i < len(ani.frames) else None for i in order]

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        images = list(pool.map(
            lambda blob: _try_preview(blob) if blob is not None else None, blobs))

    results = [(image, delay) for image, delay in zip(images, delays) if image is not None]
    if not results:
        raise ExtractionError('Failed to extract any frames from ANI file')
    return results


def convert_ani_to_gif(data: bytes):
    """convert an .ani file into a looping GIF, None if it can't be decoded"""
    try:
        ani = parse_ani(data)
    except ContainerFormatError as exc:
        log.debug('gif conversion failed: %s', exc)
        return None

    steps = []
    for step, frame_index in enumerate(ani.playback_order()):
        if frame_index >= len(ani.frames):
            continue
        image = _try_preview(ani.frames[frame_index])
        if image is None:
            return None
        # gif delays are in centiseconds, 2 is the smallest most viewers honor
        centiseconds = max(2, round(ani.rate_for_step(step) * 100 / 60))
        steps.append((image, centiseconds * 10))
    if not steps:
        return None

    max_width = max(image.width for image, _ in steps)
    max_height = max(image.height for image, _ in steps)
    frames = []
    for image, _ in steps:
        canvas = Image.new('RGBA', (max_width, max_height), (0, 0, 0, 0))
        canvas.paste(image, ((max_width - image.width) // 2, (max_height - image.height) // 2))
        frames.append(canvas)

    buf = io.BytesIO()
    frames[0].save(
        buf,
        format='GIF',
        save_all=True,
        append_images=frames[1:],
        duration=[delay for _, delay in steps],
        loop=0,
        disposal=2,
    )
    return buf.getvalue()
