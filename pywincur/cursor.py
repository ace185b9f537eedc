import enum
import math
import numbers
from dataclasses import dataclass, field

from .errors import FormatError

__all__ = ('SourceKind', 'SourceImage', 'RenderTransform', 'CursorHeader',
           'AnimatedCursor', 'MAX_CURSOR_SIZE', 'DEFAULT_RATE')

MAX_CURSOR_SIZE = 256
DEFAULT_RATE = 10  # jiffies, 1/60 s each

_RASTER_EXTENSIONS = ('png', 'ico', 'bmp', 'jpg', 'jpeg', 'cur', 'gif')


class SourceKind(enum.Enum):
    VECTOR = 'vector'
    RASTER = 'raster'

    @classmethod
    def from_extension(cls, ext: str) -> 'SourceKind':
        ext = ext.lower().lstrip('.')
        if ext == 'svg':
            return cls.VECTOR
        if ext in _RASTER_EXTENSIONS:
            return cls.RASTER
        raise FormatError(f'Unsupported file type: {ext}')


@dataclass(frozen=True)
class SourceImage:
    data: bytes
    kind: SourceKind = SourceKind.RASTER


@dataclass(frozen=True)
class RenderTransform:
    """How a source image is placed on the square cursor canvas.

    offset_x and offset_y are in pre-scale pixels; they get multiplied by
    user_scale before being applied.
    """
    target_size: int = MAX_CURSOR_SIZE
    user_scale: float = 1.0
    offset_x: int = 0
    offset_y: int = 0

    def validate(self):
        if isinstance(self.target_size, bool) or not isinstance(self.target_size, numbers.Integral):
            raise FormatError(f'target size must be an integer, got {self.target_size!r}')
        if not 1 <= self.target_size <= MAX_CURSOR_SIZE:
            raise FormatError(
                f'target size must be between 1 and {MAX_CURSOR_SIZE}, got {self.target_size}')
        try:
            scale = float(self.user_scale)
        except (TypeError, ValueError) as exc:
            raise FormatError(f'scale must be a number, got {self.user_scale!r}') from exc
        if not math.isfinite(scale) or scale <= 0:
            raise FormatError(f'scale must be finite and greater than 0, got {self.user_scale!r}')
        for name in ('offset_x', 'offset_y'):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, numbers.Integral):
                raise FormatError(f'{name} must be an integer, got {value!r}')
        return self


@dataclass(frozen=True)
class CursorHeader:
    width: int
    height: int
    hot_spot: tuple = (0, 0)
    payload_size: int = 0
    payload_offset: int = 22
    image_count: int = 1
    image_type: int = 2  # 1 = icon, 2 = cursor

    @property
    def size(self) -> tuple:
        return (self.width, self.height)


@dataclass
class AnimatedCursor:
    frames: list = field(default_factory=list)  # raw icon chunk payloads, file order
    default_rate: int = DEFAULT_RATE
    rates: list = field(default_factory=list)
    sequence: list = field(default_factory=list)

    def playback_order(self) -> list:
        """Frame indices in the order they are shown."""
        if self.sequence:
            return list(self.sequence)
        return list(range(len(self.frames)))

    def rate_for_step(self, step: int) -> int:
        if step < len(self.rates):
            return self.rates[step]
        return self.default_rate

    def delays_ms(self) -> list:
        """Per playback step display time in milliseconds, at least 16."""
        return [max(16, round(self.rate_for_step(step) * 1000 / 60))
                for step in range(len(self.playback_order()))]
