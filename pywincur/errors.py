"""Exceptions raised by the cursor codec."""

__all__ = ['CursorError', 'DecodeError', 'FormatError', 'EncodeError',
           'ContainerFormatError', 'ExtractionError']


class CursorError(Exception):
    """Base class, `kind` names the failure for callers that map errors to UI text."""
    kind = 'cursor'

    def __init__(self, message: str, kind: str = None):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind


class DecodeError(CursorError):
    """The source image bytes could not be decoded."""
    kind = 'decode'


class FormatError(CursorError, ValueError):
    """Invalid scale, target size or degenerate output dimensions."""
    kind = 'format'


class EncodeError(CursorError):
    """The image cannot be stored in a cursor container."""
    kind = 'encode'


class ContainerFormatError(CursorError):
    """Bad magic, truncated header, or an animation without frames."""
    kind = 'container'


class ExtractionError(CursorError):
    """No preview strategy could decode the frame."""
    kind = 'extraction'
