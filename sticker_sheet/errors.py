"""Exceptions raised by the sticker sheet pipeline.

Only whole-operation failures are exceptions. Cells with no content area,
frames with nothing opaque and similar per-item conditions are absorbed where
they happen and reported on stderr.
"""


class StickerSheetError(Exception):
    """Base class for pipeline failures surfaced to the caller."""


class DecodeError(StickerSheetError):
    """Source bytes could not be read as an image."""


class EncodingError(StickerSheetError):
    """A GIF, PNG or archive could not be produced.

    Attributes:
        frame_index: Index of the offending frame, when one frame is at fault.
        expected: Expected (width, height) for dimension mismatches.
        actual: Actual (width, height) for dimension mismatches.
    """

    def __init__(
        self,
        message: str,
        frame_index: int | None = None,
        expected: tuple[int, int] | None = None,
        actual: tuple[int, int] | None = None,
    ):
        super().__init__(message)
        self.frame_index = frame_index
        self.expected = expected
        self.actual = actual
