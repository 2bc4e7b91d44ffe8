"""Error taxonomy for layout decoding and sprite extraction."""
from pathlib import Path
from typing import Optional


class SpriteError(Exception):
    """Base class for failures that are fatal to a single layout/atlas pair."""

    @property
    def kind(self) -> str:
        return type(self).__name__


class TruncatedData(SpriteError):
    """A read ran past the end of the layout buffer."""

    def __init__(self, offset: int, requested: int, available: int, path: Optional[Path] = None):
        self.offset = offset
        self.requested = requested
        self.available = available
        self.path = path
        where = f"{path}: " if path else ""
        super().__init__(
            f"{where}truncated data at offset {offset:#x}: "
            f"requested {requested} byte(s), {available} available"
        )


class UnsupportedFormat(SpriteError):
    """Magic or version mismatch; nothing past the header is meaningful."""


class MalformedLayout(SpriteError):
    """The part table is internally inconsistent or does not fit the atlas."""


class LayoutReadError(SpriteError):
    """The layout file could not be read from disk."""


class AtlasNotFound(SpriteError):
    """No atlas image matching the layout's stem exists next to it."""


class ImageDecodeError(SpriteError):
    """The atlas file is corrupt or in an unsupported raster encoding."""


class ImageEncodeError(SpriteError):
    """An extracted sprite could not be encoded."""


class OutputWriteError(SpriteError):
    """An output image could not be written."""



class PairTimeout(SpriteError):
    """A layout/atlas pair did not finish within the configured time."""
