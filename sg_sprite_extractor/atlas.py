"""Atlas image lookup and decoding."""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Union

import numpy as np
from PIL import Image, UnidentifiedImageError

from .constants import layout_stem, atlas_candidates
from .errors import AtlasNotFound, ImageDecodeError

log = logging.getLogger(__name__)

_ALPHA_MODES = ("RGBA", "LA", "PA", "RGBa", "La")


@dataclass
class AtlasImage:
    """Decoded, read-only atlas pixels (H, W, C) with C = 4 (RGBA) or 3 (RGB)."""
    path: Path
    pixels: np.ndarray

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    @property
    def size(self) -> tuple[int, int]:
        return (self.width, self.height)

    @property
    def has_alpha(self) -> bool:
        return self.pixels.shape[2] == 4


def find_atlas(layout_path: Union[str, Path]) -> Path:
    """Find the atlas image that belongs to a layout file.

    Candidates are ``<stem><suffix>.png`` for every known converter suffix.
    Each candidate is first matched exactly against the directory listing,
    then the whole list is retried ignoring case.
    """
    layout_path = Path(layout_path)
    directory = layout_path.parent
    stem = layout_stem(layout_path)
    candidates = atlas_candidates(stem)

    try:
        entries = [entry.name for entry in directory.iterdir() if entry.is_file()]
    except OSError as e:
        raise AtlasNotFound(f"{layout_path}: cannot list {directory} ({e.strerror or e})") from e

    names = set(entries)
    for candidate in candidates:
        if candidate in names:
            log.debug(f"ATLAS {stem}: found '{candidate}'")
            return directory / candidate

    folded = {}
    for name in sorted(entries):
        folded.setdefault(name.casefold(), name)
    for candidate in candidates:
        match = folded.get(candidate.casefold())
        if match:
            log.debug(f"ATLAS {stem}: found '{match}' (case-insensitive)")
            return directory / match

    raise AtlasNotFound(f"{layout_path}: no atlas found (tried {', '.join(candidates)})")


def load_atlas(path: Union[str, Path]) -> AtlasImage:
    """Decode an atlas file into a read-only pixel buffer."""
    path = Path(path)
    try:
        with Image.open(path) as img:
            has_alpha = img.mode in _ALPHA_MODES or (img.mode == "P" and "transparency" in img.info)
            img = img.convert("RGBA" if has_alpha else "RGB")
            pixels = np.array(img, dtype=np.uint8)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise ImageDecodeError(f"{path}: {e}") from e

    pixels.setflags(write=False)
    log.debug(f"ATLAS {path.name}: {pixels.shape[1]}x{pixels.shape[0]} {'RGBA' if has_alpha else 'RGB'}")
    return AtlasImage(path, pixels)


def locate_atlas(layout_path: Union[str, Path]) -> AtlasImage:
    """Find and decode the atlas for a layout file."""
    return load_atlas(find_atlas(layout_path))
