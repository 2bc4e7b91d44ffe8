"""Region extraction from a decoded atlas."""
import logging
from dataclasses import dataclass

import numpy as np
from PIL import Image

from .atlas import AtlasImage
from .layout import Role, SpritePart
from .overlay import MaskRule, colorkey_alpha, apply_overlay_mask

log = logging.getLogger(__name__)


@dataclass
class ExtractedSprite:
    """A part's pixels cut from the atlas, ready to encode as ``<name>.png``."""
    part: SpritePart
    pixels: np.ndarray
    name: str

    @property
    def role(self) -> Role:
        return self.part.role

    @property
    def size(self) -> tuple[int, int]:
        return (self.pixels.shape[1], self.pixels.shape[0])

    def to_image(self) -> Image.Image:
        return Image.fromarray(np.ascontiguousarray(self.pixels))


def extract_region(atlas: AtlasImage, part: SpritePart) -> np.ndarray:
    """Copy ``[x, x+w) x [y, y+h)`` out of the atlas.

    Bounds are validated when the layout is checked against the atlas; a
    short slice here means that check was skipped and is treated as a bug.
    """
    left, top, right, bottom = part.box
    region = np.array(atlas.pixels[top:bottom, left:right], dtype=np.uint8, copy=True)
    expected = (part.height, part.width, atlas.pixels.shape[2])
    if region.shape != expected:
        raise AssertionError(
            f"part {part.index}: region {part.box} yields {region.shape}, expected {expected} "
            f"from atlas {atlas.width}x{atlas.height}"
        )
    return region


def _to_rgba(region: np.ndarray) -> np.ndarray:
    if region.shape[2] == 4:
        return region
    opaque = np.full(region.shape[:2] + (1,), 255, dtype=np.uint8)
    return np.concatenate([region, opaque], axis=2)


def extract_part(atlas: AtlasImage, part: SpritePart, name: str,
                 mask_rule: MaskRule = colorkey_alpha) -> ExtractedSprite:
    """Extract one part; overlays get their alpha mask derived, primaries are copied verbatim."""
    region = _to_rgba(extract_region(atlas, part))
    if part.role is Role.OVERLAY:
        pixels = apply_overlay_mask(region, atlas.has_alpha, mask_rule)
    elif part.role is Role.PRIMARY_VARIANT:
        pixels = region
    else:
        raise AssertionError(f"unhandled role {part.role!r}")

    log.debug(f"EXTRACT '{name}': {part.role.value} {part.width}x{part.height} at ({part.x}, {part.y})")
    return ExtractedSprite(part, pixels, name)
