"""Overlay alpha derivation and output naming."""
import logging
from typing import Callable, Optional

import numpy as np

from .constants import primary_name, overlay_name
from .layout import Role, SpritePart

log = logging.getLogger(__name__)

MaskRule = Callable[[np.ndarray, bool], np.ndarray]


def colorkey_alpha(region: np.ndarray, has_alpha: bool) -> np.ndarray:
    """Alpha mask treating the region's top-left pixel as the packer's background key.

    Pixels equal to the key (RGB, plus alpha when the atlas has it) become
    transparent. All other pixels keep the atlas alpha, or 255 for RGB atlases.

    Args:
        region: RGBA pixels of the overlay rectangle, shape (H, W, 4).
        has_alpha: Whether the source atlas carried a real alpha channel.

    Returns:
        uint8 alpha array of shape (H, W).
    """
    channels = 4 if has_alpha else 3
    key = region[0, 0, :channels]
    is_key = np.all(region[:, :, :channels] == key, axis=2)
    alpha = region[:, :, 3] if has_alpha else np.full(region.shape[:2], 255, dtype=np.uint8)
    return np.where(is_key, 0, alpha).astype(np.uint8)


def source_alpha(region: np.ndarray, has_alpha: bool) -> np.ndarray:
    """Keep the atlas alpha untouched."""
    if has_alpha:
        return region[:, :, 3].copy()
    return np.full(region.shape[:2], 255, dtype=np.uint8)


MASK_RULES: dict[str, MaskRule] = {
    "colorkey": colorkey_alpha,
    "source": source_alpha,
}
DEFAULT_MASK_RULE = "colorkey"


def get_mask_rule(name: str) -> MaskRule:
    try:
        return MASK_RULES[name]
    except KeyError:
        raise ValueError(f"unknown overlay mask rule '{name}' (choose from {', '.join(MASK_RULES)})") from None


def apply_overlay_mask(region: np.ndarray, has_alpha: bool, rule: MaskRule = colorkey_alpha) -> np.ndarray:
    """Return a new RGBA buffer with the overlay alpha applied.

    RGB is zeroed wherever alpha ends up 0 so encoded output is stable.
    """
    alpha = rule(region, has_alpha)
    if alpha.shape != region.shape[:2]:
        raise AssertionError(f"mask shape {alpha.shape} does not match region {region.shape[:2]}")
    out = region.copy()
    out[:, :, 3] = alpha
    out[alpha == 0, :3] = 0
    return out


def group_overlays(parts: list[SpritePart]) -> dict[Optional[int], list[SpritePart]]:
    """Group overlay parts by parent id: parents ascending, orphans last, file order within."""
    groups: dict[Optional[int], list[SpritePart]] = {}
    overlays = [p for p in parts if p.role is Role.OVERLAY]
    for part in sorted(overlays, key=lambda p: (p.parent is None, p.parent or 0, p.index)):
        groups.setdefault(part.parent, []).append(part)
    return groups


def assign_names(stem: str, parts: list[SpritePart]) -> dict[int, str]:
    """Map part index -> output stem (``stem_N`` primaries, ``stem_oN`` overlays)."""
    names: dict[int, str] = {}
    ordinal = 0
    for part in parts:
        if part.role is Role.PRIMARY_VARIANT:
            names[part.index] = primary_name(stem, ordinal)
            ordinal += 1

    ordinal = 0
    for parent, members in group_overlays(parts).items():
        for part in members:
            names[part.index] = overlay_name(stem, ordinal)
            ordinal += 1
        log.debug(f"OVERLAY {stem}: parent {parent if parent is not None else '-'} -> "
                  f"{', '.join(names[p.index] for p in members)}")
    return names
