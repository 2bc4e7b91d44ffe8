"""
SG Sprite Extractor Package

Reconstructs character sprites from a packed atlas and its .lay descriptor:
- Layout decoding (plain or zlib-compressed)
- Atlas lookup tolerant of texture-converter suffixes
- Primary variant and transparent overlay extraction
"""
from .config import Config, setup_logging
from .constants import layout_stem, atlas_candidates, ATLAS_SUFFIXES, LAYOUT_MAGIC
from .errors import (
    SpriteError,
    TruncatedData,
    UnsupportedFormat,
    MalformedLayout,
    LayoutReadError,
    AtlasNotFound,
    ImageDecodeError,
    ImageEncodeError,
    OutputWriteError,
    PairTimeout,
)
from .cursor import ByteCursor
from .layout import Role, SpritePart, LayoutFile, parse_layout, load_layout, validate_against_atlas
from .atlas import AtlasImage, find_atlas, load_atlas, locate_atlas
from .overlay import MASK_RULES, colorkey_alpha, source_alpha, apply_overlay_mask, assign_names, group_overlays
from .extractor import ExtractedSprite, extract_region, extract_part
from .assembler import (
    PairGuard,
    PairResult,
    BatchReport,
    assemble_sprites,
    encode_sprite,
    write_sprites,
    process_layout,
    process_layouts_concurrent,
)

__version__ = "1.0.0"
__all__ = [
    "Config",
    "setup_logging",
    "layout_stem",
    "atlas_candidates",
    "ATLAS_SUFFIXES",
    "LAYOUT_MAGIC",
    "SpriteError",
    "TruncatedData",
    "UnsupportedFormat",
    "MalformedLayout",
    "LayoutReadError",
    "AtlasNotFound",
    "ImageDecodeError",
    "ImageEncodeError",
    "OutputWriteError",
    "PairTimeout",
    "ByteCursor",
    "Role",
    "SpritePart",
    "LayoutFile",
    "parse_layout",
    "load_layout",
    "validate_against_atlas",
    "AtlasImage",
    "find_atlas",
    "load_atlas",
    "locate_atlas",
    "MASK_RULES",
    "colorkey_alpha",
    "source_alpha",
    "apply_overlay_mask",
    "assign_names",
    "group_overlays",
    "ExtractedSprite",
    "extract_region",
    "extract_part",
    "PairGuard",
    "PairResult",
    "BatchReport",
    "assemble_sprites",
    "encode_sprite",
    "write_sprites",
    "process_layout",
    "process_layouts_concurrent",
]
