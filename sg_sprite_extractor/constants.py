"""Constant definitions and helper utilities."""
import struct
from pathlib import Path

# Layout header: magic, version, part_count, canvas_w, canvas_h
LAYOUT_MAGIC = 0x5347
SUPPORTED_VERSIONS = (1,)
HEADER_FORMAT = "<HHIII"
# Part record: x, y, width, height, type_code, parent, reserved
PART_FORMAT = "<IIIIBBH"
NO_PARENT = 0xFF
HEADER_SIZE = struct.calcsize(HEADER_FORMAT)
PART_SIZE = struct.calcsize(PART_FORMAT)

# Upper bound for an inflated layout: header plus the largest sprite table the engine uses
MAX_PARTS = 65536
MAX_INFLATED_SIZE = HEADER_SIZE + MAX_PARTS * PART_SIZE

LAYOUT_EXTENSION = ".lay"
ZLIB_HEADER_BYTE = 0x78

# Engine sprite type bytes
TYPE_BASE = 0x00
TYPE_SUB = 0x20
TYPE_DEPENDENT = (0x30, 0x40, 0x60)
TYPE_OVERLAY = 0x50

# Suffixes texture converters leave on the atlas stem - order matters: plain name first
ATLAS_SUFFIXES = ("", "_0", ".gxt", ".dds", "_tex")
ATLAS_EXTENSION = ".png"
OUTPUT_EXTENSION = ".png"
OVERLAY_MARK = "_o"

READ_RETRIES = 3


def layout_stem(layout_path: Path) -> str:
    """Strip the layout extension (case-insensitive) from a layout filename."""
    name = layout_path.name
    if name.lower().endswith(LAYOUT_EXTENSION):
        return name[:-len(LAYOUT_EXTENSION)]
    return layout_path.stem


def atlas_candidates(stem: str) -> list[str]:
    """Atlas filenames to try for a layout stem, in priority order."""
    return [stem + suffix + ATLAS_EXTENSION for suffix in ATLAS_SUFFIXES]


def primary_name(stem: str, ordinal: int) -> str:
    return f"{stem}_{ordinal}"


def overlay_name(stem: str, ordinal: int) -> str:
    return f"{stem}{OVERLAY_MARK}{ordinal}"
