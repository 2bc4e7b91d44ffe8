"""Layout (.lay) descriptor decoding."""
import errno
import logging
import struct
import zlib
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from .constants import (
    LAYOUT_MAGIC, SUPPORTED_VERSIONS, PART_FORMAT, NO_PARENT,
    ZLIB_HEADER_BYTE, MAX_INFLATED_SIZE, TYPE_BASE, TYPE_SUB, TYPE_DEPENDENT, TYPE_OVERLAY, READ_RETRIES,
)
from .cursor import ByteCursor
from .errors import TruncatedData, UnsupportedFormat, MalformedLayout, LayoutReadError

log = logging.getLogger(__name__)

_TRANSIENT_ERRNOS = {errno.EINTR, errno.EAGAIN, errno.EWOULDBLOCK}


class Role(Enum):
    PRIMARY_VARIANT = "primary"
    OVERLAY = "overlay"


SPRITE_TYPE_ROLES = {
    TYPE_BASE: Role.PRIMARY_VARIANT,
    TYPE_SUB: Role.PRIMARY_VARIANT,
    **{code: Role.PRIMARY_VARIANT for code in TYPE_DEPENDENT},
    TYPE_OVERLAY: Role.OVERLAY,
}


@dataclass(frozen=True)
class SpritePart:
    """One region of the atlas and how it is used."""
    index: int
    x: int
    y: int
    width: int
    height: int
    role: Role
    type_code: int = TYPE_BASE
    parent: Optional[int] = None

    @property
    def box(self) -> tuple[int, int, int, int]:
        """(left, top, right, bottom), right/bottom exclusive."""
        return (self.x, self.y, self.x + self.width, self.y + self.height)

    @property
    def size(self) -> tuple[int, int]:
        return (self.width, self.height)


@dataclass
class LayoutFile:
    """Decoded layout descriptor for one character."""
    version: int
    canvas_size: tuple[int, int]
    parts: list[SpritePart] = field(default_factory=list)
    path: Optional[Path] = None
    compressed: bool = False

    @property
    def part_count(self) -> int:
        return len(self.parts)

    def primaries(self) -> list[SpritePart]:
        return [p for p in self.parts if p.role is Role.PRIMARY_VARIANT]

    def overlays(self) -> list[SpritePart]:
        return [p for p in self.parts if p.role is Role.OVERLAY]


def _inflate(data: bytes, path: Optional[Path]) -> bytes:
    """Inflate a zlib-wrapped layout, insisting on a complete stream of bounded size."""
    decomp = zlib.decompressobj()
    try:
        raw = decomp.decompress(data, MAX_INFLATED_SIZE + 1)
        if len(raw) <= MAX_INFLATED_SIZE:
            raw += decomp.flush()
    except zlib.error as e:
        raise UnsupportedFormat(f"{path or '<layout>'}: bad compressed layout ({e})") from e
    if len(raw) > MAX_INFLATED_SIZE:
        raise MalformedLayout(f"{path or '<layout>'}: compressed layout inflates past {MAX_INFLATED_SIZE} bytes")
    if not decomp.eof:
        raise TruncatedData(len(data), 1, 0, path)
    if decomp.unused_data:
        log.warning(f"LAYOUT {path or '<layout>'}: {len(decomp.unused_data)} byte(s) after compressed stream")
    return raw


def parse_layout(data: bytes, path: Optional[Union[str, Path]] = None) -> LayoutFile:
    """Decode a layout buffer.

    Args:
        data: Raw file contents, plain or zlib-compressed.
        path: Source path, used only for error messages.

    Returns:
        The decoded LayoutFile. Atlas bounds are not checked here; see
        :func:`validate_against_atlas`.
    """
    path = Path(path) if path is not None else None
    where = path or "<layout>"
    magic_bytes = struct.pack("<H", LAYOUT_MAGIC)

    compressed = False
    if data[:2] != magic_bytes and data[:1] == bytes([ZLIB_HEADER_BYTE]):
        log.debug(f"LAYOUT {where}: compressed")
        data = _inflate(data, path)
        compressed = True

    cur = ByteCursor(data, path)
    magic = cur.read_u16()
    if magic != LAYOUT_MAGIC:
        raise UnsupportedFormat(f"{where}: bad magic {magic:#06x}, expected {LAYOUT_MAGIC:#06x}")
    version = cur.read_u16()
    if version not in SUPPORTED_VERSIONS:
        raise UnsupportedFormat(f"{where}: unsupported layout version {version}")
    part_count, canvas_w, canvas_h = cur.read_struct("<III")

    if part_count == 0:
        raise MalformedLayout(f"{where}: layout has no sprite parts")
    if canvas_w == 0 or canvas_h == 0:
        raise MalformedLayout(f"{where}: empty canvas {canvas_w}x{canvas_h}")

    parts: list[SpritePart] = []
    for index in range(part_count):
        offset = cur.tell()
        x, y, width, height, type_code, parent, reserved = cur.read_struct(PART_FORMAT)

        role = SPRITE_TYPE_ROLES.get(type_code)
        if role is None:
            raise MalformedLayout(f"{where}: part {index} at {offset:#x} has unknown sprite type {type_code:#04x}")
        if width == 0 or height == 0:
            raise MalformedLayout(f"{where}: part {index} at {offset:#x} has empty size {width}x{height}")
        if parent == NO_PARENT:
            parent = None
        elif parent >= part_count:
            raise MalformedLayout(f"{where}: part {index} at {offset:#x} refers to missing parent {parent}")
        if reserved:
            log.warning(f"LAYOUT {where}: part {index} has non-zero reserved field {reserved:#06x}")

        parts.append(SpritePart(index, x, y, width, height, role, type_code, parent))

    if not cur.at_end():
        log.warning(f"LAYOUT {where}: ignoring {cur.remaining} trailing byte(s)")

    log.debug(f"LAYOUT {where}: v{version}, {part_count} parts, canvas {canvas_w}x{canvas_h}")
    return LayoutFile(version, (canvas_w, canvas_h), parts, path, compressed)


def _read_file(path: Path) -> bytes:
    for attempt in range(1, READ_RETRIES + 1):
        try:
            return path.read_bytes()
        except OSError as e:
            if e.errno in _TRANSIENT_ERRNOS and attempt < READ_RETRIES:
                log.debug(f"LAYOUT {path}: transient read error ({e}), retrying")
                continue
            raise LayoutReadError(f"{path}: {e.strerror or e}") from e


def load_layout(path: Union[str, Path]) -> LayoutFile:
    """Read and decode a layout file from disk."""
    path = Path(path)
    return parse_layout(_read_file(path), path)


def validate_against_atlas(layout: LayoutFile, atlas_size: tuple[int, int]):
    """Ensure every part lies inside ``[0, width) x [0, height)`` of the atlas."""
    atlas_w, atlas_h = atlas_size
    for part in layout.parts:
        _, _, right, bottom = part.box
        if right > atlas_w or bottom > atlas_h:
            raise MalformedLayout(
                f"{layout.path or '<layout>'}: part {part.index} rect {part.box} "
                f"exceeds atlas {atlas_w}x{atlas_h}"
            )
