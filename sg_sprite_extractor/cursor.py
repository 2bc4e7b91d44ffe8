"""Bounds-checked sequential reader over a layout byte buffer."""
import struct
from pathlib import Path
from typing import Optional

from .errors import TruncatedData


class ByteCursor:
    """Little-endian reader with a monotonically advancing position.

    The wrapped buffer is never modified; several cursors may share it.
    Every read checks that ``position + length <= len(buffer)`` and raises
    :class:`TruncatedData` otherwise, leaving the position where it was.
    """

    def __init__(self, data: bytes, path: Optional[Path] = None):
        self._data = bytes(data)
        self._pos = 0
        self.path = path

    def __len__(self):
        return len(self._data)

    def __repr__(self):
        return f"<{self.__class__.__name__} pos={self._pos:#x} len={len(self._data):#x}>"

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    def tell(self) -> int:
        return self._pos

    def at_end(self) -> bool:
        return self._pos >= len(self._data)

    def seek(self, offset: int):
        """Move to an absolute offset inside ``[0, len(buffer)]``."""
        if offset < 0 or offset > len(self._data):
            raise TruncatedData(offset, 0, len(self._data), self.path)
        self._pos = offset

    def _check(self, length: int):
        if length < 0 or self._pos + length > len(self._data):
            raise TruncatedData(self._pos, length, self.remaining, self.path)

    def peek(self, length: int) -> bytes:
        """Return the next ``length`` bytes without advancing."""
        self._check(length)
        return self._data[self._pos:self._pos + length]

    def read_bytes(self, length: int) -> bytes:
        chunk = self.peek(length)
        self._pos += length
        return chunk

    def read_struct(self, fmt: str) -> tuple:
        """Read a whole ``struct`` format atomically (little-endian enforced)."""
        if fmt[:1] in ("@", "=", "!", ">"):
            fmt = fmt[1:]
        if not fmt.startswith("<"):
            fmt = "<" + fmt
        size = struct.calcsize(fmt)
        return struct.unpack(fmt, self.read_bytes(size))

    def read_block(self) -> bytes:
        """Read a u32 length prefix followed by that many bytes."""
        start = self._pos
        length = self.read_u32()
        try:
            return self.read_bytes(length)
        except TruncatedData:
            self._pos = start
            raise

    def _read_one(self, fmt: str):
        return self.read_struct(fmt)[0]

    def read_u8(self) -> int:
        return self._read_one("<B")

    def read_u16(self) -> int:
        return self._read_one("<H")

    def read_u32(self) -> int:
        return self._read_one("<I")

    def read_i8(self) -> int:
        return self._read_one("<b")

    def read_i16(self) -> int:
        return self._read_one("<h")

    def read_i32(self) -> int:
        return self._read_one("<i")

    def read_f32(self) -> float:
        return self._read_one("<f")
