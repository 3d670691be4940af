"""
Station Probe - Now Playing Metadata Extraction
Copyright (c) 2025 Timothy Kramer (KR8MER)

This file is part of Station Probe.

Station Probe is dual-licensed software:
- GNU Affero General Public License v3 (AGPL-3.0) for open-source use
- Commercial License for proprietary use

IMPORTANT: This software cannot be rebranded or have attribution removed.
"""

from __future__ import annotations

"""
Bounds-checked cursor over an immutable byte buffer.

Binary metadata (ID3 tags, ICY blocks) arrives from untrusted servers, so every
read goes through a cursor that refuses to step outside its window instead of
silently returning short slices.
"""

import struct
from typing import Optional, Union

BytesLike = Union[bytes, bytearray, memoryview]


class BufferUnderrunError(ValueError):
    """Raised when a read would run past the end of the cursor window."""


def synchsafe_to_int(data: BytesLike) -> int:
    """Decode a synchsafe integer (7 significant bits per byte, MSB cleared)."""
    value = 0
    for byte in bytes(data):
        value = (value << 7) | (byte & 0x7F)
    return value


class ByteCursor:
    """Sequential reader over ``data[start:end]`` with an explicit offset."""

    def __init__(self, data: BytesLike, offset: int = 0, end: Optional[int] = None):
        self._data = bytes(data)
        self._end = len(self._data) if end is None else min(end, len(self._data))
        if offset < 0 or offset > self._end:
            raise BufferUnderrunError(f"offset {offset} outside buffer of {self._end} bytes")
        self._offset = offset

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def end(self) -> int:
        return self._end

    @property
    def remaining(self) -> int:
        return self._end - self._offset

    def seek(self, offset: int) -> None:
        if offset < 0 or offset > self._end:
            raise BufferUnderrunError(f"cannot seek to {offset} (window ends at {self._end})")
        self._offset = offset

    def peek(self, size: int) -> bytes:
        self._check(size)
        return self._data[self._offset:self._offset + size]

    def read(self, size: int) -> bytes:
        chunk = self.peek(size)
        self._offset += size
        return chunk

    def skip(self, size: int) -> None:
        self._check(size)
        self._offset += size

    def read_u8(self) -> int:
        return self.read(1)[0]

    def read_u16be(self) -> int:
        return struct.unpack('>H', self.read(2))[0]

    def read_u32be(self) -> int:
        return struct.unpack('>I', self.read(4))[0]

    def read_synchsafe(self, size: int = 4) -> int:
        return synchsafe_to_int(self.read(size))

    def find(self, marker: bytes, start: Optional[int] = None) -> int:
        """Absolute position of ``marker`` at or after ``start`` within the window, or -1."""
        begin = self._offset if start is None else start
        return self._data.find(marker, begin, self._end)

    def window(self, size: int) -> 'ByteCursor':
        """Sub-cursor over the next ``size`` bytes; ``size`` is clamped to what remains."""
        if size < 0:
            raise BufferUnderrunError(f"negative window size {size}")
        return ByteCursor(self._data, self._offset, self._offset + min(size, self.remaining))

    def _check(self, size: int) -> None:
        if size < 0:
            raise BufferUnderrunError(f"negative read size {size}")
        if size > self.remaining:
            raise BufferUnderrunError(
                f"read of {size} bytes at offset {self._offset} exceeds window ({self.remaining} left)"
            )
