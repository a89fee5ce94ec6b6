from __future__ import annotations

import struct
from typing import Optional


class ByteReader:
    """Cursor-based reader over an immutable byte buffer.

    Reads past the end of the buffer return ``None`` instead of raising so
    callers can tell a clean end of stream from a truncated record.
    """

    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._pos = 0

    @property
    def position(self) -> int:
        return self._pos

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    @property
    def at_end(self) -> bool:
        return self._pos >= len(self._data)

    def read(self, size: int) -> Optional[bytes]:
        chunk = self.peek(size)
        if chunk is not None:
            self._pos += size
        return chunk

    def peek(self, size: int) -> Optional[bytes]:
        if size < 0 or self._pos + size > len(self._data):
            return None
        return self._data[self._pos : self._pos + size]

    def read_u32be(self) -> Optional[int]:
        raw = self.read(4)
        if raw is None:
            return None
        return struct.unpack(">I", raw)[0]
