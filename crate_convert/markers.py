"""
Serato "Markers2" entry decoding.

Marker data is a second tag grammar, distinct from crates::

    01 01                          header
    NAME 00  LEN(u32 BE)  PAYLOAD  entry, repeated
    00 ...                         padding / end of stream

Entry names are NUL-terminated ASCII of variable length.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterator, Mapping, Optional, Union

from .byte_reader import ByteReader
from .errors import InvalidFrameHeader, TruncatedPayload
from .tag_stream import Tag, unknown_tag

logger = logging.getLogger(__name__)

MARKERS_HEADER = b"\x01\x01"


class MarkerKind(Enum):
    CUE = "CUE"
    COLOR = "COLOR"
    BPMLOCK = "BPMLOCK"


@dataclass(frozen=True)
class MarkerEntry:
    kind: MarkerKind
    index: Optional[int] = None
    position_millis: Optional[int] = None
    color: Optional[str] = None
    enabled: Optional[bool] = None

    @property
    def is_cue(self) -> bool:
        return self.kind is MarkerKind.CUE


def _require(payload: bytes, size: int, name: str) -> None:
    if len(payload) < size:
        raise TruncatedPayload(f"{name} payload needs {size} bytes, got {len(payload)}")


def parse_color(payload: bytes) -> MarkerEntry:
    _require(payload, 4, "COLOR")
    return MarkerEntry(kind=MarkerKind.COLOR, color=payload[1:4].hex())


def parse_cue(payload: bytes) -> MarkerEntry:
    # 0: reserved, 1: index, 2-5: position, 6: reserved, 7-9: RGB
    _require(payload, 10, "CUE")
    (position,) = struct.unpack(">I", payload[2:6])
    return MarkerEntry(
        kind=MarkerKind.CUE,
        index=payload[1],
        position_millis=position,
        color=payload[7:10].hex(),
    )


def parse_bpm_lock(payload: bytes) -> MarkerEntry:
    _require(payload, 1, "BPMLOCK")
    return MarkerEntry(kind=MarkerKind.BPMLOCK, enabled=payload[0] != 0)


MARKER_TABLE: Mapping[str, Callable[[bytes], MarkerEntry]] = {
    MarkerKind.COLOR.value: parse_color,
    MarkerKind.CUE.value: parse_cue,
    MarkerKind.BPMLOCK.value: parse_bpm_lock,
}

MarkerItem = Union[MarkerEntry, Tag]


class MarkerStreamDecoder:
    """Decodes NUL-terminated marker entries following the ``01 01`` header."""

    def __init__(
        self,
        data: bytes,
        table: Mapping[str, Callable[[bytes], MarkerEntry]] = MARKER_TABLE,
    ) -> None:
        self.reader = ByteReader(data)
        self.table = table
        header = self.reader.read(len(MARKERS_HEADER))
        if header != MARKERS_HEADER:
            found = header.hex() if header is not None else "<empty>"
            raise InvalidFrameHeader(f"Marker header is {found}, expected 0101")

    def __iter__(self) -> Iterator[MarkerItem]:
        while True:
            item = self.next_entry()
            if item is None:
                return
            yield item

    def _read_name(self) -> bytes:
        name = bytearray()
        while True:
            byte = self.reader.read(1)
            if byte is None or byte == b"\x00":
                return bytes(name)
            name += byte

    def next_entry(self) -> Optional[MarkerItem]:
        name = self._read_name()
        if not name:
            return None
        length = self.reader.read_u32be()
        if not length:
            raise TruncatedPayload(f"Marker entry {name!r} has no payload length")
        payload = self.reader.read(length)
        if payload is None:
            raise TruncatedPayload(
                f"Marker entry {name!r} declares {length} bytes, "
                f"only {self.reader.remaining} remain"
            )
        parser = self.table.get(name.decode("latin-1"))
        if parser is None:
            logger.debug("Ignoring unknown marker entry %r", name)
            return unknown_tag(name, payload)
        return parser(payload)


def decode_markers(data: bytes) -> list[MarkerItem]:
    """Decode every entry of a raw Markers2 buffer, unknown entries included."""
    return list(MarkerStreamDecoder(data))


def decode_cue_points(data: bytes) -> list[MarkerEntry]:
    return [item for item in decode_markers(data) if isinstance(item, MarkerEntry) and item.is_cue]
