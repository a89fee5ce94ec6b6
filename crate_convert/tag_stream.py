"""
Generic decoder for the ``type (4 bytes) + length (u32 BE) + payload`` tag grammar.

The decoder is parameterised by a table mapping a type identifier to an
interpreter. Interpreters build a :class:`Tag` from the payload and may decode
the payload again with a nested :class:`TagStreamDecoder` over the same table.
Types missing from the table become ``UNKNOWN`` tags that keep their payload
byte for byte.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Iterator, Mapping, Optional

from .byte_reader import ByteReader
from .errors import TagStreamError, TruncatedPayload

logger = logging.getLogger(__name__)

TYPE_SIZE = 4
TEXT_ENCODING = "utf-16-be"


class TagKind(Enum):
    METADATA = "metadata"
    COLUMN_NAME = "column_name"
    COLUMN = "column"
    TRACK_NAME = "track_name"
    TRACK = "track"
    FIRST_COLUMN = "first_column"
    UNKNOWN_CONTAINER = "unknown_container"
    UNKNOWN = "unknown"


CONTAINER_KINDS = frozenset(
    {TagKind.COLUMN, TagKind.TRACK, TagKind.FIRST_COLUMN, TagKind.UNKNOWN_CONTAINER}
)


@dataclass(frozen=True)
class Tag:
    type: bytes
    payload: bytes
    kind: TagKind = TagKind.UNKNOWN
    text: Optional[str] = None
    children: tuple["Tag", ...] = ()
    # Bytes after the last child that are too short to form a tag.
    trailing: bytes = b""

    @property
    def type_name(self) -> str:
        return self.type.decode("ascii", errors="replace")

    @property
    def is_container(self) -> bool:
        return self.kind in CONTAINER_KINDS

    def child(self, kind: TagKind) -> Optional["Tag"]:
        """Return the first nested tag of ``kind``."""
        for tag in self.children:
            if tag.kind is kind:
                return tag
        return None

    def body(self) -> bytes:
        if self.is_container:
            return encode_tags(self.children) + self.trailing
        if self.text is not None:
            return self.text.encode(TEXT_ENCODING)
        return self.payload

    def encode(self) -> bytes:
        body = self.body()
        return self.type + struct.pack(">I", len(body)) + body


Interpreter = Callable[[bytes, bytes, "TagTable"], Tag]
TagTable = Mapping[bytes, Interpreter]


def encode_tags(tags: Iterable[Tag]) -> bytes:
    return b"".join(tag.encode() for tag in tags)


def unknown_tag(tag_type: bytes, payload: bytes) -> Tag:
    return Tag(type=tag_type, payload=payload, kind=TagKind.UNKNOWN)


def decode_text(payload: bytes) -> str:
    if len(payload) % 2:
        raise TagStreamError(f"UTF-16 text payload has odd length {len(payload)}")
    try:
        return payload.decode(TEXT_ENCODING)
    except UnicodeDecodeError as exc:
        raise TagStreamError(f"Invalid UTF-16 text payload: {exc}") from exc


def text_tag(kind: TagKind) -> Interpreter:
    def interpret(tag_type: bytes, payload: bytes, _table: TagTable) -> Tag:
        return Tag(type=tag_type, payload=payload, kind=kind, text=decode_text(payload))

    return interpret


def container_tag(kind: TagKind) -> Interpreter:
    def interpret(tag_type: bytes, payload: bytes, table: TagTable) -> Tag:
        reader = ByteReader(payload)
        children = tuple(TagStreamDecoder(reader, table))
        return Tag(
            type=tag_type,
            payload=payload,
            kind=kind,
            children=children,
            trailing=payload[reader.position :],
        )

    return interpret


class TagStreamDecoder:
    """Decodes consecutive tags from a :class:`ByteReader`."""

    def __init__(self, source: ByteReader | bytes, table: TagTable) -> None:
        self.reader = source if isinstance(source, ByteReader) else ByteReader(source)
        self.table = table

    def __iter__(self) -> Iterator[Tag]:
        while True:
            tag = self.next_tag()
            if tag is None:
                return
            yield tag

    def next_tag(self) -> Optional[Tag]:
        """Decode one tag, or return ``None`` at a clean end of stream."""
        offset = self.reader.position
        tag_type = self.reader.read(TYPE_SIZE)
        if tag_type is None:
            return None
        length = self.reader.read_u32be()
        if length is None:
            raise TruncatedPayload(
                f"Tag {tag_type!r} at offset {offset} has no length field"
            )
        payload = self.reader.read(length)
        if payload is None:
            raise TruncatedPayload(
                f"Tag {tag_type!r} at offset {offset} declares {length} bytes, "
                f"only {self.reader.remaining} remain"
            )
        interpreter = self.table.get(tag_type)
        if interpreter is None:
            logger.debug("Passing through unknown tag %r (%d bytes)", tag_type, length)
            return unknown_tag(tag_type, payload)
        return interpreter(tag_type, payload, self.table)

    def decode_all(self) -> list[Tag]:
        return list(self)
