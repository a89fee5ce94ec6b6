from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from .byte_reader import ByteReader
from .errors import UnsupportedFile
from .models import Playlist
from .tag_stream import (
    Interpreter,
    Tag,
    TagKind,
    TagStreamDecoder,
    container_tag,
    encode_tags,
    text_tag,
)

logger = logging.getLogger(__name__)

CRATE_EXTENSION = ".crate"

CRATE_TABLE: Mapping[bytes, Interpreter] = {
    b"vrsn": text_tag(TagKind.METADATA),
    b"tvcn": text_tag(TagKind.COLUMN_NAME),
    b"ovct": container_tag(TagKind.COLUMN),
    b"osrt": container_tag(TagKind.FIRST_COLUMN),
    b"ptrk": text_tag(TagKind.TRACK_NAME),
    b"otrk": container_tag(TagKind.TRACK),
    # Undocumented; kept as an opaque nested container.
    b"orvc": container_tag(TagKind.UNKNOWN_CONTAINER),
}


@dataclass(frozen=True)
class Crate:
    tags: tuple[Tag, ...]
    columns: tuple[Tag, ...] = ()
    tracks: tuple[Tag, ...] = ()
    metadata: Optional[Tag] = None
    sort_column: Optional[Tag] = None
    unknown: tuple[Tag, ...] = ()
    trailing: bytes = b""

    @property
    def version(self) -> Optional[str]:
        return self.metadata.text if self.metadata else None

    @property
    def column_names(self) -> list[str]:
        return [name for name in (_nested_text(col, TagKind.COLUMN_NAME) for col in self.columns) if name]

    @property
    def sort_column_name(self) -> Optional[str]:
        if self.sort_column is None:
            return None
        return _nested_text(self.sort_column, TagKind.COLUMN_NAME)

    def track_names(self) -> list[str]:
        names: list[str] = []
        for track in self.tracks:
            name = _nested_text(track, TagKind.TRACK_NAME)
            if name is None:
                logger.debug("Crate track tag without a track name; skipping")
                continue
            names.append(name)
        return names


def _nested_text(tag: Tag, kind: TagKind) -> Optional[str]:
    child = tag.child(kind)
    return child.text if child else None


def decode_crate(data: bytes) -> Crate:
    reader = ByteReader(data)
    tags = TagStreamDecoder(reader, CRATE_TABLE).decode_all()
    columns: list[Tag] = []
    tracks: list[Tag] = []
    unknown: list[Tag] = []
    metadata: Optional[Tag] = None
    sort_column: Optional[Tag] = None
    for tag in tags:
        if tag.kind is TagKind.COLUMN:
            columns.append(tag)
        elif tag.kind is TagKind.TRACK:
            tracks.append(tag)
        elif tag.kind is TagKind.METADATA:
            metadata = tag
        elif tag.kind is TagKind.FIRST_COLUMN:
            sort_column = tag
        else:
            unknown.append(tag)
    return Crate(
        tags=tuple(tags),
        columns=tuple(columns),
        tracks=tuple(tracks),
        metadata=metadata,
        sort_column=sort_column,
        unknown=tuple(unknown),
        trailing=data[reader.position :],
    )


def encode_crate(crate: Crate) -> bytes:
    return encode_tags(crate.tags) + crate.trailing


def _check_crate_path(path: Path) -> None:
    if path.suffix != CRATE_EXTENSION:
        raise UnsupportedFile(f"'{path}' is not a valid crate; it must end in '{CRATE_EXTENSION}'")


def read_crate(path: Path) -> Crate:
    path = Path(path)
    _check_crate_path(path)
    crate = decode_crate(path.read_bytes())
    logger.debug("Decoded crate %s: %d track(s), %d column(s)", path.name, len(crate.tracks), len(crate.columns))
    if crate.unknown:
        logger.debug(
            "Crate %s kept unrecognised tags: %s",
            path.name,
            ", ".join(tag.type_name for tag in crate.unknown),
        )
    return crate


def crate_to_playlist(path: Path) -> Playlist:
    path = Path(path)
    crate = read_crate(path)
    return Playlist(name=path.stem, tracks=tuple(crate.track_names()))
