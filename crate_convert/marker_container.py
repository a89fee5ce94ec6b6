"""
Locate and unwrap the Serato Markers2 payload embedded in audio tags.

ID3 (MP3, WAV), GEOB frame described ``Serato Markers2``::

    [header][base64 marker data, with newlines]  -> strip header, newlines, decode

Vorbis comment (FLAC), field ``SERATO_MARKERS_V2``::

    base64( 'application/octet-stream\\0\\0Serato Markers2\\0' + [base64 marker data] )

so FLAC data goes through the strip/decode cycle twice.
"""

from __future__ import annotations

import base64
import logging
import re
from typing import Any, Mapping, Optional

from .errors import InvalidFrameHeader

logger = logging.getLogger(__name__)

GEOB_DESCRIPTION = "Serato Markers2"
# Some tag readers leak the tail of the GEOB description into the data.
GEOB_LEAKED_HEADER = b"erato Markers2"
GEOB_LEAKED_HEADER_SIZE = 17
GEOB_VERSION_PREFIX = b"\x01\x01"

VORBIS_FIELD = "SERATO_MARKERS_V2"
VORBIS_HEADER = b"application/octet-stream\x00\x00Serato Markers2\x00"

ID3_EXTENSIONS = frozenset({".mp3", ".wav"})
VORBIS_EXTENSIONS = frozenset({".flac"})

_NON_BASE64 = re.compile(rb"[^A-Za-z0-9+/]")


def decode_base64(data: bytes) -> bytes:
    """Decode Serato's base64 leniently: newlines and stray bytes dropped, padding restored."""
    cleaned = _NON_BASE64.sub(b"", data.replace(b"\n", b""))
    leftover = len(cleaned) % 4
    if leftover == 1:
        cleaned = cleaned[:-1]
    elif leftover:
        cleaned += b"=" * (4 - leftover)
    return base64.b64decode(cleaned)


def strip_geob_header(data: bytes) -> bytes:
    if data.startswith(GEOB_LEAKED_HEADER):
        return data[GEOB_LEAKED_HEADER_SIZE:]
    if data.startswith(GEOB_VERSION_PREFIX):
        return data[len(GEOB_VERSION_PREFIX) :]
    return data


def unwrap_geob_payload(data: bytes) -> bytes:
    return decode_base64(strip_geob_header(data))


def unwrap_vorbis_payload(value: str | bytes) -> bytes:
    raw = value.encode("ascii", errors="ignore") if isinstance(value, str) else value
    outer = decode_base64(raw)
    header = outer[: len(VORBIS_HEADER)]
    if header != VORBIS_HEADER:
        raise InvalidFrameHeader(f"Unexpected {VORBIS_FIELD} header {header!r}")
    return decode_base64(outer[len(VORBIS_HEADER) :])


def find_geob_data(tags: Any) -> Optional[bytes]:
    if tags is None:
        return None
    for frame in tags.getall("GEOB"):
        if getattr(frame, "desc", None) == GEOB_DESCRIPTION:
            return frame.data
    return None


def find_vorbis_value(comments: Optional[Mapping[str, Any]]) -> Optional[str]:
    if comments is None:
        return None
    value = comments.get(VORBIS_FIELD)
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    return value or None


def extract_from_id3(tags: Any) -> Optional[bytes]:
    """Return the raw marker buffer from ID3 frames, or ``None`` when there is none."""
    data = find_geob_data(tags)
    if data is None:
        logger.debug("No '%s' GEOB frame", GEOB_DESCRIPTION)
        return None
    return unwrap_geob_payload(data)


def extract_from_vorbis(comments: Optional[Mapping[str, Any]]) -> Optional[bytes]:
    value = find_vorbis_value(comments)
    if value is None:
        logger.debug("No %s vorbis comment", VORBIS_FIELD)
        return None
    return unwrap_vorbis_payload(value)


def extract_markers(
    file_extension: str,
    *,
    id3: Any = None,
    vorbis: Optional[Mapping[str, Any]] = None,
) -> Optional[bytes]:
    ext = file_extension.lower()
    if ext in ID3_EXTENSIONS:
        return extract_from_id3(id3)
    if ext in VORBIS_EXTENSIONS:
        return extract_from_vorbis(vorbis)
    logger.debug("No marker container for %s files", ext)
    return None
