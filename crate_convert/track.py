from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .errors import TagStreamError, UnsupportedFile
from .fs_utils import is_supported, path_exists
from .marker_container import extract_markers
from .markers import MarkerEntry, decode_cue_points
from .models import TrackRecord
from .tagging import AudioTagReader, AudioTags

logger = logging.getLogger(__name__)

SUPPORTED_FILE_TYPES = (".mp3", ".wav", ".flac")


class TrackConverter:
    """Reads a track's metadata and its Serato cue points into a :class:`TrackRecord`."""

    def __init__(
        self,
        reader: Optional[AudioTagReader] = None,
        *,
        include_extensions: tuple[str, ...] = SUPPORTED_FILE_TYPES,
    ) -> None:
        self.reader = reader or AudioTagReader()
        self.include_extensions = include_extensions

    def __call__(self, path: Path) -> TrackRecord:
        return self.convert(path)

    def convert(self, path: Path) -> TrackRecord:
        path = Path(path)
        if not path_exists(path):
            raise UnsupportedFile(f"File does not exist: {path}")
        if not is_supported(path, self.include_extensions):
            raise UnsupportedFile(f"File type is not supported: {path}")
        tags = self.reader.read(path)
        return TrackRecord(metadata=tags.metadata, cue_points=tuple(self.cue_points(tags)))

    def cue_points(self, tags: AudioTags) -> list[MarkerEntry]:
        location = tags.metadata.location
        try:
            data = extract_markers(
                tags.metadata.file_extension, id3=tags.id3, vorbis=tags.vorbis
            )
            if data is None:
                return []
            cues = decode_cue_points(data)
        except TagStreamError as exc:
            logger.warning("Ignoring Serato markers for %s: %s", location, exc)
            return []
        logger.debug("Found %d cue point(s) in %s", len(cues), location)
        return cues
