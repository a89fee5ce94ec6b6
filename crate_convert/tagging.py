from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from mutagen import MutagenError
from mutagen.flac import FLAC
from mutagen.id3 import ID3
from mutagen.mp3 import MP3
from mutagen.wave import WAVE

from .errors import UnsupportedFile
from .models import TrackMetadata, parse_float

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AudioTags:
    """Common metadata plus the native tag containers markers are embedded in."""

    metadata: TrackMetadata
    id3: Optional[ID3] = None
    vorbis: Optional[Any] = None


class AudioTagReader:
    """Reads common metadata and native frames from MP3, WAV and FLAC files."""

    SUPPORTED_EXTS = {".mp3", ".wav", ".flac"}

    def read(self, path: Path) -> AudioTags:
        path = Path(path).resolve()
        ext = path.suffix.lower()
        handlers: Dict[str, Callable[[Path], AudioTags]] = {
            ".mp3": self._read_mp3,
            ".wav": self._read_wav,
            ".flac": self._read_flac,
        }
        handler = handlers.get(ext)
        if not handler:
            raise UnsupportedFile(f"Unsupported audio file extension {ext!r}: {path}")
        try:
            return handler(path)
        except FileNotFoundError as exc:
            raise UnsupportedFile(f"Audio file does not exist: {path}") from exc
        except MutagenError as exc:
            raise UnsupportedFile(f"Failed to read tags for {path}: {exc}") from exc

    def _read_mp3(self, path: Path) -> AudioTags:
        audio = MP3(path)
        return self._from_id3(path, audio)

    def _read_wav(self, path: Path) -> AudioTags:
        audio = WAVE(path)
        return self._from_id3(path, audio)

    def _from_id3(self, path: Path, audio: Any) -> AudioTags:
        tags: Optional[ID3] = audio.tags
        if tags is None:
            logger.debug("No ID3 tags in %s", path)
        metadata = TrackMetadata(
            location=path,
            file_extension=path.suffix.lower(),
            title=self._id3_text(tags, "TIT2"),
            artist=self._id3_text(tags, "TPE1"),
            album=self._id3_text(tags, "TALB"),
            genre=self._id3_texts(tags, "TCON"),
            bpm=parse_float(self._id3_text(tags, "TBPM")),
            key=self._id3_text(tags, "TKEY"),
            comments=self._id3_texts(tags, "COMM"),
            **self._stream_info(path, audio),
        )
        return AudioTags(metadata=metadata, id3=tags)

    def _read_flac(self, path: Path) -> AudioTags:
        audio = FLAC(path)
        tags = audio.tags
        metadata = TrackMetadata(
            location=path,
            file_extension=path.suffix.lower(),
            title=self._vorbis_text(tags, "TITLE"),
            artist=self._vorbis_text(tags, "ARTIST"),
            album=self._vorbis_text(tags, "ALBUM"),
            genre=self._vorbis_texts(tags, "GENRE"),
            bpm=parse_float(self._vorbis_text(tags, "BPM")),
            key=self._vorbis_text(tags, "INITIALKEY") or self._vorbis_text(tags, "KEY"),
            comments=self._vorbis_texts(tags, "COMMENT") or self._vorbis_texts(tags, "DESCRIPTION"),
            **self._stream_info(path, audio),
        )
        return AudioTags(metadata=metadata, vorbis=tags)

    def _stream_info(self, path: Path, audio: Any) -> Dict[str, Any]:
        info = audio.info
        return {
            "sample_rate": getattr(info, "sample_rate", None),
            "bitrate": getattr(info, "bitrate", None),
            "duration": getattr(info, "length", None),
            "size": path.stat().st_size,
        }

    def _id3_texts(self, tags: Optional[ID3], frame_id: str) -> List[str]:
        if tags is None:
            return []
        values: List[str] = []
        for frame in tags.getall(frame_id):
            values.extend(str(text) for text in frame.text if text)
        return values

    def _id3_text(self, tags: Optional[ID3], frame_id: str) -> Optional[str]:
        values = self._id3_texts(tags, frame_id)
        return values[0] if values else None

    def _vorbis_texts(self, tags: Any, key: str) -> List[str]:
        if tags is None:
            return []
        return [value for value in tags.get(key, []) if value]

    def _vorbis_text(self, tags: Any, key: str) -> Optional[str]:
        values = self._vorbis_texts(tags, key)
        return values[0] if values else None
