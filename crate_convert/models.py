from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Iterator, List, Mapping, Optional

if TYPE_CHECKING:
    from .markers import MarkerEntry


@dataclass(frozen=True, slots=True)
class Playlist:
    name: str
    tracks: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class TrackMetadata:
    location: Path
    file_extension: str
    title: Optional[str] = None
    artist: Optional[str] = None
    album: Optional[str] = None
    genre: List[str] = field(default_factory=list)
    bpm: Optional[float] = None
    key: Optional[str] = None
    sample_rate: Optional[int] = None
    bitrate: Optional[int] = None
    comments: List[str] = field(default_factory=list)
    duration: Optional[float] = None
    size: Optional[int] = None


@dataclass(frozen=True, slots=True)
class TrackRecord:
    metadata: TrackMetadata
    cue_points: tuple["MarkerEntry", ...] = ()


@dataclass(frozen=True, slots=True)
class TrackMapEntry:
    key: int
    absolute_path: Path
    track: TrackRecord


class TrackMap(Mapping[str, TrackMapEntry]):
    """Read-only mapping of playlist track paths to keyed track records.

    Keys are 1-based and follow insertion order; a path only ever gets the key
    of its first occurrence.
    """

    def __init__(self, entries: Optional[Mapping[str, TrackMapEntry]] = None) -> None:
        self._entries: dict[str, TrackMapEntry] = dict(entries or {})

    @classmethod
    def from_records(cls, records: Iterable[tuple[str, Path, TrackRecord]]) -> "TrackMap":
        entries: dict[str, TrackMapEntry] = {}
        for track_path, absolute_path, track in records:
            if track_path in entries:
                continue
            entries[track_path] = TrackMapEntry(
                key=len(entries) + 1,
                absolute_path=absolute_path,
                track=track,
            )
        return cls(entries)

    def __getitem__(self, track_path: str) -> TrackMapEntry:
        return self._entries[track_path]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"TrackMap({len(self._entries)} tracks)"

    def resolve(self, playlist: Playlist) -> list[TrackMapEntry]:
        """Entries for the playlist's tracks; paths missing from the map are dropped."""
        return [self._entries[path] for path in playlist.tracks if path in self._entries]


@dataclass(frozen=True, slots=True)
class LibraryData:
    playlists: tuple[Playlist, ...]
    track_map: TrackMap


def parse_float(value: object) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    cleaned = str(value).strip().replace(",", ".")
    if not cleaned:
        return None
    try:
        return float(cleaned)
    except ValueError:
        return None
