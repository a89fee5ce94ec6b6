"""
Traktor NML collections as an alternate playlist source.

Playlist entries reference collection tracks by ``PRIMARYKEY KEY``, which is
the ``VOLUME + DIR + FILE`` of the track's ``LOCATION`` element.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from .errors import ConversionError
from .library import LibraryModelBuilder, ProgressCallback, TrackCandidate
from .markers import MarkerEntry, MarkerKind
from .models import LibraryData, Playlist, TrackRecord
from .tagging import AudioTagReader
from .track import SUPPORTED_FILE_TYPES

logger = logging.getLogger(__name__)

CUE_TYPE_CUE = "0"
UNNAMED_VOLUME = "Untitled"


@dataclass(frozen=True)
class CollectionEntry:
    key: str
    absolute_path: Path
    cue_points: tuple[MarkerEntry, ...] = ()


def load_nml(nml_path: Path) -> ET.Element:
    try:
        return ET.parse(nml_path).getroot()
    except ET.ParseError as exc:
        raise ConversionError(f"Failed to parse NML file {nml_path}: {exc}") from exc


def location_key(location: ET.Element) -> str:
    return f"{location.get('VOLUME', '')}{location.get('DIR', '')}{location.get('FILE', '')}"


def location_path(location: ET.Element) -> Path:
    volume = location.get("VOLUME", "")
    prefix = "" if volume in ("", UNNAMED_VOLUME) else f"/Volumes/{volume}"
    raw = f"{prefix}{location.get('DIR', '')}{location.get('FILE', '')}"
    return Path(raw.replace("/:", "/"))


def _parse_cues(entry: ET.Element) -> tuple[MarkerEntry, ...]:
    cues: list[MarkerEntry] = []
    for cue in entry.findall("CUE_V2"):
        if cue.get("TYPE") != CUE_TYPE_CUE:
            continue
        try:
            index = int(cue.get("HOTCUE", "-1"))
            position = round(float(cue.get("START", "0")))
        except ValueError:
            logger.debug("Ignoring malformed cue in %s", entry.get("TITLE"))
            continue
        cues.append(MarkerEntry(kind=MarkerKind.CUE, index=index, position_millis=position))
    return tuple(cues)


def parse_collection(root: ET.Element) -> list[CollectionEntry]:
    entries: list[CollectionEntry] = []
    for entry in root.findall("./COLLECTION/ENTRY"):
        location = entry.find("LOCATION")
        if location is None:
            continue
        entries.append(
            CollectionEntry(
                key=location_key(location),
                absolute_path=location_path(location),
                cue_points=_parse_cues(entry),
            )
        )
    return entries


def _walk_nodes(node: ET.Element, playlists: list[Playlist]) -> None:
    for child in node.findall("./SUBNODES/NODE"):
        if child.get("TYPE") == "FOLDER":
            _walk_nodes(child, playlists)
            continue
        playlist = child.find("PLAYLIST")
        if playlist is None:
            continue
        keys = [
            primary.get("KEY", "")
            for primary in playlist.findall("./ENTRY/PRIMARYKEY")
            if primary.get("KEY")
        ]
        playlists.append(Playlist(name=child.get("NAME", ""), tracks=tuple(keys)))


def parse_playlists(root: ET.Element) -> list[Playlist]:
    playlists: list[Playlist] = []
    root_node = root.find("./PLAYLISTS/NODE")
    if root_node is not None:
        _walk_nodes(root_node, playlists)
    return playlists


class TraktorTrackConverter:
    """Track pipeline for NML entries: metadata from the file, cues from the NML."""

    def __init__(self, entries: list[CollectionEntry], reader: Optional[AudioTagReader] = None) -> None:
        self.reader = reader or AudioTagReader()
        self._cues = {entry.absolute_path: entry.cue_points for entry in entries}

    def __call__(self, path: Path) -> TrackRecord:
        tags = self.reader.read(path)
        return TrackRecord(metadata=tags.metadata, cue_points=self._cues.get(Path(path), ()))


def convert_from_traktor(
    nml_path: Path,
    *,
    reader: Optional[AudioTagReader] = None,
    include_extensions: Sequence[str] = SUPPORTED_FILE_TYPES,
    worker_concurrency: int = 1,
    file_timeout_seconds: Optional[float] = None,
    progress: Optional[ProgressCallback] = None,
) -> LibraryData:
    nml_path = Path(nml_path).expanduser().resolve()
    root = load_nml(nml_path)
    playlists = parse_playlists(root)
    entries = parse_collection(root)
    logger.info("Found %d playlist(s) and %d collection entries in %s", len(playlists), len(entries), nml_path.name)
    builder = LibraryModelBuilder(
        Path("/"),
        converter=TraktorTrackConverter(entries, reader),
        include_extensions=include_extensions,
        worker_concurrency=worker_concurrency,
        file_timeout_seconds=file_timeout_seconds,
        progress=progress,
    )
    candidates = [
        TrackCandidate(entry.key, entry.absolute_path, nml_path.name)
        for entry in entries
        if builder.accepts(entry.absolute_path)
    ]
    track_map = builder.build_from_candidates(candidates)
    return LibraryData(playlists=tuple(playlists), track_map=track_map)
