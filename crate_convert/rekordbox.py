from __future__ import annotations

import logging
from datetime import date
from pathlib import Path
from typing import Dict, Optional
from urllib.parse import quote
from xml.dom import minidom
from xml.etree.ElementTree import Element, SubElement, tostring

from .markers import MarkerEntry
from .models import LibraryData, TrackMapEntry

logger = logging.getLogger(__name__)

PRODUCT = {"Name": "rekordbox", "Version": "5.6.0", "Company": "Pioneer DJ"}
FILE_KINDS = {".mp3": "MP3 File", ".wav": "WAV File", ".flac": "FLAC File"}
MEMORY_CUE = "-1"


def prettify(elem: Element) -> str:
    rough_string = tostring(elem, "utf-8")
    reparsed = minidom.parseString(rough_string)
    return reparsed.toprettyxml(indent="  ", encoding="UTF-8").decode("utf-8")


def track_location(path: Path) -> str:
    return "file://localhost" + quote(Path(path).as_posix(), safe="/")


def _text(value: object) -> str:
    return "" if value is None else str(value)


def _track_attributes(entry: TrackMapEntry, date_added: str) -> Dict[str, str]:
    meta = entry.track.metadata
    bpm = f"{meta.bpm:.2f}" if meta.bpm is not None else "0.00"
    bitrate = str(int(meta.bitrate / 1000)) if meta.bitrate else "0"
    return {
        # Only has to match the playlist keys; Rekordbox assigns its own IDs.
        "TrackID": str(entry.key),
        "Name": _text(meta.title),
        "Artist": _text(meta.artist),
        "Composer": "",
        "Album": _text(meta.album),
        "Grouping": "",
        "Genre": meta.genre[0] if meta.genre else "",
        "Kind": FILE_KINDS.get(meta.file_extension, ""),
        "Size": _text(meta.size),
        "TotalTime": str(int(meta.duration)) if meta.duration else "0",
        "DiscNumber": "0",
        "TrackNumber": "0",
        "Year": "0",
        "AverageBpm": bpm,
        "DateAdded": date_added,
        "BitRate": bitrate,
        "SampleRate": _text(meta.sample_rate),
        "Comments": meta.comments[0] if meta.comments else "",
        "PlayCount": "0",
        "Rating": "0",
        "Location": track_location(meta.location),
        "Remixer": "",
        "Tonality": _text(meta.key),
        "Label": "",
        "Mix": "",
    }


def _cue_start(cue: MarkerEntry) -> str:
    return f"{(cue.position_millis or 0) / 1000:.3f}"


def _add_cues(track_elem: Element, cue_points: tuple[MarkerEntry, ...], hot_cues: bool) -> None:
    for cue in cue_points:
        SubElement(track_elem, "POSITION_MARK", Name="", Type="0", Start=_cue_start(cue), Num=MEMORY_CUE)
    if not hot_cues:
        return
    for cue in cue_points:
        if cue.index is None or cue.index < 0:
            continue
        attrs = {"Name": "", "Type": "0", "Start": _cue_start(cue), "Num": str(cue.index)}
        if cue.color and len(cue.color) == 6:
            attrs.update(
                Red=str(int(cue.color[0:2], 16)),
                Green=str(int(cue.color[2:4], 16)),
                Blue=str(int(cue.color[4:6], 16)),
            )
        SubElement(track_elem, "POSITION_MARK", attrs)


def build_document(
    data: LibraryData,
    *,
    hot_cues: bool = False,
    date_added: Optional[date] = None,
) -> Element:
    added = (date_added or date.today()).isoformat()
    root = Element("DJ_PLAYLISTS", Version="1.0.0")
    SubElement(root, "PRODUCT", PRODUCT)

    collection = SubElement(root, "COLLECTION", Entries=str(len(data.track_map)))
    for track_path in data.track_map:
        entry = data.track_map[track_path]
        track_elem = SubElement(collection, "TRACK", _track_attributes(entry, added))
        _add_cues(track_elem, entry.track.cue_points, hot_cues)

    playlists_elem = SubElement(root, "PLAYLISTS")
    root_node = SubElement(playlists_elem, "NODE", Type="0", Name="ROOT", Count=str(len(data.playlists)))
    for playlist in data.playlists:
        entries = data.track_map.resolve(playlist)
        dropped = len(playlist.tracks) - len(entries)
        if dropped:
            logger.debug("Dropping %d unconverted track(s) from playlist '%s'", dropped, playlist.name)
        node = SubElement(root_node, "NODE", Name=playlist.name, Type="1", KeyType="0", Entries=str(len(entries)))
        for entry in entries:
            SubElement(node, "TRACK", Key=str(entry.key))
    return root


def write_rekordbox_xml(
    data: LibraryData,
    output_path: Path,
    *,
    hot_cues: bool = False,
    date_added: Optional[date] = None,
) -> Path:
    output_path = Path(output_path).expanduser().resolve()
    output_path.parent.mkdir(parents=True, exist_ok=True)
    xml = prettify(build_document(data, hot_cues=hot_cues, date_added=date_added))
    output_path.write_text(xml, encoding="utf-8")
    logger.info("Rekordbox collection XML saved to %s", output_path)
    return output_path
