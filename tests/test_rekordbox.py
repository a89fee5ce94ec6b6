import tempfile
import unittest
import xml.etree.ElementTree as ET
from datetime import date
from pathlib import Path

from crate_convert.markers import MarkerEntry, MarkerKind
from crate_convert.models import LibraryData, Playlist, TrackMap, TrackMetadata, TrackRecord
from crate_convert.rekordbox import build_document, track_location, write_rekordbox_xml


def _record(path: str, cues: tuple[MarkerEntry, ...] = (), **fields) -> TrackRecord:
    location = Path(path)
    meta = TrackMetadata(location=location, file_extension=location.suffix, **fields)
    return TrackRecord(metadata=meta, cue_points=cues)


def _library(hot_cue_index: int = 5) -> LibraryData:
    cue = MarkerEntry(kind=MarkerKind.CUE, index=hot_cue_index, position_millis=32959, color="cc0000")
    track_map = TrackMap.from_records(
        [
            (
                "Music/a song.mp3",
                Path("/music/Music/a song.mp3"),
                _record(
                    "/music/Music/a song.mp3",
                    (cue,),
                    title="A Song",
                    artist="Someone",
                    genre=["House", "Deep"],
                    bpm=124.0,
                    key="8A",
                    sample_rate=44100,
                    bitrate=320000,
                    duration=245.7,
                    size=9_800_000,
                    comments=["first", "second"],
                ),
            ),
            ("Music/b.flac", Path("/music/Music/b.flac"), _record("/music/Music/b.flac")),
        ]
    )
    playlists = (
        Playlist(name="House", tracks=("Music/a song.mp3", "Music/missing.mp3", "Music/b.flac")),
        Playlist(name="Empty", tracks=()),
    )
    return LibraryData(playlists=playlists, track_map=track_map)


class TestRekordboxDocument(unittest.TestCase):
    def test_track_location_is_a_localhost_file_url(self) -> None:
        self.assertEqual(
            track_location(Path("/music/Music/a song.mp3")),
            "file://localhost/music/Music/a%20song.mp3",
        )

    def test_collection_tracks(self) -> None:
        root = build_document(_library(), date_added=date(2024, 1, 2))
        self.assertEqual(root.tag, "DJ_PLAYLISTS")
        self.assertEqual(root.find("PRODUCT").get("Name"), "rekordbox")
        collection = root.find("COLLECTION")
        self.assertEqual(collection.get("Entries"), "2")
        first, second = collection.findall("TRACK")
        self.assertEqual(first.get("TrackID"), "1")
        self.assertEqual(first.get("Name"), "A Song")
        self.assertEqual(first.get("Artist"), "Someone")
        self.assertEqual(first.get("Genre"), "House")
        self.assertEqual(first.get("Kind"), "MP3 File")
        self.assertEqual(first.get("AverageBpm"), "124.00")
        self.assertEqual(first.get("BitRate"), "320")
        self.assertEqual(first.get("SampleRate"), "44100")
        self.assertEqual(first.get("TotalTime"), "245")
        self.assertEqual(first.get("Tonality"), "8A")
        self.assertEqual(first.get("Comments"), "first")
        self.assertEqual(first.get("DateAdded"), "2024-01-02")
        self.assertEqual(first.get("Location"), "file://localhost/music/Music/a%20song.mp3")
        self.assertEqual(second.get("TrackID"), "2")
        self.assertEqual(second.get("Kind"), "FLAC File")
        self.assertEqual(second.get("Name"), "")
        self.assertEqual(second.get("AverageBpm"), "0.00")

    def test_memory_cues_only_by_default(self) -> None:
        root = build_document(_library())
        marks = root.find("COLLECTION/TRACK").findall("POSITION_MARK")
        self.assertEqual(len(marks), 1)
        self.assertEqual(marks[0].get("Num"), "-1")
        self.assertEqual(marks[0].get("Start"), "32.959")
        self.assertEqual(marks[0].get("Type"), "0")
        self.assertIsNone(marks[0].get("Red"))

    def test_hot_cues_carry_index_and_color(self) -> None:
        root = build_document(_library(), hot_cues=True)
        marks = root.find("COLLECTION/TRACK").findall("POSITION_MARK")
        self.assertEqual([m.get("Num") for m in marks], ["-1", "5"])
        hot = marks[1]
        self.assertEqual((hot.get("Red"), hot.get("Green"), hot.get("Blue")), ("204", "0", "0"))
        self.assertEqual(hot.get("Start"), "32.959")

    def test_playlists_drop_tracks_missing_from_map(self) -> None:
        root = build_document(_library())
        node = root.find("PLAYLISTS/NODE")
        self.assertEqual(node.get("Name"), "ROOT")
        self.assertEqual(node.get("Count"), "2")
        house, empty = node.findall("NODE")
        self.assertEqual(house.get("Name"), "House")
        self.assertEqual(house.get("Type"), "1")
        self.assertEqual(house.get("Entries"), "2")
        self.assertEqual([t.get("Key") for t in house.findall("TRACK")], ["1", "2"])
        self.assertEqual(empty.get("Entries"), "0")
        self.assertEqual(empty.findall("TRACK"), [])

    def test_write_rekordbox_xml(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            target = Path(tmpdir) / "out" / "rekordbox.xml"
            written = write_rekordbox_xml(_library(), target, hot_cues=True)
            self.assertEqual(written, target.resolve())
            text = written.read_text(encoding="utf-8")
            self.assertTrue(text.startswith('<?xml version="1.0" encoding="UTF-8"?>'))
            parsed = ET.parse(written).getroot()
            self.assertEqual(len(parsed.findall("COLLECTION/TRACK")), 2)
            self.assertEqual(len(parsed.findall("PLAYLISTS/NODE/NODE")), 2)


if __name__ == "__main__":
    unittest.main()
