import base64
import struct
import tempfile
import unittest
import wave
from pathlib import Path
from types import SimpleNamespace

from mutagen.flac import FLAC
from mutagen.id3 import GEOB, TBPM, TCON, TIT2, TKEY, TPE1
from mutagen.wave import WAVE

from crate_convert.errors import UnsupportedFile
from crate_convert.markers import MarkerKind
from crate_convert.models import TrackMetadata
from crate_convert.tagging import AudioTagReader, AudioTags
from crate_convert.track import TrackConverter

CUE_PAYLOAD = bytes.fromhex("0005000080bf00cc0000000000")
VORBIS_HEADER = b"application/octet-stream\x00\x00Serato Markers2\x00"


def _entry(name: bytes, payload: bytes) -> bytes:
    return name + b"\x00" + struct.pack(">I", len(payload)) + payload


MARKERS = b"\x01\x01" + _entry(b"COLOR", b"\x00\xff\xff\xff") + _entry(b"CUE", CUE_PAYLOAD) + b"\x00"


def write_wav(path: Path, seconds: int = 1) -> None:
    with wave.open(str(path), "wb") as fh:
        fh.setnchannels(2)
        fh.setsampwidth(2)
        fh.setframerate(44100)
        fh.writeframes(b"\x00\x00\x00\x00" * 44100 * seconds)


def write_flac(path: Path) -> None:
    # fLaC + a single (last) STREAMINFO block: 44.1kHz, stereo, 16 bit, 1 second
    packed = (44100 << 44) | (1 << 41) | (15 << 36) | 44100
    streaminfo = struct.pack(">HH", 4096, 4096) + b"\x00" * 6 + struct.pack(">Q", packed) + b"\x00" * 16
    path.write_bytes(b"fLaC" + bytes([0x80]) + len(streaminfo).to_bytes(3, "big") + streaminfo)


class TestAudioTagReader(unittest.TestCase):
    def test_reads_wav_id3_metadata(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "track.wav"
            write_wav(path)
            audio = WAVE(path)
            audio.add_tags()
            audio.tags.add(TIT2(encoding=3, text=["Halo"]))
            audio.tags.add(TPE1(encoding=3, text=["Beyonce"]))
            audio.tags.add(TCON(encoding=3, text=["Pop"]))
            audio.tags.add(TBPM(encoding=3, text=["120"]))
            audio.tags.add(TKEY(encoding=3, text=["8A"]))
            audio.save()

            tags = AudioTagReader().read(path)
            meta = tags.metadata
            self.assertEqual(meta.title, "Halo")
            self.assertEqual(meta.artist, "Beyonce")
            self.assertEqual(meta.genre, ["Pop"])
            self.assertEqual(meta.bpm, 120.0)
            self.assertEqual(meta.key, "8A")
            self.assertEqual(meta.sample_rate, 44100)
            self.assertAlmostEqual(meta.duration, 1.0, places=2)
            self.assertEqual(meta.size, path.stat().st_size)
            self.assertEqual(meta.file_extension, ".wav")
            self.assertIsNotNone(tags.id3)

    def test_reads_flac_vorbis_metadata(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "track.flac"
            write_flac(path)
            audio = FLAC(path)
            audio.add_tags()
            audio["TITLE"] = "Windowlicker"
            audio["ARTIST"] = "Aphex Twin"
            audio["INITIALKEY"] = "4A"
            audio.save()

            tags = AudioTagReader().read(path)
            self.assertEqual(tags.metadata.title, "Windowlicker")
            self.assertEqual(tags.metadata.key, "4A")
            self.assertEqual(tags.metadata.sample_rate, 44100)
            self.assertIsNotNone(tags.vorbis)

    def test_rejects_unknown_extension(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "track.ogg"
            path.write_bytes(b"OggS")
            with self.assertRaises(UnsupportedFile):
                AudioTagReader().read(path)

    def test_unreadable_file_is_unsupported(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "broken.flac"
            path.write_bytes(b"not a flac file")
            with self.assertRaises(UnsupportedFile):
                AudioTagReader().read(path)


class TestTrackConverter(unittest.TestCase):
    def test_wav_with_serato_markers(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "cued.wav"
            write_wav(path)
            audio = WAVE(path)
            audio.add_tags()
            audio.tags.add(
                GEOB(
                    encoding=0,
                    mime="application/octet-stream",
                    filename="",
                    desc="Serato Markers2",
                    data=b"\x01\x01" + base64.b64encode(MARKERS),
                )
            )
            audio.save()

            record = TrackConverter().convert(path)
            self.assertEqual(len(record.cue_points), 1)
            cue = record.cue_points[0]
            self.assertEqual(cue.kind, MarkerKind.CUE)
            self.assertEqual((cue.index, cue.position_millis, cue.color), (5, 32959, "cc0000"))

    def test_flac_with_serato_markers(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "cued.flac"
            write_flac(path)
            audio = FLAC(path)
            audio.add_tags()
            inner = b"\x01\x01" + base64.b64encode(MARKERS)
            audio["SERATO_MARKERS_V2"] = base64.b64encode(VORBIS_HEADER + inner).decode("ascii")
            audio.save()

            record = TrackConverter().convert(path)
            self.assertEqual([cue.position_millis for cue in record.cue_points], [32959])

    def test_invalid_marker_header_keeps_track_without_cues(self) -> None:
        meta = TrackMetadata(location=Path("/music/a.mp3"), file_extension=".mp3", title="A")
        frame = SimpleNamespace(desc="Serato Markers2", data=b"\x01\x01" + base64.b64encode(b"\x07\x07junk"))
        id3 = SimpleNamespace(getall=lambda _frame_id: [frame])
        converter = TrackConverter()
        with self.assertLogs("crate_convert.track", level="WARNING"):
            cues = converter.cue_points(AudioTags(metadata=meta, id3=id3))
        self.assertEqual(cues, [])

    def test_missing_file_is_unsupported(self) -> None:
        with self.assertRaises(UnsupportedFile):
            TrackConverter().convert(Path("/does/not/exist.mp3"))

    def test_unsupported_extension(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "track.m4a"
            path.write_bytes(b"\x00")
            with self.assertRaises(UnsupportedFile):
                TrackConverter().convert(path)


if __name__ == "__main__":
    unittest.main()
