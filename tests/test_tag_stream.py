import struct
import unittest

from crate_convert.byte_reader import ByteReader
from crate_convert.errors import TagStreamError, TruncatedPayload
from crate_convert.tag_stream import (
    Tag,
    TagKind,
    TagStreamDecoder,
    container_tag,
    encode_tags,
    text_tag,
)


def _tag(tag_type: bytes, payload: bytes) -> bytes:
    return tag_type + struct.pack(">I", len(payload)) + payload


TABLE = {
    b"name": text_tag(TagKind.TRACK_NAME),
    b"wrap": container_tag(TagKind.TRACK),
}


class TestTagStreamDecoder(unittest.TestCase):
    def test_decodes_flat_sequence(self) -> None:
        data = _tag(b"name", "a".encode("utf-16-be")) + _tag(b"name", "bc".encode("utf-16-be"))
        tags = TagStreamDecoder(data, TABLE).decode_all()
        self.assertEqual([tag.text for tag in tags], ["a", "bc"])
        self.assertTrue(all(tag.kind is TagKind.TRACK_NAME for tag in tags))

    def test_empty_stream_is_clean_end(self) -> None:
        self.assertEqual(TagStreamDecoder(b"", TABLE).decode_all(), [])

    def test_fewer_than_four_trailing_bytes_end_cleanly(self) -> None:
        data = _tag(b"name", "x".encode("utf-16-be")) + b"\x00\x01"
        tags = TagStreamDecoder(data, TABLE).decode_all()
        self.assertEqual(len(tags), 1)

    def test_unknown_type_is_passed_through(self) -> None:
        data = _tag(b"zzzz", b"\xde\xad\xbe\xef") + _tag(b"name", "ok".encode("utf-16-be"))
        tags = TagStreamDecoder(data, TABLE).decode_all()
        self.assertEqual(tags[0].kind, TagKind.UNKNOWN)
        self.assertEqual(tags[0].type, b"zzzz")
        self.assertEqual(tags[0].payload, b"\xde\xad\xbe\xef")
        self.assertEqual(tags[1].text, "ok")

    def test_type_match_is_case_sensitive(self) -> None:
        tags = TagStreamDecoder(_tag(b"NAME", b"\x00a"), TABLE).decode_all()
        self.assertEqual(tags[0].kind, TagKind.UNKNOWN)

    def test_nested_container(self) -> None:
        inner = _tag(b"name", "song.mp3".encode("utf-16-be"))
        data = _tag(b"wrap", inner)
        (tag,) = TagStreamDecoder(data, TABLE).decode_all()
        self.assertEqual(tag.kind, TagKind.TRACK)
        self.assertTrue(tag.is_container)
        child = tag.child(TagKind.TRACK_NAME)
        self.assertIsNotNone(child)
        self.assertEqual(child.text, "song.mp3")

    def test_truncated_payload_raises(self) -> None:
        data = b"name" + struct.pack(">I", 10) + b"\x00a"
        with self.assertRaises(TruncatedPayload):
            TagStreamDecoder(data, TABLE).decode_all()

    def test_missing_length_raises(self) -> None:
        with self.assertRaises(TruncatedPayload):
            TagStreamDecoder(b"name\x00\x00", TABLE).decode_all()

    def test_truncated_nested_payload_raises(self) -> None:
        inner = b"name" + struct.pack(">I", 50) + b"\x00a"
        with self.assertRaises(TruncatedPayload):
            TagStreamDecoder(_tag(b"wrap", inner), TABLE).decode_all()

    def test_odd_length_text_is_rejected(self) -> None:
        with self.assertRaises(TagStreamError):
            TagStreamDecoder(_tag(b"name", b"\x00a\x00"), TABLE).decode_all()

    def test_next_tag_reads_one_at_a_time(self) -> None:
        reader = ByteReader(_tag(b"name", b"\x00a") + _tag(b"name", b"\x00b"))
        decoder = TagStreamDecoder(reader, TABLE)
        self.assertEqual(decoder.next_tag().text, "a")
        self.assertEqual(reader.position, 10)
        self.assertEqual(decoder.next_tag().text, "b")
        self.assertIsNone(decoder.next_tag())


class TestTagEncoding(unittest.TestCase):
    def test_reencodes_decoded_stream(self) -> None:
        data = (
            _tag(b"wrap", _tag(b"name", "Mix/01.mp3".encode("utf-16-be")) + _tag(b"odd!", b"\x07"))
            + _tag(b"zzzz", b"\x00\x01\x02")
        )
        tags = TagStreamDecoder(data, TABLE).decode_all()
        self.assertEqual(encode_tags(tags), data)

    def test_reencodes_container_with_short_tail(self) -> None:
        data = _tag(b"wrap", _tag(b"name", "a.mp3".encode("utf-16-be")) + b"\x00\x01\x02")
        (wrapper,) = TagStreamDecoder(data, TABLE).decode_all()
        self.assertEqual(len(wrapper.children), 1)
        self.assertEqual(wrapper.trailing, b"\x00\x01\x02")
        self.assertEqual(wrapper.encode(), data)

    def test_encodes_from_text_and_children(self) -> None:
        name = Tag(type=b"name", payload=b"", kind=TagKind.TRACK_NAME, text="A")
        wrapper = Tag(type=b"wrap", payload=b"", kind=TagKind.TRACK, children=(name,))
        self.assertEqual(wrapper.encode(), _tag(b"wrap", _tag(b"name", b"\x00A")))


if __name__ == "__main__":
    unittest.main()
