"""Tests for MIME entities."""

import io
from xml.etree import ElementTree

import pytest

from mimekit.core.entity import Entity
from mimekit.core.errors import HeaderNotFoundError, InvalidContentTypeError, ParserError
from mimekit.core.multipart import get_boundary
from mimekit.core.stream import LazyBodyStream
from mimekit.models.core import Body, BodyType
from mimekit.models.media import ContentDisposition


# -----------------------------------------------------------------------------
# Header Tests
# -----------------------------------------------------------------------------


class TestEntityHeaders:
    """Tests for header delegation and header views."""

    def test_header_delegation(self) -> None:
        """Verify header operations reach the store case-insensitively."""
        entity = Entity()
        entity.set_header("X-Trace", "1")
        entity.add_header("x-trace", "2")
        assert entity.get_header("X-TRACE") == "1"
        assert entity.get_headers("x-trace") == ["1", "2"]
        assert entity.get_header_names() == ["X-Trace"]
        assert entity.has_header("x-trace")

        entity.remove_header("X-Trace")
        assert not entity.has_header("x-trace")
        with pytest.raises(HeaderNotFoundError):
            entity.get_header("x-trace")

    def test_remove_all_headers(self) -> None:
        """Verify every header and parsed view is cleared."""
        entity = Entity()
        entity.set_text("a")
        entity.set_content_disposition("inline")
        entity.remove_all_headers()
        assert entity.get_header_names() == []
        assert entity.get_media_type() is None
        assert entity.get_content_disposition() is None

    def test_content_type_absent(self) -> None:
        """Verify absent content-type gives empty string and no media type."""
        entity = Entity()
        assert entity.get_content_type() == ""
        assert entity.get_media_type() is None

    def test_invalid_content_type_leaves_previous(self) -> None:
        """Verify a malformed content type is rejected without side effects."""
        entity = Entity()
        entity.set_content_type("text/plain")
        with pytest.raises(InvalidContentTypeError):
            entity.set_content_type("not a media type")
        assert entity.get_content_type() == "text/plain"
        assert entity.get_media_type().get_base_type() == "text/plain"

    def test_set_header_invalidates_media_type(self) -> None:
        """Verify writing content-type through set_header refreshes the parsed view."""
        entity = Entity()
        entity.set_content_type("text/plain")
        assert entity.get_media_type().sub_type == "plain"
        entity.set_header("Content-Type", "text/html; charset=latin-1")
        assert entity.get_media_type().sub_type == "html"
        assert entity.get_charset() == "latin-1"

    def test_charset_default(self) -> None:
        """Verify the configured charset is used when none is declared."""
        entity = Entity()
        assert entity.get_charset() == "utf-8"
        entity.set_header("content-type", "garbage")
        assert entity.get_charset() == "utf-8"
        assert not entity.is_multipart()

    @pytest.mark.parametrize(("value", "expected"), [(None, -1), ("42", 42), (" 7 ", 7), ("0", 0)])
    def test_content_length(self, value: str | None, expected: int) -> None:
        """Verify content-length parsing with -1 when absent."""
        entity = Entity()
        if value is not None:
            entity.set_header("Content-Length", value)
        assert entity.get_content_length() == expected

    @pytest.mark.parametrize("value", ["abc", "-1", "1.5", "", "١٢"])
    def test_content_length_invalid(self, value: str) -> None:
        """Verify non-integer content-length raises ParserError."""
        entity = Entity()
        entity.set_header("content-length", value)
        with pytest.raises(ParserError):
            entity.get_content_length()

    def test_set_content_length(self) -> None:
        """Verify content-length is written as a decimal and negatives are rejected."""
        entity = Entity()
        entity.set_content_length(12)
        assert entity.get_header("content-length") == "12"
        with pytest.raises(ValueError):
            entity.set_content_length(-1)

    def test_content_id(self) -> None:
        """Verify content-id round trip and empty default."""
        entity = Entity()
        assert entity.get_content_id() == ""
        entity.set_content_id("<part1@example.org>")
        assert entity.get_content_id() == "<part1@example.org>"

    def test_content_disposition(self) -> None:
        """Verify content-disposition from a string or an object."""
        entity = Entity()
        assert entity.get_content_disposition() is None

        entity.set_content_disposition('form-data; name="field"')
        assert entity.get_content_disposition().name == "field"

        entity.set_content_disposition(ContentDisposition("attachment", file_name="r.pdf"))
        assert entity.get_header("content-disposition") == 'attachment; filename="r.pdf"'
        assert entity.get_content_disposition().file_name == "r.pdf"


# -----------------------------------------------------------------------------
# Body setter Tests
# -----------------------------------------------------------------------------


class TestEntitySetters:
    """Tests for body setters and default content types."""

    @pytest.mark.parametrize(
        ("setter", "value", "content_type", "kind"),
        [
            ("set_text", "hello", "text/plain", BodyType.TEXT),
            ("set_json", {"a": 1}, "application/json", BodyType.JSON),
            ("set_xml", ElementTree.Element("a"), "application/xml", BodyType.XML),
            ("set_byte_array", b"\x00\x01", "application/octet-stream", BodyType.BYTES),
            ("set_byte_stream", io.BytesIO(b"x"), "application/octet-stream", BodyType.STREAM),
            ("set_body_parts", [], "multipart/form-data", BodyType.PARTS),
        ],
    )
    def test_default_content_types(self, setter: str, value, content_type: str, kind: BodyType) -> None:
        """Verify each setter writes its variant and default content type."""
        entity = Entity()
        getattr(entity, setter)(value)
        assert entity.body.kind is kind
        assert entity.get_media_type().get_base_type() == content_type

    def test_explicit_content_type_wins(self) -> None:
        """Verify an explicit content type overrides the default."""
        entity = Entity()
        entity.set_text("<b>hi</b>", content_type="text/html; charset=utf-8")
        assert entity.get_content_type() == "text/html; charset=utf-8"

    def test_setter_replaces_previous_body(self) -> None:
        """Verify only the last body is kept."""
        entity = Entity()
        entity.set_text("first")
        entity.set_byte_array(b"second")
        assert entity.body == Body(BodyType.BYTES, b"second")
        assert entity.get_content_type() == "application/octet-stream"

    def test_invalid_content_type_keeps_body(self) -> None:
        """Verify the body is untouched when the content type is rejected."""
        entity = Entity()
        entity.set_text("kept")
        with pytest.raises(InvalidContentTypeError):
            entity.set_byte_array(b"lost", content_type="text/")
        assert entity.get_text() == "kept"
        assert entity.get_content_type() == "text/plain"

    def test_unserializable_json_raises(self) -> None:
        """Verify JSON serialization failures raise ParserError."""
        entity = Entity()
        with pytest.raises(ParserError):
            entity.set_json(object())
        assert entity.body is None

    def test_body_parts_generates_boundary(self, make_text_part) -> None:
        """Verify a boundary is added when the content type has none."""
        entity = Entity()
        entity.set_body_parts([make_text_part("a", "1")], content_type="multipart/mixed")
        media_type = entity.get_media_type()
        assert media_type.sub_type == "mixed"
        assert len(media_type.boundary) == 32

    def test_body_parts_keeps_declared_boundary(self, make_text_part) -> None:
        """Verify a declared boundary is used as-is."""
        entity = Entity()
        entity.set_body_parts([make_text_part("a", "1")], content_type="multipart/related; boundary=xyz")
        assert get_boundary(entity.get_content_type()) == "xyz"

    def test_body_parts_requires_multipart(self, make_text_part) -> None:
        """Verify a non-multipart content type is rejected for parts."""
        with pytest.raises(InvalidContentTypeError):
            Entity().set_body_parts([make_text_part("a", "1")], content_type="text/plain")

    @pytest.mark.parametrize(
        ("value", "kind"),
        [
            ("text", BodyType.TEXT),
            (b"bytes", BodyType.BYTES),
            (bytearray(b"bytes"), BodyType.BYTES),
            (ElementTree.Element("root"), BodyType.XML),
            ([Entity()], BodyType.PARTS),
            (io.BytesIO(b"stream"), BodyType.STREAM),
            ({"a": 1}, BodyType.JSON),
            ([1, 2], BodyType.JSON),
            (3.5, BodyType.JSON),
            (True, BodyType.JSON),
        ],
    )
    def test_set_body_dispatch(self, value, kind: BodyType) -> None:
        """Verify set_body picks the variant from the value type."""
        entity = Entity()
        entity.set_body(value)
        assert entity.body.kind is kind

    def test_set_body_unsupported(self) -> None:
        """Verify unsupported values raise TypeError."""
        with pytest.raises(TypeError):
            Entity().set_body(object())


# -----------------------------------------------------------------------------
# Body getter Tests
# -----------------------------------------------------------------------------


class TestEntityGetters:
    """Tests for best-effort body conversion."""

    def test_text_from_bytes_uses_charset(self) -> None:
        """Verify bytes are decoded with the declared charset."""
        entity = Entity()
        entity.set_byte_array("café".encode("iso-8859-1"), content_type="text/plain; charset=iso-8859-1")
        assert entity.get_text() == "café"

    def test_byte_array_from_text_uses_charset(self) -> None:
        """Verify text is encoded with the declared charset."""
        entity = Entity()
        entity.set_text("café", content_type="text/plain; charset=iso-8859-1")
        assert entity.get_byte_array() == "café".encode("iso-8859-1")

    def test_json_conversions(self) -> None:
        """Verify JSON reads from text, bytes and JSON bodies."""
        entity = Entity()
        entity.set_json({"a": [1, 2]})
        assert entity.get_json() == {"a": [1, 2]}
        assert entity.get_text() == '{"a":[1,2]}'

        entity.set_text('{"b": true}')
        assert entity.get_json() == {"b": True}

    def test_xml_conversions(self) -> None:
        """Verify XML reads from text and XML bodies."""
        entity = Entity()
        entity.set_text("<root><child>v</child></root>", content_type="application/xml")
        assert entity.get_xml().find("child").text == "v"

        entity.set_xml(ElementTree.Element("only"))
        assert entity.get_text() == "<only />"

    @pytest.mark.parametrize(
        ("setter", "value", "getter"),
        [
            ("set_text", "not json", "get_json"),
            ("set_text", "<unclosed>", "get_xml"),
            ("set_byte_array", b"\xff\xfe", "get_text"),
        ],
    )
    def test_malformed_conversion_raises(self, setter: str, value, getter: str) -> None:
        """Verify data that cannot be converted raises ParserError."""
        entity = Entity()
        getattr(entity, setter)(value)
        with pytest.raises(ParserError):
            getattr(entity, getter)()

    @pytest.mark.parametrize(
        "getter", ["get_text", "get_json", "get_xml", "get_byte_array", "get_byte_stream", "get_body_parts"]
    )
    def test_no_body_raises(self, getter: str) -> None:
        """Verify every getter fails on an entity without a body."""
        with pytest.raises(ParserError):
            getattr(Entity(), getter)()

    @pytest.mark.parametrize("getter", ["get_text", "get_json", "get_xml"])
    def test_parts_not_readable_as_text(self, getter: str, make_text_part) -> None:
        """Verify a parts body cannot be read as text or structured data."""
        entity = Entity()
        entity.set_body_parts([make_text_part("a", "1")])
        with pytest.raises(ParserError):
            getattr(entity, getter)()

    def test_non_multipart_body_parts_raises(self) -> None:
        """Verify reading parts from a non-composite body fails."""
        entity = Entity()
        entity.set_text("plain")
        with pytest.raises(ParserError):
            entity.get_body_parts()
        with pytest.raises(ParserError):
            entity.get_body_parts_as_stream()

    def test_stream_materialized_once(self) -> None:
        """Verify a stream body is drained into bytes on first buffered access."""
        channel = io.BytesIO(b"streamed text")
        entity = Entity()
        entity.set_byte_stream(channel, content_type="text/plain")

        assert entity.get_text() == "streamed text"
        assert channel.closed
        assert entity.body.kind is BodyType.BYTES
        assert entity.get_byte_array() == b"streamed text"

    def test_stream_failure_raises_parser_error(self, failing_channel) -> None:
        """Verify a failing stream body surfaces as ParserError."""
        entity = Entity()
        entity.set_byte_stream(failing_channel(b"abcdef", fail_after=2))
        with pytest.raises(ParserError):
            entity.get_byte_array()

    def test_byte_stream_from_buffered_body(self) -> None:
        """Verify buffered bodies are streamed in bounded chunks."""
        entity = Entity()
        entity.set_byte_array(b"0123456789")
        stream = entity.get_byte_stream(chunk_size=4)
        assert isinstance(stream, LazyBodyStream)
        assert list(stream) == [b"0123", b"4567", b"89"]
        assert entity.get_byte_array() == b"0123456789"

    def test_byte_stream_hands_off_stream_body(self, chunked_channel) -> None:
        """Verify a stream body is passed through lazily and released by the entity."""
        channel = chunked_channel(b"z" * 30, 10)
        entity = Entity()
        entity.set_byte_stream(channel)

        stream = entity.get_byte_stream(chunk_size=10)
        assert channel.reads == 0
        assert entity.body is None
        assert stream.read_all() == b"z" * 30
        assert channel.closed

    def test_close_releases_stream_body(self) -> None:
        """Verify close releases an unread stream body."""
        channel = io.BytesIO(b"unused")
        entity = Entity()
        entity.set_byte_stream(channel)
        entity.close()
        assert channel.closed
        assert entity.body is None


# -----------------------------------------------------------------------------
# Multipart body Tests
# -----------------------------------------------------------------------------


class TestEntityMultipart:
    """Tests for multipart bodies on entities."""

    def test_body_parts_split_and_cached(self, simple_multipart: bytes) -> None:
        """Verify a raw multipart body is split once and replaced by its parts."""
        entity = Entity()
        entity.set_byte_array(simple_multipart, content_type="multipart/mixed; boundary=B")

        parts = entity.get_body_parts()
        assert [part.get_text() for part in parts] == ["hello"]
        assert entity.body.kind is BodyType.PARTS
        assert entity.get_body_parts()[0] is parts[0]

    def test_body_parts_returns_copy(self, make_text_part) -> None:
        """Verify the returned list can be changed without touching the body."""
        entity = Entity()
        entity.set_body_parts([make_text_part("a", "1")])
        entity.get_body_parts().clear()
        assert len(entity.get_body_parts()) == 1

    def test_body_parts_from_stream(self, simple_multipart: bytes, chunked_channel) -> None:
        """Verify a streamed multipart body is drained and split."""
        entity = Entity()
        entity.set_byte_stream(chunked_channel(simple_multipart, 4), content_type='multipart/form-data; boundary="B"')
        assert entity.get_body_parts()[0].get_header("Content-Type") == "text/plain"

    def test_missing_boundary_raises(self) -> None:
        """Verify a multipart type without boundary cannot be split."""
        entity = Entity()
        entity.set_byte_array(b"--B--", content_type="multipart/mixed")
        with pytest.raises(ParserError):
            entity.get_body_parts()

    def test_byte_array_assembles_parts(self, make_text_part) -> None:
        """Verify a parts body serializes with the entity's boundary and parses back."""
        entity = Entity()
        entity.set_body_parts([make_text_part("a", "one"), make_text_part("b", "two")])
        raw = entity.get_byte_array()

        reparsed = Entity()
        reparsed.set_byte_array(raw, content_type=entity.get_content_type())
        parts = reparsed.get_body_parts()
        assert [part.get_content_disposition().name for part in parts] == ["a", "b"]
        assert [part.get_text() for part in parts] == ["one", "two"]

    def test_parts_as_stream(self, make_text_part) -> None:
        """Verify the streamed parts equal the assembled body."""
        entity = Entity()
        entity.set_body_parts([make_text_part("a", "one")], content_type="multipart/mixed; boundary=b1")
        stream = entity.get_body_parts_as_stream(chunk_size=8)
        chunks = list(stream)
        assert all(len(chunk) <= 8 for chunk in chunks)
        assert b"".join(chunks) == entity.get_byte_array()

    def test_unparsed_multipart_as_stream(self, simple_multipart: bytes) -> None:
        """Verify a raw multipart body is streamed as-is."""
        entity = Entity()
        entity.set_byte_array(simple_multipart, content_type="multipart/mixed; boundary=B")
        assert entity.get_body_parts_as_stream().read_all() == simple_multipart
        assert entity.body.kind is BodyType.BYTES

    def test_byte_array_keeps_stream_part(self) -> None:
        """Verify a stream part is buffered so the parent serializes the same way twice."""
        part = Entity()
        part.set_byte_stream(io.BytesIO(b"payload"), content_type="text/plain")
        entity = Entity()
        entity.set_body_parts([part], content_type="multipart/mixed; boundary=XYZ")

        first = entity.get_byte_array()
        assert first == entity.get_byte_array()
        assert first.endswith(b"\r\n\r\npayload\r\n--XYZ--")
        assert part.body.kind is BodyType.BYTES
        assert part.get_text() == "payload"
