"""MIME entity: a header store plus exactly one tagged body."""

from collections.abc import Iterable, Iterator
from typing import Any
from xml.etree import ElementTree

from mimekit.core.channel import ByteChannel, close_channel, drain, iter_channel
from mimekit.core.codec import JSON_CODEC, XML_CODEC, DataCodec
from mimekit.core.errors import InvalidContentTypeError, ParserError, StreamError
from mimekit.core.grammar import parse_content_disposition, parse_media_type
from mimekit.core.logger import LogIcon, logger
from mimekit.core.multipart import assemble_parts, generate_boundary, get_boundary, iter_assemble, split_parts
from mimekit.core.settings import settings
from mimekit.core.stream import LazyBodyStream
from mimekit.models.core import DEFAULT_CONTENT_TYPES, Body, BodyType
from mimekit.models.headers import HeaderStore
from mimekit.models.media import ContentDisposition, MediaType

CONTENT_TYPE = "content-type"
CONTENT_ID = "content-id"
CONTENT_LENGTH = "content-length"
CONTENT_DISPOSITION = "content-disposition"


class Entity:
    """A MIME message or message part.

    Setting a body replaces the previous one and rewrites ``content-type`` to
    the variant's default unless a content type is given. Getters convert from
    the stored variant where possible and raise ``ParserError`` otherwise.
    Child entities of a ``PARTS`` body are owned by their parent.
    """

    __slots__ = ("headers", "_body", "_media_type", "_disposition")

    def __init__(self, headers: HeaderStore | None = None, body: Body | None = None) -> None:
        self.headers = headers if headers is not None else HeaderStore()
        self._body = body
        self._media_type: MediaType | None = None
        self._disposition: ContentDisposition | None = None

    def __repr__(self) -> str:
        kind = self._body.kind.value if self._body else None
        return f"Entity(content_type={self.get_content_type()!r}, body={kind!r})"

    @property
    def body(self) -> Body | None:
        return self._body

    # -------------------------------------------------------------------------
    # Headers
    # -------------------------------------------------------------------------

    def _invalidate(self, name: str) -> None:
        match name.lower():
            case "content-type":
                self._media_type = None
            case "content-disposition":
                self._disposition = None

    def get_header(self, name: str) -> str:
        return self.headers.get(name)

    def get_headers(self, name: str) -> list[str]:
        return self.headers.get_all(name)

    def get_header_names(self) -> list[str]:
        return self.headers.names()

    def has_header(self, name: str) -> bool:
        return self.headers.has(name)

    def set_header(self, name: str, value: str) -> None:
        self.headers.set(name, value)
        self._invalidate(name)

    def add_header(self, name: str, value: str) -> None:
        self.headers.add(name, value)
        self._invalidate(name)

    def remove_header(self, name: str) -> None:
        self.headers.remove(name)
        self._invalidate(name)

    def remove_all_headers(self) -> None:
        self.headers.remove_all()
        self._media_type = None
        self._disposition = None

    # -------------------------------------------------------------------------
    # Header views
    # -------------------------------------------------------------------------

    def get_content_type(self) -> str:
        """Return the raw ``content-type`` value, or an empty string."""
        return self.headers.get(CONTENT_TYPE) if self.headers.has(CONTENT_TYPE) else ""

    def set_content_type(self, content_type: str) -> None:
        """Validate and set ``content-type``; nothing changes if it is malformed."""
        media_type = parse_media_type(content_type)
        self.headers.set(CONTENT_TYPE, content_type)
        self._media_type = media_type

    def get_media_type(self) -> MediaType | None:
        """Return the parsed ``content-type``, or None when the header is absent."""
        if self._media_type is None and self.headers.has(CONTENT_TYPE):
            self._media_type = parse_media_type(self.headers.get(CONTENT_TYPE))
        return self._media_type

    def _declared_media_type(self) -> MediaType | None:
        try:
            return self.get_media_type()
        except InvalidContentTypeError:
            logger.warning(
                "Ignoring malformed content-type", icon=LogIcon.WARNING, content_type=self.get_content_type()
            )
            return None

    def is_multipart(self) -> bool:
        media_type = self._declared_media_type()
        return media_type is not None and media_type.is_multipart()

    def get_charset(self) -> str:
        """Return the declared charset, falling back to the configured default."""
        media_type = self._declared_media_type()
        return (media_type and media_type.charset) or settings.DEFAULT_CHARSET

    def get_content_id(self) -> str:
        return self.headers.get(CONTENT_ID) if self.headers.has(CONTENT_ID) else ""

    def set_content_id(self, content_id: str) -> None:
        self.headers.set(CONTENT_ID, content_id)

    def get_content_length(self) -> int:
        """Return ``content-length`` or -1 when absent."""
        if not self.headers.has(CONTENT_LENGTH):
            return -1
        value = self.headers.get(CONTENT_LENGTH).strip()
        if not (value.isascii() and value.isdigit()):
            raise ParserError(f"Invalid content-length header: {value!r}")
        return int(value)

    def set_content_length(self, content_length: int) -> None:
        if content_length < 0:
            raise ValueError(f"content-length cannot be negative: {content_length}")
        self.headers.set(CONTENT_LENGTH, str(content_length))

    def get_content_disposition(self) -> ContentDisposition | None:
        if self._disposition is None and self.headers.has(CONTENT_DISPOSITION):
            self._disposition = parse_content_disposition(self.headers.get(CONTENT_DISPOSITION))
        return self._disposition

    def set_content_disposition(self, content_disposition: ContentDisposition | str) -> None:
        if isinstance(content_disposition, str):
            parsed, value = parse_content_disposition(content_disposition), content_disposition
        else:
            parsed, value = content_disposition, content_disposition.to_string()
        self.headers.set(CONTENT_DISPOSITION, value)
        self._disposition = parsed

    # -------------------------------------------------------------------------
    # Body setters
    # -------------------------------------------------------------------------

    def _replace_body(self, body: Body, content_type: str | None) -> None:
        self.set_content_type(content_type or DEFAULT_CONTENT_TYPES[body.kind])
        self._body = body

    @staticmethod
    def _dump(codec: DataCodec, data: Any) -> bytes:
        try:
            return codec.dumps(data)
        except codec.errors as ex:
            raise ParserError(f"Unable to serialize {codec.name} body: {ex}") from ex

    def set_text(self, text: str, content_type: str | None = None) -> None:
        self._replace_body(Body(BodyType.TEXT, text), content_type)

    def set_json(self, data: Any, content_type: str | None = None, codec: DataCodec = JSON_CODEC) -> None:
        self._replace_body(Body(BodyType.JSON, self._dump(codec, data)), content_type or codec.media_type)

    def set_xml(self, data: Any, content_type: str | None = None, codec: DataCodec = XML_CODEC) -> None:
        self._replace_body(Body(BodyType.XML, self._dump(codec, data)), content_type or codec.media_type)

    def set_byte_array(self, data: bytes | bytearray | memoryview, content_type: str | None = None) -> None:
        self._replace_body(Body(BodyType.BYTES, bytes(data)), content_type)

    def set_byte_stream(self, channel: ByteChannel, content_type: str | None = None) -> None:
        """Use a readable channel as the body; it is read lazily and at most once."""
        self._replace_body(Body(BodyType.STREAM, channel), content_type)

    def set_body_parts(self, parts: Iterable["Entity"], content_type: str | None = None) -> None:
        """Use ``parts`` as a multipart body.

        A boundary absent from every buffered part is generated when the
        content type does not declare one.
        """
        parts = list(parts)
        content_type = content_type or DEFAULT_CONTENT_TYPES[BodyType.PARTS]
        media_type = parse_media_type(content_type)
        if not media_type.is_multipart():
            raise InvalidContentTypeError(f"Body parts require a multipart content type, got {content_type!r}")
        if not media_type.boundary:
            content_type = f"{content_type}; boundary={generate_boundary(parts)}"
        self._replace_body(Body(BodyType.PARTS, parts), content_type)

    def set_body(self, value: Any, content_type: str | None = None) -> None:
        """Set the body from any supported value, choosing the variant from its type."""
        match value:
            case str():
                self.set_text(value, content_type)
            case bytes() | bytearray() | memoryview():
                self.set_byte_array(value, content_type)
            case ElementTree.Element():
                self.set_xml(value, content_type)
            case [Entity(), *_] if all(isinstance(part, Entity) for part in value):
                self.set_body_parts(value, content_type)
            case _ if isinstance(value, ByteChannel):
                self.set_byte_stream(value, content_type)
            case dict() | list() | int() | float() | bool():
                self.set_json(value, content_type)
            case _:
                raise TypeError(f"Unsupported body type: {type(value).__name__}")

    # -------------------------------------------------------------------------
    # Body getters
    # -------------------------------------------------------------------------

    def _require_body(self) -> Body:
        if self._body is None:
            raise ParserError("Entity has no body")
        return self._body

    def _buffered(self) -> Body:
        """Return the body, draining a stream body into bytes first."""
        body = self._require_body()
        if body.kind is BodyType.STREAM:
            try:
                data = drain(body.value)
            except StreamError as ex:
                raise ParserError(f"Unable to read entity body: {ex}") from ex
            finally:
                close_channel(body.value)
            self._body = body = Body(BodyType.BYTES, data)
            logger.debug("Materialized stream body", icon=LogIcon.STREAMING, size=len(data))
        return body

    def _encode_text(self, text: str) -> bytes:
        charset = self.get_charset()
        try:
            return text.encode(charset)
        except (LookupError, UnicodeEncodeError) as ex:
            raise ParserError(f"Unable to encode text body as {charset!r}: {ex}") from ex

    def _serialized(self, body: Body, wanted: str) -> bytes:
        match body.kind:
            case BodyType.TEXT:
                return self._encode_text(body.value)
            case BodyType.PARTS:
                raise ParserError(f"Entity body is multipart and cannot be read as {wanted}; use get_body_parts()")
            case _:
                return body.value

    def _boundary(self) -> str:
        try:
            return get_boundary(self.get_content_type())
        except InvalidContentTypeError as ex:
            raise ParserError(f"Unable to find multipart boundary: {ex}") from ex

    def get_text(self) -> str:
        body = self._buffered()
        if body.kind is BodyType.TEXT:
            return body.value
        data = self._serialized(body, "text")
        charset = self.get_charset()
        try:
            return data.decode(charset)
        except (LookupError, UnicodeDecodeError) as ex:
            raise ParserError(f"Unable to decode body as {charset!r} text: {ex}") from ex

    def _load(self, codec: DataCodec) -> Any:
        data = self._serialized(self._buffered(), codec.name)
        try:
            return codec.loads(data)
        except codec.errors as ex:
            raise ParserError(f"Unable to parse body as {codec.name}: {ex}") from ex

    def get_json(self, codec: DataCodec = JSON_CODEC) -> Any:
        return self._load(codec)

    def get_xml(self, codec: DataCodec = XML_CODEC) -> Any:
        return self._load(codec)

    def get_byte_array(self) -> bytes:
        body = self._buffered()
        if body.kind is BodyType.PARTS:
            return assemble_parts(body.value, self._boundary())
        return self._serialized(body, "bytes")

    def get_byte_stream(self, chunk_size: int | None = None) -> LazyBodyStream:
        """Return the body as a stream of chunks of at most ``chunk_size`` bytes.

        A stream body is handed over to the returned stream and no longer held
        by the entity.
        """
        body = self._require_body()
        match body.kind:
            case BodyType.STREAM:
                self._body = None
                return LazyBodyStream(body.value, chunk_size)
            case BodyType.PARTS:
                return LazyBodyStream.from_parts(body.value, self._boundary(), chunk_size)
            case _:
                return LazyBodyStream.from_bytes(self.get_byte_array(), chunk_size)

    def get_body_parts(self) -> list["Entity"]:
        """Return the body parts, splitting a raw multipart body on first access."""
        body = self._require_body()
        if body.kind is BodyType.PARTS:
            return list(body.value)
        if not self.is_multipart():
            raise ParserError(f"Entity body is not a type of composite media type: {self.get_content_type()!r}")

        boundary = self._boundary()
        parts = split_parts(self._serialized(self._buffered(), "parts"), boundary, settings.DEFAULT_CHARSET)
        self._body = Body(BodyType.PARTS, parts)
        return list(parts)

    def get_body_parts_as_stream(self, chunk_size: int | None = None) -> LazyBodyStream:
        """Return the multipart serialization as a lazy stream."""
        body = self._require_body()
        if body.kind is not BodyType.PARTS and not self.is_multipart():
            raise ParserError(f"Entity body is not a type of composite media type: {self.get_content_type()!r}")
        return self.get_byte_stream(chunk_size)

    def iter_bytes(self, chunk_size: int | None = None, buffered: bool = False) -> Iterator[bytes]:
        """Yield the serialized body.

        A stream body is consumed and released, unless ``buffered`` asks for it
        to be drained into a bytes body first.
        """
        body = self._body
        if body is None:
            return
        match body.kind:
            case BodyType.STREAM if not buffered:
                self._body = None
                try:
                    yield from iter_channel(body.value, chunk_size)
                finally:
                    close_channel(body.value)
            case BodyType.PARTS:
                yield from iter_assemble(body.value, self._boundary(), chunk_size, buffered)
            case _:
                yield self.get_byte_array()

    def close(self) -> None:
        """Release a stream body that has not been consumed."""
        if self._body is not None and self._body.kind is BodyType.STREAM:
            close_channel(self._body.value)
            self._body = None
