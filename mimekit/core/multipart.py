"""Multipart body splitting and assembly.

Wire format::

    [preamble CRLF] "--" B [LWSP] CRLF
    headers CRLF
    CRLF
    body
    CRLF "--" B [LWSP] CRLF
    ...
    CRLF "--" B "--" [epilogue]
"""

import secrets
from collections.abc import Iterable, Iterator, Sequence
from typing import TYPE_CHECKING

from mimekit.core.channel import ByteChannel, drain
from mimekit.core.errors import InvalidContentTypeError, ParserError, StreamError
from mimekit.core.grammar import parse_media_type
from mimekit.core.logger import LogIcon, logger
from mimekit.core.settings import settings
from mimekit.models.core import Body, BodyType
from mimekit.models.headers import CRLF, HeaderStore

if TYPE_CHECKING:
    from mimekit.core.entity import Entity

DASHES = b"--"
HEADER_END = CRLF + CRLF


def get_boundary(content_type: str) -> str:
    """Return the ``boundary`` parameter of a multipart content type."""
    media_type = parse_media_type(content_type)
    if not media_type.is_multipart():
        raise ParserError(f"Not a multipart media type: {content_type!r}")
    if not media_type.boundary:
        raise ParserError(f"Missing boundary parameter in content type: {content_type!r}")
    return media_type.boundary


def _occurs_in(part: "Entity", needle: bytes) -> bool:
    """Check a part's headers and serialized buffered body for ``needle``; stream bodies are not scanned."""
    if needle in part.headers.to_bytes():
        return True
    body = part.body
    if body is None:
        return False
    match body.kind:
        case BodyType.TEXT | BodyType.JSON | BodyType.XML | BodyType.BYTES:
            return needle in part.get_byte_array()
        case BodyType.PARTS:
            return any(_occurs_in(child, needle) for child in body.value)
        case _:
            return False


def generate_boundary(parts: Iterable["Entity"] = ()) -> str:
    """Generate a random boundary absent from every buffered part."""
    parts = list(parts)
    while True:
        boundary = secrets.token_hex(settings.BOUNDARY_BYTES)
        if not any(_occurs_in(part, boundary.encode("ascii")) for part in parts):
            return boundary
        logger.warning("Generated boundary collides with part content", icon=LogIcon.BOUNDARY)


def _skip_lwsp(data: bytes, cursor: int) -> int:
    while data[cursor:cursor + 1] in (b" ", b"\t"):
        cursor += 1
    return cursor


def _opening_offset(data: bytes, delimiter: bytes) -> tuple[int, bool]:
    """Locate the first delimiter line, skipping any preamble.

    Returns ``(first_part_start, terminal)``.
    """
    begin = 0 if data.startswith(delimiter) else -1
    search_from = 0
    while True:
        if begin == -1:
            found = data.find(CRLF + delimiter, search_from)
            if found == -1:
                raise ParserError("Missing opening boundary in multipart body")
            search_from = found + 1
            begin = found + len(CRLF)

        cursor = begin + len(delimiter)
        if data.startswith(DASHES, cursor):
            return cursor + len(DASHES), True
        cursor = _skip_lwsp(data, cursor)
        if data.startswith(CRLF, cursor):
            return cursor + len(CRLF), False
        begin = -1


def _find_delimiter(data: bytes, delimiter: bytes, start: int) -> tuple[int, int, bool]:
    """Find the next ``CRLF--B`` delimiter line at or after ``start``.

    Returns ``(begin, next_start, terminal)``: the preceding part ends at
    ``begin`` and the following part starts at ``next_start``. The terminal
    form ``--`` is checked first; occurrences followed by neither ``--`` nor
    ``[LWSP] CRLF`` are part content.
    """
    marker = CRLF + delimiter
    search_from = start
    while True:
        begin = data.find(marker, search_from)
        if begin == -1:
            raise ParserError("Missing closing boundary in multipart body")
        cursor = begin + len(marker)
        if data.startswith(DASHES, cursor):
            return begin, cursor + len(DASHES), True
        cursor = _skip_lwsp(data, cursor)
        if data.startswith(CRLF, cursor):
            return begin, cursor + len(CRLF), False
        search_from = begin + 1


def split_raw_parts(data: bytes, boundary: str) -> list[bytes]:
    """Split ``data`` into the raw byte ranges between boundary delimiters.

    Preamble and epilogue are discarded.
    """
    if not boundary:
        raise ParserError("Empty multipart boundary")
    delimiter = DASHES + boundary.encode("ascii")

    start, terminal = _opening_offset(data, delimiter)
    raw_parts: list[bytes] = []
    while not terminal:
        begin, next_start, terminal = _find_delimiter(data, delimiter, start)
        raw_parts.append(data[start:begin])
        start = next_start
    return raw_parts


def parse_part(raw: bytes, charset: str = "utf-8") -> tuple[HeaderStore, bytes]:
    """Separate a raw part into its header block and body."""
    if not raw:
        return HeaderStore(), b""
    if raw.startswith(CRLF):
        return HeaderStore(), raw[len(CRLF):]

    end = raw.find(HEADER_END)
    if end == -1:
        raise ParserError("Body part has no blank line after its headers")
    return HeaderStore.parse(raw[:end], charset), raw[end + len(HEADER_END):]


def _nested_boundary(headers: HeaderStore) -> str | None:
    if not headers.has("content-type"):
        return None
    try:
        media_type = parse_media_type(headers.get("content-type"))
    except InvalidContentTypeError:
        return None
    return media_type.boundary if media_type.is_multipart() else None


def split_parts(
    source: bytes | bytearray | memoryview | ByteChannel, boundary: str, charset: str = "utf-8"
) -> list["Entity"]:
    """Split a multipart body into entities, recursing into nested multipart parts.

    Fails as a whole with ``ParserError`` on a malformed structure.
    """
    from mimekit.core.entity import Entity

    if isinstance(source, (bytes, bytearray, memoryview)):
        data = bytes(source)
    else:
        try:
            data = drain(source)
        except StreamError as ex:
            raise ParserError(f"Unable to read multipart body: {ex}") from ex

    try:
        boundary.encode("ascii")
    except UnicodeEncodeError:
        raise ParserError(f"Boundary is not ASCII: {boundary!r}") from None

    parts: list[Entity] = []
    for raw in split_raw_parts(data, boundary):
        headers, body = parse_part(raw, charset)
        nested = _nested_boundary(headers)
        if nested:
            parts.append(Entity(headers=headers, body=Body(BodyType.PARTS, split_parts(body, nested, charset))))
        else:
            parts.append(Entity(headers=headers, body=Body(BodyType.BYTES, body)))

    logger.debug("Split multipart body", icon=LogIcon.SPLIT, parts=len(parts), boundary=boundary)
    return parts


def iter_assemble(
    parts: Sequence["Entity"], boundary: str, chunk_size: int | None = None, buffered: bool = False
) -> Iterator[bytes]:
    """Yield the boundary-delimited serialization of ``parts`` piece by piece.

    Stream bodies are read lazily, ``chunk_size`` bytes at a time, and handed
    off. With ``buffered`` they are drained into their part first so the parts
    can be serialized again.
    """
    delimiter = CRLF + DASHES + boundary.encode("ascii")
    for part in parts:
        yield delimiter + CRLF
        yield part.headers.to_bytes()
        yield CRLF
        yield from part.iter_bytes(chunk_size, buffered)
    yield delimiter + DASHES
    logger.debug("Assembled multipart body", icon=LogIcon.ASSEMBLE, parts=len(parts), boundary=boundary)


def assemble_parts(parts: Sequence["Entity"], boundary: str) -> bytes:
    """Serialize ``parts`` into one buffer; stream parts keep their drained bytes."""
    return b"".join(iter_assemble(parts, boundary, buffered=True))


def write_parts(parts: Sequence["Entity"], sink, boundary: str, chunk_size: int | None = None) -> int:
    """Write the assembled body to ``sink`` and return the number of bytes written."""
    written = 0
    for piece in iter_assemble(parts, boundary, chunk_size):
        if not piece:
            continue
        try:
            sink.write(piece)
        except OSError as ex:
            raise StreamError(f"Failed to write multipart body: {ex}") from ex
        written += len(piece)
    return written
