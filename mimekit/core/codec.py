"""Base64 codec (MIME variant) and structured-data codecs.

``base64_encode``/``base64_decode`` keep the shape of their input: text in,
text out; bytes in, bytes out; channel in, channel out.
"""

import base64
import binascii
import io
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any
from xml.etree import ElementTree

import orjson

from mimekit.core.channel import ByteChannel, IterChannel, close_channel, iter_channel
from mimekit.core.errors import DecodeError, EncodeError, StreamError
from mimekit.core.logger import LogIcon, logger

WHITESPACE = b" \t\r\n\x0b\x0c"
PAD = b"="


def _decode_quanta(data: bytes) -> bytes:
    try:
        return binascii.a2b_base64(data, strict_mode=True)
    except binascii.Error as ex:
        raise DecodeError(f"Invalid Base64 input: {ex}") from ex


def _iter_encode(channel: ByteChannel, chunk_size: int | None) -> Iterator[bytes]:
    remainder = b""
    try:
        for chunk in iter_channel(channel, chunk_size):
            data = remainder + chunk
            cut = len(data) - len(data) % 3
            remainder = data[cut:]
            if cut:
                yield base64.b64encode(data[:cut])
    except StreamError as ex:
        logger.error("Base64 encode stream failed", icon=LogIcon.CODEC, error=str(ex))
        raise EncodeError(f"Failed to read stream for encoding: {ex}") from ex
    finally:
        close_channel(channel)
    if remainder:
        yield base64.b64encode(remainder)


def _iter_decode(channel: ByteChannel, chunk_size: int | None) -> Iterator[bytes]:
    pending = b""
    padded = False
    try:
        for chunk in iter_channel(channel, chunk_size):
            data = pending + chunk.translate(None, WHITESPACE)
            cut = len(data) - len(data) % 4
            pending = data[cut:]
            if not cut:
                continue
            if padded:
                raise DecodeError("Invalid Base64 input: data after padding")
            quanta = data[:cut]
            padded = quanta.endswith(PAD)
            yield _decode_quanta(quanta)
    except StreamError as ex:
        logger.error("Base64 decode stream failed", icon=LogIcon.CODEC, error=str(ex))
        raise DecodeError(f"Failed to read stream for decoding: {ex}") from ex
    finally:
        close_channel(channel)
    if pending:
        raise DecodeError("Invalid Base64 input: incorrect padding")


def base64_encode(
    data: str | bytes | bytearray | memoryview | ByteChannel, charset: str = "utf-8", chunk_size: int | None = None
) -> str | bytes | io.BufferedReader:
    """Encode ``data`` as Base64 without line wrapping.

    Text is first encoded with ``charset``; a channel yields a readable
    channel producing the encoded bytes incrementally.
    """
    match data:
        case str():
            try:
                raw = data.encode(charset)
            except (LookupError, UnicodeEncodeError) as ex:
                raise EncodeError(f"Unable to encode text as {charset!r}: {ex}") from ex
            return base64.b64encode(raw).decode("ascii")
        case bytes() | bytearray() | memoryview():
            return base64.b64encode(data)
        case _ if isinstance(data, ByteChannel):
            return io.BufferedReader(IterChannel(_iter_encode(data, chunk_size)))
        case _:
            raise EncodeError(f"Unsupported input for Base64 encoding: {type(data).__name__}")


def base64_decode(
    data: str | bytes | bytearray | memoryview | ByteChannel, charset: str = "utf-8", chunk_size: int | None = None
) -> str | bytes | io.BufferedReader:
    """Decode Base64 ``data``, ignoring line wrapping.

    Decoded bytes of a text input are turned back into text with ``charset``.
    """
    match data:
        case str():
            try:
                encoded = data.encode("ascii")
            except UnicodeEncodeError as ex:
                raise DecodeError(f"Invalid Base64 input: {ex}") from ex
            raw = _decode_quanta(encoded.translate(None, WHITESPACE))
            try:
                return raw.decode(charset)
            except (LookupError, UnicodeDecodeError) as ex:
                raise DecodeError(f"Decoded bytes are not valid {charset!r} text: {ex}") from ex
        case bytes() | bytearray() | memoryview():
            return _decode_quanta(bytes(data).translate(None, WHITESPACE))
        case _ if isinstance(data, ByteChannel):
            return io.BufferedReader(IterChannel(_iter_decode(data, chunk_size)))
        case _:
            raise DecodeError(f"Unsupported input for Base64 decoding: {type(data).__name__}")


@dataclass(frozen=True)
class DataCodec:
    """Serializer pair for a structured body format."""

    name: str
    media_type: str
    dumps: Callable[[Any], bytes]
    loads: Callable[[bytes], Any]
    errors: tuple[type[Exception], ...]


def _dump_xml(value: ElementTree.Element | str | bytes) -> bytes:
    if isinstance(value, str | bytes):
        raw = value.encode("utf-8") if isinstance(value, str) else value
        ElementTree.fromstring(raw)
        return raw
    return ElementTree.tostring(value, encoding="utf-8")


JSON_CODEC = DataCodec(
    name="json",
    media_type="application/json",
    dumps=orjson.dumps,
    loads=orjson.loads,
    errors=(orjson.JSONDecodeError, orjson.JSONEncodeError, TypeError),
)

XML_CODEC = DataCodec(
    name="xml",
    media_type="application/xml",
    dumps=_dump_xml,
    loads=ElementTree.fromstring,
    errors=(ElementTree.ParseError, TypeError),
)
