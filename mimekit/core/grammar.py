"""Parsers for ``Content-Type`` and ``Content-Disposition`` header values.

The media-type parser is strict and raises ``InvalidContentTypeError``; the
content-disposition parser never raises, returning empty fields for input it
cannot make sense of.
"""

from urllib.parse import unquote

from beartype import beartype

from mimekit.core.errors import InvalidContentTypeError
from mimekit.models.media import ContentDisposition, MediaType, is_token


class _UnterminatedQuote(ValueError):
    pass


def split_segments(value: str, strict: bool = True) -> list[str]:
    """Split on ``;`` outside quoted strings.

    An unterminated quoted string raises when ``strict``; otherwise the rest of
    the input becomes the last segment.
    """
    segments: list[str] = []
    current: list[str] = []
    in_quotes = escaped = False

    for ch in value:
        if escaped:
            escaped = False
        elif in_quotes and ch == "\\":
            escaped = True
        elif ch == '"':
            in_quotes = not in_quotes
        elif ch == ";" and not in_quotes:
            segments.append("".join(current))
            current = []
            continue
        current.append(ch)

    if in_quotes and strict:
        raise _UnterminatedQuote(value)
    segments.append("".join(current))
    return segments


def parse_value(raw: str, strict: bool = True) -> str:
    """Parse a parameter value given as a token or a quoted-string."""
    if not raw.startswith('"'):
        if strict and (not raw or any(ch.isspace() or ch == '"' for ch in raw)):
            raise ValueError(f"Invalid parameter value: {raw!r}")
        return raw

    chars: list[str] = []
    index = 1
    while index < len(raw):
        ch = raw[index]
        if ch == "\\" and index + 1 < len(raw):
            chars.append(raw[index + 1])
            index += 2
            continue
        if ch == '"':
            if strict and raw[index + 1:].strip():
                raise ValueError(f"Unexpected data after quoted-string: {raw!r}")
            return "".join(chars)
        chars.append(ch)
        index += 1

    if strict:
        raise _UnterminatedQuote(raw)
    return "".join(chars)


@beartype
def parse_media_type(value: str) -> MediaType:
    """Parse a ``type/subtype[+suffix] *(; attr=value)`` string.

    Type, subtype, suffix and parameter names are lower-cased; parameter values
    keep their case.
    """
    primary, sep, rest = value.strip().partition("/")
    if not sep:
        raise InvalidContentTypeError(f"Missing '/' in media type: {value!r}")

    try:
        segments = split_segments(rest)
    except _UnterminatedQuote:
        raise InvalidContentTypeError(f"Unterminated quoted string in media type: {value!r}") from None

    primary = primary.strip().lower()
    sub_type = segments[0].strip().lower()
    suffix = ""
    if "+" in sub_type:
        sub_type, _, suffix = sub_type.rpartition("+")
        if not is_token(suffix):
            raise InvalidContentTypeError(f"Invalid suffix in media type: {value!r}")

    if not is_token(primary):
        raise InvalidContentTypeError(f"Invalid primary type in media type: {value!r}")
    if not is_token(sub_type):
        raise InvalidContentTypeError(f"Invalid subtype in media type: {value!r}")

    parameters: dict[str, str] = {}
    for segment in segments[1:]:
        segment = segment.strip()
        if not segment:
            continue
        key, eq, raw = segment.partition("=")
        key = key.strip().lower()
        if not eq:
            raise InvalidContentTypeError(f"Parameter without '=' in media type: {value!r}")
        if not is_token(key):
            raise InvalidContentTypeError(f"Invalid parameter name {key!r} in media type: {value!r}")
        try:
            parameters[key] = parse_value(raw.strip())
        except _UnterminatedQuote:
            raise InvalidContentTypeError(f"Unterminated quoted string in media type: {value!r}") from None
        except ValueError as ex:
            raise InvalidContentTypeError(f"{ex} in media type: {value!r}") from ex

    return MediaType(primary_type=primary, sub_type=sub_type, suffix=suffix, parameters=parameters)


def _decode_extended(value: str) -> str | None:
    """Decode an RFC 5987 ``charset'lang'percent-encoded`` value."""
    charset, sep, rest = value.partition("'")
    _, sep2, encoded = rest.partition("'")
    if not (sep and sep2):
        return None
    try:
        return unquote(encoded, encoding=charset or "utf-8", errors="strict")
    except (LookupError, UnicodeDecodeError):
        return None


def parse_content_disposition(value: str | None) -> ContentDisposition:
    """Parse a ``disposition *(; attr=value)`` string, never failing.

    ``name`` and ``filename`` (or ``filename*``) are promoted to dedicated
    fields; other parameters keep their original key casing.
    """
    disposition = ContentDisposition()
    if not value or not value.strip():
        return disposition

    segments = split_segments(value, strict=False)
    disposition.disposition = segments[0].strip()

    extended_name: str | None = None
    for segment in segments[1:]:
        key, eq, raw = segment.partition("=")
        key = key.strip()
        if not eq or not key:
            continue
        parsed = parse_value(raw.strip(), strict=False)
        match key.lower():
            case "filename":
                disposition.file_name = parsed
            case "filename*":
                extended_name = _decode_extended(parsed)
            case "name":
                disposition.name = parsed
            case _:
                disposition.parameters[key] = parsed

    if extended_name is not None:
        disposition.file_name = extended_name
    return disposition


def get_content_disposition_object(content_disposition: str | None) -> ContentDisposition:
    """Construct a ContentDisposition object given a content-disposition value."""
    return parse_content_disposition(content_disposition)
