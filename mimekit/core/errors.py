"""Error types raised by the MIME engine."""


class MimeError(Exception):
    """Base exception for MIME entity handling."""


class InvalidContentTypeError(MimeError):
    """Raised when a media-type string does not follow the content-type grammar."""


class ParserError(MimeError):
    """Raised when a body cannot be converted or a multipart structure is malformed."""


class HeaderNotFoundError(MimeError, KeyError):
    """Raised when a requested header is absent."""

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Header not found: '{self.name}'"


class EncodeError(MimeError):
    """Raised when Base64 encoding fails."""


class DecodeError(MimeError):
    """Raised when Base64 decoding fails."""


class StreamError(MimeError):
    """Raised when the channel behind a lazy body stream fails."""
