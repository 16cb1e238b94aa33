"""Media type and content disposition value models."""

from dataclasses import dataclass, field

# RFC 2045 tspecials; a token is any printable US-ASCII run without these or spaces.
TSPECIALS = frozenset('()<>@,;:\\"/[]?=')


def is_token(value: str) -> bool:
    """Check that ``value`` is a non-empty RFC 2045 token."""
    return bool(value) and all(33 <= ord(ch) <= 126 and ch not in TSPECIALS for ch in value)


def quote_value(value: str, force: bool = False) -> str:
    """Return ``value`` as-is when it is a token, else as a quoted-string."""
    if is_token(value) and not force:
        return value
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def format_parameters(parameters: dict[str, str]) -> str:
    return "".join(f"; {key}={quote_value(value)}" for key, value in parameters.items())


@dataclass
class MediaType:
    """Parsed ``type/subtype+suffix; attr=value`` structure."""

    primary_type: str
    sub_type: str
    suffix: str = ""
    parameters: dict[str, str] = field(default_factory=dict)

    def __str__(self) -> str:
        return self.to_string()

    def get_base_type(self) -> str:
        return f"{self.primary_type}/{self.sub_type}"

    def get_full_type(self) -> str:
        """Return the base type with the ``+suffix`` segment, if any."""
        base = self.get_base_type()
        return f"{base}+{self.suffix}" if self.suffix else base

    def get_parameter(self, name: str, default: str | None = None) -> str | None:
        return self.parameters.get(name.lower(), default)

    def is_multipart(self) -> bool:
        return self.primary_type == "multipart"

    @property
    def charset(self) -> str | None:
        return self.get_parameter("charset")

    @property
    def boundary(self) -> str | None:
        return self.get_parameter("boundary")

    def to_string(self) -> str:
        return self.get_full_type() + format_parameters(self.parameters)


@dataclass
class ContentDisposition:
    """Parsed ``disposition; attr=value`` structure with first-class ``name`` and ``filename``."""

    disposition: str = ""
    file_name: str = ""
    name: str = ""
    parameters: dict[str, str] = field(default_factory=dict)

    def __str__(self) -> str:
        return self.to_string()

    def __bool__(self) -> bool:
        return bool(self.disposition or self.file_name or self.name or self.parameters)

    def to_string(self) -> str:
        value = self.disposition
        if self.name:
            value += f"; name={quote_value(self.name, force=True)}"
        if self.file_name:
            value += f"; filename={quote_value(self.file_name, force=True)}"
        return value + format_parameters(self.parameters)
