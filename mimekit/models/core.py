"""Core models for entity bodies."""

from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class BodyType(StrEnum):
    """Body representation tag for an entity."""

    TEXT = "text"
    JSON = "json"
    XML = "xml"
    BYTES = "bytes"
    STREAM = "stream"
    PARTS = "parts"


DEFAULT_CONTENT_TYPES: dict[BodyType, str] = {
    BodyType.TEXT: "text/plain",
    BodyType.JSON: "application/json",
    BodyType.XML: "application/xml",
    BodyType.BYTES: "application/octet-stream",
    BodyType.STREAM: "application/octet-stream",
    BodyType.PARTS: "multipart/form-data",
}


@dataclass(frozen=True, slots=True)
class Body:
    """Tagged body value.

    ``TEXT`` holds ``str``, ``JSON``/``XML``/``BYTES`` hold serialized ``bytes``,
    ``STREAM`` holds a readable channel and ``PARTS`` a list of entities.
    """

    kind: BodyType
    value: Any

    @property
    def is_buffered(self) -> bool:
        return self.kind is not BodyType.STREAM
