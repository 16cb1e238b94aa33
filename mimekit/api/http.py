"""Conversion between robyn requests/responses and MIME entities."""

from robyn import Request, Response, status_codes

from mimekit.core.entity import CONTENT_DISPOSITION, CONTENT_ID, CONTENT_LENGTH, CONTENT_TYPE, Entity
from mimekit.core.logger import LogIcon, logger

ENTITY_HEADERS = (CONTENT_TYPE, CONTENT_DISPOSITION, CONTENT_ID, CONTENT_LENGTH)


def _request_body(request: Request) -> bytes:
    body = getattr(request, "body", b"")
    match body:
        case bytes():
            return body
        case str():
            return body.encode("utf-8")
        case bytearray() | list():
            return bytes(body)
        case _:
            return b""


def entity_from_request(request: Request) -> Entity:
    """Build an entity from the request's entity headers and body.

    Raises ``InvalidContentTypeError`` when the request declares a malformed
    content type; the caller decides the status code.
    """
    entity = Entity()
    content_type = request.headers.get(CONTENT_TYPE)
    entity.set_byte_array(_request_body(request), content_type=content_type or None)

    for name in ENTITY_HEADERS[1:]:
        value = request.headers.get(name)
        if value is not None:
            entity.set_header(name, value)

    logger.debug("Entity built from request", icon=LogIcon.PARSE, content_type=entity.get_content_type())
    return entity


def entity_to_response(entity: Entity, status_code: int = status_codes.HTTP_200_OK) -> Response:
    """Serialize an entity into a response; repeated headers are comma-joined."""
    description = entity.get_byte_array() if entity.body is not None else b""
    headers = {name: ", ".join(entity.get_headers(name)) for name in entity.get_header_names()}
    return Response(status_code=status_code, headers=headers, description=description)
