"""Pull-based lazy body streams."""

import io
from collections.abc import Iterable, Iterator, Sequence
from typing import TYPE_CHECKING, Self

from mimekit.core.channel import ByteChannel, close_channel, iter_channel
from mimekit.core.errors import StreamError
from mimekit.core.logger import LogIcon, logger
from mimekit.core.multipart import iter_assemble
from mimekit.core.settings import settings

if TYPE_CHECKING:
    from mimekit.core.entity import Entity


def rechunk(pieces: Iterable[bytes], chunk_size: int) -> Iterator[bytes]:
    """Regroup ``pieces`` into chunks of exactly ``chunk_size`` bytes, the last one possibly shorter."""
    buffer = bytearray()
    for piece in pieces:
        buffer += piece
        while len(buffer) >= chunk_size:
            yield bytes(buffer[:chunk_size])
            del buffer[:chunk_size]
    if buffer:
        yield bytes(buffer)


class LazyBodyStream(Iterator[bytes]):
    """Finite, non-restartable sequence of body chunks produced on demand.

    Each chunk is non-empty and at most ``chunk_size`` bytes. The source is
    either a readable channel, read ``chunk_size`` bytes per pull, or an
    iterable of byte pieces which is regrouped into chunks. A channel failure
    fails the current pull with ``StreamError``; chunks already returned stay
    valid. The source is closed once the stream is exhausted or closed.
    """

    def __init__(self, source: ByteChannel | Iterable[bytes], chunk_size: int | None = None) -> None:
        self.chunk_size = settings.CHUNK_SIZE if chunk_size is None else chunk_size
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")

        self._source = source
        if isinstance(source, ByteChannel):
            self._chunks = iter_channel(source, self.chunk_size)
        else:
            self._chunks = rechunk(source, self.chunk_size)
        self._done = False
        self._delivered = 0

    @classmethod
    def from_bytes(cls, data: bytes, chunk_size: int | None = None) -> Self:
        """Stream an already materialized body."""
        return cls(io.BytesIO(data), chunk_size)

    @classmethod
    def from_parts(cls, parts: Sequence["Entity"], boundary: str, chunk_size: int | None = None) -> Self:
        """Stream the multipart serialization of ``parts`` without assembling it up front."""
        chunk_size = settings.CHUNK_SIZE if chunk_size is None else chunk_size
        return cls(iter_assemble(parts, boundary, chunk_size), chunk_size)

    def __iter__(self) -> Self:
        return self

    def __next__(self) -> bytes:
        if self._done:
            raise StopIteration
        try:
            chunk = next(self._chunks)
        except StopIteration:
            logger.debug("Lazy body stream drained", icon=LogIcon.STREAMING, size=self._delivered)
            self.close()
            raise
        except OSError as ex:
            self.close()
            raise StreamError(f"Failed to produce body chunk: {ex}") from ex
        except StreamError:
            self.close()
            raise
        self._delivered += len(chunk)
        return chunk

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._done

    def close(self) -> None:
        """Stop producing chunks and release the underlying source."""
        if self._done and self._source is None:
            return
        self._done = True
        close = getattr(self._chunks, "close", None)
        if close is not None:
            close()
        close_channel(self._source)
        self._source = None

    def read_all(self) -> bytes:
        """Drain the remaining chunks into a single buffer."""
        return b"".join(self)
