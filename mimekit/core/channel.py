"""Byte channel protocol and adapters."""

import io
from collections.abc import Iterable, Iterator
from typing import Protocol, runtime_checkable

from mimekit.core.errors import StreamError
from mimekit.core.settings import settings


@runtime_checkable
class ByteChannel(Protocol):
    """Sequential byte source: ``read(size)`` returns at most ``size`` bytes, ``b""`` at end of data."""

    def read(self, size: int = -1, /) -> bytes: ...


class IterChannel(io.RawIOBase):
    """Readable raw channel over an iterator of byte chunks."""

    def __init__(self, chunks: Iterable[bytes]) -> None:
        super().__init__()
        self._chunks: Iterator[bytes] = iter(chunks)
        self._pending = memoryview(b"")

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        while not self._pending:
            try:
                self._pending = memoryview(next(self._chunks))
            except StopIteration:
                return 0
        size = min(len(buffer), len(self._pending))
        buffer[:size] = self._pending[:size]
        self._pending = self._pending[size:]
        return size

    def close(self) -> None:
        if not self.closed:
            close = getattr(self._chunks, "close", None)
            if close is not None:
                close()
        super().close()


def iter_channel(channel: ByteChannel, chunk_size: int | None = None) -> Iterator[bytes]:
    """Yield non-empty chunks of at most ``chunk_size`` bytes until end of data.

    ``OSError`` from the channel is raised as ``StreamError``.
    """
    chunk_size = chunk_size or settings.CHUNK_SIZE
    while True:
        try:
            data = channel.read(chunk_size)
        except OSError as ex:
            raise StreamError(f"Failed to read from channel: {ex}") from ex
        if not data:
            return
        for offset in range(0, len(data), chunk_size):
            yield bytes(data[offset:offset + chunk_size])


def drain(channel: ByteChannel, chunk_size: int | None = None) -> bytes:
    """Read ``channel`` to end of data."""
    return b"".join(iter_channel(channel, chunk_size))


def close_channel(channel: object) -> None:
    """Close ``channel`` if it supports it."""
    close = getattr(channel, "close", None)
    if close is not None:
        close()
