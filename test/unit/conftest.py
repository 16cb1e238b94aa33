"""Test fixtures for mimekit unit tests."""

import io
from dataclasses import dataclass, field

import pytest

from mimekit.core.entity import Entity


# -----------------------------------------------------------------------------
# Mock classes for Robyn Request
# -----------------------------------------------------------------------------


@dataclass
class MockHeaders:
    """Mock Headers object for Robyn Request."""

    _data: dict = field(default_factory=dict)

    def get(self, key: str, default: str | None = None) -> str | None:
        return self._data.get(key, default)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def __getitem__(self, key: str) -> str:
        return self._data[key]

    def __setitem__(self, key: str, value: str) -> None:
        self._data[key] = value


@dataclass
class MockRequest:
    """Mock Request object for Robyn."""

    body: bytes | str = b""
    headers: MockHeaders = field(default_factory=MockHeaders)
    method: str = "POST"
    path: str = "/"


# -----------------------------------------------------------------------------
# Byte channels
# -----------------------------------------------------------------------------


class ChunkedChannel(io.RawIOBase):
    """Readable channel returning at most ``step`` bytes per read."""

    def __init__(self, data: bytes, step: int) -> None:
        super().__init__()
        self._data = data
        self._offset = 0
        self.step = step
        self.reads = 0

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        self.reads += 1
        size = min(len(buffer), self.step, len(self._data) - self._offset)
        buffer[:size] = self._data[self._offset:self._offset + size]
        self._offset += size
        return size


class FailingChannel(io.RawIOBase):
    """Readable channel that raises ``OSError`` once ``fail_after`` bytes were read."""

    def __init__(self, data: bytes, fail_after: int) -> None:
        super().__init__()
        self._data = data
        self._offset = 0
        self.fail_after = fail_after

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        if self._offset >= self.fail_after:
            raise OSError("connection reset")
        size = min(len(buffer), self.fail_after - self._offset)
        buffer[:size] = self._data[self._offset:self._offset + size]
        self._offset += size
        return size


# -----------------------------------------------------------------------------
# Fixtures
# -----------------------------------------------------------------------------


@pytest.fixture
def make_mock_request():
    """Factory fixture to create mock requests."""

    def _make(body: bytes | str = b"", headers: dict | None = None) -> MockRequest:
        return MockRequest(body=body, headers=MockHeaders(_data=dict(headers or {})))

    return _make


@pytest.fixture
def make_text_part():
    """Factory fixture to create form-data text parts."""

    def _make(name: str, text: str, content_type: str | None = None) -> Entity:
        part = Entity()
        part.set_text(text, content_type=content_type)
        part.set_content_disposition(f'form-data; name="{name}"')
        return part

    return _make


@pytest.fixture
def simple_multipart() -> bytes:
    """Single text part delimited by boundary ``B``."""
    return b"--B\r\nContent-Type: text/plain\r\n\r\nhello\r\n--B--\r\n"


@pytest.fixture
def chunked_channel() -> type[ChunkedChannel]:
    return ChunkedChannel


@pytest.fixture
def failing_channel() -> type[FailingChannel]:
    return FailingChannel
