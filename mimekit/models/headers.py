"""Case-insensitive, case-preserving multi-value header storage."""

from collections.abc import Iterator

from mimekit.core.errors import HeaderNotFoundError, ParserError

CRLF = b"\r\n"


class HeaderStore:
    """Header map keyed case-insensitively that remembers the first-seen casing of each name.

    Values live in ``_values`` under the lower-cased name; ``_names`` keeps one
    original-case entry per distinct header, in insertion order. Both are
    updated together on every mutation.
    """

    __slots__ = ("_values", "_names")

    def __init__(self) -> None:
        self._values: dict[str, list[str]] = {}
        self._names: list[str] = []

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.has(name)

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())

    def __len__(self) -> int:
        return len(self._names)

    def __repr__(self) -> str:
        return f"HeaderStore({list(self.items())})"

    def get(self, name: str) -> str:
        """Return the first value stored under ``name``."""
        return self.get_all(name)[0]

    def get_all(self, name: str) -> list[str]:
        """Return a copy of every value stored under ``name``, in insertion order."""
        try:
            return list(self._values[name.lower()])
        except KeyError:
            raise HeaderNotFoundError(name) from None

    def set(self, name: str, value: str) -> None:
        """Replace all values under ``name`` with ``value``."""
        key = name.lower()
        if key not in self._values:
            self._names.append(name)
        self._values[key] = [value]

    def add(self, name: str, value: str) -> None:
        """Append ``value`` under ``name``; behaves as ``set`` for a new header."""
        key = name.lower()
        if key not in self._values:
            self.set(name, value)
            return
        self._values[key].append(value)

    def remove(self, name: str) -> None:
        key = name.lower()
        if self._values.pop(key, None) is None:
            return
        self._names = [n for n in self._names if n.lower() != key]

    def remove_all(self) -> None:
        self._values.clear()
        self._names.clear()

    def has(self, name: str) -> bool:
        return name.lower() in self._values

    def names(self) -> list[str]:
        """Return a copy of the header names in first-seen casing."""
        return list(self._names)

    def items(self) -> Iterator[tuple[str, str]]:
        """Yield ``(name, value)`` pairs, one per stored value."""
        for name in self._names:
            for value in self._values[name.lower()]:
                yield name, value

    def copy(self) -> "HeaderStore":
        clone = HeaderStore()
        for name, value in self.items():
            clone.add(name, value)
        return clone

    def to_bytes(self, charset: str = "utf-8") -> bytes:
        """Serialize as ``Name: value`` lines, each CRLF-terminated."""
        return b"".join(f"{name}: {value}".encode(charset) + CRLF for name, value in self.items())

    @classmethod
    def parse(cls, block: bytes, charset: str = "utf-8") -> "HeaderStore":
        """Parse a CRLF-separated header block.

        Continuation lines starting with a space or tab are folded into the
        previous header value.
        """
        try:
            text = bytes(block).decode(charset)
        except (LookupError, UnicodeDecodeError) as ex:
            raise ParserError(f"Unable to decode header block: {ex}") from ex

        store = cls()
        pending: tuple[str, str] | None = None
        for line in text.split("\r\n"):
            if not line:
                continue
            if line[0] in " \t":
                if pending is None:
                    raise ParserError(f"Header continuation without a header: {line!r}")
                pending = (pending[0], f"{pending[1]} {line.strip()}")
                continue
            if pending is not None:
                store.add(*pending)
            name, sep, value = line.partition(":")
            name = name.strip()
            if not sep or not name:
                raise ParserError(f"Malformed header line: {line!r}")
            pending = (name, value.strip())
        if pending is not None:
            store.add(*pending)
        return store
