"""Helpers for streams of lines and for iterators."""

from __future__ import annotations

import io
from collections.abc import Callable, Iterable, Iterator
from typing import IO, Any, TypeVar

T = TypeVar("T")
R = TypeVar("R")


class LineReader:
    """Iterates over the lines of a stream, without their line endings."""

    def __init__(self, stream: IO[Any]) -> None:
        self._stream = stream
        self._lines = iter(stream)

    def __iter__(self) -> LineReader:
        return self

    def __next__(self) -> str:
        line = next(self._lines)
        if isinstance(line, (bytes, bytearray)):
            line = bytes(line).decode("utf-8")
        if line.endswith("\n"):
            line = line[:-1]
        if line.endswith("\r"):
            line = line[:-1]
        return line

    def close(self) -> None:
        self._stream.close()

    def __enter__(self) -> LineReader:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


class IteratorReader(io.RawIOBase):
    """A readable binary stream whose content is a sequence of strings."""

    def __init__(self, lines: Iterable[str], append_newline: bool = False) -> None:
        super().__init__()
        self._source = lines
        self._lines = iter(lines)
        self._append_newline = append_newline
        self._pending = b""

    def readable(self) -> bool:
        return True

    def readinto(self, buffer: Any) -> int:
        while not self._pending:
            try:
                line = next(self._lines)
            except StopIteration:
                return 0
            if self._append_newline:
                line += "\n"
            self._pending = line.encode("utf-8")
        view = memoryview(buffer).cast("B")
        count = min(len(view), len(self._pending))
        view[:count] = self._pending[:count]
        self._pending = self._pending[count:]
        return count

    def close(self) -> None:
        if not self.closed:
            closer = getattr(self._source, "close", None)
            if callable(closer):
                closer()
        super().close()


def as_reader(lines: Iterable[str], append_newline: bool) -> IteratorReader:
    """Return a binary stream that yields ``lines``, each optionally newline-terminated."""
    return IteratorReader(lines, append_newline)


def map_all(items: Iterable[T], mapper: Callable[[T], R]) -> list[R]:
    """Apply ``mapper`` to every item and return the results in order."""
    return [mapper(item) for item in items]