"""Byte-stream collaborators used by the machine for ``,`` and ``.``.

The machine only relies on the :class:`InputStream` / :class:`OutputStream`
capabilities, so any object with a matching ``read`` or ``write`` method can
be plugged in. The standard variants talk to the process streams; the
buffered variants are deterministic and meant for tests and debugging tools.
"""

from __future__ import annotations

import sys
from typing import BinaryIO, Iterable, Iterator, Optional, Protocol, Union, runtime_checkable

from .errors import ValueOutOfRange

BYTE_MIN = 0
BYTE_MAX = 255


@runtime_checkable
class InputStream(Protocol):
    def read(self) -> int:
        ...


@runtime_checkable
class OutputStream(Protocol):
    def write(self, value: int) -> None:
        ...


def _check_byte(value: int) -> None:
    if not BYTE_MIN <= value <= BYTE_MAX:
        raise ValueOutOfRange(f"Must write exactly one byte, got {value}")


class StandardInput:
    """Reads one byte per call from the process's standard input."""

    def __init__(self, stream: Optional[BinaryIO] = None) -> None:
        self._stream = stream

    def _source(self) -> BinaryIO:
        if self._stream is not None:
            return self._stream
        return sys.stdin.buffer

    def read(self) -> int:
        data = self._source().read(1)
        if not data:
            raise EOFError("End of input stream")
        return data[0]


class StandardOutput:
    """Writes raw bytes to the process's standard output."""

    def __init__(self, stream: Optional[BinaryIO] = None) -> None:
        self._stream = stream

    def _destination(self) -> BinaryIO:
        if self._stream is not None:
            return self._stream
        return sys.stdout.buffer

    def write(self, value: int) -> None:
        _check_byte(value)
        destination = self._destination()
        destination.write(bytes((value,)))
        destination.flush()


class BufferedInput:
    """Serves a fixed sequence of values, one per :meth:`read`.

    Once the data is exhausted, ``EOFError`` is raised unless ``eof_value``
    is given, in which case that value is returned for every further read.
    """

    def __init__(
        self,
        data: Union[str, bytes, Iterable[int]] = (),
        eof_value: Optional[int] = None,
    ) -> None:
        if isinstance(data, str):
            values = [ord(ch) for ch in data]
        else:
            values = list(data)
        self._values: Iterator[int] = iter(values)
        self.eof_value = eof_value

    def read(self) -> int:
        try:
            return next(self._values)
        except StopIteration:
            if self.eof_value is None:
                raise EOFError("Buffered input exhausted") from None
            return self.eof_value


class BufferedOutput:
    """Collects written bytes in memory."""

    def __init__(self) -> None:
        self._buffer = bytearray()

    def write(self, value: int) -> None:
        _check_byte(value)
        self._buffer.append(value)

    def getvalue(self) -> bytes:
        return bytes(self._buffer)

    def text(self) -> str:
        return self._buffer.decode("latin-1")

    def __len__(self) -> int:
        return len(self._buffer)


__all__ = [
    "BYTE_MAX",
    "BYTE_MIN",
    "BufferedInput",
    "BufferedOutput",
    "InputStream",
    "OutputStream",
    "StandardInput",
    "StandardOutput",
]
