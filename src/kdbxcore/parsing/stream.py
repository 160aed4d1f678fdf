"""Sequential byte reader shared by the sniffer, header parser and decryptor.

ByteReader is the only thing the rest of the package knows about the
input. It offers exact-length reads that fail loudly on short input and
reports the current offset, so the parsing code never has to care whether
the source is a file, a BytesIO or something else with a ``read`` method.
"""

from __future__ import annotations

import io
from typing import BinaryIO, Protocol

from kdbxcore.exceptions import IncompleteInputError


class _Digest(Protocol):
    def update(self, data: bytes, /) -> None: ...


class ByteReader:
    """Exact-length reader over a binary stream.

    Reads are strictly sequential; bytes are observed in stream order and
    never consumed twice. When an observer is attached (any object with an
    ``update`` method, such as a hashlib hash) every byte returned by
    ``read`` is also fed to it.

    The stream must be blocking. A non-blocking stream that has no data
    ready returns None from ``read``; that is reported as BlockingIOError
    rather than mistaken for end of stream.
    """

    def __init__(self, stream: BinaryIO) -> None:
        """Initialize reader.

        Args:
            stream: Readable binary stream, positioned where reading starts
        """
        self._stream = stream
        try:
            self._position = stream.tell()
        except (AttributeError, OSError, io.UnsupportedOperation):
            self._position = 0
        self._observer: _Digest | None = None

    @classmethod
    def from_bytes(cls, data: bytes) -> ByteReader:
        """Create a reader over an in-memory buffer."""
        return cls(io.BytesIO(data))

    @property
    def position(self) -> int:
        """Offset of the next byte to be read."""
        return self._position

    def observe(self, observer: _Digest | None) -> None:
        """Attach (or detach, with None) an observer for consumed bytes."""
        self._observer = observer

    def read(self, n: int) -> bytes:
        """Read exactly n bytes.

        Raises:
            IncompleteInputError: If the stream ends first. The bytes that
                were available are consumed.
            BlockingIOError: If a non-blocking stream has no data ready.
                Bytes already received are consumed.
        """
        if n < 0:
            raise ValueError("Read size must not be negative")
        chunks = []
        remaining = n
        start = self._position
        try:
            while remaining > 0:
                chunk = self._read_chunk(remaining)
                if not chunk:
                    break
                chunks.append(chunk)
                remaining -= len(chunk)
        finally:
            data = b"".join(chunks)
            self._consume(data)
        if len(data) != n:
            raise IncompleteInputError(expected=n, actual=len(data), offset=start)
        return data

    def read_to_end(self) -> bytes:
        """Read everything left in the stream."""
        data = self._read_chunk(-1)
        self._consume(data)
        return data

    def _read_chunk(self, size: int) -> bytes:
        chunk = self._stream.read(size)
        if chunk is None:
            raise BlockingIOError(
                "Stream has no data ready; a blocking stream is required"
            )
        return chunk

    def _consume(self, data: bytes) -> None:
        self._position += len(data)
        if self._observer is not None and data:
            self._observer.update(data)
