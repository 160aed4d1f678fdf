"""Zeroizable container for key material.

Python can't guarantee that no copies of a secret survive in memory, but
keeping keys in a mutable bytearray lets us overwrite the primary copy as
soon as it's no longer needed.
"""

from __future__ import annotations

from types import TracebackType


class SecureBytes:
    """Mutable byte buffer that can be zeroized.

    Example:
        >>> with SecureBytes(b"key material") as key:
        ...     use(key.data)
        # buffer is zeroed here
    """

    __slots__ = ("_buffer", "_zeroized")

    def __init__(self, data: bytes | bytearray) -> None:
        self._buffer = bytearray(data)
        self._zeroized = False

    @property
    def data(self) -> bytes:
        """Copy of the contents.

        Raises:
            ValueError: If the buffer has been zeroized
        """
        if self._zeroized:
            raise ValueError("SecureBytes has been zeroized")
        return bytes(self._buffer)

    @property
    def is_zeroized(self) -> bool:
        return self._zeroized

    def zeroize(self) -> None:
        """Overwrite the buffer with zeros."""
        for i in range(len(self._buffer)):
            self._buffer[i] = 0
        self._zeroized = True

    def __len__(self) -> int:
        return len(self._buffer)

    def __enter__(self) -> SecureBytes:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.zeroize()

    def __del__(self) -> None:
        self.zeroize()

    def __repr__(self) -> str:
        """Return string representation (hides contents)."""
        return f"SecureBytes(<{len(self._buffer)} bytes>)"
