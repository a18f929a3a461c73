"""Sequential reader over an immutable byte buffer."""

from __future__ import annotations

from ph803w.protocol.exceptions import PacketDecodeError


class ByteCursor:
    """Read fixed-width, length-prefixed and NUL-terminated fields in order.

    Every read advances the cursor. Reading past the end raises
    ``PacketDecodeError(reason="too_short")`` carrying the whole buffer.

    Example:
        >>> cursor = ByteCursor(bytes.fromhex("0003616263") + b"v1\\x00")
        >>> cursor.read_length_prefixed()
        b'abc'
        >>> cursor.read_cstring()
        b'v1'
        >>> cursor.remaining
        0

    """

    def __init__(self, data: bytes, offset: int = 0) -> None:
        self._data = bytes(data)
        self._pos = offset

    @property
    def position(self) -> int:
        return self._pos

    @property
    def remaining(self) -> int:
        return max(0, len(self._data) - self._pos)

    def _take(self, size: int) -> bytes:
        if size < 0 or self._pos + size > len(self._data):
            raise PacketDecodeError("too_short", self._data)
        chunk = self._data[self._pos : self._pos + size]
        self._pos += size
        return chunk

    def skip(self, size: int) -> None:
        _ = self._take(size)

    def read_u8(self) -> int:
        return self._take(1)[0]

    def read_u16(self) -> int:
        """Read a big-endian unsigned 16-bit integer."""
        return int.from_bytes(self._take(2), "big")

    def read_fixed(self, size: int) -> bytes:
        return self._take(size)

    def read_length_prefixed(self) -> bytes:
        """Read a field preceded by its 16-bit big-endian length."""
        return self._take(self.read_u16())

    def read_cstring(self) -> bytes:
        """Read up to the next NUL byte and consume the terminator."""
        end = self._data.find(b"\x00", self._pos)
        if end < 0:
            raise PacketDecodeError("missing_terminator", self._data)
        value = self._data[self._pos : end]
        self._pos = end + 1
        return value

    def read_remainder(self) -> bytes:
        value = self._data[self._pos :]
        self._pos = len(self._data)
        return value
