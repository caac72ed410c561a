# noteledger/core/layout.py
"""
Little-endian binary codec for account records and instruction arguments.

Integers are fixed width, strings are a u32 byte length followed by UTF-8.
"""

import struct
from typing import Tuple

_U8 = struct.Struct("<B")
_U32 = struct.Struct("<I")
_U64 = struct.Struct("<Q")
_I64 = struct.Struct("<q")


class LayoutError(ValueError):
    """Raised when bytes do not decode to the expected layout."""


class Writer:
    def __init__(self):
        self._parts = []

    def u8(self, value: int) -> "Writer":
        self._parts.append(_pack(_U8, value))
        return self

    def u32(self, value: int) -> "Writer":
        self._parts.append(_pack(_U32, value))
        return self

    def u64(self, value: int) -> "Writer":
        self._parts.append(_pack(_U64, value))
        return self

    def i64(self, value: int) -> "Writer":
        self._parts.append(_pack(_I64, value))
        return self

    def raw(self, data: bytes) -> "Writer":
        self._parts.append(bytes(data))
        return self

    def string(self, value: str) -> "Writer":
        encoded = value.encode("utf-8")
        return self.u32(len(encoded)).raw(encoded)

    def getvalue(self) -> bytes:
        return b"".join(self._parts)


class Reader:
    def __init__(self, data: bytes, offset: int = 0):
        self._data = bytes(data)
        self.offset = offset

    @property
    def remaining(self) -> int:
        return len(self._data) - self.offset

    def _take(self, n: int) -> bytes:
        if n > self.remaining:
            raise LayoutError(f"Need {n} bytes at offset {self.offset}, only {self.remaining} left")
        chunk = self._data[self.offset:self.offset + n]
        self.offset += n
        return chunk

    def u8(self) -> int:
        return _U8.unpack(self._take(1))[0]

    def u32(self) -> int:
        return _U32.unpack(self._take(4))[0]

    def u64(self) -> int:
        return _U64.unpack(self._take(8))[0]

    def i64(self) -> int:
        return _I64.unpack(self._take(8))[0]

    def raw(self, n: int) -> bytes:
        return self._take(n)

    def string(self) -> str:
        length = self.u32()
        try:
            return self._take(length).decode("utf-8")
        except UnicodeDecodeError as e:
            raise LayoutError(f"String is not valid UTF-8: {e}") from e

    def expect_end(self) -> None:
        if self.remaining:
            raise LayoutError(f"{self.remaining} trailing bytes after decode")


def _pack(fmt: struct.Struct, value: int) -> bytes:
    try:
        return fmt.pack(value)
    except struct.error as e:
        raise LayoutError(f"Value {value!r} does not fit {fmt.format}: {e}") from e


def split_discriminator(data: bytes) -> Tuple[bytes, bytes]:
    """Separate the 8-byte type tag from the payload."""
    if len(data) < 8:
        raise LayoutError("Data too short for an 8-byte discriminator")
    return data[:8], data[8:]
