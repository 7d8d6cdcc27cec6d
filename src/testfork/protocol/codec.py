# src/testfork/protocol/codec.py

"""
Binary primitives shared by every serializable testfork type.

Big-endian, no type tags and no padding: both ends must read fields in
exactly the order they were written.
"""

from collections.abc import Iterable, Mapping
from typing import BinaryIO

from testfork.exceptions import WireEncodingError, WireFormatError

MAX_UTF_LENGTH = 0xFFFF

_INT_BOUNDS = {
    4: (-(1 << 31), (1 << 31) - 1),
    8: (-(1 << 63), (1 << 63) - 1),
}


class WireWriter:
    """Writes primitives to a binary stream."""

    def __init__(self, stream: BinaryIO):
        self._stream = stream

    def _write_signed(self, value: int, size: int) -> None:
        low, high = _INT_BOUNDS[size]
        if not low <= value <= high:
            raise WireEncodingError(f"Value {value} does not fit in {size * 8} signed bits")
        self._stream.write(value.to_bytes(size, byteorder="big", signed=True))

    def write_bool(self, value: bool) -> None:
        self._stream.write(b"\x01" if value else b"\x00")

    def write_byte(self, value: int) -> None:
        if not 0 <= value <= 0xFF:
            raise WireEncodingError(f"Value {value} does not fit in an unsigned byte")
        self._stream.write(bytes((value,)))

    def write_int(self, value: int) -> None:
        self._write_signed(value, 4)

    def write_long(self, value: int) -> None:
        self._write_signed(value, 8)

    def write_utf(self, value: str) -> None:
        encoded = value.encode("utf-8", errors="surrogatepass")
        if len(encoded) > MAX_UTF_LENGTH:
            raise WireEncodingError(
                f"Encoded string is {len(encoded)} bytes long, at most {MAX_UTF_LENGTH} allowed"
            )
        self._stream.write(len(encoded).to_bytes(2, byteorder="big", signed=False))
        self._stream.write(encoded)

    def write_str_list(self, values: Iterable[str]) -> None:
        values = list(values)
        self.write_int(len(values))
        for value in values:
            self.write_utf(value)

    # Sets go out in iteration order, same layout as lists.
    write_str_set = write_str_list

    def write_str_map(self, values: Mapping[str, str]) -> None:
        self.write_int(len(values))
        for key, value in values.items():
            self.write_utf(key)
            self.write_utf(value)


class WireReader:
    """Reads primitives written by WireWriter."""

    def __init__(self, stream: BinaryIO):
        self._stream = stream

    def _read_exact(self, size: int) -> bytes:
        chunks: list[bytes] = []
        remaining = size
        while remaining > 0:
            chunk = self._stream.read(remaining)
            if not chunk:
                raise WireFormatError(
                    f"Unexpected end of stream, {remaining} of {size} bytes missing"
                )
            chunks.append(chunk)
            remaining -= len(chunk)
        return b"".join(chunks)

    def read_bool(self) -> bool:
        return self._read_exact(1) != b"\x00"

    def read_byte(self) -> int:
        return self._read_exact(1)[0]

    def read_int(self) -> int:
        return int.from_bytes(self._read_exact(4), byteorder="big", signed=True)

    def read_long(self) -> int:
        return int.from_bytes(self._read_exact(8), byteorder="big", signed=True)

    def read_count(self) -> int:
        """Reads a sequence or map length, rejecting negative values."""
        count = self.read_int()
        if count < 0:
            raise WireFormatError(f"Negative element count: {count}")
        return count

    def read_utf(self) -> str:
        length = int.from_bytes(self._read_exact(2), byteorder="big", signed=False)
        raw = self._read_exact(length)
        try:
            return raw.decode("utf-8", errors="surrogatepass")
        except UnicodeDecodeError as e:
            raise WireFormatError("Malformed UTF-8 string on the wire", details=e) from e

    def read_str_list(self) -> list[str]:
        return [self.read_utf() for _ in range(self.read_count())]

    def read_str_set(self) -> set[str]:
        return {self.read_utf() for _ in range(self.read_count())}

    def read_str_map(self) -> dict[str, str]:
        result: dict[str, str] = {}
        for _ in range(self.read_count()):
            key = self.read_utf()
            result[key] = self.read_utf()
        return result

    def at_end(self) -> bool:
        """True when the underlying stream has no more bytes."""
        return not self._stream.read(1)


# 🔼⚙️
