# src/wallboard/runtime/codec.py
from __future__ import annotations

"""Little-endian positional codec shared by instructions, records and events.

Layout rules:
- u8 / u32 / u64 / i64 little-endian
- pubkey: 32 raw bytes
- string: u32 length prefix, then UTF-8 bytes
- discriminator: first 8 bytes of sha256("<namespace>:<name>")
"""

import hashlib
import struct

from solders.pubkey import Pubkey


class CodecError(RuntimeError):
    def __init__(self, code: str, msg: str) -> None:
        super().__init__(msg)
        self.code = code


def discriminator(namespace: str, name: str) -> bytes:
    return hashlib.sha256(f"{namespace}:{name}".encode("utf-8")).digest()[:8]


class Writer:
    def __init__(self) -> None:
        self._buf = bytearray()

    def raw(self, b: bytes) -> "Writer":
        self._buf += b
        return self

    def u8(self, v: int) -> "Writer":
        return self._pack("<B", v)

    def u32(self, v: int) -> "Writer":
        return self._pack("<I", v)

    def u64(self, v: int) -> "Writer":
        return self._pack("<Q", v)

    def i64(self, v: int) -> "Writer":
        return self._pack("<q", v)

    def pubkey(self, v: str | bytes | Pubkey) -> "Writer":
        if isinstance(v, Pubkey):
            b = bytes(v)
        elif isinstance(v, (bytes, bytearray)):
            b = bytes(v)
        else:
            b = bytes(Pubkey.from_string(str(v)))
        if len(b) != 32:
            raise CodecError("bad_pubkey", "pubkey must be 32 bytes")
        self._buf += b
        return self

    def string(self, v: str | bytes) -> "Writer":
        b = v if isinstance(v, (bytes, bytearray)) else str(v).encode("utf-8")
        self.u32(len(b))
        self._buf += bytes(b)
        return self

    def _pack(self, fmt: str, v: int) -> "Writer":
        try:
            self._buf += struct.pack(fmt, int(v))
        except struct.error as e:
            raise CodecError("out_of_range", f"{fmt}: {e}") from e
        return self

    def to_bytes(self) -> bytes:
        return bytes(self._buf)


class Reader:
    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._pos = 0

    def take(self, n: int) -> bytes:
        if n < 0 or self._pos + n > len(self._data):
            raise CodecError("truncated", f"need {n} bytes at offset {self._pos}, have {len(self._data) - self._pos}")
        out = self._data[self._pos : self._pos + n]
        self._pos += n
        return out

    def u8(self) -> int:
        return struct.unpack("<B", self.take(1))[0]

    def u32(self) -> int:
        return struct.unpack("<I", self.take(4))[0]

    def u64(self) -> int:
        return struct.unpack("<Q", self.take(8))[0]

    def i64(self) -> int:
        return struct.unpack("<q", self.take(8))[0]

    def pubkey(self) -> str:
        return str(Pubkey.from_bytes(self.take(32)))

    def string_bytes(self) -> bytes:
        n = self.u32()
        return self.take(n)

    def string(self) -> str:
        raw = self.string_bytes()
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CodecError("invalid_utf8", f"invalid utf-8: {e}") from e

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    def expect_end(self) -> None:
        if self.remaining:
            raise CodecError("trailing_bytes", f"{self.remaining} unexpected trailing bytes")
