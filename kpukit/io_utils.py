"""File helpers: whole-file reads and parameter tensor files."""

from __future__ import annotations

import os
import struct
from pathlib import Path

_U32 = struct.Struct("<I")
_U64 = struct.Struct("<Q")


def read_file(path: str | os.PathLike[str]) -> bytes:
    """Return the whole contents of a file as bytes."""
    try:
        with open(path, "rb") as infile:
            return infile.read()
    except OSError as exc:
        raise OSError(f"Cannot open file: {os.fspath(path)}") from exc


class _Reader:
    """Sequential little-endian reader over a byte string."""

    def __init__(self, data: bytes) -> None:
        self._data = memoryview(data)
        self._pos = 0

    def _take(self, count: int) -> memoryview:
        if count < 0 or self._pos + count > len(self._data):
            raise ValueError("Unexpected end of tensor data")
        chunk = self._data[self._pos : self._pos + count]
        self._pos += count
        return chunk

    def u32(self) -> int:
        return _U32.unpack(self._take(_U32.size))[0]

    def u64(self) -> int:
        return _U64.unpack(self._take(_U64.size))[0]

    def skip(self, count: int) -> None:
        self._take(count)

    @property
    def avail(self) -> int:
        return len(self._data) - self._pos

    def rest(self) -> bytes:
        return bytes(self._take(self.avail))


def load_paddle_tensor(params_dir: str | os.PathLike[str], name: str, size: int) -> bytes:
    """Read the raw element bytes of a parameter tensor file.

    The file holds a version word, level-of-detail tables, a second version
    word that must be zero, a tensor descriptor and then the element data,
    which must be exactly ``size`` bytes long.
    """
    reader = _Reader(read_file(Path(params_dir) / name))
    reader.u32()
    lod_level = reader.u64()
    for _ in range(lod_level):
        reader.skip(reader.u64())

    if reader.u32() != 0:
        raise ValueError("Unsupported tensor data version")
    reader.skip(reader.u32())

    if reader.avail != size:
        raise ValueError("Unexpected tensor data size")
    return reader.rest()