"""Compiled model file header."""

from __future__ import annotations

import enum
import struct
from dataclasses import astuple, dataclass

MODEL_IDENTIFIER = 0x4B4D444C  # "KMDL" as a multi-character constant
MODEL_VERSION = 4

_HEADER = struct.Struct("<10I")


class ModelTarget(enum.IntEnum):
    CPU = 0
    K210 = 1


@dataclass
class ModelHeader:
    """Fixed-size header at the start of a compiled model."""

    identifier: int = MODEL_IDENTIFIER
    version: int = MODEL_VERSION
    flags: int = 0
    target: ModelTarget = ModelTarget.CPU
    constants: int = 0
    main_mem: int = 0
    nodes: int = 0
    inputs: int = 0
    outputs: int = 0
    reserved0: int = 0

    SIZE = _HEADER.size

    def pack(self) -> bytes:
        return _HEADER.pack(*(int(v) for v in astuple(self)))

    @classmethod
    def unpack(cls, data: bytes) -> "ModelHeader":
        if len(data) < _HEADER.size:
            raise ValueError(
                f"model header needs {_HEADER.size} bytes, got {len(data)}"
            )
        fields = list(_HEADER.unpack_from(data))
        try:
            fields[3] = ModelTarget(fields[3])
        except ValueError:
            raise ValueError(f"unknown model target {fields[3]}") from None
        return cls(*fields)