"""Core value types shared by the kernels, quantizer and runtime."""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass

FLOAT32_MAX = (2.0 - 2.0**-23) * 2.0**127
FLOAT32_LOWEST = -FLOAT32_MAX
FLOAT32_EPSILON = 2.0**-23


class DataType(enum.IntEnum):
    """Element type of a tensor."""

    FLOAT32 = 0
    UINT8 = 1


class ReduceOp(enum.IntEnum):
    MEAN = 0
    MIN = 1
    MAX = 2
    SUM = 3


class BinaryOp(enum.IntEnum):
    ADD = 0
    SUB = 1
    MUL = 2
    DIV = 3
    MIN = 4
    MAX = 5


class UnaryOp(enum.IntEnum):
    ABS = 0
    CEIL = 1
    COS = 2
    EXP = 3
    FLOOR = 4
    LOG = 5
    NEG = 6
    RSQRT = 7
    SIN = 8
    SQUARE = 9


class ImageResizeMode(enum.IntEnum):
    BILINEAR = 0
    NEAREST_NEIGHBOR = 1


class MemoryType(enum.IntEnum):
    CONST = 0
    MAIN = 1
    K210_KPU = 2


@dataclass(frozen=True)
class Padding:
    """Padding applied before and after one axis."""

    before: int = 0
    after: int = 0

    def sum(self) -> int:
        return self.before + self.after

    @classmethod
    def zero(cls) -> "Padding":
        return cls(0, 0)


@dataclass(frozen=True)
class ValueRange:
    """Closed interval [min, max]."""

    min: float
    max: float

    @classmethod
    def full(cls) -> "ValueRange":
        """The whole range a 32-bit float can hold."""
        return cls(FLOAT32_LOWEST, FLOAT32_MAX)


@dataclass(frozen=True)
class QuantParam:
    """Affine quantization parameters: q = x * scale + zero_point."""

    zero_point: int
    scale: float

    def almost_equal(self, other: "QuantParam") -> bool:
        return (
            self.zero_point == other.zero_point
            and abs(self.scale - other.scale) <= FLOAT32_EPSILON
        )


@dataclass(frozen=True)
class FixedMul:
    """A multiplier expressed as mul * 2**-shift."""

    mul: float
    shift: int

    def rounded_mul(self) -> int:
        """The multiplier rounded half away from zero."""
        return int(math.copysign(math.floor(abs(self.mul) + 0.5), self.mul))


@dataclass(frozen=True)
class MemoryRange:
    """A typed region inside one memory pool."""

    memory_type: MemoryType
    datatype: DataType
    start: int
    size: int