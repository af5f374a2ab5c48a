"""Range recording and quantization parameter computation."""

from __future__ import annotations

import math
from typing import Hashable, Iterable

from .datatypes import FLOAT32_EPSILON, FixedMul, QuantParam, ValueRange

_ALPHA = 0.01


def combine(lhs: ValueRange, rhs: ValueRange) -> ValueRange:
    """Blend a new range into an existing one by exponential averaging."""
    return ValueRange(
        (1 - _ALPHA) * lhs.min + _ALPHA * rhs.min,
        (1 - _ALPHA) * lhs.max + _ALPHA * rhs.max,
    )


def _round_half_away(x: float) -> float:
    return math.copysign(math.floor(abs(x) + 0.5), x)


class Quantizer:
    """Collects observed value ranges and derives quantization parameters."""

    def __init__(self) -> None:
        self._ranges: dict[Hashable, ValueRange] = {}

    def get_range(self, data: Iterable[float]) -> ValueRange:
        values = [float(v) for v in data]
        if not values:
            raise ValueError("cannot take the range of empty data")
        return ValueRange(min(values), max(values))

    def fixup_range(self, value_range: ValueRange) -> ValueRange:
        """Widen a range to at least 0.001 and make it include zero."""
        r = value_range.max - value_range.min
        if r < 0.001:
            r = 0.001
        low = value_range.min
        high = low + r
        if high < 0:
            high = 0.0
        if low > 0:
            low = 0.0
        return ValueRange(low, high)

    def record(self, key: Hashable, value_range: ValueRange) -> None:
        current = self._ranges.get(key)
        self._ranges[key] = value_range if current is None else combine(current, value_range)

    def record_data(self, key: Hashable, data: Iterable[float]) -> None:
        self.record(key, self.get_range(data))

    def get(self, key: Hashable) -> ValueRange:
        try:
            return self._ranges[key]
        except KeyError:
            raise KeyError(f"no range recorded for {key!r}") from None

    def get_quant_param(self, value_range: ValueRange, bits: int) -> QuantParam:
        value_range = self.fixup_range(value_range)
        r = value_range.max - value_range.min
        scale = ((1 << bits) - 1) / r
        bias = _round_half_away(-value_range.min * scale)
        return QuantParam(int(bias), scale)

    def get_fixed_mul(
        self, value: float, max_bits: int, max_shift: int, is_signed: bool
    ) -> FixedMul:
        """Express value as mul * 2**-shift with mul fitting in max_bits."""
        if is_signed and value < 0:
            raise ValueError("signed fixed multiplier needs a non-negative value")

        bits = max_bits - 1 if is_signed else max_bits
        if abs(value) > 1:
            mant, exp = math.frexp(value)
            shift = min(max_shift, bits - exp)
            mul = mant * 2.0 ** (shift + exp)
        elif value == 0:
            mul, shift = 0.0, 0
        else:
            mant, exp = math.frexp(value)
            shift = min(max_shift + exp, bits)
            mul = mant * 2.0**shift
            shift -= exp

        if not abs(mul) < 2.0**bits:
            raise ValueError(f"multiplier {value} does not fit in {bits} bits")
        if not 0 <= shift <= max_shift:
            raise ValueError(f"multiplier {value} needs shift {shift} outside [0, {max_shift}]")
        if abs(value - mul * 2.0**-shift) > FLOAT32_EPSILON:
            raise ValueError(f"multiplier {value} cannot be represented exactly enough")
        return FixedMul(mul, shift)