"""Index and shape helpers used by the kernels."""

from __future__ import annotations

from typing import Sequence

from .datatypes import Padding, ValueRange


def _div_trunc(a: int, b: int) -> int:
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b >= 0) else -q


def offset(shape: Sequence[int], index: Sequence[int]) -> int:
    """Linear offset of a 4-D index in a row-major tensor."""
    return ((index[0] * shape[1] + index[1]) * shape[2] + index[2]) * shape[3] + index[3]


def get_windowed_output_size(
    size: int, filter_size: int, stride: int, dilation: int, padding: Padding
) -> int:
    """Output length of a sliding window over one padded axis."""
    effective_filter_size = (filter_size - 1) * dilation + 1
    return _div_trunc(
        size + padding.before + padding.after - effective_filter_size + stride, stride
    )


def compute_size(shape: Sequence[int]) -> int:
    """Element count of a 4-D shape."""
    return shape[0] * shape[1] * shape[2] * shape[3]


def apply_activation(value: float, activation: ValueRange) -> float:
    """Clamp a value into the activation range."""
    if value < activation.min:
        return activation.min
    if activation.max < value:
        return activation.max
    return value


def get_reduced_offset(
    in_offset: Sequence[int], reduced_shape: Sequence[int]
) -> tuple[int, ...]:
    """Map an index onto a broadcast (reduced) shape."""
    return tuple(0 if i >= r else i for i, r in zip(in_offset, reduced_shape))


def to_signed(value: int, bits: int) -> int:
    """Sign-extend the low `bits` bits of an unsigned value."""
    if bits < 1:
        raise ValueError(f"bit width must be positive, got {bits}")
    if value & (1 << (bits - 1)):
        return value | (-1 << bits)
    return value