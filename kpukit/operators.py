"""Operator tables and evaluation entry points for the neutral operators."""

from __future__ import annotations

import math
from typing import Any, Callable, Sequence

import numpy as np

from . import neutral_kernels
from .datatypes import BinaryOp, Padding, ReduceOp, UnaryOp, ValueRange
from .kernel_utils import compute_size

BinaryFn = Callable[[float, float], float]
UnaryFn = Callable[[float], float]
WindowFn = Callable[[float, int], float]


def _div(a: float, b: float) -> float:
    """Float division that yields inf or nan on a zero divisor instead of raising."""
    if b == 0:
        if a == 0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a) * math.copysign(1.0, b)
    return a / b


def _float32_unary(fn: Callable[[np.float32], Any]) -> UnaryFn:
    def apply(a: float) -> float:
        with np.errstate(all="ignore"):
            return float(fn(np.float32(a)))

    return apply


_BINARY: dict[BinaryOp, BinaryFn] = {
    BinaryOp.ADD: lambda a, b: a + b,
    BinaryOp.SUB: lambda a, b: a - b,
    BinaryOp.MUL: lambda a, b: a * b,
    BinaryOp.DIV: _div,
    BinaryOp.MIN: lambda a, b: b if b < a else a,
    BinaryOp.MAX: lambda a, b: b if a < b else a,
}

_UNARY: dict[UnaryOp, UnaryFn] = {
    UnaryOp.ABS: _float32_unary(np.abs),
    UnaryOp.CEIL: _float32_unary(np.ceil),
    UnaryOp.COS: _float32_unary(np.cos),
    UnaryOp.EXP: _float32_unary(np.exp),
    UnaryOp.FLOOR: _float32_unary(np.floor),
    UnaryOp.LOG: _float32_unary(np.log),
    UnaryOp.NEG: _float32_unary(np.negative),
    UnaryOp.RSQRT: _float32_unary(lambda a: np.float32(1.0) / np.sqrt(a)),
    UnaryOp.SIN: _float32_unary(np.sin),
    UnaryOp.SQUARE: _float32_unary(lambda a: a * a),
}

_REDUCERS: dict[ReduceOp, BinaryFn] = {
    ReduceOp.MEAN: _BINARY[BinaryOp.ADD],
    ReduceOp.MIN: _BINARY[BinaryOp.MIN],
    ReduceOp.MAX: _BINARY[BinaryOp.MAX],
    ReduceOp.SUM: _BINARY[BinaryOp.ADD],
}


def _mean_window(value: float, count: int) -> float:
    return _div(value, float(count))


def _pass_window(value: float, count: int) -> float:
    return value


_WINDOW_OUTPUT: dict[ReduceOp, WindowFn] = {
    ReduceOp.MEAN: _mean_window,
    ReduceOp.MIN: _pass_window,
    ReduceOp.MAX: _pass_window,
    ReduceOp.SUM: _pass_window,
}


def _lookup(table: dict, op: Any, message: str):
    try:
        return table[op]
    except (KeyError, TypeError):
        raise ValueError(message) from None


def binary_operator(op: BinaryOp) -> BinaryFn:
    """The element function of a binary operator."""
    return _lookup(_BINARY, op, "Not supported binary")


def unary_operator(op: UnaryOp) -> UnaryFn:
    """The element function of a unary operator, with 32-bit float semantics."""
    return _lookup(_UNARY, op, "Not supported unary")


def reducer(op: ReduceOp) -> BinaryFn:
    """The folding function of a reduction."""
    return _lookup(_REDUCERS, op, "Not supported reduce")


def window_output_operator(op: ReduceOp) -> WindowFn:
    """The function turning a folded window value and its tap count into an output."""
    return _lookup(_WINDOW_OUTPUT, op, "Not supported reduce")


def evaluate_binary(
    input_a: Any,
    input_b: Any,
    in_a_shape: Sequence[int],
    in_b_shape: Sequence[int],
    out_shape: Sequence[int],
    op: BinaryOp,
    fused_activation: ValueRange,
) -> np.ndarray:
    """Evaluate a broadcasting binary operator."""
    fn = binary_operator(op)
    return neutral_kernels.binary(
        input_a, input_b, in_a_shape, in_b_shape, out_shape, fused_activation, fn
    )


def evaluate_unary(data: Any, op: UnaryOp) -> np.ndarray:
    """Evaluate a unary operator on every element."""
    return neutral_kernels.unary(data, unary_operator(op))


def evaluate_reduce(
    data: Any,
    init_value: float,
    in_shape: Sequence[int],
    reduced_shape: Sequence[int],
    op: ReduceOp,
) -> np.ndarray:
    """Evaluate a reduction into ``reduced_shape``; mean scales the sum afterwards."""
    output = neutral_kernels.reduce(data, init_value, in_shape, reduced_shape, reducer(op))
    if op == ReduceOp.MEAN:
        in_size = compute_size(in_shape)
        if in_size == 0:
            raise ValueError("cannot take the mean of an empty tensor")
        mul = np.float32(output.size) / np.float32(in_size)
        output = (output * mul).astype(np.float32)
    return output


def evaluate_reduce_window2d(
    data: Any,
    init_value: float,
    in_shape: Sequence[int],
    filter_h: int,
    filter_w: int,
    stride_h: int,
    stride_w: int,
    dilation_h: int,
    dilation_w: int,
    padding_h: Padding,
    padding_w: Padding,
    fused_activation: ValueRange,
    op: ReduceOp,
) -> np.ndarray:
    """Evaluate a 2-D windowed reduction (pooling) over an NCHW input."""
    binary_op = reducer(op)
    window_op = window_output_operator(op)
    return neutral_kernels.reduce_window2d(
        data,
        init_value,
        in_shape,
        filter_h,
        filter_w,
        stride_h,
        stride_w,
        dilation_h,
        dilation_w,
        padding_h,
        padding_w,
        fused_activation,
        binary_op,
        window_op,
    )