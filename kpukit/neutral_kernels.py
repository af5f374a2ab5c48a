"""Reference kernels on flat tensors laid out in NCHW order."""

from __future__ import annotations

from typing import Any, Callable, Sequence

import numpy as np
import numpy.typing as npt

from .datatypes import Padding, QuantParam, ValueRange
from .kernel_utils import (
    apply_activation,
    compute_size,
    get_reduced_offset,
    get_windowed_output_size,
    offset,
)

BinaryFn = Callable[[float, float], float]
UnaryFn = Callable[[float], float]
WindowFn = Callable[[float, int], float]


def _div_trunc(a: int, b: int) -> int:
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b >= 0) else -q


def _flat(data: Any, dtype: npt.DTypeLike | None = None) -> np.ndarray:
    if isinstance(data, (bytes, bytearray, memoryview)):
        arr = np.frombuffer(data, dtype=np.uint8)
        return arr if dtype is None else arr.astype(dtype)
    return np.asarray(data, dtype=dtype).ravel()


def _check_size(arr: np.ndarray, shape: Sequence[int], what: str) -> None:
    expected = compute_size(shape)
    if arr.size < expected:
        raise ValueError(f"{what} holds {arr.size} elements, shape needs {expected}")


def _clamp(values: np.ndarray, activation: ValueRange) -> np.ndarray:
    return np.clip(values, activation.min, activation.max)


def _window_bounds(
    origin: int, size: int, filter_size: int, dilation: int
) -> tuple[int, int]:
    start = max(0, _div_trunc(-origin + dilation - 1, dilation))
    end = min(filter_size, _div_trunc(size - origin + dilation - 1, dilation))
    return start, end


def binary(
    input_a: Any,
    input_b: Any,
    in_a_shape: Sequence[int],
    in_b_shape: Sequence[int],
    out_shape: Sequence[int],
    fused_activation: ValueRange,
    op: BinaryFn,
) -> np.ndarray:
    """Apply ``op`` element-wise with broadcasting of both inputs to ``out_shape``."""
    a = _flat(input_a, np.float32)
    b = _flat(input_b, np.float32)
    _check_size(a, in_a_shape, "input_a")
    _check_size(b, in_b_shape, "input_b")
    output = np.empty(compute_size(out_shape), dtype=np.float32)
    for index in np.ndindex(*out_shape[:4]):
        va = a[offset(in_a_shape, get_reduced_offset(index, in_a_shape))]
        vb = b[offset(in_b_shape, get_reduced_offset(index, in_b_shape))]
        output[offset(out_shape, index)] = apply_activation(
            op(float(va), float(vb)), fused_activation
        )
    return output


def concat(
    inputs: Sequence[Any],
    concat_dims: Sequence[int],
    inner_size: int,
    outer_size: int,
) -> np.ndarray:
    """Interleave blocks of the inputs along the concatenation axis."""
    if len(inputs) != len(concat_dims):
        raise ValueError("one concat dimension is needed per input")
    arrays = [_flat(data) for data in inputs]
    pieces = []
    for oc in range(outer_size):
        for arr, dim in zip(arrays, concat_dims):
            size = inner_size * dim
            chunk = arr[oc * size : (oc + 1) * size]
            if chunk.size != size:
                raise ValueError("input is too short for the concat layout")
            pieces.append(chunk)
    if not pieces:
        return np.empty(0, dtype=arrays[0].dtype if arrays else np.uint8)
    return np.concatenate(pieces)


def conv2d(
    data: Any,
    weights: Any,
    bias: Any,
    in_shape: Sequence[int],
    groups: int,
    out_channels: int,
    filter_h: int,
    filter_w: int,
    stride_h: int,
    stride_w: int,
    dilation_h: int,
    dilation_w: int,
    padding_h: Padding,
    padding_w: Padding,
    fused_activation: ValueRange,
) -> np.ndarray:
    """Grouped 2-D convolution over an NCHW input; weights are OIHW."""
    if groups <= 0 or in_shape[1] % groups or out_channels % groups:
        raise ValueError("channels must divide evenly into groups")
    n, c, h, w = in_shape[:4]
    out_h = get_windowed_output_size(h, filter_h, stride_h, dilation_h, padding_h)
    out_w = get_windowed_output_size(w, filter_w, stride_w, dilation_w, padding_w)
    g_ic = c // groups
    g_oc = out_channels // groups

    x = _flat(data, np.float32)
    _check_size(x, in_shape, "input")
    x = x[: compute_size(in_shape)].reshape(n, c, h, w)
    wts = _flat(weights, np.float32)
    w_count = out_channels * g_ic * filter_h * filter_w
    if wts.size < w_count:
        raise ValueError(f"weights hold {wts.size} elements, need {w_count}")
    wts = wts[:w_count].reshape(out_channels, g_ic, filter_h, filter_w)
    bs = _flat(bias, np.float32)
    if bs.size < out_channels:
        raise ValueError("bias is shorter than the output channel count")

    out = np.empty((n, out_channels, max(out_h, 0), max(out_w, 0)), dtype=np.float32)
    for batch in range(n):
        for og in range(groups):
            channels = x[batch, og * g_ic : (og + 1) * g_ic]
            for oc in range(g_oc):
                channel = og * g_oc + oc
                kernel = wts[channel]
                for oy in range(out_h):
                    y0 = oy * stride_h - padding_h.before
                    ky0, ky1 = _window_bounds(y0, h, filter_h, dilation_h)
                    for ox in range(out_w):
                        x0 = ox * stride_w - padding_w.before
                        kx0, kx1 = _window_bounds(x0, w, filter_w, dilation_w)
                        value = bs[channel]
                        if ky1 > ky0 and kx1 > kx0:
                            ys = y0 + dilation_h * np.arange(ky0, ky1)
                            xs = x0 + dilation_w * np.arange(kx0, kx1)
                            patch = channels[:, ys][:, :, xs]
                            value = value + np.sum(patch * kernel[:, ky0:ky1, kx0:kx1])
                        out[batch, channel, oy, ox] = apply_activation(
                            float(value), fused_activation
                        )
    return out.ravel()


def dequantize(data: Any, param: QuantParam) -> np.ndarray:
    """Map quantized integers back to floats."""
    q = _flat(data).astype(np.float32)
    div = np.float32(1.0) / np.float32(param.scale)
    return ((q - np.float32(param.zero_point)) * div).astype(np.float32)


def matmul(
    input_a: Any,
    input_b: Any,
    bias: Any,
    a_rows: int,
    a_cols: int,
    b_cols: int,
    fused_activation: ValueRange,
) -> np.ndarray:
    """Row-major matrix product plus a per-column bias."""
    a = _flat(input_a, np.float32)
    b = _flat(input_b, np.float32)
    bs = _flat(bias, np.float32)
    if a.size < a_rows * a_cols or b.size < a_cols * b_cols or bs.size < b_cols:
        raise ValueError("operands are too small for the given dimensions")
    am = a[: a_rows * a_cols].reshape(a_rows, a_cols)
    bm = b[: a_cols * b_cols].reshape(a_cols, b_cols)
    result = am @ bm + bs[:b_cols]
    return _clamp(result, fused_activation).astype(np.float32).ravel()


def pad(
    data: Any,
    in_shape: Sequence[int],
    paddings: Sequence[Padding],
    pad_value: Any,
) -> np.ndarray:
    """Pad (or, with negative amounts, crop) each of the four axes."""
    if len(paddings) < 4:
        raise ValueError("four paddings are needed")
    src = _flat(data)
    _check_size(src, in_shape, "input")
    src = src[: compute_size(in_shape)].reshape(tuple(in_shape[:4]))
    out_shape = tuple(in_shape[i] + paddings[i].sum() for i in range(4))
    if any(d < 0 for d in out_shape):
        raise ValueError("padding makes an axis negative")
    out = np.full(out_shape, pad_value, dtype=src.dtype)

    out_slices, in_slices = [], []
    for dim, p in zip(out_shape, paddings):
        lo = max(p.before, 0)
        hi = min(dim, dim - p.after)
        if hi < lo:
            hi = lo
        out_slices.append(slice(lo, hi))
        in_slices.append(slice(lo - p.before, hi - p.before))
    out[tuple(out_slices)] = src[tuple(in_slices)]
    return out.ravel()


def quantize(data: Any, param: QuantParam, dtype: npt.DTypeLike = np.uint8) -> np.ndarray:
    """Quantize floats with rounding half away from zero and saturation."""
    x = _flat(data, np.float32)
    scaled = x * np.float32(param.scale) + np.float32(param.zero_point)
    rounded = np.sign(scaled) * np.floor(np.abs(scaled) + np.float32(0.5))
    info = np.iinfo(np.dtype(dtype))
    return np.clip(rounded, info.min, info.max).astype(dtype)


def reduce(
    data: Any,
    init_value: float,
    in_shape: Sequence[int],
    reduced_shape: Sequence[int],
    reducer: BinaryFn,
) -> np.ndarray:
    """Fold every input element into its position in ``reduced_shape``."""
    x = _flat(data, np.float32)
    _check_size(x, in_shape, "input")
    output = np.full(compute_size(reduced_shape), init_value, dtype=np.float32)
    for index in np.ndindex(*in_shape[:4]):
        out_off = offset(reduced_shape, get_reduced_offset(index, reduced_shape))
        output[out_off] = reducer(float(output[out_off]), float(x[offset(in_shape, index)]))
    return output


def unary(data: Any, op: UnaryFn) -> np.ndarray:
    """Apply ``op`` to every element."""
    x = _flat(data, np.float32)
    return np.array([op(float(v)) for v in x], dtype=np.float32)


def reduce_window2d(
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
    binary_op: BinaryFn,
    window_op: WindowFn,
) -> np.ndarray:
    """Sliding-window reduction (pooling) over an NCHW input."""
    n, c, h, w = in_shape[:4]
    out_h = get_windowed_output_size(h, filter_h, stride_h, dilation_h, padding_h)
    out_w = get_windowed_output_size(w, filter_w, stride_w, dilation_w, padding_w)
    x = _flat(data, np.float32)
    _check_size(x, in_shape, "input")
    x = x[: compute_size(in_shape)].reshape(n, c, h, w)

    out = np.empty((n, c, max(out_h, 0), max(out_w, 0)), dtype=np.float32)
    for batch in range(n):
        for oc in range(c):
            plane = x[batch, oc]
            for oy in range(out_h):
                y0 = oy * stride_h - padding_h.before
                ky0, ky1 = _window_bounds(y0, h, filter_h, dilation_h)
                for ox in range(out_w):
                    x0 = ox * stride_w - padding_w.before
                    kx0, kx1 = _window_bounds(x0, w, filter_w, dilation_w)
                    value = float(init_value)
                    count = 0
                    for ky in range(ky0, ky1):
                        row = plane[y0 + dilation_h * ky]
                        for kx in range(kx0, kx1):
                            value = binary_op(value, float(row[x0 + dilation_w * kx]))
                            count += 1
                    out[batch, oc, oy, ox] = apply_activation(
                        window_op(value, count), fused_activation
                    )
    return out.ravel()


def resize_nearest_neighbor(
    data: Any, in_shape: Sequence[int], out_h: int, out_w: int
) -> np.ndarray:
    """Nearest-neighbour resize of the two spatial axes."""
    n, c, h, w = in_shape[:4]
    src = _flat(data)
    _check_size(src, in_shape, "input")
    src = src[: compute_size(in_shape)].reshape(n, c, h, w)
    height_scale = np.float32(h) / np.float32(out_h)
    width_scale = np.float32(w) / np.float32(out_w)
    ys = np.minimum(
        np.floor(np.arange(out_h, dtype=np.float32) * height_scale).astype(np.int64), h - 1
    )
    xs = np.minimum(
        np.floor(np.arange(out_w, dtype=np.float32) * width_scale).astype(np.int64), w - 1
    )
    return src[:, :, ys][:, :, :, xs].ravel()


def resize_bilinear(
    data: Any, in_shape: Sequence[int], out_h: int, out_w: int, align_corners: bool
) -> np.ndarray:
    """Bilinear resize of the two spatial axes."""
    n, c, h, w = in_shape[:4]
    src = _flat(data, np.float32)
    _check_size(src, in_shape, "input")
    src = src[: compute_size(in_shape)].reshape(n, c, h, w)

    height_scale = np.float32(h) / np.float32(out_h)
    width_scale = np.float32(w) / np.float32(out_w)
    if align_corners and out_h > 1:
        height_scale = np.float32(h - 1) / np.float32(out_h - 1)
    if align_corners and out_w > 1:
        width_scale = np.float32(w - 1) / np.float32(out_w - 1)

    in_y = np.arange(out_h, dtype=np.float32) * height_scale
    y0 = np.floor(in_y).astype(np.int64)
    y1 = np.minimum(y0 + 1, h - 1)
    dy = (in_y - y0).astype(np.float32)[:, None]
    in_x = np.arange(out_w, dtype=np.float32) * width_scale
    x0 = np.floor(in_x).astype(np.int64)
    x1 = np.minimum(x0 + 1, w - 1)
    dx = (in_x - x0).astype(np.float32)[None, :]

    v0 = src[:, :, y0][:, :, :, x0]
    v1 = src[:, :, y1][:, :, :, x0]
    v2 = src[:, :, y0][:, :, :, x1]
    v3 = src[:, :, y1][:, :, :, x1]
    a0 = (1 - dy) * (1 - dx)
    a1 = dy * (1 - dx)
    a2 = (1 - dy) * dx
    a3 = dy * dx
    return (v0 * a0 + v1 * a1 + v2 * a2 + v3 * a3).astype(np.float32).ravel()


def softmax(data: Any, beta: float, outer_size: int, inner_size: int) -> np.ndarray:
    """Softmax over each of ``outer_size`` rows of ``inner_size`` elements."""
    x = _flat(data, np.float32)
    if x.size < outer_size * inner_size:
        raise ValueError("input is too short for the softmax layout")
    rows = x[: outer_size * inner_size].reshape(outer_size, inner_size)
    e = np.exp((rows - rows.max(axis=1, keepdims=True)) * np.float32(beta))
    return (e / e.sum(axis=1, keepdims=True)).astype(np.float32).ravel()


def transpose(data: Any, in_shape: Sequence[int], perm: Sequence[int]) -> np.ndarray:
    """Permute the four axes of a tensor."""
    if sorted(perm) != [0, 1, 2, 3]:
        raise ValueError(f"invalid permutation {list(perm)}")
    src = _flat(data)
    _check_size(src, in_shape, "input")
    src = src[: compute_size(in_shape)].reshape(tuple(in_shape[:4]))
    return np.ascontiguousarray(src.transpose(tuple(perm))).ravel()


def strided_slice(
    data: Any,
    in_shape: Sequence[int],
    begin: Sequence[int],
    end: Sequence[int],
    strides: Sequence[int],
) -> np.ndarray:
    """Take elements from ``begin`` towards ``end`` with ``strides`` on each axis."""
    if any(s == 0 for s in strides[:4]):
        raise ValueError("strides must be non-zero")
    src = _flat(data)
    _check_size(src, in_shape, "input")
    src = src[: compute_size(in_shape)].reshape(tuple(in_shape[:4]))
    indices = [np.arange(b, e, s, dtype=np.int64) for b, e, s in zip(begin, end, strides)]
    return src[np.ix_(*indices)].ravel()