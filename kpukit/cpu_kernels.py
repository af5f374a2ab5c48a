"""Reference kernels on flat tensors laid out in NHWC order."""

from __future__ import annotations

from typing import Any, Callable, Sequence

import numpy as np

from .datatypes import Padding, ValueRange
from .kernel_utils import apply_activation, compute_size, get_windowed_output_size

BinaryFn = Callable[[float, float], float]
WindowFn = Callable[[float, int], float]


def _div_trunc(a: int, b: int) -> int:
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b >= 0) else -q


def _window_bounds(origin: int, size: int, filter_size: int, dilation: int) -> tuple[int, int]:
    start = max(0, _div_trunc(-origin + dilation - 1, dilation))
    end = min(filter_size, _div_trunc(size - origin + dilation - 1, dilation))
    return start, end


def _take(data: Any, count: int, what: str) -> np.ndarray:
    arr = np.asarray(data, dtype=np.float32).ravel()
    if arr.size < count:
        raise ValueError(f"{what} holds {arr.size} elements, need {count}")
    return arr[:count]


def _input(data: Any, in_shape: Sequence[int]) -> np.ndarray:
    shape = tuple(int(d) for d in in_shape[:4])
    if len(shape) != 4:
        raise ValueError("a 4-D input shape is needed")
    return _take(data, compute_size(shape), "input").reshape(shape)


def _check_window(stride_h: int, stride_w: int, dilation_h: int, dilation_w: int) -> None:
    if min(stride_h, stride_w) <= 0:
        raise ValueError("strides must be positive")
    if min(dilation_h, dilation_w) <= 0:
        raise ValueError("dilations must be positive")


def _positions(
    size: int, out_size: int, filter_size: int, stride: int, dilation: int, padding: Padding
):
    """Yield (output index, first input index, first tap, end tap) along one axis."""
    for o in range(out_size):
        origin = o * stride - padding.before
        k0, k1 = _window_bounds(origin, size, filter_size, dilation)
        yield o, origin, k0, k1


def conv2d(
    data: Any,
    weights: Any,
    bias: Any,
    in_shape: Sequence[int],
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
    """2-D convolution over an NHWC input; weights are laid out OHWI."""
    _check_window(stride_h, stride_w, dilation_h, dilation_w)
    x = _input(data, in_shape)
    n, h, w, c = x.shape
    out_h = get_windowed_output_size(h, filter_h, stride_h, dilation_h, padding_h)
    out_w = get_windowed_output_size(w, filter_w, stride_w, dilation_w, padding_w)
    wts = _take(weights, out_channels * filter_h * filter_w * c, "weights").reshape(
        out_channels, filter_h, filter_w, c
    )
    bs = _take(bias, out_channels, "bias")

    out = np.empty((n, max(out_h, 0), max(out_w, 0), out_channels), dtype=np.float32)
    rows = list(_positions(h, out_h, filter_h, stride_h, dilation_h, padding_h))
    cols = list(_positions(w, out_w, filter_w, stride_w, dilation_w, padding_w))
    for batch in range(n):
        plane = x[batch]
        for oy, y0, ky0, ky1 in rows:
            for ox, x0, kx0, kx1 in cols:
                value = bs.astype(np.float32)
                if ky1 > ky0 and kx1 > kx0:
                    ys = y0 + dilation_h * np.arange(ky0, ky1)
                    xs = x0 + dilation_w * np.arange(kx0, kx1)
                    patch = plane[ys][:, xs]
                    value = value + np.tensordot(
                        wts[:, ky0:ky1, kx0:kx1, :], patch, axes=([1, 2, 3], [0, 1, 2])
                    )
                out[batch, oy, ox] = np.clip(value, fused_activation.min, fused_activation.max)
    return out.ravel()


def depthwise_conv2d(
    data: Any,
    weights: Any,
    bias: Any,
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
) -> np.ndarray:
    """Per-channel 2-D convolution over an NHWC input; weights are laid out CHW."""
    _check_window(stride_h, stride_w, dilation_h, dilation_w)
    x = _input(data, in_shape)
    n, h, w, c = x.shape
    out_h = get_windowed_output_size(h, filter_h, stride_h, dilation_h, padding_h)
    out_w = get_windowed_output_size(w, filter_w, stride_w, dilation_w, padding_w)
    wts = _take(weights, c * filter_h * filter_w, "weights").reshape(c, filter_h, filter_w)
    wts = np.ascontiguousarray(wts.transpose(1, 2, 0))
    bs = _take(bias, c, "bias")

    out = np.empty((n, max(out_h, 0), max(out_w, 0), c), dtype=np.float32)
    rows = list(_positions(h, out_h, filter_h, stride_h, dilation_h, padding_h))
    cols = list(_positions(w, out_w, filter_w, stride_w, dilation_w, padding_w))
    for batch in range(n):
        plane = x[batch]
        for oy, y0, ky0, ky1 in rows:
            for ox, x0, kx0, kx1 in cols:
                value = bs.astype(np.float32)
                if ky1 > ky0 and kx1 > kx0:
                    ys = y0 + dilation_h * np.arange(ky0, ky1)
                    xs = x0 + dilation_w * np.arange(kx0, kx1)
                    patch = plane[ys][:, xs]
                    value = value + np.sum(patch * wts[ky0:ky1, kx0:kx1], axis=(0, 1))
                out[batch, oy, ox] = np.clip(value, fused_activation.min, fused_activation.max)
    return out.ravel()


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
    """Sliding-window reduction (pooling) over an NHWC input.

    ``window_op`` receives the folded value and the number of taps that fell
    inside the input.
    """
    _check_window(stride_h, stride_w, dilation_h, dilation_w)
    x = _input(data, in_shape)
    n, h, w, c = x.shape
    out_h = get_windowed_output_size(h, filter_h, stride_h, dilation_h, padding_h)
    out_w = get_windowed_output_size(w, filter_w, stride_w, dilation_w, padding_w)

    out = np.empty((n, max(out_h, 0), max(out_w, 0), c), dtype=np.float32)
    rows = list(_positions(h, out_h, filter_h, stride_h, dilation_h, padding_h))
    cols = list(_positions(w, out_w, filter_w, stride_w, dilation_w, padding_w))
    for batch in range(n):
        plane = x[batch]
        for oy, y0, ky0, ky1 in rows:
            for ox, x0, kx0, kx1 in cols:
                taps = [
                    plane[y0 + dilation_h * ky, x0 + dilation_w * kx]
                    for ky in range(ky0, ky1)
                    for kx in range(kx0, kx1)
                ]
                for oc in range(c):
                    value = float(init_value)
                    for pixel in taps:
                        value = binary_op(value, float(pixel[oc]))
                    out[batch, oy, ox, oc] = apply_activation(
                        window_op(value, len(taps)), fused_activation
                    )
    return out.ravel()