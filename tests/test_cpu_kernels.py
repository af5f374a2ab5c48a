import numpy as np
import pytest

from kpukit import cpu_kernels, neutral_kernels
from kpukit.datatypes import Padding, ValueRange

FULL = ValueRange.full()


def _nhwc_to_nchw(flat, shape):
    return np.asarray(flat, dtype=np.float32).reshape(shape).transpose(0, 3, 1, 2).ravel()


def _nchw_to_nhwc(flat, shape):
    return np.asarray(flat, dtype=np.float32).reshape(shape).transpose(0, 2, 3, 1).ravel()


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.mark.parametrize(
    "stride,dilation,pad",
    [(1, 1, Padding(1, 1)), (2, 1, Padding(0, 1)), (1, 2, Padding(2, 2)), (1, 1, Padding(0, 0))],
)
def test_conv2d_matches_nchw_kernel(rng, stride, dilation, pad):
    n, h, w, c, oc, f = 2, 5, 6, 3, 4, 3
    x = rng.standard_normal(n * h * w * c).astype(np.float32)
    w_ohwi = rng.standard_normal((oc, f, f, c)).astype(np.float32)
    bias = rng.standard_normal(oc).astype(np.float32)

    got = cpu_kernels.conv2d(
        x, w_ohwi, bias, (n, h, w, c), oc, f, f, stride, stride,
        dilation, dilation, pad, pad, FULL,
    )
    ref = neutral_kernels.conv2d(
        _nhwc_to_nchw(x, (n, h, w, c)), w_ohwi.transpose(0, 3, 1, 2), bias,
        (n, c, h, w), 1, oc, f, f, stride, stride, dilation, dilation, pad, pad, FULL,
    )
    out_h = ref.size // (n * oc)
    out_w_sz = out_h  # placeholder replaced below
    out_h = (h + pad.sum() - ((f - 1) * dilation + 1) + stride) // stride
    out_w_sz = (w + pad.sum() - ((f - 1) * dilation + 1) + stride) // stride
    expected = _nchw_to_nhwc(ref, (n, oc, out_h, out_w_sz))
    assert got.shape == expected.shape
    np.testing.assert_allclose(got, expected, rtol=1e-5, atol=1e-5)


def test_conv2d_identity_1x1_returns_input(rng):
    n, h, w, c = 1, 3, 4, 2
    x = rng.standard_normal(n * h * w * c).astype(np.float32)
    weights = np.eye(c, dtype=np.float32).reshape(c, 1, 1, c)
    got = cpu_kernels.conv2d(
        x, weights, np.zeros(c), (n, h, w, c), c, 1, 1, 1, 1, 1, 1,
        Padding.zero(), Padding.zero(), FULL,
    )
    np.testing.assert_allclose(got, x, rtol=1e-6)


def test_conv2d_applies_activation(rng):
    n, h, w, c = 1, 4, 4, 1
    x = (rng.standard_normal(n * h * w * c) * 10).astype(np.float32)
    act = ValueRange(0.0, 6.0)
    got = cpu_kernels.conv2d(
        x, np.ones((1, 1, 1, 1)), np.zeros(1), (n, h, w, c), 1, 1, 1, 1, 1, 1, 1,
        Padding.zero(), Padding.zero(), act,
    )
    assert got.min() >= 0.0
    assert got.max() <= 6.0
    np.testing.assert_allclose(got, np.clip(x, 0.0, 6.0))


def test_conv2d_bias_only_when_window_outside_input():
    got = cpu_kernels.conv2d(
        np.ones(1), np.ones(1), np.array([2.5]), (1, 1, 1, 1), 1, 1, 1, 1, 1, 1, 1,
        Padding(1, 1), Padding(1, 1), FULL,
    )
    assert got.size == 9
    assert got[0] == pytest.approx(2.5)
    assert got[4] == pytest.approx(3.5)


def test_conv2d_rejects_short_weights():
    with pytest.raises(ValueError):
        cpu_kernels.conv2d(
            np.ones(16), np.ones(3), np.zeros(1), (1, 4, 4, 1), 1, 3, 3, 1, 1, 1, 1,
            Padding.zero(), Padding.zero(), FULL,
        )


def test_conv2d_rejects_zero_stride():
    with pytest.raises(ValueError):
        cpu_kernels.conv2d(
            np.ones(16), np.ones(1), np.zeros(1), (1, 4, 4, 1), 1, 1, 1, 0, 1, 1, 1,
            Padding.zero(), Padding.zero(), FULL,
        )


@pytest.mark.parametrize("stride,pad", [(1, Padding(1, 1)), (2, Padding(0, 1))])
def test_depthwise_conv2d_matches_grouped_nchw_kernel(rng, stride, pad):
    n, h, w, c, f = 1, 5, 5, 3, 3
    x = rng.standard_normal(n * h * w * c).astype(np.float32)
    weights = rng.standard_normal((c, f, f)).astype(np.float32)
    bias = rng.standard_normal(c).astype(np.float32)

    got = cpu_kernels.depthwise_conv2d(
        x, weights, bias, (n, h, w, c), f, f, stride, stride, 1, 1, pad, pad, FULL
    )
    ref = neutral_kernels.conv2d(
        _nhwc_to_nchw(x, (n, h, w, c)), weights.reshape(c, 1, f, f), bias,
        (n, c, h, w), c, c, f, f, stride, stride, 1, 1, pad, pad, FULL,
    )
    out = (h + pad.sum() - f + stride) // stride
    np.testing.assert_allclose(got, _nchw_to_nhwc(ref, (n, c, out, out)), rtol=1e-5, atol=1e-5)


def test_depthwise_conv2d_rejects_short_bias():
    with pytest.raises(ValueError):
        cpu_kernels.depthwise_conv2d(
            np.ones(8), np.ones(2), np.zeros(1), (1, 2, 2, 2), 1, 1, 1, 1, 1, 1,
            Padding.zero(), Padding.zero(), FULL,
        )


def test_reduce_window2d_max_pool():
    x = np.arange(16, dtype=np.float32)
    got = cpu_kernels.reduce_window2d(
        x, float("-inf"), (1, 4, 4, 1), 2, 2, 2, 2, 1, 1,
        Padding.zero(), Padding.zero(), FULL, max, lambda v, k: v,
    )
    assert got.tolist() == [x[5], x[7], x[13], x[15]]


def test_reduce_window2d_counts_only_taps_inside_input():
    got = cpu_kernels.reduce_window2d(
        np.ones(4), 0.0, (1, 2, 2, 1), 3, 3, 1, 1, 1, 1,
        Padding(1, 1), Padding(1, 1), FULL, lambda a, b: a + b, lambda v, k: float(k),
    )
    assert got.tolist() == [4.0, 4.0, 4.0, 4.0]


def test_reduce_window2d_matches_nchw_kernel_for_mean(rng):
    n, h, w, c = 2, 5, 4, 3
    x = rng.standard_normal(n * h * w * c).astype(np.float32)
    pad = Padding(1, 1)
    args = (3, 3, 2, 2, 1, 1, pad, pad, FULL, lambda a, b: a + b, lambda v, k: v / k)
    got = cpu_kernels.reduce_window2d(x, 0.0, (n, h, w, c), *args)
    ref = neutral_kernels.reduce_window2d(_nhwc_to_nchw(x, (n, h, w, c)), 0.0, (n, c, h, w), *args)
    out_h = (h + 2 - 3 + 2) // 2
    out_w = (w + 2 - 3 + 2) // 2
    np.testing.assert_allclose(got, _nchw_to_nhwc(ref, (n, c, out_h, out_w)), rtol=1e-5)


def test_reduce_window2d_mean_of_constant_is_constant():
    got = cpu_kernels.reduce_window2d(
        np.full(18, 3.0), 0.0, (1, 3, 3, 2), 2, 2, 1, 1, 1, 1,
        Padding.zero(), Padding.zero(), FULL, lambda a, b: a + b, lambda v, k: v / k,
    )
    assert got.size == 8
    np.testing.assert_allclose(got, 3.0)


def test_reduce_window2d_rejects_short_input():
    with pytest.raises(ValueError):
        cpu_kernels.reduce_window2d(
            np.ones(3), 0.0, (1, 2, 2, 1), 1, 1, 1, 1, 1, 1,
            Padding.zero(), Padding.zero(), FULL, max, lambda v, k: v,
        )