import itertools

import pytest

from kpukit.datatypes import Padding, ValueRange
from kpukit.kernel_utils import (
    apply_activation,
    compute_size,
    get_reduced_offset,
    get_windowed_output_size,
    offset,
    to_signed,
)

SHAPE = (2, 3, 4, 5)


def test_offset_enumerates_row_major_order():
    offsets = [offset(SHAPE, idx) for idx in itertools.product(*(range(d) for d in SHAPE))]
    assert offsets == list(range(compute_size(SHAPE)))


def test_offset_of_origin_and_last():
    assert offset(SHAPE, (0, 0, 0, 0)) == 0
    assert offset(SHAPE, tuple(d - 1 for d in SHAPE)) == compute_size(SHAPE) - 1


def test_compute_size():
    assert compute_size(SHAPE) == 120


def test_windowed_output_size_valid_padding():
    assert get_windowed_output_size(5, 3, 1, 1, Padding.zero()) == 3


@pytest.mark.parametrize("size", [1, 7, 16])
def test_windowed_output_size_same_padding_keeps_size(size):
    assert get_windowed_output_size(size, 3, 1, 1, Padding(1, 1)) == size


def test_windowed_output_size_dilation_grows_window():
    plain = get_windowed_output_size(10, 3, 1, 1, Padding.zero())
    dilated = get_windowed_output_size(10, 3, 1, 2, Padding.zero())
    assert dilated < plain


def test_apply_activation_clamps():
    act = ValueRange(-1.0, 6.0)
    assert apply_activation(-5.0, act) == -1.0
    assert apply_activation(10.0, act) == 6.0
    assert apply_activation(2.5, act) == 2.5


def test_get_reduced_offset_zeroes_broadcast_axes():
    assert get_reduced_offset((3, 2, 1, 0), (1, 4, 1, 1)) == (0, 2, 0, 0)


@pytest.mark.parametrize("value", range(-128, 128))
def test_to_signed_round_trips_8_bits(value):
    assert to_signed(value & 0xFF, 8) == value


@pytest.mark.parametrize("value", [-(2**31), -1, 0, 2**31 - 1])
def test_to_signed_round_trips_32_bits(value):
    assert to_signed(value & 0xFFFFFFFF, 32) == value


def test_to_signed_round_trips_64_bits():
    assert to_signed((-5) & 0xFFFFFFFFFFFFFFFF, 64) == -5


def test_to_signed_rejects_zero_bits():
    with pytest.raises(ValueError):
        to_signed(1, 0)