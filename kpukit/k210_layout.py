"""KPU memory layout, filter and pooling helpers."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Sequence


class KpuFilterType(enum.IntEnum):
    FILTER_1X1 = 0
    FILTER_3X3 = 1


class KpuPoolType(enum.IntEnum):
    BYPASS = 0
    MAX_2_S2 = 1
    MEAN_2_S2 = 2
    MAX_4_S4 = 3
    MEAN_4_S4 = 4
    LEFT_TOP_2_S2 = 5
    RIGHT_TOP_2_S2 = 6
    LEFT_TOP_4_S4 = 7
    MEAN_2_S1 = 8
    MAX_2_S1 = 9


@dataclass(frozen=True)
class KpuLayout:
    """How rows of a feature map are packed into 64-byte KPU lines."""

    groups: int
    row_len: int
    row_pitch: int


_FILTER_SIZE = {KpuFilterType.FILTER_1X1: 1, KpuFilterType.FILTER_3X3: 3}
_FILTER_PADDING = {KpuFilterType.FILTER_1X1: 0, KpuFilterType.FILTER_3X3: 1}

_POOL_SIZE = {
    KpuPoolType.BYPASS: 1,
    KpuPoolType.MAX_2_S2: 2,
    KpuPoolType.MEAN_2_S2: 2,
    KpuPoolType.LEFT_TOP_2_S2: 2,
    KpuPoolType.RIGHT_TOP_2_S2: 2,
    KpuPoolType.MAX_2_S1: 2,
    KpuPoolType.MEAN_2_S1: 2,
    KpuPoolType.MAX_4_S4: 4,
    KpuPoolType.MEAN_4_S4: 4,
    KpuPoolType.LEFT_TOP_4_S4: 4,
}

_POOL_STRIDE = {
    KpuPoolType.BYPASS: 1,
    KpuPoolType.MAX_2_S2: 2,
    KpuPoolType.MEAN_2_S2: 2,
    KpuPoolType.LEFT_TOP_2_S2: 2,
    KpuPoolType.RIGHT_TOP_2_S2: 2,
    KpuPoolType.MAX_2_S1: 1,
    KpuPoolType.MEAN_2_S1: 1,
    KpuPoolType.MAX_4_S4: 4,
    KpuPoolType.MEAN_4_S4: 4,
    KpuPoolType.LEFT_TOP_4_S4: 4,
}

_SELECT_OFFSET = {
    KpuPoolType.LEFT_TOP_2_S2: (0, 0),
    KpuPoolType.RIGHT_TOP_2_S2: (0, 1),
    KpuPoolType.LEFT_TOP_4_S4: (0, 0),
}


def _lookup(table: dict, key: int, message: str):
    try:
        return table[key]
    except (KeyError, TypeError):
        raise ValueError(message) from None


def get_kpu_row_layout(width: int) -> KpuLayout:
    """Row packing for a feature map of the given width."""
    if width <= 16:
        return KpuLayout(groups=4, row_len=1, row_pitch=16)
    if width <= 32:
        return KpuLayout(groups=2, row_len=1, row_pitch=32)
    return KpuLayout(groups=1, row_len=(width + 63) // 64, row_pitch=64)


def get_kpu_filter_size(filter_type: KpuFilterType) -> int:
    return _lookup(_FILTER_SIZE, filter_type, "Invalid kpu filter")


def get_kpu_padding(filter_type: KpuFilterType) -> int:
    return _lookup(_FILTER_PADDING, filter_type, "Invalid kpu filter")


def get_kpu_rows(width: int, height: int, channels: int) -> int:
    """Number of 64-byte KPU lines a feature map occupies."""
    layout = get_kpu_row_layout(width)
    one_line_channels = min(channels, layout.groups)
    blocks = (channels + one_line_channels - 1) // one_line_channels
    return layout.row_len * height * blocks


def get_kpu_bytes(width: int, height: int, channels: int) -> int:
    return get_kpu_rows(width, height, channels) * 64


def get_kpu_shape_bytes(shape: Sequence[int]) -> int:
    """KPU bytes of an NCHW shape, all batches together."""
    return get_kpu_bytes(shape[3], shape[2], shape[1]) * shape[0]


def get_kpu_pool_filter_size(pool_type: KpuPoolType) -> int:
    return _lookup(_POOL_SIZE, pool_type, "Invalid kpu filter")


def get_kpu_filter_stride(pool_type: KpuPoolType) -> int:
    return _lookup(_POOL_STRIDE, pool_type, "Invalid kpu pool type")


def get_kpu_pool_output_size(size: int, pool_type: KpuPoolType) -> int:
    return size // get_kpu_filter_stride(pool_type)


def get_kpu_select_pool_offset(pool_type: KpuPoolType) -> tuple[int, int]:
    """Row and column picked inside each window by a selecting pool."""
    return _lookup(_SELECT_OFFSET, pool_type, "Invalid kpu pool type")