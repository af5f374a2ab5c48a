# kpukit

kpukit provides reference building blocks for compiling and checking
neural-network models that target the K210 KPU. Kernels take and return flat
NumPy arrays. The other helpers work on plain Python values and small
dataclasses.

## Modules

- `kpukit.datatypes` holds the shared value types:
  - the `DataType`, `MemoryType`, `BinaryOp`, `UnaryOp`, `ReduceOp` and `ImageResizeMode` enums;
  - the frozen dataclasses `Padding` (with `sum()` and `Padding.zero()`), `ValueRange` (with `ValueRange.full()`, the whole 32-bit float range), `QuantParam` (with `almost_equal()`), `FixedMul` (with `rounded_mul()`) and `MemoryRange`.
- `kpukit.kernel_utils` holds small helpers:
  - `offset` gives the linear offset of a 4-D index;
  - `compute_size` gives the element count of a 4-D shape;
  - `get_windowed_output_size` gives the output length of a sliding window;
  - `apply_activation` clamps a value into a `ValueRange`;
  - `get_reduced_offset` maps an index onto a broadcast shape;
  - `to_signed` does sign extension.
- `kpukit.quantizer` provides `Quantizer`, which records value ranges per key:
  - `record` stores a range for a key. `record_data` stores the range of the given data. A second observation for the same key is blended in by `combine`, an exponential average with weight 0.01.
  - `get` returns the range stored for a key.
  - `fixup_range` widens a range to at least 0.001 and makes it include zero.
  - `get_quant_param` derives the zero point and scale for a bit width.
  - `get_fixed_mul` expresses a factor as `mul * 2**-shift`. It raises `ValueError` when the factor cannot be represented.
- `kpukit.model` provides `ModelTarget` and `ModelHeader`. `ModelHeader` packs to and unpacks from the 40-byte little-endian header of a compiled model. The defaults are the `KMDL` identifier and version 4.
- `kpukit.io_utils` provides two readers:
  - `read_file` reads a whole file.
  - `load_paddle_tensor` reads the element bytes of a parameter tensor file. It checks the version word and the expected data size.
- `kpukit.evaluator` provides:
  - `MemoryAllocation`;
  - `EvaluateContext`, which owns one zeroed byte pool per memory type. It hands out writable NumPy views through `memory_at(allocation, dtype)` and `memory_of(connector, dtype)`;
  - a global opcode registry, `register_evaluator` and `get_evaluator`. The first registration of an opcode is kept.
- `kpukit.k210_layout` covers KPU layout and sizing:
  - the `KpuLayout`, `KpuFilterType` and `KpuPoolType` types;
  - row layout: `get_kpu_row_layout`, `get_kpu_rows`;
  - byte sizes: `get_kpu_bytes`, `get_kpu_shape_bytes`;
  - filters: `get_kpu_filter_size`, `get_kpu_padding`;
  - pooling: `get_kpu_pool_filter_size`, `get_kpu_filter_stride`, `get_kpu_pool_output_size`, `get_kpu_select_pool_offset`.
- `kpukit.neutral_kernels` holds reference kernels for NCHW tensors: `binary` (with broadcasting), `concat`, `conv2d` (grouped), `dequantize`, `matmul`, `pad`, `quantize`, `reduce`, `unary`, `reduce_window2d`, `resize_nearest_neighbor`, `resize_bilinear`, `softmax`, `transpose` and `strided_slice`.
- `kpukit.cpu_kernels` holds kernels for NHWC tensors: `conv2d`, `depthwise_conv2d` and `reduce_window2d`.
- `kpukit.operators` maps the operation enums to element functions:
  - the lookups are `binary_operator`, `unary_operator`, `reducer` and `window_output_operator`;
  - the kernels are run by enum through `evaluate_binary`, `evaluate_unary`, `evaluate_reduce` and `evaluate_reduce_window2d`. For `ReduceOp.MEAN`, `evaluate_reduce` scales the sum afterwards.

## Example

```python
import numpy as np
from kpukit.datatypes import ValueRange
from kpukit.quantizer import Quantizer

q = Quantizer()
q.record_data("conv1", np.array([-1.0, 0.5, 2.0], dtype=np.float32))
param = q.get_quant_param(q.get("conv1"), 8)
print(param.zero_point, param.scale)

print(q.get_fixed_mul(0.75, 32, 31, False))
print(ValueRange.full())
```

```python
from kpukit.datatypes import BinaryOp, ValueRange
from kpukit.k210_layout import get_kpu_bytes, get_kpu_row_layout
from kpukit.operators import evaluate_binary

print(get_kpu_row_layout(20))
print(get_kpu_bytes(224, 224, 3))

out = evaluate_binary(
    [1.0, 2.0, 3.0, 4.0], [10.0],
    (1, 1, 2, 2), (1, 1, 1, 1), (1, 1, 2, 2),
    BinaryOp.ADD, ValueRange.full(),
)
print(out)
```

## What it does not do

kpukit has none of the following:

- a model importer;
- a graph representation;
- a scheduler or memory planner;
- a code generator;
- a command-line tool.

The evaluator module has no graph runner. It supplies memory pools and an opcode registry, and leaves it to the caller to walk the operations and invoke the registered functions. The quantizer records ranges by arbitrary keys. It does not propagate ranges through a graph.

## Installing and testing

```
pip install .
pip install ".[test]"
pytest
```