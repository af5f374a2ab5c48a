"""Reference kernels, quantization helpers and K210 KPU layout utilities."""

__version__ = "0.1.0"

__all__ = [
    "cpu_kernels",
    "datatypes",
    "evaluator",
    "io_utils",
    "k210_layout",
    "kernel_utils",
    "model",
    "neutral_kernels",
    "operators",
    "quantizer",
]