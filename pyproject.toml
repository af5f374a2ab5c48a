[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kpukit"
version = "0.1.0"
description = "Reference kernels, quantization helpers and K210 KPU layout utilities for neural-network model compilation"
requires-python = ">=3.10"
dependencies = [
    "numpy",
]
keywords = ["neural-network", "quantization", "k210", "kpu", "kernels", "inference"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Artificial Intelligence",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["kpukit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
