"""Evaluator registry and memory pools for running a scheduled graph."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Hashable, Mapping

import numpy as np
import numpy.typing as npt

from .datatypes import MemoryType

EvaluatorFn = Callable[[Any, "EvaluateContext"], None]

_evaluators: dict[Hashable, EvaluatorFn] = {}


def _opcode_name(opcode: Hashable) -> str:
    return str(getattr(opcode, "name", opcode))


def register_evaluator(opcode: Hashable, evaluator: EvaluatorFn) -> None:
    """Register the evaluator of an opcode; an existing registration is kept."""
    _evaluators.setdefault(opcode, evaluator)


def get_evaluator(opcode: Hashable) -> EvaluatorFn:
    """Return the evaluator registered for an opcode."""
    try:
        return _evaluators[opcode]
    except KeyError:
        raise KeyError(f"Evaluator for {_opcode_name(opcode)} is not found") from None


@dataclass(frozen=True)
class MemoryAllocation:
    """A byte region inside one memory pool."""

    type: MemoryType
    start: int
    size: int


class EvaluateContext:
    """Owns one memory pool per memory type and resolves allocations into arrays."""

    def __init__(
        self,
        pool_sizes: Mapping[MemoryType, int],
        allocations: Mapping[Hashable, MemoryAllocation],
    ) -> None:
        self._allocations = allocations
        self._pools = {mem_type: bytearray(size) for mem_type, size in pool_sizes.items()}

    def memory_at(
        self, allocation: MemoryAllocation, dtype: npt.DTypeLike = np.uint8
    ) -> np.ndarray:
        """A writable view of an allocation's bytes as elements of ``dtype``."""
        try:
            pool = self._pools[allocation.type]
        except KeyError:
            raise KeyError(f"No memory pool for {_opcode_name(allocation.type)}") from None
        if allocation.start < 0 or allocation.size < 0 or allocation.start + allocation.size > len(pool):
            raise ValueError(
                f"allocation [{allocation.start}, {allocation.start + allocation.size}) "
                f"is outside a pool of {len(pool)} bytes"
            )
        dt = np.dtype(dtype)
        return np.frombuffer(
            pool, dtype=dt, count=allocation.size // dt.itemsize, offset=allocation.start
        )

    def memory_of(self, connector: Hashable, dtype: npt.DTypeLike = np.uint8) -> np.ndarray:
        """A writable view of the memory allocated to a connector."""
        try:
            allocation = self._allocations[connector]
        except KeyError:
            raise KeyError(f"No allocation for {connector!r}") from None
        return self.memory_at(allocation, dtype)