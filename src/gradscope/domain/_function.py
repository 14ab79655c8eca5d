"""
Differentiable operation definitions.

An operation kind is described by an `OpDef`, which pairs:

- `infer`: validates operand dtypes/shapes and returns the output specs. It
  runs at dispatch time, before any device work, so a mismatch is never
  partially applied.
- `backward`: the fixed gradient function of the operation. It receives the
  operation record (inputs, outputs, attrs) and one upstream gradient per
  output, and returns one gradient per input. `None` in the returned tuple is
  the sentinel for "not differentiable with respect to this input".

The forward computation itself is not part of the definition: kernels are
registered per backend (see `utils._registry`), so the same `OpDef` is shared
by every device.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Sequence, Tuple

from ._dtype import DType
from ._tensor import ITensor


@dataclass(frozen=True)
class TensorSpec:
    """
    Shape and dtype of a tensor that an operation will produce.
    """

    shape: Tuple[int, ...]
    dtype: DType

    @property
    def size(self) -> int:
        n = 1
        for d in self.shape:
            n *= int(d)
        return n

    @property
    def nbytes(self) -> int:
        return self.size * self.dtype.itemsize


InferFn = Callable[[Sequence[ITensor], Mapping[str, Any]], Sequence[TensorSpec]]
"""(inputs, attrs) -> output specs; raises on invalid operands."""

BackwardFn = Callable[..., Sequence[Optional[ITensor]]]
"""(record, *dys) -> one gradient (or None) per input."""


@dataclass(frozen=True)
class OpDef:
    """
    Registration entry of one operation kind.

    Attributes
    ----------
    name : str
        Operation kind tag; also the kernel registry key.
    infer : InferFn
        Output spec inference and operand validation.
    backward : Optional[BackwardFn]
        Gradient function. `None` means the operation has no gradient
        definition; reaching it during a backward pass is a fault.
    alias : bool
        If True, the single output is a new handle onto the buffer of the
        first input (reshape, clone) and no kernel runs.
    """

    name: str
    infer: InferFn
    backward: Optional[BackwardFn] = None
    alias: bool = False
