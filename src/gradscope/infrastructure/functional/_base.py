"""
Helpers shared by the functional operation modules.

Public op functions accept tensors and, where it makes sense, Python scalars.
A scalar operand is lifted to a rank-0 tensor of the other operand's dtype on
the same engine, so ``x * 2`` never changes the dtype of ``x``.
"""

from __future__ import annotations

from numbers import Number
from typing import Any, Sequence, Tuple

import numpy as np

from ...domain._dtype import DType
from ...domain._errors import DTypeMismatchError
from ...domain._function import TensorSpec
from ...domain._tensor import ITensor


def is_scalar(value: Any) -> bool:
    return isinstance(value, (Number, np.number, np.bool_))


def lift(value: Any, like: ITensor) -> ITensor:
    """
    Return `value` unchanged if it is a tensor, else a rank-0 tensor with the
    dtype of `like`.
    """
    if is_scalar(value):
        return like.engine.scalar(value, dtype=like.dtype)
    return value


def operands(a: Any, b: Any) -> Tuple[ITensor, ITensor]:
    """
    Lift a scalar/tensor operand pair to two tensors.

    Raises
    ------
    TypeError
        If neither operand is a tensor.
    """
    if is_scalar(a) and is_scalar(b):
        raise TypeError("At least one operand must be a Tensor.")
    if is_scalar(a):
        a = lift(a, b)
    if is_scalar(b):
        b = lift(b, a)
    return a, b


def run(op: str, inputs: Sequence[ITensor], **attrs: Any):
    """
    Dispatch an operation on the engine owning the first input.
    """
    return inputs[0].engine.execute(op, tuple(inputs), **attrs)


def same_dtype(op: str, tensors: Sequence[ITensor]) -> DType:
    dtypes = {t.dtype for t in tensors}
    if len(dtypes) != 1:
        raise DTypeMismatchError(op, [t.dtype for t in tensors])
    return tensors[0].dtype


def require_float(op: str, tensor: ITensor) -> None:
    if not tensor.dtype.is_floating:
        raise DTypeMismatchError(op, [tensor.dtype], "requires float32")


def require_numeric(op: str, tensor: ITensor) -> None:
    if tensor.dtype is DType.BOOL:
        raise DTypeMismatchError(op, [tensor.dtype], "requires a numeric dtype")


def spec(shape: Sequence[int], dtype: DType) -> TensorSpec:
    return TensorSpec(tuple(int(d) for d in shape), DType.parse(dtype))


def if_float(tensor: ITensor, grad_fn):
    """
    Return ``grad_fn()`` when `tensor` is floating, else the not-differentiable
    sentinel (None).
    """
    return grad_fn() if tensor.dtype.is_floating else None
