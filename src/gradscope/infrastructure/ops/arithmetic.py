"""
Elementwise binary, comparison and logical kernels.

These kernels are shared by the CPU and stream backends: both hold NumPy
arrays, so the math is identical and only the scheduling differs. Operand
shapes and dtypes have already been validated (and broadcast shapes
inferred) by the operation table, so the kernels rely on NumPy broadcasting
directly.
"""

from __future__ import annotations

import numpy as np

from ._kernel_builder import register_kernel

_BACKENDS = ("cpu", "stream")


@register_kernel("add", *_BACKENDS)
def add(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return np.add(a, b)


@register_kernel("sub", *_BACKENDS)
def sub(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return np.subtract(a, b)


@register_kernel("mul", *_BACKENDS)
def mul(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return np.multiply(a, b)


@register_kernel("div", *_BACKENDS)
def div(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """
    Floating division for float32, floor division for int32.
    """
    if a.dtype.kind in ("i", "u"):
        safe = np.where(b == 0, 1, b)
        return np.where(b == 0, 0, np.floor_divide(a, safe))
    return np.true_divide(a, b)


@register_kernel("pow", *_BACKENDS)
def pow_(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    # NumPy rejects negative integer exponents on integer arrays.
    if a.dtype.kind in ("i", "u"):
        return np.power(a.astype(np.float64), b)
    return np.power(a, b)


@register_kernel("maximum", *_BACKENDS)
def maximum(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return np.maximum(a, b)


@register_kernel("minimum", *_BACKENDS)
def minimum(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return np.minimum(a, b)


@register_kernel("equal", *_BACKENDS)
def equal(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return np.equal(a, b)


@register_kernel("not_equal", *_BACKENDS)
def not_equal(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return np.not_equal(a, b)


@register_kernel("greater", *_BACKENDS)
def greater(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return np.greater(a, b)


@register_kernel("greater_equal", *_BACKENDS)
def greater_equal(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return np.greater_equal(a, b)


@register_kernel("less", *_BACKENDS)
def less(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return np.less(a, b)


@register_kernel("less_equal", *_BACKENDS)
def less_equal(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return np.less_equal(a, b)


@register_kernel("logical_and", *_BACKENDS)
def logical_and(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return np.logical_and(a, b)


@register_kernel("logical_or", *_BACKENDS)
def logical_or(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return np.logical_or(a, b)


@register_kernel("logical_not", *_BACKENDS)
def logical_not(a: np.ndarray) -> np.ndarray:
    return np.logical_not(a)


@register_kernel("where", *_BACKENDS)
def where(cond: np.ndarray, a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return np.where(cond, a, b)
