"""
Reduction kernels (CPU and stream).

`axis` is always a normalized tuple of non-negative axes (possibly empty for
a rank-0 input); `argmax` / `argmin` take a single axis.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np

from ._kernel_builder import register_kernel

_BACKENDS = ("cpu", "stream")


@register_kernel("sum", *_BACKENDS)
def sum_(x: np.ndarray, *, axis: Tuple[int, ...], keepdims: bool) -> np.ndarray:
    if x.dtype == np.bool_:
        x = x.astype(np.int32)
    return np.sum(x, axis=axis, keepdims=keepdims)


@register_kernel("mean", *_BACKENDS)
def mean(x: np.ndarray, *, axis: Tuple[int, ...], keepdims: bool) -> np.ndarray:
    return np.mean(x, axis=axis, keepdims=keepdims)


@register_kernel("max", *_BACKENDS)
def max_(x: np.ndarray, *, axis: Tuple[int, ...], keepdims: bool) -> np.ndarray:
    return np.max(x, axis=axis, keepdims=keepdims)


@register_kernel("min", *_BACKENDS)
def min_(x: np.ndarray, *, axis: Tuple[int, ...], keepdims: bool) -> np.ndarray:
    return np.min(x, axis=axis, keepdims=keepdims)


@register_kernel("argmax", *_BACKENDS)
def argmax(x: np.ndarray, *, axis: int) -> np.ndarray:
    return np.argmax(x, axis=axis)


@register_kernel("argmin", *_BACKENDS)
def argmin(x: np.ndarray, *, axis: int) -> np.ndarray:
    return np.argmin(x, axis=axis)
