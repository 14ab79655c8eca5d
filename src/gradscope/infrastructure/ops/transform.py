"""
Layout kernels: transpose, broadcast, concatenation, slicing and padding.

Reshape and clone have no kernel: their outputs share the input buffer.
"""

from __future__ import annotations

from typing import Sequence, Tuple

import numpy as np

from ._kernel_builder import register_kernel

_BACKENDS = ("cpu", "stream")


@register_kernel("transpose", *_BACKENDS)
def transpose(x: np.ndarray, *, perm: Tuple[int, ...]) -> np.ndarray:
    return np.transpose(x, perm)


@register_kernel("broadcast_to", *_BACKENDS)
def broadcast_to(x: np.ndarray, *, shape: Tuple[int, ...]) -> np.ndarray:
    return np.broadcast_to(x, shape)


@register_kernel("concat", *_BACKENDS)
def concat(*xs: np.ndarray, axis: int) -> np.ndarray:
    return np.concatenate(xs, axis=axis)


@register_kernel("slice", *_BACKENDS)
def slice_(
    x: np.ndarray, *, begin: Tuple[int, ...], size: Tuple[int, ...]
) -> np.ndarray:
    index = tuple(slice(b, b + s) for b, s in zip(begin, size))
    return x[index]


@register_kernel("pad", *_BACKENDS)
def pad(
    x: np.ndarray, *, paddings: Sequence[Tuple[int, int]], constant_value: float
) -> np.ndarray:
    return np.pad(
        x,
        pad_width=tuple(tuple(p) for p in paddings),
        mode="constant",
        constant_values=constant_value,
    )
