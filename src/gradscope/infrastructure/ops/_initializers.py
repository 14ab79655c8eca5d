"""
Creation kernels: constant fill, one-hot encoding and random initializers.

Random kernels draw from a `numpy.random.Generator`. A given `seed` makes
the draw reproducible on every backend; `seed=None` draws fresh entropy.
"""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np

from ._kernel_builder import register_kernel

_BACKENDS = ("cpu", "stream")


@register_kernel("fill", *_BACKENDS)
def fill(*, shape: Tuple[int, ...], value: float, dtype: str) -> np.ndarray:
    return np.full(shape, value)


@register_kernel("one_hot", *_BACKENDS)
def one_hot(
    indices: np.ndarray, *, depth: int, on_value: float, off_value: float
) -> np.ndarray:
    """
    Encode integer indices along a new trailing axis of length `depth`.

    Indices outside ``[0, depth)`` produce an all-`off_value` row.
    """
    hits = indices[..., None] == np.arange(depth)
    return np.where(hits, on_value, off_value)


@register_kernel("random_uniform", *_BACKENDS)
def random_uniform(
    *,
    shape: Tuple[int, ...],
    minval: float,
    maxval: float,
    seed: Optional[int],
    dtype: str,
) -> np.ndarray:
    rng = np.random.default_rng(seed)
    if dtype == "int32":
        return rng.integers(int(minval), int(maxval), size=shape)
    return rng.uniform(minval, maxval, size=shape)


@register_kernel("random_normal", *_BACKENDS)
def random_normal(
    *, shape: Tuple[int, ...], mean: float, stddev: float, seed: Optional[int]
) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return rng.normal(mean, stddev, size=shape)
