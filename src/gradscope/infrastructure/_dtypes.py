"""
NumPy mapping of the engine dtypes.
"""

from __future__ import annotations

import numpy as np

from ..domain._dtype import DType, DTypeLike

_TO_NUMPY = {
    DType.FLOAT32: np.dtype(np.float32),
    DType.INT32: np.dtype(np.int32),
    DType.BOOL: np.dtype(np.bool_),
}


def to_numpy_dtype(dtype: DTypeLike) -> np.dtype:
    """
    Return the NumPy dtype backing an engine dtype.
    """
    return _TO_NUMPY[DType.parse(dtype)]


def from_numpy_dtype(dtype: np.dtype) -> DType:
    """
    Map a NumPy dtype onto the closest engine dtype.

    Floating types map to float32, integer types to int32 and booleans to
    bool. Anything else is rejected.
    """
    dt = np.dtype(dtype)
    if dt.kind == "f":
        return DType.FLOAT32
    if dt.kind in ("i", "u"):
        return DType.INT32
    if dt.kind == "b":
        return DType.BOOL
    raise ValueError(f"Unsupported array dtype {dt}")


def as_array(values, dtype: DType) -> np.ndarray:
    """
    Return a contiguous array of the backing NumPy dtype (copying if needed).
    """
    a = np.asarray(values, dtype=to_numpy_dtype(dtype))
    return a if a.flags.c_contiguous else np.ascontiguousarray(a)
