"""
Matrix multiplication kernel (CPU and stream).

Operands are rank 2 (``[M, K] @ [K, N]``) or rank 3 with a shared leading
batch dimension. The transpose flags swap the last two axes of the
corresponding operand before multiplying, without materializing a copy.
"""

from __future__ import annotations

import numpy as np

from ._kernel_builder import register_kernel


@register_kernel("matmul", "cpu", "stream")
def matmul(
    a: np.ndarray, b: np.ndarray, *, transpose_a: bool, transpose_b: bool
) -> np.ndarray:
    if transpose_a:
        a = np.swapaxes(a, -1, -2)
    if transpose_b:
        b = np.swapaxes(b, -1, -2)
    return np.matmul(a, b)
