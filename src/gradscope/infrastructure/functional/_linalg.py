"""
Matrix multiplication.

``matmul(a, b)`` multiplies rank-2 matrices or rank-3 batches of matrices
with equal batch size. `transpose_a` / `transpose_b` transpose the last two
axes of an operand before multiplying.
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from ...domain._errors import ShapeMismatchError
from ._base import require_numeric, run, same_dtype, spec
from ._op_table import register_op


def _matmul_infer(inputs: Sequence, attrs: Mapping[str, Any]):
    a, b = inputs
    dtype = same_dtype("matmul", inputs)
    require_numeric("matmul", a)
    if a.rank not in (2, 3) or a.rank != b.rank:
        raise ShapeMismatchError(
            "matmul", [a.shape, b.shape], "operands must both be rank 2 or rank 3"
        )
    m, k = a.shape[-2:]
    k2, n = b.shape[-2:]
    if attrs["transpose_a"]:
        m, k = k, m
    if attrs["transpose_b"]:
        k2, n = n, k2
    if k != k2:
        raise ShapeMismatchError(
            "matmul", [a.shape, b.shape], f"inner dimensions {k} and {k2} differ"
        )
    if a.rank == 3:
        if a.shape[0] != b.shape[0]:
            raise ShapeMismatchError(
                "matmul", [a.shape, b.shape], "batch dimensions differ"
            )
        return [spec((a.shape[0], m, n), dtype)]
    return [spec((m, n), dtype)]


def _matmul_backward(rec, dy):
    a, b = rec.inputs
    if not a.dtype.is_floating:
        return (None, None)
    ta, tb = rec.attr("transpose_a"), rec.attr("transpose_b")
    if not ta and not tb:
        return (
            matmul(dy, b, transpose_b=True),
            matmul(a, dy, transpose_a=True),
        )
    if not ta and tb:
        return (
            matmul(dy, b),
            matmul(dy, a, transpose_a=True),
        )
    if ta and not tb:
        return (
            matmul(b, dy, transpose_b=True),
            matmul(a, dy),
        )
    return (
        matmul(b, dy, transpose_a=True, transpose_b=True),
        matmul(dy, a, transpose_a=True, transpose_b=True),
    )


register_op("matmul", _matmul_infer, _matmul_backward)


def matmul(a, b, transpose_a: bool = False, transpose_b: bool = False):
    return run(
        "matmul",
        (a, b),
        transpose_a=bool(transpose_a),
        transpose_b=bool(transpose_b),
    )
