"""
Elementwise binary operations: arithmetic, comparison, logical and `where`.

All binary operations broadcast their operands (trailing-aligned, dims equal
or 1). Operands must share one dtype; a Python scalar operand takes the dtype
of the tensor operand. Gradients flowing into a broadcast operand are summed
back to its shape.

Comparison and logical operations produce bool tensors and are not
differentiable with respect to their inputs.
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from ...domain._dtype import DType
from ...domain._errors import DTypeMismatchError
from . import _creation, _reduction, _transform, _unary
from ._base import if_float, operands, require_numeric, run, same_dtype, spec
from ._op_table import register_op
from ._shape_utils import broadcast_shapes

# ---------------------------------------------------------------------------
# inference
# ---------------------------------------------------------------------------


def _arith_infer(op: str):
    def infer(inputs: Sequence, attrs: Mapping[str, Any]):
        a, b = inputs
        dtype = same_dtype(op, inputs)
        require_numeric(op, a)
        return [spec(broadcast_shapes(op, a.shape, b.shape), dtype)]

    return infer


def _compare_infer(op: str):
    def infer(inputs: Sequence, attrs: Mapping[str, Any]):
        a, b = inputs
        same_dtype(op, inputs)
        return [spec(broadcast_shapes(op, a.shape, b.shape), DType.BOOL)]

    return infer


def _logical_infer(op: str):
    def infer(inputs: Sequence, attrs: Mapping[str, Any]):
        for t in inputs:
            if t.dtype is not DType.BOOL:
                raise DTypeMismatchError(op, [t.dtype for t in inputs], "requires bool")
        return [spec(broadcast_shapes(op, *(t.shape for t in inputs)), DType.BOOL)]

    return infer


def _where_infer(inputs: Sequence, attrs: Mapping[str, Any]):
    cond, a, b = inputs
    if cond.dtype is not DType.BOOL:
        raise DTypeMismatchError("where", [cond.dtype], "condition must be bool")
    dtype = same_dtype("where", (a, b))
    return [spec(broadcast_shapes("where", cond.shape, a.shape, b.shape), dtype)]


def _no_grad(rec, dy):
    return tuple(None for _ in rec.inputs)


# ---------------------------------------------------------------------------
# gradients
# ---------------------------------------------------------------------------


def _unbroadcast(g, like):
    return _reduction.sum_to_shape(g, like.shape)


def _add_backward(rec, dy):
    a, b = rec.inputs
    return (
        if_float(a, lambda: _unbroadcast(dy, a)),
        if_float(b, lambda: _unbroadcast(dy, b)),
    )


def _sub_backward(rec, dy):
    a, b = rec.inputs
    return (
        if_float(a, lambda: _unbroadcast(dy, a)),
        if_float(b, lambda: _unbroadcast(_unary.neg(dy), b)),
    )


def _mul_backward(rec, dy):
    a, b = rec.inputs
    return (
        if_float(a, lambda: _unbroadcast(mul(dy, b), a)),
        if_float(b, lambda: _unbroadcast(mul(dy, a), b)),
    )


def _div_backward(rec, dy):
    a, b = rec.inputs
    return (
        if_float(a, lambda: _unbroadcast(div(dy, b), a)),
        if_float(
            b,
            lambda: _unbroadcast(
                _unary.neg(div(mul(dy, a), _unary.square(b))), b
            ),
        ),
    )


def _pow_backward(rec, dy):
    a, b = rec.inputs
    (y,) = rec.outputs

    def grad_base():
        # d(a^b)/da = b * a^(b - 1)
        return _unbroadcast(mul(dy, mul(b, pow_(a, sub(b, 1.0)))), a)

    def grad_exp():
        # d(a^b)/db = a^b * log(a), defined as 0 where a <= 0
        positive = greater(a, 0.0)
        safe = where(positive, a, _creation.ones_like(a))
        log_a = where(positive, _unary.log(safe), _creation.zeros_like(a))
        return _unbroadcast(mul(dy, mul(y, log_a)), b)

    return if_float(a, grad_base), if_float(b, grad_exp)


def _maximum_backward(rec, dy):
    a, b = rec.inputs
    return (
        if_float(a, lambda: _unbroadcast(mul(dy, _as_float(greater_equal(a, b))), a)),
        if_float(b, lambda: _unbroadcast(mul(dy, _as_float(less(a, b))), b)),
    )


def _minimum_backward(rec, dy):
    a, b = rec.inputs
    return (
        if_float(a, lambda: _unbroadcast(mul(dy, _as_float(less_equal(a, b))), a)),
        if_float(b, lambda: _unbroadcast(mul(dy, _as_float(greater(a, b))), b)),
    )


def _where_backward(rec, dy):
    cond, a, b = rec.inputs
    zeros = _creation.zeros_like(dy)
    return (
        None,
        if_float(a, lambda: _unbroadcast(where(cond, dy, zeros), a)),
        if_float(b, lambda: _unbroadcast(where(cond, zeros, dy), b)),
    )


def _as_float(mask):
    return _transform.cast(mask, DType.FLOAT32)


register_op("add", _arith_infer("add"), _add_backward)
register_op("sub", _arith_infer("sub"), _sub_backward)
register_op("mul", _arith_infer("mul"), _mul_backward)
register_op("div", _arith_infer("div"), _div_backward)
register_op("pow", _arith_infer("pow"), _pow_backward)
register_op("maximum", _arith_infer("maximum"), _maximum_backward)
register_op("minimum", _arith_infer("minimum"), _minimum_backward)

for _name in ("equal", "not_equal", "greater", "greater_equal", "less", "less_equal"):
    register_op(_name, _compare_infer(_name), _no_grad)
for _name in ("logical_and", "logical_or", "logical_not"):
    register_op(_name, _logical_infer(_name), _no_grad)
register_op("where", _where_infer, _where_backward)

# ---------------------------------------------------------------------------
# public functions
# ---------------------------------------------------------------------------


def add(a, b):
    """Elementwise ``a + b`` with broadcasting."""
    return run("add", operands(a, b))


def sub(a, b):
    """Elementwise ``a - b`` with broadcasting."""
    return run("sub", operands(a, b))


def mul(a, b):
    """Elementwise ``a * b`` with broadcasting."""
    return run("mul", operands(a, b))


def div(a, b):
    """
    Elementwise ``a / b`` with broadcasting.

    Float tensors use true division; int32 tensors use floor division (and
    yield 0 where ``b == 0``).
    """
    return run("div", operands(a, b))


def pow_(a, b):
    """Elementwise ``a ** b`` with broadcasting."""
    return run("pow", operands(a, b))


def maximum(a, b):
    return run("maximum", operands(a, b))


def minimum(a, b):
    return run("minimum", operands(a, b))


def equal(a, b):
    return run("equal", operands(a, b))


def not_equal(a, b):
    return run("not_equal", operands(a, b))


def greater(a, b):
    return run("greater", operands(a, b))


def greater_equal(a, b):
    return run("greater_equal", operands(a, b))


def less(a, b):
    return run("less", operands(a, b))


def less_equal(a, b):
    return run("less_equal", operands(a, b))


def logical_and(a, b):
    return run("logical_and", operands(a, b))


def logical_or(a, b):
    return run("logical_or", operands(a, b))


def logical_not(x):
    return run("logical_not", (x,))


def where(condition, a, b):
    """
    Select elements from `a` where `condition` is true, else from `b`.

    The three operands broadcast together; `a` and `b` share one dtype.
    """
    a, b = operands(a, b)
    return run("where", (condition, a, b))
