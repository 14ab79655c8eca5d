"""
Elementwise unary operations and activations.

Every operation here preserves shape. Math functions (exp, log, trig,
activations) require float32 inputs; `neg`, `abs` and `sign` also accept
int32.
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from ...domain._dtype import DType
from . import _creation, _elementwise, _transform
from ._base import require_float, require_numeric, run, spec
from ._op_table import register_op


def _infer(op: str, floating: bool = True):
    def infer(inputs: Sequence, attrs: Mapping[str, Any]):
        (x,) = inputs
        if floating:
            require_float(op, x)
        else:
            require_numeric(op, x)
        return [spec(x.shape, x.dtype)]

    return infer


def _float_only(fn):
    def backward(rec, dy):
        (x,) = rec.inputs
        if not x.dtype.is_floating:
            return (None,)
        return (fn(rec, dy),)

    return backward


E = _elementwise


def _x(rec):
    return rec.inputs[0]


def _y(rec):
    return rec.outputs[0]


_RULES = {
    "neg": lambda rec, dy: neg(dy),
    "abs": lambda rec, dy: E.mul(dy, sign(_x(rec))),
    "sign": lambda rec, dy: _creation.zeros_like(dy),
    "exp": lambda rec, dy: E.mul(dy, _y(rec)),
    "log": lambda rec, dy: E.div(dy, _x(rec)),
    "sqrt": lambda rec, dy: E.div(dy, E.mul(_y(rec), 2.0)),
    # d(x^-1/2)/dx = -1/2 * x^-3/2 = -1/2 * y / x
    "rsqrt": lambda rec, dy: E.mul(dy, E.div(E.mul(_y(rec), -0.5), _x(rec))),
    "square": lambda rec, dy: E.mul(dy, E.mul(_x(rec), 2.0)),
    "reciprocal": lambda rec, dy: neg(E.mul(dy, square(_y(rec)))),
    "sin": lambda rec, dy: E.mul(dy, cos(_x(rec))),
    "cos": lambda rec, dy: neg(E.mul(dy, sin(_x(rec)))),
    "tanh": lambda rec, dy: E.mul(dy, E.sub(1.0, square(_y(rec)))),
    "sigmoid": lambda rec, dy: E.mul(dy, E.mul(_y(rec), E.sub(1.0, _y(rec)))),
    "relu": lambda rec, dy: E.mul(
        dy, _transform.cast(E.greater(_x(rec), 0.0), DType.FLOAT32)
    ),
    "leaky_relu": lambda rec, dy: E.where(
        E.greater(_x(rec), 0.0), dy, E.mul(dy, rec.attr("alpha"))
    ),
    "elu": lambda rec, dy: E.where(
        E.greater(_y(rec), 0.0), dy, E.mul(dy, E.add(_y(rec), 1.0))
    ),
    "step": lambda rec, dy: _creation.zeros_like(dy),
    "softplus": lambda rec, dy: E.mul(dy, sigmoid(_x(rec))),
    "clip": lambda rec, dy: E.where(
        E.logical_and(
            E.greater_equal(_x(rec), rec.attr("min_value")),
            E.less_equal(_x(rec), rec.attr("max_value")),
        ),
        dy,
        _creation.zeros_like(dy),
    ),
}

_INT_OK = ("neg", "abs", "sign")

for _name, _rule in _RULES.items():
    register_op(_name, _infer(_name, _name not in _INT_OK), _float_only(_rule))


def neg(x):
    return run("neg", (x,))


def abs_(x):
    return run("abs", (x,))


def sign(x):
    return run("sign", (x,))


def exp(x):
    return run("exp", (x,))


def log(x):
    return run("log", (x,))


def sqrt(x):
    return run("sqrt", (x,))


def rsqrt(x):
    return run("rsqrt", (x,))


def square(x):
    return run("square", (x,))


def reciprocal(x):
    return run("reciprocal", (x,))


def sin(x):
    return run("sin", (x,))


def cos(x):
    return run("cos", (x,))


def tanh(x):
    return run("tanh", (x,))


def sigmoid(x):
    return run("sigmoid", (x,))


def relu(x):
    return run("relu", (x,))


def leaky_relu(x, alpha: float = 0.2):
    """
    ``x`` where ``x > 0``, else ``alpha * x``.
    """
    return run("leaky_relu", (x,), alpha=float(alpha))


def elu(x):
    """
    Exponential linear unit: ``x`` where ``x > 0``, else ``exp(x) - 1``.
    """
    return run("elu", (x,))


def step(x, alpha: float = 0.0):
    """
    Heaviside step: 1 where ``x > 0``, else `alpha`. Its gradient is zero.
    """
    return run("step", (x,), alpha=float(alpha))


def softplus(x):
    return run("softplus", (x,))


def clip(x, min_value: float, max_value: float):
    """
    Clamp values into ``[min_value, max_value]``.

    Raises
    ------
    ValueError
        If ``min_value > max_value``.
    """
    if min_value > max_value:
        raise ValueError(
            f"clip: min_value must be <= max_value, got {min_value} > {max_value}"
        )
    return run("clip", (x,), min_value=float(min_value), max_value=float(max_value))
