"""
Composite functions built from primitive operations.

These have no kernels of their own: they are recorded as the primitives they
are made of, so their gradients come for free. Numerical-stability shifts
(subtracting the maximum) are computed with gradient recording disabled, so
the shift is a constant and contributes nothing to the gradient.
"""

from __future__ import annotations

from typing import Optional

from .._config import EPSILON
from . import _elementwise as E
from . import _reduction as R
from . import _transform as T
from . import _unary as U
from ._reduction import Axis
from ._shape_utils import normalize_axes, reduced_shape


def _stop_max(x, axis):
    with x.engine.no_grad():
        return R.max_(x, axis=axis, keepdims=True)


def logsumexp(x, axis: Axis = None, keepdims: bool = False):
    """
    ``log(sum(exp(x), axis))`` computed without overflow.
    """
    axes = normalize_axes("logsumexp", axis, x.rank)
    m = _stop_max(x, axes)
    s = R.sum_(U.exp(E.sub(x, m)), axis=axes, keepdims=True)
    out = E.add(U.log(s), m)
    if keepdims:
        return out
    return T.reshape(out, reduced_shape(x.shape, axes, False))


def softmax(x, axis: int = -1):
    """
    Normalized exponentials along `axis`.
    """
    e = U.exp(E.sub(x, _stop_max(x, axis)))
    return E.div(e, R.sum_(e, axis=axis, keepdims=True))


def log_softmax(x, axis: int = -1):
    return E.sub(x, logsumexp(x, axis=axis, keepdims=True))


def moments(x, axis: Axis = None, keepdims: bool = False):
    """
    Mean and (biased) variance of `x` along `axis`.

    Returns
    -------
    tuple[Tensor, Tensor]
        ``(mean, variance)``.
    """
    axes = normalize_axes("moments", axis, x.rank)
    mu = R.mean(x, axis=axes, keepdims=True)
    variance = R.mean(U.square(E.sub(x, mu)), axis=axes, keepdims=keepdims)
    if not keepdims:
        mu = T.reshape(mu, reduced_shape(x.shape, axes, False))
    return mu, variance


def batch_norm(
    x,
    mean,
    variance,
    offset=None,
    scale=None,
    variance_epsilon: Optional[float] = None,
):
    """
    ``(x - mean) / sqrt(variance + eps) * scale + offset``.

    `mean`, `variance`, `offset` and `scale` broadcast against `x`; `eps`
    defaults to the engine epsilon.
    """
    eps = EPSILON if variance_epsilon is None else float(variance_epsilon)
    inv = U.rsqrt(E.add(variance, eps))
    if scale is not None:
        inv = E.mul(inv, scale)
    out = E.mul(E.sub(x, mean), inv)
    if offset is not None:
        out = E.add(out, offset)
    return out
