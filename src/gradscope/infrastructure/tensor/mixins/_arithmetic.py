"""
Arithmetic mixin defining elementwise Tensor operators.

This module declares :class:`TensorMixinArithmetic`, which maps Python's
arithmetic operators onto the functional operations. Scalars are lifted to
rank-0 tensors of the receiver's dtype, and operands broadcast.
"""

from abc import ABC
from typing import Union

from ...functional import _elementwise as E
from ...functional import _linalg as L
from ...functional import _unary as U

Number = Union[int, float]


class TensorMixinArithmetic(ABC):
    """
    Elementwise arithmetic operators for tensors.

    Notes
    -----
    Backward rules (before reducing over broadcast axes):

    - ``d(a + b) = (dy, dy)``
    - ``d(a - b) = (dy, -dy)``
    - ``d(a * b) = (dy * b, dy * a)``
    - ``d(a / b) = (dy / b, -dy * a / b^2)``
    """

    def __add__(self, other: Union["TensorMixinArithmetic", Number]):
        return E.add(self, other)

    def __radd__(self, other: Number):
        return E.add(other, self)

    def __sub__(self, other: Union["TensorMixinArithmetic", Number]):
        return E.sub(self, other)

    def __rsub__(self, other: Number):
        return E.sub(other, self)

    def __mul__(self, other: Union["TensorMixinArithmetic", Number]):
        return E.mul(self, other)

    def __rmul__(self, other: Number):
        return E.mul(other, self)

    def __truediv__(self, other: Union["TensorMixinArithmetic", Number]):
        return E.div(self, other)

    def __rtruediv__(self, other: Number):
        return E.div(other, self)

    def __pow__(self, other: Union["TensorMixinArithmetic", Number]):
        return E.pow_(self, other)

    def __rpow__(self, other: Number):
        return E.pow_(other, self)

    def __matmul__(self, other: "TensorMixinArithmetic"):
        return L.matmul(self, other)

    def __neg__(self):
        return U.neg(self)

    def __abs__(self):
        return U.abs_(self)
