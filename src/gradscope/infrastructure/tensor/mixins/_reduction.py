"""
Reduction mixin.

Methods mirror the functional reductions; `axis=None` reduces every axis.
"""

from abc import ABC

from ...functional import _reduction as R


class TensorMixinReduction(ABC):
    def sum(self, axis=None, keepdims: bool = False):
        return R.sum_(self, axis=axis, keepdims=keepdims)

    def mean(self, axis=None, keepdims: bool = False):
        return R.mean(self, axis=axis, keepdims=keepdims)

    def max(self, axis=None, keepdims: bool = False):
        return R.max_(self, axis=axis, keepdims=keepdims)

    def min(self, axis=None, keepdims: bool = False):
        return R.min_(self, axis=axis, keepdims=keepdims)

    def argmax(self, axis: int = 0):
        return R.argmax(self, axis=axis)

    def argmin(self, axis: int = 0):
        return R.argmin(self, axis=axis)
