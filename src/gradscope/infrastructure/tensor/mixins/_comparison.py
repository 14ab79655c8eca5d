"""
Comparison mixin.

Ordering operators return bool tensors. ``==`` and ``!=`` are deliberately
not overloaded: tensors are hashed and compared by identity (they are used as
dictionary keys throughout the engine); use `equal()` / `not_equal()` for the
elementwise comparison.
"""

from abc import ABC

from ...functional import _elementwise as E


class TensorMixinComparison(ABC):
    def __gt__(self, other):
        return E.greater(self, other)

    def __ge__(self, other):
        return E.greater_equal(self, other)

    def __lt__(self, other):
        return E.less(self, other)

    def __le__(self, other):
        return E.less_equal(self, other)

    def equal(self, other):
        return E.equal(self, other)

    def not_equal(self, other):
        return E.not_equal(self, other)
