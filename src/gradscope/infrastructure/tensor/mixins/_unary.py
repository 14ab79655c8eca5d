"""
Unary mixin: elementwise math and activation methods.
"""

from abc import ABC

from ...functional import _unary as U


class TensorMixinUnary(ABC):
    def exp(self):
        return U.exp(self)

    def log(self):
        return U.log(self)

    def sqrt(self):
        return U.sqrt(self)

    def rsqrt(self):
        return U.rsqrt(self)

    def square(self):
        return U.square(self)

    def abs(self):
        return U.abs_(self)

    def sign(self):
        return U.sign(self)

    def sin(self):
        return U.sin(self)

    def cos(self):
        return U.cos(self)

    def tanh(self):
        return U.tanh(self)

    def sigmoid(self):
        return U.sigmoid(self)

    def relu(self):
        return U.relu(self)

    def clip(self, min_value: float, max_value: float):
        return U.clip(self, min_value, max_value)
