"""
Shape mixin: layout methods and dtype conversion.
"""

from abc import ABC

from ...functional import _transform as T


class TensorMixinShape(ABC):
    def reshape(self, *shape):
        """
        Accepts ``reshape(2, 3)`` as well as ``reshape((2, 3))``.
        """
        if len(shape) == 1 and isinstance(shape[0], (tuple, list)):
            shape = shape[0]
        return T.reshape(self, shape)

    def transpose(self, perm=None):
        return T.transpose(self, perm)

    @property
    def T(self):
        return T.transpose(self)

    def broadcast_to(self, shape):
        return T.broadcast_to(self, shape)

    def flatten(self):
        return T.flatten(self)

    def expand_dims(self, axis: int = 0):
        return T.expand_dims(self, axis)

    def squeeze(self, axis=None):
        return T.squeeze(self, axis)

    def cast(self, dtype):
        return T.cast(self, dtype)

    def clone(self):
        return T.clone(self)
