from ._tensor import Tensor, Variable

__all__ = ["Tensor", "Variable"]
