from ._arithmetic import TensorMixinArithmetic
from ._comparison import TensorMixinComparison
from ._unary import TensorMixinUnary
from ._reduction import TensorMixinReduction
from ._shape import TensorMixinShape

__all__ = [
    "TensorMixinArithmetic",
    "TensorMixinComparison",
    "TensorMixinUnary",
    "TensorMixinReduction",
    "TensorMixinShape",
]
