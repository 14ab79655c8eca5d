"""
Functional operation API.

Importing this package registers every operation definition (shape inference
and gradient function) in the operation table. Functions whose names would
shadow Python builtins carry a trailing underscore (`sum_`, `max_`, `abs_`,
`pow_`, `slice_`).
"""

from ._op_table import get_op, op_names, register_op
from ._elementwise import (
    add,
    sub,
    mul,
    div,
    pow_,
    maximum,
    minimum,
    equal,
    not_equal,
    greater,
    greater_equal,
    less,
    less_equal,
    logical_and,
    logical_or,
    logical_not,
    where,
)
from ._unary import (
    neg,
    abs_,
    sign,
    exp,
    log,
    sqrt,
    rsqrt,
    square,
    reciprocal,
    sin,
    cos,
    tanh,
    sigmoid,
    relu,
    leaky_relu,
    elu,
    step,
    softplus,
    clip,
)
from ._reduction import sum_, mean, max_, min_, argmax, argmin, sum_to_shape
from ._linalg import matmul
from ._transform import (
    reshape,
    clone,
    transpose,
    broadcast_to,
    concat,
    slice_,
    pad,
    cast,
    expand_dims,
    squeeze,
    flatten,
)
from ._creation import (
    fill,
    zeros_like,
    ones_like,
    one_hot,
    random_uniform,
    random_normal,
)
from ._conv import (
    conv1d,
    conv2d,
    conv2d_backprop_input,
    conv2d_backprop_filter,
    max_pool2d,
    avg_pool2d,
)
from ._composite import softmax, log_softmax, logsumexp, moments, batch_norm

__all__ = [
    "get_op",
    "op_names",
    "register_op",
    "add",
    "sub",
    "mul",
    "div",
    "pow_",
    "maximum",
    "minimum",
    "equal",
    "not_equal",
    "greater",
    "greater_equal",
    "less",
    "less_equal",
    "logical_and",
    "logical_or",
    "logical_not",
    "where",
    "neg",
    "abs_",
    "sign",
    "exp",
    "log",
    "sqrt",
    "rsqrt",
    "square",
    "reciprocal",
    "sin",
    "cos",
    "tanh",
    "sigmoid",
    "relu",
    "leaky_relu",
    "elu",
    "step",
    "softplus",
    "clip",
    "sum_",
    "mean",
    "max_",
    "min_",
    "argmax",
    "argmin",
    "sum_to_shape",
    "matmul",
    "reshape",
    "clone",
    "transpose",
    "broadcast_to",
    "concat",
    "slice_",
    "pad",
    "cast",
    "expand_dims",
    "squeeze",
    "flatten",
    "fill",
    "zeros_like",
    "ones_like",
    "one_hot",
    "random_uniform",
    "random_normal",
    "conv1d",
    "conv2d",
    "conv2d_backprop_input",
    "conv2d_backprop_filter",
    "max_pool2d",
    "avg_pool2d",
    "softmax",
    "log_softmax",
    "logsumexp",
    "moments",
    "batch_norm",
]
