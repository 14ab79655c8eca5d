"""
Backend kernels.

Importing this package registers every kernel in `kernel_registry`.
"""

from . import (  # noqa: F401
    arithmetic,
    unary,
    reduce,
    matmul,
    transform,
    _initializers,
    conv2d_cpu,
    conv2d_stream,
    pool2d_cpu,
    pool2d_stream,
)
from ._kernel_builder import kernel_registry, register_kernel

__all__ = ["kernel_registry", "register_kernel"]
