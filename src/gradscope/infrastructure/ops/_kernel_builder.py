"""
Kernel registry for backend-specific dispatch.

This module defines the shared kernel registry used to register and resolve
backend-specific implementations of primitive operations.

The registry is a `create_path_builder()` specialization keyed by
``(op_name, backend_name)``. Kernel modules register themselves at import
time:

    @register_kernel("add", "cpu", "stream")
    def add(a, b): ...

    @register_kernel("conv2d", "stream")
    def conv2d_stream(x, w, **attrs): ...

At runtime, the engine resolves ``kernel_registry.resolve(op, backend.name)``
and hands the kernel to the backend, which owns the buffers.

Kernel calling convention
-------------------------
``kernel(*input_arrays, **attrs) -> ndarray | tuple[ndarray, ...]``

Kernels receive read-only NumPy arrays, never mutate them, and return new
arrays. Casting to the declared output dtype and shape validation are done by
the backend.
"""

from typing import Callable, TypeVar

from ...domain.utils._registry import create_path_builder

F = TypeVar("F", bound=Callable)

# Kernel registry that dispatches primitive operations by backend name
kernel_registry = create_path_builder()


def register_kernel(op_name: str, *backends: str) -> Callable[[F], F]:
    """
    Register one kernel function for an operation on one or more backends.
    """

    def decorator(fn: F) -> F:
        for backend in backends:
            kernel_registry.register(op_name, backend)(fn)
        return fn

    return decorator
