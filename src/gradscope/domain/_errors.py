"""
Engine-level exceptions for gradscope.

This module defines the full error taxonomy raised by the tensor engine. All
errors are raised synchronously to the immediate caller and are never
recovered internally; scope exit still runs its release logic on the error
path.

Taxonomy
--------
- Shape / dtype mismatch: raised at dispatch time, before any kernel runs.
- Double-free / use-after-dispose: raised by the memory engine.
- Missing gradient: a requested differentiation source is unreachable from
  the output, or reachable only through non-differentiable inputs.
- Unsupported operation: no kernel registered for the active backend.
- Device mismatch: operands live on different backends.

Each error also derives from the closest built-in exception type so callers
that already catch `ValueError` / `TypeError` keep working.
"""

from __future__ import annotations

from typing import Optional, Sequence


class GradscopeError(Exception):
    """
    Common base class for every error raised by the engine.
    """


class ShapeMismatchError(GradscopeError, ValueError):
    """
    Raised when operand shapes are incompatible for an operation.

    Attributes
    ----------
    op : str
        Operation name that rejected the shapes.
    shapes : tuple[tuple[int, ...], ...]
        The offending operand shapes, in operand order.
    """

    def __init__(
        self,
        op: str,
        shapes: Sequence[Sequence[int]],
        detail: Optional[str] = None,
    ) -> None:
        self.op = op
        self.shapes = tuple(tuple(int(d) for d in s) for s in shapes)
        msg = f"{op}: incompatible shapes " + " vs ".join(
            str(list(s)) for s in self.shapes
        )
        if detail:
            msg += f" ({detail})"
        super().__init__(msg)


class DTypeMismatchError(GradscopeError, TypeError):
    """
    Raised when operand dtypes are incompatible for an operation.
    """

    def __init__(self, op: str, dtypes: Sequence[object], detail: str = "") -> None:
        self.op = op
        self.dtypes = tuple(str(d) for d in dtypes)
        msg = f"{op}: incompatible dtypes {', '.join(self.dtypes)}"
        if detail:
            msg += f" ({detail})"
        super().__init__(msg)


class DisposedTensorError(GradscopeError, RuntimeError):
    """
    Raised on double-free and on any use of a disposed tensor.

    Attributes
    ----------
    tensor_id : int
        Id of the tensor that is no longer registered.
    """

    def __init__(self, tensor_id: int, action: str = "use") -> None:
        self.tensor_id = int(tensor_id)
        self.action = action
        super().__init__(
            f"Tensor {tensor_id} is disposed; cannot {action} it."
        )


class MissingGradientError(GradscopeError, RuntimeError):
    """
    Raised when a requested differentiation source has no gradient.

    An absent gradient means the source never appears as an input of any
    recorded operation reachable from the output. It is distinct from a
    gradient that is legitimately zero.
    """

    def __init__(self, tensor_id: int, reason: Optional[str] = None) -> None:
        self.tensor_id = int(tensor_id)
        super().__init__(
            reason
            or (
                f"Cannot compute gradient for tensor {tensor_id}: it is not "
                "reachable from the output through any recorded operation."
            )
        )


class NonDifferentiableError(MissingGradientError):
    """
    Raised when a requested source only flows through an operation that is
    declared not differentiable with respect to it.
    """

    def __init__(self, tensor_id: int, op: str) -> None:
        self.op = op
        super().__init__(
            tensor_id,
            f"Cannot compute gradient for tensor {tensor_id}: operation "
            f"'{op}' is not differentiable with respect to it.",
        )


class GradientNotDefinedError(MissingGradientError):
    """
    Raised when the backward pass needs an operation that has no gradient
    function registered.
    """

    def __init__(self, op: str) -> None:
        self.op = op
        super().__init__(
            -1, f"Cannot compute gradient: no gradient function for '{op}'."
        )


class UnsupportedOperationError(GradscopeError, NotImplementedError):
    """
    Raised when an operation is invoked on a backend that lacks a kernel
    for it (or when the operation name is unknown).

    Attributes
    ----------
    op : str
        The name of the operation that was attempted.
    backend : str
        Name of the backend on which the operation was attempted.
    """

    def __init__(self, op: str, backend: str) -> None:
        super().__init__(f"{op} is not implemented for backend '{backend}'.")
        self.op = op
        self.backend = backend


class DeviceMismatchError(GradscopeError, RuntimeError):
    """
    Raised when an operation is attempted between tensors on different
    backends.
    """

    def __init__(self, device_a: str, device_b: str) -> None:
        super().__init__(f"Device mismatch: '{device_a}' vs '{device_b}'.")
        self.device_a = device_a
        self.device_b = device_b


class NaNDetectedError(GradscopeError, FloatingPointError):
    """
    Raised in debug mode when a kernel produces NaN values.
    """

    def __init__(self, op: str) -> None:
        self.op = op
        super().__init__(f"The result of the '{op}' operation has NaNs.")
