"""
Domain-level optimizer contracts for gradscope.

This module defines the `IOptimizer` protocol, which specifies the minimal
interface required for optimizer implementations (e.g., SGD, Adam).

Notes
-----
- Domain contracts are backend-agnostic and must not depend on NumPy or
  infrastructure implementations.
- Optimizers do not compute gradients themselves: `minimize` asks the
  differentiation driver for them, then applies the update rule.
"""

from __future__ import annotations

from typing import Callable, Mapping, Optional, Protocol, Sequence, runtime_checkable

from ._tensor import ITensor


@runtime_checkable
class IOptimizer(Protocol):
    """
    Optimizer interface contract.

    Required methods
    ----------------
    - `minimize()` computes gradients of a scalar loss with respect to the
      trainable variables and applies one update.
    - `apply_gradients()` applies one update from precomputed gradients.
    - `dispose()` releases every accumulator the optimizer owns.
    """

    def minimize(
        self,
        loss_fn: Callable[[], ITensor],
        return_cost: bool = False,
        var_list: Optional[Sequence[ITensor]] = None,
    ) -> Optional[ITensor]:
        """
        Apply one optimization step and optionally return the loss.

        Variables with no path to the loss are left untouched.
        """
        ...

    def apply_gradients(self, variable_gradients: Mapping[str, ITensor]) -> None:
        """
        Update each named variable from its gradient.
        """
        ...

    def dispose(self) -> None:
        """
        Release per-variable accumulator state.
        """
        ...
