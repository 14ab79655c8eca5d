"""
Optimizer base class.

Design notes
------------
- Optimizers never read gradients off variables. `minimize` asks the engine
  for the gradients of a scalar loss (`Engine.variable_grads`) and hands them
  to `apply_gradients`.
- Variables without a gradient (no path to the loss) are skipped, which
  supports partial graphs and frozen weights.
- Updates are written back with `Variable.assign`; the intermediate tensors
  of an update live in a scope and are released when it ends.
- Per-variable state ("slots") is held in non-trainable variables created
  lazily on the first update. `dispose()` releases them.
- Optimizer math is expressed entirely with tensor operations, so it runs on
  whichever backend the engine has active.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, Mapping, Optional, Sequence, Tuple

from ..tensor._tensor import Tensor, Variable

logger = logging.getLogger(__name__)


def check_positive(name: str, value: float) -> float:
    value = float(value)
    if value <= 0.0:
        raise ValueError(f"{name} must be > 0, got {value}")
    return value


def check_non_negative(name: str, value: float) -> float:
    value = float(value)
    if value < 0.0:
        raise ValueError(f"{name} must be >= 0, got {value}")
    return value


def check_unit_interval(name: str, value: float) -> float:
    value = float(value)
    if not 0.0 <= value < 1.0:
        raise ValueError(f"{name} must be in [0, 1), got {value}")
    return value


class Optimizer(ABC):
    """
    Base class of the variable-update rules.

    Parameters
    ----------
    engine : Engine
        Engine owning the variables to optimize.
    learning_rate : float
        Step size. Must be > 0.

    Attributes
    ----------
    iterations : int
        Number of completed `apply_gradients` calls.
    """

    def __init__(self, engine, learning_rate: float) -> None:
        self.engine = engine
        self.learning_rate = check_positive("learning_rate", learning_rate)
        self.iterations = 0
        self._slots: Dict[Tuple[int, str], Variable] = {}

    def minimize(
        self,
        loss_fn: Callable[[], Tensor],
        return_cost: bool = False,
        var_list: Optional[Sequence[Variable]] = None,
    ) -> Optional[Tensor]:
        """
        Apply one update step minimizing the scalar ``loss_fn()``.

        Parameters
        ----------
        loss_fn : Callable[[], Tensor]
            Function returning a scalar float32 loss.
        return_cost : bool, optional
            If True, return the loss tensor (the caller owns it).
        var_list : Sequence[Variable], optional
            Variables to update. Defaults to every trainable variable of the
            engine.

        Returns
        -------
        Tensor or None
            The loss if `return_cost` is True, else None.
        """
        cost, grads = self.engine.variable_grads(loss_fn, var_list)
        try:
            self.apply_gradients(grads)
        finally:
            self.engine.dispose(grads)
        if return_cost:
            return cost
        cost.dispose()
        return None

    def apply_gradients(self, variable_gradients: Mapping[str, Tensor]) -> None:
        """
        Update each named variable from its gradient.

        Raises
        ------
        ValueError
            If a name does not refer to a registered variable.
        """
        registered = self.engine.variables
        pairs = []
        for name, grad in variable_gradients.items():
            variable = registered.get(name)
            if variable is None:
                raise ValueError(f"Unknown variable {name!r}")
            pairs.append((variable, grad))

        def _apply() -> None:
            for variable, grad in pairs:
                self._apply_one(variable, grad)

        self.engine.scope(_apply, name=type(self).__name__)
        self.iterations += 1
        logger.debug(
            "%s: step %d updated %d variables",
            type(self).__name__,
            self.iterations,
            len(pairs),
        )

    @abstractmethod
    def _apply_one(self, variable: Variable, grad: Tensor) -> None:
        """
        Update a single variable in place.
        """

    def _slot(self, variable: Variable, slot: str, initial_value: float = 0.0) -> Variable:
        """
        Return the accumulator `slot` of `variable`, creating it on first use.
        """
        key = (variable.id, slot)
        acc = self._slots.get(key)
        if acc is None:
            acc = self.engine.variable(
                self.engine.fill(variable.shape, initial_value, variable.dtype),
                trainable=False,
            )
            self._slots[key] = acc
        return acc

    def dispose(self) -> None:
        """
        Release every accumulator variable.
        """
        for acc in self._slots.values():
            if not acc.is_disposed:
                self.engine.dispose(acc)
        self._slots.clear()
