"""
Adaptive-rate optimizers: Adagrad and Adadelta.
"""

from __future__ import annotations

from typing import Optional

from .._config import EPSILON
from ..tensor._tensor import Tensor, Variable
from ._base import Optimizer, check_non_negative, check_positive, check_unit_interval


class Adagrad(Optimizer):
    """
    Adagrad optimizer.

    Update rule
    -----------
    ::

        a <- a + g^2
        x <- x - learning_rate * g / sqrt(a + eps)

    Parameters
    ----------
    engine : Engine
        Engine owning the variables.
    learning_rate : float
        Must be > 0.
    initial_accumulator_value : float, optional
        Starting value of the squared-gradient accumulator. Must be >= 0.
        Defaults to 0.1.
    """

    def __init__(
        self,
        engine,
        learning_rate: float,
        initial_accumulator_value: float = 0.1,
    ) -> None:
        super().__init__(engine, learning_rate)
        self.initial_accumulator_value = check_non_negative(
            "initial_accumulator_value", initial_accumulator_value
        )

    def _apply_one(self, variable: Variable, grad: Tensor) -> None:
        acc = self._slot(variable, "accumulator", self.initial_accumulator_value)
        new_acc = acc + grad.square()
        acc.assign(new_acc)
        variable.assign(
            variable - self.learning_rate * grad / (new_acc + EPSILON).sqrt()
        )


class Adadelta(Optimizer):
    """
    Adadelta optimizer.

    Update rule
    -----------
    ::

        ag <- rho * ag + (1 - rho) * g^2
        u  <- sqrt(au + eps) / sqrt(ag + eps) * g
        au <- rho * au + (1 - rho) * u^2
        x  <- x - learning_rate * u

    Parameters
    ----------
    engine : Engine
        Engine owning the variables.
    learning_rate : float
        Must be > 0.
    rho : float, optional
        Decay rate, in [0, 1). Defaults to 0.95.
    epsilon : float, optional
        Must be > 0. Defaults to `EPSILON`.
    """

    def __init__(
        self,
        engine,
        learning_rate: float,
        rho: float = 0.95,
        epsilon: Optional[float] = None,
    ) -> None:
        super().__init__(engine, learning_rate)
        self.rho = check_unit_interval("rho", rho)
        self.epsilon = check_positive("epsilon", EPSILON if epsilon is None else epsilon)

    def _apply_one(self, variable: Variable, grad: Tensor) -> None:
        acc_grad = self._slot(variable, "accumulated_grad")
        acc_update = self._slot(variable, "accumulated_update")
        rho, eps = self.rho, self.epsilon

        new_acc_grad = rho * acc_grad + (1.0 - rho) * grad.square()
        update = (acc_update + eps).sqrt() / (new_acc_grad + eps).sqrt() * grad
        new_acc_update = rho * acc_update + (1.0 - rho) * update.square()

        acc_grad.assign(new_acc_grad)
        acc_update.assign(new_acc_update)
        variable.assign(variable - self.learning_rate * update)
