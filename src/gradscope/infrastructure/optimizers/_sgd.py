"""
Gradient-descent optimizers: plain SGD and momentum.
"""

from __future__ import annotations

from ..tensor._tensor import Tensor, Variable
from ._base import Optimizer, check_non_negative


class SGD(Optimizer):
    """
    Stochastic gradient descent.

    Update rule
    -----------
    ``x <- x - learning_rate * g``

    Parameters
    ----------
    engine : Engine
        Engine owning the variables.
    learning_rate : float
        Must be > 0.
    """

    def __init__(self, engine, learning_rate: float) -> None:
        super().__init__(engine, learning_rate)

    def _apply_one(self, variable: Variable, grad: Tensor) -> None:
        variable.assign(variable - self.learning_rate * grad)


class Momentum(Optimizer):
    """
    Gradient descent with momentum.

    Update rule
    -----------
    ::

        a <- momentum * a + g
        x <- x - learning_rate * a                      (classic)
        x <- x - learning_rate * (g + momentum * a)     (Nesterov)

    Parameters
    ----------
    engine : Engine
        Engine owning the variables.
    learning_rate : float
        Must be > 0.
    momentum : float
        Decay of the velocity accumulator. Must be >= 0.
    use_nesterov : bool, optional
        Use Nesterov momentum. Defaults to False.
    """

    def __init__(
        self,
        engine,
        learning_rate: float,
        momentum: float,
        use_nesterov: bool = False,
    ) -> None:
        super().__init__(engine, learning_rate)
        self.momentum = check_non_negative("momentum", momentum)
        self.use_nesterov = bool(use_nesterov)

    def _apply_one(self, variable: Variable, grad: Tensor) -> None:
        acc = self._slot(variable, "velocity")
        new_acc = self.momentum * acc + grad
        acc.assign(new_acc)
        if self.use_nesterov:
            step = grad + self.momentum * new_acc
        else:
            step = new_acc
        variable.assign(variable - self.learning_rate * step)
