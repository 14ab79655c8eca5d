"""
Adam-family optimizers: Adam and Adamax.

Bias correction uses the optimizer's own step counter (`iterations`), so
every variable updated by one optimizer shares the same ``t``.
"""

from __future__ import annotations

from typing import Optional

from .._config import EPSILON
from ..tensor._tensor import Tensor, Variable
from ..functional import _elementwise
from ._base import Optimizer, check_non_negative, check_positive, check_unit_interval


class Adam(Optimizer):
    """
    Adam optimizer.

    Update rule
    -----------
    Let ``t`` be the 1-based step number::

        m <- beta1 * m + (1 - beta1) * g
        v <- beta2 * v + (1 - beta2) * g^2
        m_hat = m / (1 - beta1^t)
        v_hat = v / (1 - beta2^t)
        x <- x - learning_rate * m_hat / (sqrt(v_hat) + eps)

    Parameters
    ----------
    engine : Engine
        Engine owning the variables.
    learning_rate : float, optional
        Must be > 0. Defaults to 1e-3.
    beta1, beta2 : float, optional
        Moment decay rates, each in [0, 1). Defaults to 0.9 and 0.999.
    epsilon : float, optional
        Must be > 0. Defaults to `EPSILON`.
    """

    def __init__(
        self,
        engine,
        learning_rate: float = 1e-3,
        beta1: float = 0.9,
        beta2: float = 0.999,
        epsilon: Optional[float] = None,
    ) -> None:
        super().__init__(engine, learning_rate)
        self.beta1 = check_unit_interval("beta1", beta1)
        self.beta2 = check_unit_interval("beta2", beta2)
        self.epsilon = check_positive("epsilon", EPSILON if epsilon is None else epsilon)

    def _apply_one(self, variable: Variable, grad: Tensor) -> None:
        m = self._slot(variable, "first_moment")
        v = self._slot(variable, "second_moment")
        b1, b2 = self.beta1, self.beta2
        t = self.iterations + 1

        new_m = b1 * m + (1.0 - b1) * grad
        new_v = b2 * v + (1.0 - b2) * grad.square()
        m_hat = new_m / (1.0 - b1**t)
        v_hat = new_v / (1.0 - b2**t)

        m.assign(new_m)
        v.assign(new_v)
        variable.assign(
            variable - self.learning_rate * m_hat / (v_hat.sqrt() + self.epsilon)
        )


class Adamax(Optimizer):
    """
    Adamax optimizer (Adam with the infinity norm).

    Update rule
    -----------
    ::

        lr_t = learning_rate / (1 + decay * (t - 1))
        m <- beta1 * m + (1 - beta1) * g
        u <- max(beta2 * u, |g|)
        x <- x - lr_t / (1 - beta1^t) * m / (u + eps)

    Parameters
    ----------
    engine : Engine
        Engine owning the variables.
    learning_rate : float, optional
        Must be > 0. Defaults to 2e-3.
    beta1, beta2 : float, optional
        Decay rates, each in [0, 1). Defaults to 0.9 and 0.999.
    epsilon : float, optional
        Must be > 0. Defaults to `EPSILON`.
    decay : float, optional
        Learning-rate decay per step. Must be >= 0. Defaults to 0.
    """

    def __init__(
        self,
        engine,
        learning_rate: float = 2e-3,
        beta1: float = 0.9,
        beta2: float = 0.999,
        epsilon: Optional[float] = None,
        decay: float = 0.0,
    ) -> None:
        super().__init__(engine, learning_rate)
        self.beta1 = check_unit_interval("beta1", beta1)
        self.beta2 = check_unit_interval("beta2", beta2)
        self.epsilon = check_positive("epsilon", EPSILON if epsilon is None else epsilon)
        self.decay = check_non_negative("decay", decay)

    def _apply_one(self, variable: Variable, grad: Tensor) -> None:
        m = self._slot(variable, "first_moment")
        u = self._slot(variable, "weighted_inf_norm")
        b1, b2 = self.beta1, self.beta2
        t = self.iterations + 1
        lr = self.learning_rate / (1.0 + self.decay * self.iterations)

        new_m = b1 * m + (1.0 - b1) * grad
        new_u = _elementwise.maximum(b2 * u, grad.abs())

        m.assign(new_m)
        u.assign(new_u)
        variable.assign(
            variable - (lr / (1.0 - b1**t)) * new_m / (new_u + self.epsilon)
        )
