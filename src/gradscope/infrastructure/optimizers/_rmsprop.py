"""
RMSProp optimizer.
"""

from __future__ import annotations

from typing import Optional

from .._config import EPSILON
from ..tensor._tensor import Tensor, Variable
from ._base import Optimizer, check_non_negative, check_positive, check_unit_interval


class RMSProp(Optimizer):
    """
    RMSProp optimizer, optionally centered.

    Update rule
    -----------
    ::

        ms  <- decay * ms + (1 - decay) * g^2
        mg  <- decay * mg + (1 - decay) * g                  (centered only)
        mom <- momentum * mom + lr * g / sqrt(ms - mg^2 + eps)   (centered)
        mom <- momentum * mom + lr * g / sqrt(ms + eps)          (plain)
        x   <- x - mom

    Parameters
    ----------
    engine : Engine
        Engine owning the variables.
    learning_rate : float
        Must be > 0.
    decay : float, optional
        Discount of the squared-gradient average, in [0, 1). Defaults to 0.9.
    momentum : float, optional
        Must be >= 0. Defaults to 0.
    epsilon : float, optional
        Must be > 0. Defaults to `EPSILON`.
    centered : bool, optional
        Normalize by the estimated gradient variance instead of the raw
        second moment. Defaults to False.
    """

    def __init__(
        self,
        engine,
        learning_rate: float,
        decay: float = 0.9,
        momentum: float = 0.0,
        epsilon: Optional[float] = None,
        centered: bool = False,
    ) -> None:
        super().__init__(engine, learning_rate)
        self.decay = check_unit_interval("decay", decay)
        self.momentum = check_non_negative("momentum", momentum)
        self.epsilon = check_positive("epsilon", EPSILON if epsilon is None else epsilon)
        self.centered = bool(centered)

    def _apply_one(self, variable: Variable, grad: Tensor) -> None:
        ms = self._slot(variable, "mean_square")
        mom = self._slot(variable, "momentum")
        d = self.decay

        new_ms = d * ms + (1.0 - d) * grad.square()
        if self.centered:
            mg = self._slot(variable, "mean_grad")
            new_mg = d * mg + (1.0 - d) * grad
            denom = (new_ms - new_mg.square() + self.epsilon).sqrt()
            mg.assign(new_mg)
        else:
            denom = (new_ms + self.epsilon).sqrt()
        new_mom = self.momentum * mom + self.learning_rate * grad / denom

        ms.assign(new_ms)
        mom.assign(new_mom)
        variable.assign(variable - new_mom)
