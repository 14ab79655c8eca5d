"""
Activation-function helpers.

Each helper pairs an activation with its elementwise derivative, expressed
through the functional operations so the results are ordinary tracked
tensors:

- `output(x)` returns ``f(x)``;
- `der(x, y)` returns ``f'(x)`` given the input ``x`` and the output
  ``y = f(x)`` (some derivatives are cheaper in terms of ``y``);
- `dispose()` releases any constant tensor the helper holds.

These are standalone helpers for hand-written training loops; the gradient
tape does not use them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from .functional import _creation, _elementwise, _unary


class ActivationFunction(ABC):
    """
    Activation function together with its derivative.
    """

    @abstractmethod
    def output(self, x):
        """
        Apply the activation to `x`.
        """

    @abstractmethod
    def der(self, x, y):
        """
        Derivative of the activation at `x`, where ``y = output(x)``.
        """

    def dispose(self) -> None:
        """
        Release held constants. No-op for stateless activations.
        """


class TanH(ActivationFunction):
    """
    Hyperbolic tangent, with ``der = 1 - y^2``.

    Parameters
    ----------
    engine : Engine
        Engine owning the constant ``1`` used by `der`.
    """

    def __init__(self, engine) -> None:
        self._one = engine.keep(engine.scalar(1.0))

    def output(self, x):
        return _unary.tanh(x)

    def der(self, x, y):
        return y.engine.scope(lambda: _elementwise.sub(self._one, _elementwise.mul(y, y)))

    def dispose(self) -> None:
        self._one.dispose()


class ReLU(ActivationFunction):
    def output(self, x):
        return _unary.relu(x)

    def der(self, x, y):
        return _unary.step(x)


class LeakyReLU(ActivationFunction):
    """
    Leaky ReLU; the derivative is 1 for positive inputs and `alpha`
    otherwise.
    """

    def __init__(self, alpha: float = 0.2) -> None:
        self.alpha = float(alpha)

    def output(self, x):
        return _unary.leaky_relu(x, self.alpha)

    def der(self, x, y):
        return _unary.step(x, self.alpha)


class Sigmoid(ActivationFunction):
    """
    Logistic sigmoid, with ``der = y - y^2``.
    """

    def output(self, x):
        return _unary.sigmoid(x)

    def der(self, x, y):
        return y.engine.scope(lambda: _elementwise.sub(y, _elementwise.mul(y, y)))


class Square(ActivationFunction):
    """
    ``x^2``, with ``der = 2x``.
    """

    def __init__(self, engine) -> None:
        self._two = engine.keep(engine.scalar(2.0))

    def output(self, x):
        return _elementwise.mul(x, x)

    def der(self, x, y):
        return _elementwise.mul(self._two, x)

    def dispose(self) -> None:
        self._two.dispose()


class Elu(ActivationFunction):
    """
    Exponential linear unit; the derivative is 1 for positive inputs and
    ``exp(x)`` otherwise.
    """

    def output(self, x):
        return _unary.elu(x)

    def der(self, x, y):
        def _der():
            positive = _elementwise.greater(x, 0.0)
            return _elementwise.where(positive, _creation.ones_like(x), _unary.exp(x))

        return x.engine.scope(_der)
