"""
Elementwise unary kernels (CPU and stream).

Activation kernels follow the usual definitions:

- ``sigmoid(x) = 1 / (1 + exp(-x))``, evaluated in a form that does not
  overflow for large ``|x|``.
- ``leaky_relu(x) = x if x > 0 else alpha * x``.
- ``elu(x) = x if x > 0 else exp(x) - 1``.
- ``step(x) = 1 if x > 0 else alpha`` (NaN propagates).
- ``softplus(x) = log(1 + exp(x))``, evaluated stably.
"""

from __future__ import annotations

import numpy as np

from ._kernel_builder import register_kernel

_BACKENDS = ("cpu", "stream")


@register_kernel("neg", *_BACKENDS)
def neg(x: np.ndarray) -> np.ndarray:
    return np.negative(x)


@register_kernel("abs", *_BACKENDS)
def abs_(x: np.ndarray) -> np.ndarray:
    return np.abs(x)


@register_kernel("sign", *_BACKENDS)
def sign(x: np.ndarray) -> np.ndarray:
    return np.sign(x)


@register_kernel("exp", *_BACKENDS)
def exp(x: np.ndarray) -> np.ndarray:
    return np.exp(x)


@register_kernel("log", *_BACKENDS)
def log(x: np.ndarray) -> np.ndarray:
    return np.log(x)


@register_kernel("sqrt", *_BACKENDS)
def sqrt(x: np.ndarray) -> np.ndarray:
    return np.sqrt(x)


@register_kernel("rsqrt", *_BACKENDS)
def rsqrt(x: np.ndarray) -> np.ndarray:
    return 1.0 / np.sqrt(x)


@register_kernel("square", *_BACKENDS)
def square(x: np.ndarray) -> np.ndarray:
    return np.square(x)


@register_kernel("reciprocal", *_BACKENDS)
def reciprocal(x: np.ndarray) -> np.ndarray:
    return 1.0 / x


@register_kernel("sin", *_BACKENDS)
def sin(x: np.ndarray) -> np.ndarray:
    return np.sin(x)


@register_kernel("cos", *_BACKENDS)
def cos(x: np.ndarray) -> np.ndarray:
    return np.cos(x)


@register_kernel("tanh", *_BACKENDS)
def tanh(x: np.ndarray) -> np.ndarray:
    return np.tanh(x)


@register_kernel("sigmoid", *_BACKENDS)
def sigmoid(x: np.ndarray) -> np.ndarray:
    e = np.exp(-np.abs(x))
    return np.where(x >= 0, 1.0 / (1.0 + e), e / (1.0 + e))


@register_kernel("relu", *_BACKENDS)
def relu(x: np.ndarray) -> np.ndarray:
    return np.maximum(x, 0)


@register_kernel("leaky_relu", *_BACKENDS)
def leaky_relu(x: np.ndarray, *, alpha: float) -> np.ndarray:
    return np.where(x > 0, x, alpha * x)


@register_kernel("elu", *_BACKENDS)
def elu(x: np.ndarray) -> np.ndarray:
    return np.where(x > 0, x, np.expm1(x))


@register_kernel("step", *_BACKENDS)
def step(x: np.ndarray, *, alpha: float) -> np.ndarray:
    out = np.where(x > 0, 1.0, alpha)
    return np.where(np.isnan(x), np.nan, out)


@register_kernel("softplus", *_BACKENDS)
def softplus(x: np.ndarray) -> np.ndarray:
    return np.log1p(np.exp(-np.abs(x))) + np.maximum(x, 0)


@register_kernel("clip", *_BACKENDS)
def clip(x: np.ndarray, *, min_value: float, max_value: float) -> np.ndarray:
    return np.clip(x, min_value, max_value)


@register_kernel("cast", *_BACKENDS)
def cast(x: np.ndarray, *, dtype: str) -> np.ndarray:
    # The backend casts every output to its declared dtype.
    if dtype == "bool":
        return x != 0
    return x
