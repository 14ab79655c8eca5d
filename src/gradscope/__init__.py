"""
gradscope: a tensor engine with scoped memory, pluggable backends and
tape-based reverse-mode differentiation.

Typical use::

    from gradscope import Engine, SGD

    engine = Engine("cpu")
    x = engine.variable([1.0, 2.0], name="x")
    opt = SGD(engine, learning_rate=0.1)
    opt.minimize(lambda: (x * x).sum())
"""

from .domain import (
    DType,
    Device,
    DeviceType,
    GradscopeError,
    ShapeMismatchError,
    DTypeMismatchError,
    DisposedTensorError,
    MissingGradientError,
    NonDifferentiableError,
    GradientNotDefinedError,
    UnsupportedOperationError,
    DeviceMismatchError,
    NaNDetectedError,
)
from .infrastructure import (
    EPSILON,
    Engine,
    EngineConfig,
    MemoryInfo,
    Tensor,
    Variable,
    available_backends,
    register_backend,
    register_kernel,
    TanH,
    ReLU,
    LeakyReLU,
    Sigmoid,
    Square,
    Elu,
)
from .infrastructure import functional
from .infrastructure.optimizers import (
    Optimizer,
    SGD,
    Momentum,
    Adagrad,
    Adadelta,
    Adam,
    Adamax,
    RMSProp,
)
from .infrastructure.io import decode_weights, load_weights, read_manifest

__version__ = "0.1.0"

__all__ = [
    "DType",
    "Device",
    "DeviceType",
    "GradscopeError",
    "ShapeMismatchError",
    "DTypeMismatchError",
    "DisposedTensorError",
    "MissingGradientError",
    "NonDifferentiableError",
    "GradientNotDefinedError",
    "UnsupportedOperationError",
    "DeviceMismatchError",
    "NaNDetectedError",
    "EPSILON",
    "Engine",
    "EngineConfig",
    "MemoryInfo",
    "Tensor",
    "Variable",
    "available_backends",
    "register_backend",
    "register_kernel",
    "TanH",
    "ReLU",
    "LeakyReLU",
    "Sigmoid",
    "Square",
    "Elu",
    "functional",
    "Optimizer",
    "SGD",
    "Momentum",
    "Adagrad",
    "Adadelta",
    "Adam",
    "Adamax",
    "RMSProp",
    "decode_weights",
    "load_weights",
    "read_manifest",
]
