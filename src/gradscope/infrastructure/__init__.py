"""
Concrete engine: memory registry, backends and kernels, operations, tensor
handles, differentiation and optimizers.
"""

from ._config import EPSILON, EngineConfig
from ._engine import Engine
from ._memory import MemoryEngine, MemoryInfo
from ._tape import GradientTape, OperationRecord
from .tensor import Tensor, Variable
from .backends import (
    KernelBackend,
    CPUBackend,
    StreamBackend,
    available_backends,
    create_backend,
    register_backend,
)
from .ops import kernel_registry, register_kernel
from ._activations import (
    ActivationFunction,
    TanH,
    ReLU,
    LeakyReLU,
    Sigmoid,
    Square,
    Elu,
)

__all__ = [
    "EPSILON",
    "EngineConfig",
    "Engine",
    "MemoryEngine",
    "MemoryInfo",
    "GradientTape",
    "OperationRecord",
    "Tensor",
    "Variable",
    "KernelBackend",
    "CPUBackend",
    "StreamBackend",
    "available_backends",
    "create_backend",
    "register_backend",
    "kernel_registry",
    "register_kernel",
    "ActivationFunction",
    "TanH",
    "ReLU",
    "LeakyReLU",
    "Sigmoid",
    "Square",
    "Elu",
]
