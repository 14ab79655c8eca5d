"""
Backend-agnostic contracts of the tensor engine.

The domain layer holds the error taxonomy, dtype and device descriptors, the
tensor/backend/optimizer protocols and the operation definition record. It
does not import NumPy.
"""

from ._dtype import DType, DTypeLike
from ._errors import (
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
from ._function import OpDef, TensorSpec
from ._tensor import ITensor
from ._backend import IBackend
from ._optimizers import IOptimizer
from .device._device import Device, DeviceType

__all__ = [
    "DType",
    "DTypeLike",
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
    "OpDef",
    "TensorSpec",
    "ITensor",
    "IBackend",
    "IOptimizer",
    "Device",
    "DeviceType",
]
