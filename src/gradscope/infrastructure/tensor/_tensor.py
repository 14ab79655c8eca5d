"""
Concrete tensor handle and variable implementation.

A `Tensor` is an immutable logical view (shape, dtype, process-unique id)
over a buffer owned by a backend. It holds no data itself: reads go through
its engine, which resolves the buffer's backend, and its lifetime is
controlled only by the engine's memory registry (scopes, `keep`, explicit
`dispose`). Copying a Python reference to a tensor never clones its buffer.

`Variable` is the one mutable tensor: `assign` rebinds it onto the buffer of
another tensor. Variables are never tracked by scopes and live until they are
disposed.

Design notes
------------
- ``==`` is identity, and tensors hash by identity, so they can be used as
  dictionary keys; elementwise comparison is `equal()`.
- Operator and method sugar lives in the mixins and delegates to the
  functional operations.
"""

from __future__ import annotations

import itertools
from typing import TYPE_CHECKING, Any, Sequence, Tuple, Union

import numpy as np

from ...domain._dtype import DType, DTypeLike
from ...domain._tensor import ITensor
from ...domain.device._device import Device
from .mixins import (
    TensorMixinArithmetic,
    TensorMixinComparison,
    TensorMixinReduction,
    TensorMixinShape,
    TensorMixinUnary,
)

if TYPE_CHECKING:
    from .._engine import Engine

_TENSOR_IDS = itertools.count()

Number = Union[int, float]


class Tensor(
    TensorMixinArithmetic,
    TensorMixinComparison,
    TensorMixinUnary,
    TensorMixinReduction,
    TensorMixinShape,
    ITensor,
):
    """
    Handle onto an engine-managed buffer.

    Tensors are created by an `Engine` (factories or operations); user code
    never calls this constructor directly.

    Parameters
    ----------
    engine : Engine
        Engine owning the memory registry the handle is registered in.
    shape : Sequence[int]
        Tensor shape.
    dtype : DTypeLike
        Element dtype.
    data_id : int
        Key of the backend buffer referenced by the handle.
    """

    def __init__(
        self,
        engine: "Engine",
        shape: Sequence[int],
        dtype: DTypeLike,
        data_id: int,
    ) -> None:
        self._engine = engine
        self._id = next(_TENSOR_IDS)
        self._shape = tuple(int(d) for d in shape)
        self._dtype = DType.parse(dtype)
        self._data_id = int(data_id)

    # ------------------------------------------------------------------
    # identity & metadata
    # ------------------------------------------------------------------

    @property
    def id(self) -> int:
        return self._id

    @property
    def data_id(self) -> int:
        return self._data_id

    @property
    def engine(self) -> "Engine":
        return self._engine

    @property
    def shape(self) -> Tuple[int, ...]:
        return self._shape

    @property
    def dtype(self) -> DType:
        return self._dtype

    @property
    def rank(self) -> int:
        return len(self._shape)

    @property
    def ndim(self) -> int:
        return len(self._shape)

    @property
    def size(self) -> int:
        n = 1
        for d in self._shape:
            n *= d
        return n

    @property
    def nbytes(self) -> int:
        return self.size * self._dtype.itemsize

    @property
    def device(self) -> Device:
        """
        Device of the backend owning this tensor's buffer.
        """
        return self._engine.device_of(self)

    @property
    def is_disposed(self) -> bool:
        return not self._engine.memory_engine.is_alive(self)

    # ------------------------------------------------------------------
    # data access
    # ------------------------------------------------------------------

    def to_numpy(self) -> np.ndarray:
        """
        Read the values back to host memory as a new NumPy array.

        On the stream backend this blocks until the producing kernel ran.

        Raises
        ------
        DisposedTensorError
            If the tensor has been released.
        """
        return self._engine.read(self)

    async def data(self) -> np.ndarray:
        """
        Awaitable read-back that does not block the event loop.
        """
        return await self._engine.read_async(self)

    def tolist(self) -> Any:
        return self.to_numpy().tolist()

    def item(self) -> Number:
        """
        Return the single element of a size-1 tensor as a Python scalar.

        Raises
        ------
        ValueError
            If the tensor has more than one element.
        """
        if self.size != 1:
            raise ValueError(
                f"item() requires a tensor with one element, got shape {self._shape}"
            )
        return self.to_numpy().reshape(()).item()

    def dispose(self) -> None:
        """
        Release the tensor immediately.

        Raises
        ------
        DisposedTensorError
            If the tensor was already released.
        """
        self._engine.dispose(self)

    def __repr__(self) -> str:
        state = ", disposed" if self.is_disposed else ""
        return (
            f"Tensor(id={self._id}, shape={self._shape}, dtype={self._dtype}"
            f"{state})"
        )

    __hash__ = object.__hash__


class Variable(Tensor):
    """
    Mutable, named tensor used for trainable state.

    Parameters
    ----------
    name : str
        Unique name within the engine.
    trainable : bool
        Whether optimizers update this variable by default.
    """

    def __init__(
        self,
        engine: "Engine",
        shape: Sequence[int],
        dtype: DTypeLike,
        data_id: int,
        *,
        name: str,
        trainable: bool = True,
    ) -> None:
        super().__init__(engine, shape, dtype, data_id)
        self._name = str(name)
        self.trainable = bool(trainable)

    @property
    def name(self) -> str:
        return self._name

    def assign(self, value: Tensor) -> "Variable":
        """
        Rebind this variable onto the buffer of `value` (shape and dtype must
        match). Tensors previously read from the variable keep their values.

        Raises
        ------
        ShapeMismatchError, DTypeMismatchError
            If `value` does not match the variable.
        """
        self._engine.assign(self, value)
        return self

    def _rebind(self, data_id: int) -> None:
        self._data_id = int(data_id)

    def __repr__(self) -> str:
        state = ", disposed" if self.is_disposed else ""
        return (
            f"Variable(name={self._name!r}, shape={self._shape}, "
            f"dtype={self._dtype}, trainable={self.trainable}{state})"
        )
