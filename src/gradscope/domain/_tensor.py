"""
Tensor interface definitions.

This module defines the domain-level interface for tensor handles using
structural typing. A tensor handle is an immutable logical view (shape, dtype,
unique id) over a buffer owned by a backend; the interface therefore exposes
identity and metadata, the read-back path and explicit disposal, but no
storage.
"""

from __future__ import annotations

from typing import Any, Protocol, Tuple, runtime_checkable

from ._dtype import DType
from .device._device_protocol import DeviceLike


@runtime_checkable
class ITensor(Protocol):
    """
    Tensor handle interface.

    Notes
    -----
    - `id` is unique for the lifetime of the process.
    - `data_id` names the backend buffer; several handles may share one.
    - Handles are references: copying one never clones its buffer.
    """

    @property
    def id(self) -> int: ...

    @property
    def data_id(self) -> int: ...

    @property
    def shape(self) -> Tuple[int, ...]: ...

    @property
    def dtype(self) -> DType: ...

    @property
    def rank(self) -> int: ...

    @property
    def size(self) -> int: ...

    @property
    def device(self) -> DeviceLike: ...

    @property
    def is_disposed(self) -> bool: ...

    def to_numpy(self) -> Any:
        """
        Read the tensor values back to host memory (blocking).
        """
        ...

    def dispose(self) -> None:
        """
        Release the tensor immediately through its memory engine.
        """
        ...
