"""
Shared backend machinery.

`KernelBackend` implements the parts of the backend contract that do not
depend on how buffers are stored: kernel output normalization (tuple
wrapping, dtype casting, shape validation) and the floating-point error
policy kernels run under.
"""

from __future__ import annotations

import abc
from typing import Any, Callable, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from ...domain._function import TensorSpec
from ...domain.device._device import Device
from .._dtypes import to_numpy_dtype


class KernelBackend(abc.ABC):
    """
    Abstract base of the concrete backends.

    Subclasses decide where buffers live and when kernels run; this class
    provides output validation so both backends reject the same malformed
    kernel results.
    """

    name: str = "abstract"

    def __init__(self, device: Device) -> None:
        self._device = device

    @property
    def device(self) -> Device:
        return self._device

    def __repr__(self) -> str:
        return f"{type(self).__name__}(device={self._device!s})"

    # ------------------------------------------------------------------
    # kernel helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _shaped(
        arrays: Sequence[np.ndarray],
        input_shapes: Optional[Sequence[Sequence[int]]],
    ) -> List[np.ndarray]:
        # Buffers are shared by reshape views; kernels see the view shape.
        if input_shapes is None:
            return list(arrays)
        return [a.reshape(tuple(s)) for a, s in zip(arrays, input_shapes)]

    @staticmethod
    def _invoke(
        kernel: Callable[..., Any],
        arrays: Sequence[np.ndarray],
        attrs: Mapping[str, Any],
    ) -> Any:
        # Devices follow IEEE semantics silently (inf / nan, no warnings).
        with np.errstate(all="ignore"):
            return kernel(*arrays, **attrs)

    @staticmethod
    def _finalize_outputs(
        result: Any, output_specs: Sequence[TensorSpec]
    ) -> Tuple[np.ndarray, ...]:
        """
        Normalize a kernel result into one contiguous array per output spec.

        Raises
        ------
        RuntimeError
            If the kernel returned the wrong number of outputs or an output
            whose shape differs from the inferred one.
        """
        outs = result if isinstance(result, tuple) else (result,)
        if len(outs) != len(output_specs):
            raise RuntimeError(
                f"kernel returned {len(outs)} outputs, expected {len(output_specs)}"
            )
        finalized = []
        for arr, spec in zip(outs, output_specs):
            a = np.asarray(arr, dtype=to_numpy_dtype(spec.dtype))
            if a.shape != tuple(spec.shape):
                if a.size == spec.size and (a.ndim == 0 or tuple(spec.shape) == ()):
                    a = a.reshape(spec.shape)
                else:
                    raise RuntimeError(
                        f"kernel output shape mismatch: expected {tuple(spec.shape)}, "
                        f"got {a.shape}"
                    )
            # 0-d arrays are always contiguous; ascontiguousarray would make them (1,).
            if not a.flags.c_contiguous:
                a = np.ascontiguousarray(a)
            a.setflags(write=False)
            finalized.append(a)
        return tuple(finalized)

    # ------------------------------------------------------------------
    # contract
    # ------------------------------------------------------------------

    @abc.abstractmethod
    def write(self, data_id: int, values: Any, spec: TensorSpec) -> None: ...

    @abc.abstractmethod
    def read(self, data_id: int) -> np.ndarray: ...

    @abc.abstractmethod
    async def read_async(self, data_id: int) -> np.ndarray: ...

    @abc.abstractmethod
    def dispose_data(self, data_id: int) -> None: ...

    @abc.abstractmethod
    def run(
        self,
        kernel: Callable[..., Any],
        input_ids: Sequence[int],
        output_ids: Sequence[int],
        output_specs: Sequence[TensorSpec],
        attrs: Mapping[str, Any],
        input_shapes: Optional[Sequence[Sequence[int]]] = None,
    ) -> None: ...

    @abc.abstractmethod
    def num_buffers(self) -> int: ...

    def synchronize(self) -> None:
        """
        Wait until every queued kernel has completed. No-op for synchronous
        backends.
        """

    def close(self) -> None:
        """
        Release backend resources. No-op by default.
        """
