"""
Synchronous CPU backend.

Buffers are contiguous row-major NumPy arrays held in a dict keyed by data
id. Kernels run immediately on the calling thread; this backend is the
correctness oracle the stream backend is tested against.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Mapping, Optional, Sequence

import numpy as np

from ...domain._function import TensorSpec
from ...domain.device._device import Device
from .._dtypes import as_array
from ._base import KernelBackend


class CPUBackend(KernelBackend):
    """
    Reference backend executing NumPy kernels synchronously.
    """

    name = "cpu"

    def __init__(self) -> None:
        super().__init__(Device("cpu"))
        self._data: Dict[int, np.ndarray] = {}

    def write(self, data_id: int, values: Any, spec: TensorSpec) -> None:
        arr = np.array(as_array(values, spec.dtype).reshape(spec.shape), copy=True)
        arr.setflags(write=False)
        self._data[data_id] = arr

    def _get(self, data_id: int) -> np.ndarray:
        try:
            return self._data[data_id]
        except KeyError:
            raise RuntimeError(
                f"Buffer {data_id} does not exist on backend '{self.name}'."
            ) from None

    def read(self, data_id: int) -> np.ndarray:
        return self._get(data_id).copy()

    async def read_async(self, data_id: int) -> np.ndarray:
        return self.read(data_id)

    def dispose_data(self, data_id: int) -> None:
        if self._data.pop(data_id, None) is None:
            raise RuntimeError(
                f"Buffer {data_id} does not exist on backend '{self.name}'."
            )

    def run(
        self,
        kernel: Callable[..., Any],
        input_ids: Sequence[int],
        output_ids: Sequence[int],
        output_specs: Sequence[TensorSpec],
        attrs: Mapping[str, Any],
        input_shapes: Optional[Sequence[Sequence[int]]] = None,
    ) -> None:
        arrays = self._shaped([self._get(i) for i in input_ids], input_shapes)
        outputs = self._finalize_outputs(
            self._invoke(kernel, arrays, attrs), output_specs
        )
        for oid, arr in zip(output_ids, outputs):
            self._data[oid] = arr

    def num_buffers(self) -> int:
        return len(self._data)
