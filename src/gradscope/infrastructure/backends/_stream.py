"""
Asynchronous command-stream backend.

This backend models an accelerator queue on the host: every kernel launch is
enqueued on a single worker thread (FIFO, so launches complete in issue
order) and returns immediately. Buffers are `concurrent.futures.Future`
objects resolving to read-only NumPy arrays, so downstream launches can be
issued before their inputs are computed.

Reading a buffer (`read`) is the synchronization point: it blocks until the
producing kernel has run. `read_async` awaits the same future from an event
loop without blocking it. A kernel failure is stored in its output futures
and surfaces at the read point, or in any kernel consuming them.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

import numpy as np

from ...domain._function import TensorSpec
from ...domain.device._device import Device
from .._dtypes import as_array
from ._base import KernelBackend

logger = logging.getLogger(__name__)


def _fan_out(batch: "Future[tuple]", n: int) -> List[Future]:
    """
    Split a future of an n-tuple into n futures, propagating failures.
    """
    outs: List[Future] = [Future() for _ in range(n)]

    def _done(f: Future) -> None:
        exc = f.exception()
        for k, out in enumerate(outs):
            if exc is not None:
                out.set_exception(exc)
            else:
                out.set_result(f.result()[k])

    batch.add_done_callback(_done)
    return outs


class StreamBackend(KernelBackend):
    """
    Backend executing kernels asynchronously on a single-worker stream.

    Parameters
    ----------
    index : int, optional
        Stream ordinal, reflected in the device descriptor ("stream:<index>").
    """

    name = "stream"

    def __init__(self, index: int = 0) -> None:
        super().__init__(Device(f"stream:{int(index)}"))
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=f"gradscope-stream{int(index)}"
        )
        self._data: Dict[int, Future] = {}
        self._closed = False
        logger.debug("stream backend %s started", self.device)

    def _get(self, data_id: int) -> Future:
        try:
            return self._data[data_id]
        except KeyError:
            raise RuntimeError(
                f"Buffer {data_id} does not exist on backend '{self.name}'."
            ) from None

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError(f"Backend {self.device} is closed.")

    def write(self, data_id: int, values: Any, spec: TensorSpec) -> None:
        self._check_open()
        arr = np.array(as_array(values, spec.dtype).reshape(spec.shape), copy=True)
        arr.setflags(write=False)
        fut: Future = Future()
        fut.set_result(arr)
        self._data[data_id] = fut

    def read(self, data_id: int) -> np.ndarray:
        return self._get(data_id).result().copy()

    async def read_async(self, data_id: int) -> np.ndarray:
        arr = await asyncio.wrap_future(self._get(data_id))
        return arr.copy()

    def dispose_data(self, data_id: int) -> None:
        # Queued launches hold their own reference to the input futures.
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
        self._check_open()
        inputs = [self._get(i) for i in input_ids]
        specs = tuple(output_specs)
        attrs = dict(attrs)

        def launch() -> tuple:
            arrays = self._shaped([f.result() for f in inputs], input_shapes)
            return self._finalize_outputs(self._invoke(kernel, arrays, attrs), specs)

        batch = self._executor.submit(launch)
        for oid, fut in zip(output_ids, _fan_out(batch, len(specs))):
            self._data[oid] = fut

    def synchronize(self) -> None:
        """
        Block until every kernel issued so far has completed.
        """
        if self._closed:
            return
        self._executor.submit(lambda: None).result()

    def num_buffers(self) -> int:
        return len(self._data)

    def close(self) -> None:
        """
        Drain the stream and stop its worker thread. Idempotent.
        """
        if self._closed:
            return
        self._closed = True
        self._executor.shutdown(wait=True)
        logger.debug("stream backend %s closed", self.device)
