"""
Domain-level backend contract.

A backend owns device buffers, addressed by integer data ids handed out by the
memory engine, and executes kernels against them. The contract is
deliberately narrow: buffer lifecycle (write / read / dispose), kernel
execution, and a synchronization point. Kernel selection, validation and
gradient bookkeeping happen above this boundary.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Mapping, Optional, Protocol, Sequence, runtime_checkable

from ._function import TensorSpec
from .device._device_protocol import DeviceLike


@runtime_checkable
class IBackend(Protocol):
    """
    Backend interface contract.

    Required members
    ----------------
    - `name`: registry key used for kernel lookup.
    - `device`: device descriptor of the buffers this backend owns.
    - `write` / `read` / `read_async` / `dispose_data`: buffer lifecycle.
    - `run`: execute a kernel on input buffers into freshly allocated outputs.
    - `synchronize`: wait until every queued kernel has completed.
    """

    @property
    def name(self) -> str: ...

    @property
    def device(self) -> DeviceLike: ...

    def write(self, data_id: int, values: Any, spec: TensorSpec) -> None: ...

    def read(self, data_id: int) -> Any: ...

    def read_async(self, data_id: int) -> Awaitable[Any]: ...

    def dispose_data(self, data_id: int) -> None: ...

    def run(
        self,
        kernel: Callable[..., Any],
        input_ids: Sequence[int],
        output_ids: Sequence[int],
        output_specs: Sequence[TensorSpec],
        attrs: Mapping[str, Any],
        input_shapes: Optional[Sequence[Sequence[int]]] = None,
    ) -> None: ...

    def synchronize(self) -> None: ...

    def num_buffers(self) -> int: ...

    def close(self) -> None: ...
