"""
Scoped memory engine.

The memory engine is the single source of truth for which tensors and
buffers are alive. It keeps:

- a registry of live tensor handles, keyed by tensor id;
- a reference-counted buffer arena, keyed by data id, recording which backend
  owns each buffer and its size in bytes;
- a LIFO stack of scopes, each tracking the tensors created while it was the
  innermost one;
- a keep-set of tensors that survive every scope;
- pin counts held by gradient tapes, which defer scope release until the tape
  that needs the tensor for a backward pass is released.

Design notes
------------
- Buffers are released (handed back to their backend) when the last tensor
  handle referencing them is released. Reshape, clone and variable
  assignment share buffers instead of copying.
- Releasing an id that is not registered is always a fault
  (`DisposedTensorError`); the engine never silently ignores a double free.
- Scope exit skips tensors that were already disposed explicitly.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

from ..domain._backend import IBackend
from ..domain._errors import DisposedTensorError
from ..domain._tensor import ITensor

logger = logging.getLogger(__name__)

_DATA_IDS = itertools.count(1)


@dataclass
class BufferRecord:
    """
    Arena slot of one backend buffer.

    Attributes
    ----------
    backend : IBackend
        Backend owning the buffer.
    nbytes : int
        Size of the buffer in bytes (element count times dtype width).
    ref_count : int
        Number of live tensor handles referencing the buffer.
    """

    backend: IBackend
    nbytes: int
    ref_count: int = 0


@dataclass
class Scope:
    """
    One nested region of tensor creation.

    Attributes
    ----------
    name : Optional[str]
        Debug label.
    tracked : list[ITensor]
        Tensors created while this scope was innermost, in creation order.
    """

    name: Optional[str] = None
    tracked: List[ITensor] = field(default_factory=list)


@dataclass(frozen=True)
class MemoryInfo:
    """
    Snapshot of the memory engine counters.
    """

    num_tensors: int
    num_buffers: int
    num_bytes: int


class MemoryEngine:
    """
    Registry of live tensors and buffers plus the scope stack.
    """

    def __init__(self) -> None:
        self._tensors: Dict[int, ITensor] = {}
        self._buffers: Dict[int, BufferRecord] = {}
        self._scopes: List[Scope] = []
        self._kept: Set[int] = set()
        self._pins: Dict[int, int] = {}
        self._deferred: Dict[int, ITensor] = {}

    # ------------------------------------------------------------------
    # buffers
    # ------------------------------------------------------------------

    @staticmethod
    def new_data_id() -> int:
        """
        Hand out a fresh data id (unique for the process lifetime).
        """
        return next(_DATA_IDS)

    def add_buffer(self, data_id: int, backend: IBackend, nbytes: int) -> None:
        """
        Record a buffer that a backend has just allocated.
        """
        if data_id in self._buffers:
            raise RuntimeError(f"Buffer {data_id} is already registered.")
        self._buffers[data_id] = BufferRecord(backend=backend, nbytes=int(nbytes))

    def buffer_backend(self, data_id: int) -> IBackend:
        """
        Return the backend owning a live buffer.
        """
        rec = self._buffers.get(data_id)
        if rec is None:
            raise RuntimeError(f"Buffer {data_id} is not registered.")
        return rec.backend

    def _incref(self, data_id: int) -> None:
        rec = self._buffers.get(data_id)
        if rec is None:
            raise RuntimeError(f"Buffer {data_id} is not registered.")
        rec.ref_count += 1

    def _decref(self, data_id: int) -> None:
        rec = self._buffers[data_id]
        rec.ref_count -= 1
        if rec.ref_count <= 0:
            del self._buffers[data_id]
            rec.backend.dispose_data(data_id)

    # ------------------------------------------------------------------
    # tensors
    # ------------------------------------------------------------------

    def register_tensor(self, tensor: ITensor, *, track: bool = True) -> None:
        """
        Register a freshly produced handle.

        The handle is associated with the innermost active scope. If no scope
        is active, or `track` is False (variables), the tensor lives until it
        is disposed explicitly.
        """
        if tensor.id in self._tensors:
            raise RuntimeError(f"Tensor {tensor.id} is already registered.")
        self._incref(tensor.data_id)
        self._tensors[tensor.id] = tensor
        if track and self._scopes:
            self._scopes[-1].tracked.append(tensor)

    def is_alive(self, tensor: ITensor) -> bool:
        return tensor.id in self._tensors

    def check_alive(self, tensor: ITensor, action: str = "use") -> None:
        """
        Raise `DisposedTensorError` if the tensor has been released.
        """
        if tensor.id not in self._tensors:
            raise DisposedTensorError(tensor.id, action)

    def rebind(self, tensor: ITensor, new_data_id: int) -> None:
        """
        Move a live handle onto another buffer (variable assignment).

        The new buffer gains a reference before the old one loses it, so
        assigning a variable to a value sharing its own buffer is safe.
        """
        self.check_alive(tensor, "assign")
        self._incref(new_data_id)
        self._decref(tensor.data_id)

    def dispose(self, tensor: ITensor) -> None:
        """
        Release a single tensor immediately, regardless of scope membership.

        Raises
        ------
        DisposedTensorError
            If the tensor was already released.
        """
        if tensor.id not in self._tensors:
            raise DisposedTensorError(tensor.id, "dispose")
        self._release(tensor)

    def _release(self, tensor: ITensor) -> None:
        tid = tensor.id
        del self._tensors[tid]
        self._kept.discard(tid)
        self._deferred.pop(tid, None)
        self._decref(tensor.data_id)

    def keep(self, tensor: ITensor) -> ITensor:
        """
        Mark a tensor so that no scope ever releases it.
        """
        self.check_alive(tensor, "keep")
        self._kept.add(tensor.id)
        return tensor

    # ------------------------------------------------------------------
    # tape pins
    # ------------------------------------------------------------------

    def pin(self, tensor: ITensor) -> None:
        self._pins[tensor.id] = self._pins.get(tensor.id, 0) + 1

    def unpin(self, tensor: ITensor) -> None:
        """
        Drop one pin; a tensor whose scope already ended is released when
        its last pin goes away.
        """
        tid = tensor.id
        n = self._pins.get(tid, 0) - 1
        if n > 0:
            self._pins[tid] = n
            return
        self._pins.pop(tid, None)
        deferred = self._deferred.pop(tid, None)
        if deferred is not None and tid in self._tensors:
            self._release(deferred)

    # ------------------------------------------------------------------
    # scopes
    # ------------------------------------------------------------------

    @property
    def scope_depth(self) -> int:
        return len(self._scopes)

    def start_scope(self, name: Optional[str] = None) -> Scope:
        """
        Push a new, empty scope frame.
        """
        scope = Scope(name=name)
        self._scopes.append(scope)
        return scope

    def end_scope(self, results_to_keep: Iterable[ITensor] = ()) -> None:
        """
        Pop the innermost scope, releasing every tracked tensor not kept.

        Tensors in `results_to_keep` that the popped scope tracked are
        re-tracked by the parent scope (or become top-level). Tensors pinned by
        an active tape are deferred rather than released.

        Raises
        ------
        RuntimeError
            If there is no active scope.
        """
        if not self._scopes:
            raise RuntimeError("end_scope() called without a matching start_scope().")

        keep = list(results_to_keep)
        keep_ids = {t.id for t in keep}
        scope = self._scopes.pop()

        released = 0
        deferred = 0
        tracked_ids: Set[int] = set()
        for t in scope.tracked:
            tracked_ids.add(t.id)
            tid = t.id
            if tid not in self._tensors or tid in keep_ids or tid in self._kept:
                continue
            if self._pins.get(tid):
                self._deferred[tid] = t
                deferred += 1
                continue
            self._release(t)
            released += 1

        if self._scopes:
            parent = self._scopes[-1]
            for t in keep:
                if t.id in tracked_ids and t.id in self._tensors:
                    parent.tracked.append(t)

        logger.debug(
            "end_scope(%s): released=%d deferred=%d kept=%d depth=%d",
            scope.name,
            released,
            deferred,
            len(keep_ids),
            len(self._scopes),
        )

    # ------------------------------------------------------------------
    # introspection
    # ------------------------------------------------------------------

    def num_live_tensors(self) -> int:
        return len(self._tensors)

    def num_live_bytes(self) -> int:
        return sum(rec.nbytes for rec in self._buffers.values())

    def num_buffers(self) -> int:
        return len(self._buffers)

    def info(self) -> MemoryInfo:
        return MemoryInfo(
            num_tensors=self.num_live_tensors(),
            num_buffers=self.num_buffers(),
            num_bytes=self.num_live_bytes(),
        )

    def live_tensors(self) -> List[ITensor]:
        return list(self._tensors.values())
