"""
Gradient tape and operation records.

An `OperationRecord` captures what the backward pass needs to know about one
executed operation: its inputs and outputs (in order), its non-tensor
attributes, and the gradient function to replay. A `GradientTape` is an
append-only list of such records; because inputs always exist before the
operations that consume them, recording order is a valid topological order
and replaying it in reverse is a valid reverse topological order.

Tapes pin the tensors of their records in the memory engine so that nested
scopes inside the recorded computation cannot release tensors that a later
backward pass will read. `release()` drops those pins.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence

from ..domain._tensor import ITensor
from ._memory import MemoryEngine


@dataclass
class OperationRecord:
    """
    Backward record of one executed operation.

    Attributes
    ----------
    name : str
        Operation kind.
    inputs : Sequence[ITensor]
        Operands of the operation, in order. Gradients are produced for each.
    outputs : Sequence[ITensor]
        Results of the operation, in order.
    backward : Optional[Callable]
        ``backward(record, *dys)`` returning one gradient (or None) per input.
        `None` means no gradient function is defined for the operation.
    attrs : dict[str, Any]
        Non-tensor parameters of the operation (axes, strides, ...).
    """

    name: str
    inputs: Sequence[ITensor]
    outputs: Sequence[ITensor]
    backward: Optional[Callable[..., Sequence[Optional[ITensor]]]]
    attrs: Dict[str, Any] = field(default_factory=dict)

    def attr(self, key: str, default: Any = None) -> Any:
        return self.attrs.get(key, default)


class GradientTape:
    """
    Append-only log of executed differentiable operations.

    Parameters
    ----------
    memory : MemoryEngine
        Memory engine in which the tape pins the tensors it references.
    name : str, optional
        Debug label.
    """

    def __init__(self, memory: MemoryEngine, name: Optional[str] = None) -> None:
        self._memory = memory
        self._records: List[OperationRecord] = []
        self._released = False
        self.name = name

    def record(self, rec: OperationRecord) -> None:
        """
        Append a record and pin its tensors.

        Raises
        ------
        RuntimeError
            If the tape was already released.
        """
        if self._released:
            raise RuntimeError("Cannot record on a released tape.")
        for t in rec.inputs:
            self._memory.pin(t)
        for t in rec.outputs:
            self._memory.pin(t)
        self._records.append(rec)

    @property
    def records(self) -> Sequence[OperationRecord]:
        return tuple(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[OperationRecord]:
        return iter(tuple(self._records))

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        """
        Unpin every tensor referenced by the tape and clear it. Idempotent.
        """
        if self._released:
            return
        self._released = True
        for rec in self._records:
            for t in rec.inputs:
                self._memory.unpin(t)
            for t in rec.outputs:
                self._memory.unpin(t)
        self._records.clear()
