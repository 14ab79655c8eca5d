"""
Reverse-mode differentiation driver.

Given the records of a gradient tape, an output tensor ``y`` with its seed
gradient, and a list of source tensors, `backpropagate` computes
``d(y)/d(source)`` for every source.

Algorithm
---------
1. Keep only the records that lie on a path from some source to ``y``
   (`filter_records`): a forward sweep marks records whose inputs descend
   from a source, a backward sweep keeps the marked records whose outputs
   lead to ``y``.
2. Visit the kept records in strict reverse recording order. A record is
   replayed only if at least one of its outputs has an upstream gradient;
   missing upstream gradients of multi-output records are zero-filled.
3. Contributions to the same tensor are summed as a left fold in visit
   order (reverse recording order, then input order). This fixes the
   floating-point summation order, so results are reproducible.

Gradient functions are ordinary tracked operations. The tape being replayed
is no longer active, but enclosing tapes are, so a backward pass is itself
recorded and can be differentiated again.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Set

from ..domain._errors import (
    GradientNotDefinedError,
    MissingGradientError,
    NonDifferentiableError,
)
from ._tape import OperationRecord
from .functional import _creation, _elementwise, _transform

logger = logging.getLogger(__name__)


def filter_records(
    records: Sequence[OperationRecord],
    source_ids: Set[int],
    output_id: int,
) -> List[OperationRecord]:
    """
    Return the records on a path from any source to the output, in
    recording order.
    """
    descends: Set[int] = set(source_ids)
    from_sources: List[bool] = []
    for rec in records:
        hit = any(t.id in descends for t in rec.inputs)
        from_sources.append(hit)
        if hit:
            descends.update(t.id for t in rec.outputs)

    leads: Set[int] = {output_id}
    kept: List[OperationRecord] = []
    for rec, hit in zip(reversed(records), reversed(from_sources)):
        if not hit or not any(t.id in leads for t in rec.outputs):
            continue
        kept.append(rec)
        leads.update(t.id for t in rec.inputs)

    kept.reverse()
    return kept


def backpropagate(
    records: Sequence[OperationRecord],
    y,
    seed,
    sources: Sequence,
    *,
    allow_missing: bool = False,
) -> Dict[int, object]:
    """
    Replay `records` backward from `y` and collect source gradients.

    Parameters
    ----------
    records : Sequence[OperationRecord]
        Tape records in recording order.
    y : Tensor
        The differentiated output.
    seed : Tensor
        Upstream gradient of `y` (same shape).
    sources : Sequence[Tensor]
        Tensors to differentiate with respect to.
    allow_missing : bool, optional
        If True, sources without any gradient contribution are left out of
        the result instead of raising.

    Returns
    -------
    dict[int, Tensor]
        Gradient per source id.

    Raises
    ------
    NonDifferentiableError
        If a source only receives the not-differentiable sentinel.
    MissingGradientError
        If a source is unreachable (and `allow_missing` is False).
    GradientNotDefinedError
        If a needed record has no gradient function.
    """
    path = filter_records(records, {s.id for s in sources}, y.id)
    logger.debug("backpropagate: %d of %d records on path", len(path), len(records))

    grads: Dict[int, object] = {y.id: seed}
    blocked: Dict[int, str] = {}

    for rec in reversed(path):
        dys = [grads.get(t.id) for t in rec.outputs]
        if all(g is None for g in dys):
            # Only the sentinel reached this record: its inputs are cut off
            # by the same non-differentiable operation.
            cut = [blocked[t.id] for t in rec.outputs if t.id in blocked]
            if cut:
                for t in rec.inputs:
                    blocked.setdefault(t.id, cut[0])
            continue
        if rec.backward is None:
            raise GradientNotDefinedError(rec.name)
        dys = [
            _creation.zeros_like(t) if g is None else g
            for g, t in zip(dys, rec.outputs)
        ]
        input_grads = tuple(rec.backward(rec, *dys))
        if len(input_grads) != len(rec.inputs):
            raise RuntimeError(
                f"backward of '{rec.name}' must return {len(rec.inputs)} "
                f"gradients, got {len(input_grads)}"
            )
        for t, g in zip(rec.inputs, input_grads):
            if g is None:
                blocked.setdefault(t.id, rec.name)
                continue
            if tuple(g.shape) != tuple(t.shape):
                raise RuntimeError(
                    f"backward of '{rec.name}' returned a gradient of shape "
                    f"{tuple(g.shape)} for an input of shape {tuple(t.shape)}"
                )
            prev = grads.get(t.id)
            grads[t.id] = g if prev is None else _elementwise.add(prev, g)

    result: Dict[int, object] = {}
    handed_out: Set[int] = set()
    for s in sources:
        g = grads.get(s.id)
        if g is None:
            if s.id in blocked:
                raise NonDifferentiableError(s.id, blocked[s.id])
            if allow_missing:
                continue
            raise MissingGradientError(s.id)
        # Every returned gradient is a handle of its own, distinct from the
        # seed, the sources and the other gradients.
        if g.id in handed_out or g is seed or any(g is x for x in sources):
            g = _transform.clone(g)
        handed_out.add(g.id)
        result[s.id] = g
    return result
