"""
Shape and layout operations.

`reshape` and `clone` return new handles onto the input buffer (no data is
copied); the other operations produce new buffers. Every operation here is
differentiable for float32 inputs.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence, Tuple, Union

from ...domain._dtype import DType, DTypeLike
from ...domain._errors import ShapeMismatchError
from . import _reduction
from ._base import run, same_dtype, spec
from ._op_table import register_op
from ._shape_utils import (
    broadcast_shapes,
    infer_reshape,
    normalize_axes,
    normalize_axis,
)

# ---------------------------------------------------------------------------
# reshape / clone (buffer aliases)
# ---------------------------------------------------------------------------


def _reshape_infer(inputs: Sequence, attrs: Mapping[str, Any]):
    (x,) = inputs
    return [spec(infer_reshape("reshape", x.shape, attrs["shape"]), x.dtype)]


def _reshape_backward(rec, dy):
    (x,) = rec.inputs
    return (reshape(dy, x.shape) if x.dtype.is_floating else None,)


def _clone_infer(inputs: Sequence, attrs: Mapping[str, Any]):
    (x,) = inputs
    return [spec(x.shape, x.dtype)]


def _clone_backward(rec, dy):
    (x,) = rec.inputs
    return (dy if x.dtype.is_floating else None,)


register_op("reshape", _reshape_infer, _reshape_backward, alias=True)
register_op("clone", _clone_infer, _clone_backward, alias=True)

# ---------------------------------------------------------------------------
# transpose / broadcast_to
# ---------------------------------------------------------------------------


def _transpose_infer(inputs: Sequence, attrs: Mapping[str, Any]):
    (x,) = inputs
    perm = attrs["perm"]
    if sorted(perm) != list(range(x.rank)):
        raise ShapeMismatchError(
            "transpose", [x.shape], f"invalid permutation {list(perm)}"
        )
    return [spec(tuple(x.shape[p] for p in perm), x.dtype)]


def _transpose_backward(rec, dy):
    (x,) = rec.inputs
    if not x.dtype.is_floating:
        return (None,)
    perm = rec.attr("perm")
    inverse = [0] * len(perm)
    for i, p in enumerate(perm):
        inverse[p] = i
    return (transpose(dy, inverse),)


def _broadcast_infer(inputs: Sequence, attrs: Mapping[str, Any]):
    (x,) = inputs
    target = tuple(attrs["shape"])
    if len(target) < x.rank or broadcast_shapes("broadcast_to", x.shape, target) != target:
        raise ShapeMismatchError("broadcast_to", [x.shape, target])
    return [spec(target, x.dtype)]


def _broadcast_backward(rec, dy):
    (x,) = rec.inputs
    return (_reduction.sum_to_shape(dy, x.shape) if x.dtype.is_floating else None,)


register_op("transpose", _transpose_infer, _transpose_backward)
register_op("broadcast_to", _broadcast_infer, _broadcast_backward)

# ---------------------------------------------------------------------------
# concat / slice / pad
# ---------------------------------------------------------------------------


def _concat_infer(inputs: Sequence, attrs: Mapping[str, Any]):
    axis = attrs["axis"]
    dtype = same_dtype("concat", inputs)
    first = inputs[0].shape
    total = 0
    for t in inputs:
        if t.rank != len(first) or any(
            d != f for i, (d, f) in enumerate(zip(t.shape, first)) if i != axis
        ):
            raise ShapeMismatchError(
                "concat", [t.shape for t in inputs], f"along axis {axis}"
            )
        total += t.shape[axis]
    out = list(first)
    out[axis] = total
    return [spec(out, dtype)]


def _concat_backward(rec, dy):
    axis = rec.attr("axis")
    grads = []
    offset = 0
    for t in rec.inputs:
        begin = [0] * t.rank
        begin[axis] = offset
        offset += t.shape[axis]
        grads.append(slice_(dy, begin, t.shape) if t.dtype.is_floating else None)
    return tuple(grads)


def _slice_infer(inputs: Sequence, attrs: Mapping[str, Any]):
    (x,) = inputs
    begin, size = attrs["begin"], attrs["size"]
    for b, s, d in zip(begin, size, x.shape):
        if b < 0 or s < 0 or b + s > d:
            raise ShapeMismatchError(
                "slice", [x.shape], f"begin={list(begin)} size={list(size)}"
            )
    return [spec(size, x.dtype)]


def _slice_backward(rec, dy):
    (x,) = rec.inputs
    if not x.dtype.is_floating:
        return (None,)
    begin, size = rec.attr("begin"), rec.attr("size")
    paddings = [(b, d - b - s) for b, s, d in zip(begin, size, x.shape)]
    return (pad(dy, paddings),)


def _pad_infer(inputs: Sequence, attrs: Mapping[str, Any]):
    (x,) = inputs
    paddings = attrs["paddings"]
    if any(lo < 0 or hi < 0 for lo, hi in paddings):
        raise ValueError(f"pad: paddings must be >= 0, got {list(paddings)}")
    return [spec([d + lo + hi for d, (lo, hi) in zip(x.shape, paddings)], x.dtype)]


def _pad_backward(rec, dy):
    (x,) = rec.inputs
    if not x.dtype.is_floating:
        return (None,)
    return (slice_(dy, [lo for lo, _ in rec.attr("paddings")], x.shape),)


register_op("concat", _concat_infer, _concat_backward)
register_op("slice", _slice_infer, _slice_backward)
register_op("pad", _pad_infer, _pad_backward)

# ---------------------------------------------------------------------------
# cast
# ---------------------------------------------------------------------------


def _cast_infer(inputs: Sequence, attrs: Mapping[str, Any]):
    (x,) = inputs
    return [spec(x.shape, DType.parse(attrs["dtype"]))]


def _cast_backward(rec, dy):
    (x,) = rec.inputs
    (y,) = rec.outputs
    if not (x.dtype.is_floating and y.dtype.is_floating):
        return (None,)
    return (dy,)


register_op("cast", _cast_infer, _cast_backward)

# ---------------------------------------------------------------------------
# public functions
# ---------------------------------------------------------------------------


def reshape(x, shape: Sequence[int]):
    """
    View `x` with a new shape (one dimension may be -1). Shares the buffer.
    """
    shape = tuple(int(d) for d in shape)
    if tuple(x.shape) == shape:
        return x
    return run("reshape", (x,), shape=shape)


def clone(x):
    """
    New handle onto the same buffer as `x`, with its own lifetime.
    """
    return run("clone", (x,))


def transpose(x, perm: Optional[Sequence[int]] = None):
    """
    Permute the axes of `x` (reverse them when `perm` is None).
    """
    if perm is None:
        perm = tuple(reversed(range(x.rank)))
    perm = tuple(normalize_axis("transpose", p, x.rank) for p in perm)
    return run("transpose", (x,), perm=perm)


def broadcast_to(x, shape: Sequence[int]):
    shape = tuple(int(d) for d in shape)
    if tuple(x.shape) == shape:
        return x
    return run("broadcast_to", (x,), shape=shape)


def concat(tensors: Sequence, axis: int = 0):
    """
    Concatenate tensors of equal rank along `axis`.
    """
    tensors = tuple(tensors)
    if not tensors:
        raise ValueError("concat: expected at least one tensor")
    if len(tensors) == 1:
        return clone(tensors[0])
    return run("concat", tensors, axis=normalize_axis("concat", axis, tensors[0].rank))


def slice_(x, begin: Sequence[int], size: Optional[Sequence[int]] = None):
    """
    Extract the block starting at `begin` with extent `size` (-1 or a
    missing entry runs to the end of the axis).
    """
    begin = [int(b) for b in begin] + [0] * (x.rank - len(begin))
    size = list(size) if size is not None else []
    size = [int(s) for s in size] + [-1] * (x.rank - len(size))
    size = [d - b if s == -1 else s for b, s, d in zip(begin, size, x.shape)]
    return run("slice", (x,), begin=tuple(begin), size=tuple(size))


def pad(x, paddings: Sequence[Tuple[int, int]], constant_value: float = 0.0):
    """
    Pad every axis with ``(before, after)`` elements of `constant_value`.
    """
    paddings = tuple((int(lo), int(hi)) for lo, hi in paddings)
    if len(paddings) != x.rank:
        raise ShapeMismatchError(
            "pad", [x.shape], f"expected {x.rank} (before, after) pairs"
        )
    return run("pad", (x,), paddings=paddings, constant_value=float(constant_value))


def cast(x, dtype: DTypeLike):
    """
    Convert `x` to `dtype`. Casting to the same dtype returns `x`.
    """
    dtype = DType.parse(dtype)
    if x.dtype is dtype:
        return x
    return run("cast", (x,), dtype=dtype.value)


def expand_dims(x, axis: int = 0):
    """
    Insert a length-1 axis at `axis`.
    """
    rank = x.rank + 1
    a = normalize_axis("expand_dims", axis, rank)
    shape = list(x.shape)
    shape.insert(a, 1)
    return reshape(x, shape)


def squeeze(x, axis: Optional[Union[int, Sequence[int]]] = None):
    """
    Remove length-1 axes (all of them, or those listed in `axis`).

    Raises
    ------
    ShapeMismatchError
        If a listed axis does not have length 1.
    """
    if axis is None:
        axes = tuple(i for i, d in enumerate(x.shape) if d == 1)
    else:
        axes = normalize_axes("squeeze", axis, x.rank)
        for a in axes:
            if x.shape[a] != 1:
                raise ShapeMismatchError(
                    "squeeze", [x.shape], f"axis {a} does not have length 1"
                )
    return reshape(x, [d for i, d in enumerate(x.shape) if i not in axes])


def flatten(x):
    return reshape(x, (-1,))
