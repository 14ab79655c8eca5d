"""
Reductions along axes.

`axis=None` reduces every axis. With ``keepdims=True`` the reduced axes are
kept with length 1. Reducing a bool tensor with `sum` counts true elements
(int32 result); `mean` always yields float32.

Gradients
---------
- `sum`: the upstream gradient is broadcast back over the reduced axes.
- `mean`: as `sum`, divided by the number of reduced elements.
- `max` / `min`: the upstream gradient flows to every element equal to the
  extremum (ties all receive it).
- `argmax` / `argmin`: not differentiable.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional, Sequence, Union

from ...domain._dtype import DType
from ...domain._errors import ShapeMismatchError
from . import _elementwise, _transform
from ._base import require_numeric, run, spec
from ._op_table import register_op
from ._shape_utils import (
    normalize_axes,
    normalize_axis,
    reduced_shape,
    shape_size,
    sum_to_shape_axes,
)

Axis = Optional[Union[int, Iterable[int]]]


def _reduce_infer(op: str):
    def infer(inputs: Sequence, attrs: Mapping[str, Any]):
        (x,) = inputs
        if op != "sum":
            require_numeric(op, x)
        out_shape = reduced_shape(x.shape, attrs["axis"], attrs["keepdims"])
        if op == "mean":
            dtype = DType.FLOAT32
        elif x.dtype is DType.BOOL:
            dtype = DType.INT32
        else:
            dtype = x.dtype
        if op in ("max", "min") and x.size == 0:
            raise ShapeMismatchError(op, [x.shape], "reduction of an empty tensor")
        return [spec(out_shape, dtype)]

    return infer


def _arg_infer(op: str):
    def infer(inputs: Sequence, attrs: Mapping[str, Any]):
        (x,) = inputs
        require_numeric(op, x)
        axis = attrs["axis"]
        if x.rank == 0 or x.shape[axis] == 0:
            raise ShapeMismatchError(op, [x.shape], "cannot reduce an empty axis")
        return [spec(reduced_shape(x.shape, (axis,), False), DType.INT32)]

    return infer


def _expand_back(rec, g):
    """
    Reshape a reduced tensor so it broadcasts against the reduction input.
    """
    (x,) = rec.inputs
    kept = reduced_shape(x.shape, rec.attr("axis"), True)
    return _transform.reshape(g, kept)


def _sum_backward(rec, dy):
    (x,) = rec.inputs
    if not x.dtype.is_floating:
        return (None,)
    return (_transform.broadcast_to(_expand_back(rec, dy), x.shape),)


def _mean_backward(rec, dy):
    (x,) = rec.inputs
    if not x.dtype.is_floating:
        return (None,)
    count = shape_size(x.shape[a] for a in rec.attr("axis"))
    g = _elementwise.div(_expand_back(rec, dy), float(max(count, 1)))
    return (_transform.broadcast_to(g, x.shape),)


def _extremum_backward(rec, dy):
    (x,) = rec.inputs
    (y,) = rec.outputs
    if not x.dtype.is_floating:
        return (None,)
    hits = _elementwise.equal(x, _expand_back(rec, y))
    mask = _transform.cast(hits, DType.FLOAT32)
    return (_elementwise.mul(mask, _expand_back(rec, dy)),)


def _no_grad(rec, dy):
    return (None,)


register_op("sum", _reduce_infer("sum"), _sum_backward)
register_op("mean", _reduce_infer("mean"), _mean_backward)
register_op("max", _reduce_infer("max"), _extremum_backward)
register_op("min", _reduce_infer("min"), _extremum_backward)
register_op("argmax", _arg_infer("argmax"), _no_grad)
register_op("argmin", _arg_infer("argmin"), _no_grad)


def _reduce(op: str, x, axis: Axis, keepdims: bool):
    axes = normalize_axes(op, axis, x.rank)
    return run(op, (x,), axis=axes, keepdims=bool(keepdims))


def sum_(x, axis: Axis = None, keepdims: bool = False):
    """Sum of elements along `axis` (all axes by default)."""
    return _reduce("sum", x, axis, keepdims)


def mean(x, axis: Axis = None, keepdims: bool = False):
    """Mean of elements along `axis` (all axes by default)."""
    return _reduce("mean", x, axis, keepdims)


def max_(x, axis: Axis = None, keepdims: bool = False):
    return _reduce("max", x, axis, keepdims)


def min_(x, axis: Axis = None, keepdims: bool = False):
    return _reduce("min", x, axis, keepdims)


def argmax(x, axis: int = 0):
    """Index (int32) of the largest element along `axis`."""
    return run("argmax", (x,), axis=normalize_axis("argmax", axis, x.rank))


def argmin(x, axis: int = 0):
    """Index (int32) of the smallest element along `axis`."""
    return run("argmin", (x,), axis=normalize_axis("argmin", axis, x.rank))


def sum_to_shape(x, shape: Sequence[int]):
    """
    Sum-reduce `x` to `shape`, the inverse of broadcasting `shape` to
    ``x.shape``. Returns `x` itself when no reduction is needed.

    Raises
    ------
    ValueError
        If `shape` could not have been broadcast to ``x.shape``.
    """
    target = tuple(int(d) for d in shape)
    if tuple(x.shape) == target:
        return x
    _, reduce_axes, _ = sum_to_shape_axes(x.shape, target)
    g = x
    if reduce_axes:
        g = run("sum", (g,), axis=reduce_axes, keepdims=True)
    return _transform.reshape(g, target)
