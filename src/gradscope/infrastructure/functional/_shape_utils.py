"""
Shape arithmetic shared by the operation table.

Broadcasting follows the NumPy rule: shapes are aligned on their trailing
dimensions, and two dimensions are compatible when they are equal or one of
them is 1. Gradients flowing back into a broadcast operand are summed over
the broadcast axes (`sum_to_shape_axes`).
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence, Tuple, Union

from ...domain._errors import ShapeMismatchError

Shape = Tuple[int, ...]


def shape_size(shape: Sequence[int]) -> int:
    n = 1
    for d in shape:
        n *= int(d)
    return n


def broadcast_shapes(op: str, *shapes: Sequence[int]) -> Shape:
    """
    Compute the broadcast result shape of several operand shapes.

    Raises
    ------
    ShapeMismatchError
        If any pair of aligned dimensions is incompatible.
    """
    rank = max((len(s) for s in shapes), default=0)
    out = []
    for i in range(rank):
        dim = 1
        for s in shapes:
            j = len(s) - rank + i
            if j < 0:
                continue
            d = int(s[j])
            if d == dim or d == 1:
                continue
            if dim == 1:
                dim = d
                continue
            raise ShapeMismatchError(
                op, shapes, f"dimension {i} is not broadcastable"
            )
        out.append(dim)
    return tuple(out)


def sum_to_shape_axes(
    src_shape: Sequence[int], target_shape: Sequence[int]
) -> Tuple[Shape, Tuple[int, ...], int]:
    """
    Compute the padded target shape and reduction axes for `sum_to_shape`.

    Given a source shape `src_shape` (typically the broadcasted/result shape)
    and a desired `target_shape` (the original pre-broadcast shape), this
    helper:

    1) Left-pads `target_shape` with leading ones so it has the same rank as
       `src_shape`.
    2) Validates that `target_shape` could have been broadcast to
       `src_shape`.
    3) Determines which axes must be summed to collapse broadcasted
       dimensions back to size 1.

    Returns
    -------
    padded_target:
        `target_shape` left-padded with ones to match `len(src_shape)`.
    reduce_axes:
        Axes in the source to sum over (with ``keepdims=True``).
    pad:
        The number of leading dimensions added to the target.

    Raises
    ------
    ValueError
        If `target_shape` has higher rank than `src_shape`, or if any
        dimension is not broadcast-compatible.
    """
    src = tuple(int(d) for d in src_shape)
    tgt = tuple(int(d) for d in target_shape)

    if len(tgt) > len(src):
        raise ValueError(f"target_shape rank {len(tgt)} > src rank {len(src)}")

    pad = len(src) - len(tgt)
    padded_tgt = (1,) * pad + tgt

    for i, (sd, td) in enumerate(zip(src, padded_tgt)):
        if td not in (1, sd):
            raise ValueError(
                f"Cannot sum_to_shape from {src_shape} to {target_shape}: "
                f"dim mismatch at axis {i}: src={sd}, target={td}"
            )

    reduce_axes = tuple(
        i for i, (sd, td) in enumerate(zip(src, padded_tgt)) if td == 1 and sd != 1
    )
    return padded_tgt, reduce_axes, pad


def normalize_axis(op: str, axis: int, rank: int) -> int:
    """
    Map a possibly negative axis into ``[0, rank)``.
    """
    a = int(axis)
    if a < -rank or a >= max(rank, 1):
        raise ValueError(f"{op}: axis {axis} is out of range for rank {rank}")
    return a % rank if rank else 0


def normalize_axes(
    op: str, axis: Optional[Union[int, Iterable[int]]], rank: int
) -> Tuple[int, ...]:
    """
    Normalize a reduction axis argument into a sorted tuple of axes.

    `None` selects every axis.
    """
    if axis is None:
        return tuple(range(rank))
    if isinstance(axis, int):
        axis = (axis,)
    axes = sorted({normalize_axis(op, a, rank) for a in axis})
    return tuple(axes)


def reduced_shape(shape: Sequence[int], axes: Sequence[int], keepdims: bool) -> Shape:
    if keepdims:
        return tuple(1 if i in axes else int(d) for i, d in enumerate(shape))
    return tuple(int(d) for i, d in enumerate(shape) if i not in axes)


def infer_reshape(op: str, shape: Sequence[int], new_shape: Sequence[int]) -> Shape:
    """
    Resolve a target shape with at most one ``-1`` placeholder.

    Raises
    ------
    ShapeMismatchError
        If the element counts differ or the placeholder is ambiguous.
    """
    new_shape = tuple(int(d) for d in new_shape)
    size = shape_size(shape)
    unknown = [i for i, d in enumerate(new_shape) if d == -1]
    if len(unknown) > 1:
        raise ShapeMismatchError(op, [shape, new_shape], "only one -1 is allowed")
    if any(d < -1 for d in new_shape):
        raise ShapeMismatchError(op, [shape, new_shape], "negative dimension")
    if unknown:
        known = shape_size(d for d in new_shape if d != -1)
        if known == 0 or size % known:
            raise ShapeMismatchError(
                op, [shape, new_shape], "cannot infer the -1 dimension"
            )
        new_shape = tuple(size // known if d == -1 else d for d in new_shape)
    if shape_size(new_shape) != size:
        raise ShapeMismatchError(
            op, [shape, new_shape], "element counts differ"
        )
    return new_shape
