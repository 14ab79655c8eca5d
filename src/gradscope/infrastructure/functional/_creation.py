"""
Tensor creation operations.

Creation operations take no tensor inputs (except `one_hot`), so they are
dispatched on an explicit engine. Their outputs are constants with respect to
differentiation.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence

from ...domain._dtype import DType, DTypeLike
from ...domain._errors import DTypeMismatchError
from ._base import run, spec
from ._op_table import register_op


def _check_shape(op: str, shape: Sequence[int]) -> None:
    if any(int(d) < 0 for d in shape):
        raise ValueError(f"{op}: shape must be non-negative, got {list(shape)}")


def _source_infer(inputs: Sequence, attrs: Mapping[str, Any]):
    return [spec(attrs["shape"], attrs.get("dtype", DType.FLOAT32.value))]


def _one_hot_infer(inputs: Sequence, attrs: Mapping[str, Any]):
    (indices,) = inputs
    if indices.dtype is not DType.INT32:
        raise DTypeMismatchError("one_hot", [indices.dtype], "indices must be int32")
    return [spec(tuple(indices.shape) + (attrs["depth"],), DType.FLOAT32)]


def _no_grad(rec, dy):
    return tuple(None for _ in rec.inputs)


register_op("fill", _source_infer, _no_grad)
register_op("random_uniform", _source_infer, _no_grad)
register_op("random_normal", _source_infer, _no_grad)
register_op("one_hot", _one_hot_infer, _no_grad)


def fill(engine, shape: Sequence[int], value: Any, dtype: DTypeLike = DType.FLOAT32):
    """
    Tensor of `shape` with every element set to `value`.
    """
    shape = tuple(int(d) for d in shape)
    _check_shape("fill", shape)
    return engine.execute(
        "fill", (), shape=shape, value=value, dtype=DType.parse(dtype).value
    )


def zeros_like(x):
    return fill(x.engine, x.shape, 0, x.dtype)


def ones_like(x):
    return fill(x.engine, x.shape, 1, x.dtype)


def one_hot(indices, depth: int, on_value: float = 1.0, off_value: float = 0.0):
    """
    Float32 one-hot encoding of int32 `indices` along a new trailing axis.
    """
    if int(depth) < 1:
        raise ValueError(f"one_hot: depth must be > 0, got {depth}")
    return run(
        "one_hot",
        (indices,),
        depth=int(depth),
        on_value=float(on_value),
        off_value=float(off_value),
    )


def random_uniform(
    engine,
    shape: Sequence[int],
    minval: float = 0.0,
    maxval: float = 1.0,
    dtype: DTypeLike = DType.FLOAT32,
    seed: Optional[int] = None,
):
    """
    Samples from the uniform distribution on ``[minval, maxval)``.

    For int32, samples are integers in ``[minval, maxval)``.
    """
    shape = tuple(int(d) for d in shape)
    _check_shape("random_uniform", shape)
    dtype = DType.parse(dtype)
    if dtype is DType.BOOL:
        raise DTypeMismatchError("random_uniform", [dtype], "requires a numeric dtype")
    if not minval < maxval:
        raise ValueError(
            f"random_uniform: minval must be < maxval, got {minval} >= {maxval}"
        )
    return engine.execute(
        "random_uniform",
        (),
        shape=shape,
        minval=float(minval),
        maxval=float(maxval),
        seed=seed,
        dtype=dtype.value,
    )


def random_normal(
    engine,
    shape: Sequence[int],
    mean: float = 0.0,
    stddev: float = 1.0,
    seed: Optional[int] = None,
):
    """
    Float32 samples from a normal distribution.
    """
    shape = tuple(int(d) for d in shape)
    _check_shape("random_normal", shape)
    if stddev < 0:
        raise ValueError(f"random_normal: stddev must be >= 0, got {stddev}")
    return engine.execute(
        "random_normal",
        (),
        shape=shape,
        mean=float(mean),
        stddev=float(stddev),
        seed=seed,
    )
