"""
Convolution and pooling operations (NCHW layout, OIHW filters).

Forward kernels and their backprop kernels are separate operations, so the
gradient of a convolution is itself made of recorded operations and can be
differentiated again:

- ``conv2d(x, w)`` backprops into ``conv2d_backprop_input(dy, w)`` and
  ``conv2d_backprop_filter(x, dy)``;
- both backprop operations are linear in each operand, and their gradients
  are expressed with the other two convolution operations;
- ``avg_pool2d`` and ``avg_pool2d_backprop`` are adjoint to each other;
- ``max_pool2d_backprop`` has no gradient definition.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence, Tuple

from ...domain._errors import ShapeMismatchError
from . import _transform
from ._base import require_float, run, same_dtype, spec
from ._conv_utils import IntPair, Padding, output_hw, pair, resolve_pads
from ._op_table import register_op


def _geometry(rec) -> dict:
    return {
        "stride": rec.attr("stride"),
        "pads": rec.attr("pads"),
        "dilation": rec.attr("dilation"),
    }


def _pool_geometry(rec) -> dict:
    return {
        "kernel": rec.attr("kernel"),
        "stride": rec.attr("stride"),
        "pads": rec.attr("pads"),
    }


# ---------------------------------------------------------------------------
# conv2d family
# ---------------------------------------------------------------------------


def _conv2d_infer(inputs: Sequence, attrs: Mapping[str, Any]):
    x, w = inputs
    same_dtype("conv2d", inputs)
    require_float("conv2d", x)
    if x.rank != 4 or w.rank != 4:
        raise ShapeMismatchError(
            "conv2d", [x.shape, w.shape], "expected NCHW input and OIHW filter"
        )
    if x.shape[1] != w.shape[1]:
        raise ShapeMismatchError(
            "conv2d",
            [x.shape, w.shape],
            f"in_channels mismatch: x has {x.shape[1]}, weight has {w.shape[1]}",
        )
    H_out, W_out = output_hw(
        "conv2d", x.shape, w.shape[2:], attrs["stride"], attrs["pads"], attrs["dilation"]
    )
    return [spec((x.shape[0], w.shape[0], H_out, W_out), x.dtype)]


def _conv2d_backward(rec, dy):
    x, w = rec.inputs
    geo = _geometry(rec)
    return (
        run("conv2d_backprop_input", (dy, w), input_shape=tuple(x.shape), **geo),
        run("conv2d_backprop_filter", (x, dy), filter_shape=tuple(w.shape), **geo),
    )


def _backprop_input_infer(inputs: Sequence, attrs: Mapping[str, Any]):
    dy, w = inputs
    same_dtype("conv2d_backprop_input", inputs)
    require_float("conv2d_backprop_input", dy)
    return [spec(attrs["input_shape"], dy.dtype)]


def _backprop_input_backward(rec, g):
    dy, w = rec.inputs
    geo = _geometry(rec)
    return (
        run("conv2d", (g, w), **geo),
        run("conv2d_backprop_filter", (g, dy), filter_shape=tuple(w.shape), **geo),
    )


def _backprop_filter_infer(inputs: Sequence, attrs: Mapping[str, Any]):
    x, dy = inputs
    same_dtype("conv2d_backprop_filter", inputs)
    require_float("conv2d_backprop_filter", x)
    return [spec(attrs["filter_shape"], x.dtype)]


def _backprop_filter_backward(rec, g):
    x, dy = rec.inputs
    geo = _geometry(rec)
    return (
        run("conv2d_backprop_input", (dy, g), input_shape=tuple(x.shape), **geo),
        run("conv2d", (x, g), **geo),
    )


register_op("conv2d", _conv2d_infer, _conv2d_backward)
register_op("conv2d_backprop_input", _backprop_input_infer, _backprop_input_backward)
register_op("conv2d_backprop_filter", _backprop_filter_infer, _backprop_filter_backward)

# ---------------------------------------------------------------------------
# pooling
# ---------------------------------------------------------------------------


def _pool_infer(op: str):
    def infer(inputs: Sequence, attrs: Mapping[str, Any]):
        x = inputs[0]
        require_float(op, x)
        if x.rank != 4:
            raise ShapeMismatchError(op, [x.shape], "expected an NCHW input")
        H_out, W_out = output_hw(
            op, x.shape, attrs["kernel"], attrs["stride"], attrs["pads"]
        )
        return [spec((x.shape[0], x.shape[1], H_out, W_out), x.dtype)]

    return infer


def _max_pool_backward(rec, dy):
    (x,) = rec.inputs
    return (run("max_pool2d_backprop", (dy, x), **_pool_geometry(rec)),)


def _max_pool_backprop_infer(inputs: Sequence, attrs: Mapping[str, Any]):
    dy, x = inputs
    same_dtype("max_pool2d_backprop", inputs)
    return [spec(x.shape, x.dtype)]


def _avg_pool_backward(rec, dy):
    (x,) = rec.inputs
    return (
        run(
            "avg_pool2d_backprop",
            (dy,),
            input_shape=tuple(x.shape),
            **_pool_geometry(rec),
        ),
    )


def _avg_pool_backprop_infer(inputs: Sequence, attrs: Mapping[str, Any]):
    (dy,) = inputs
    require_float("avg_pool2d_backprop", dy)
    return [spec(attrs["input_shape"], dy.dtype)]


def _avg_pool_backprop_backward(rec, g):
    return (run("avg_pool2d", (g,), **_pool_geometry(rec)),)


register_op("max_pool2d", _pool_infer("max_pool2d"), _max_pool_backward)
register_op("max_pool2d_backprop", _max_pool_backprop_infer)
register_op("avg_pool2d", _pool_infer("avg_pool2d"), _avg_pool_backward)
register_op("avg_pool2d_backprop", _avg_pool_backprop_infer, _avg_pool_backprop_backward)

# ---------------------------------------------------------------------------
# public functions
# ---------------------------------------------------------------------------


def _require_rank(op: str, x, rank: int) -> None:
    if x.rank != rank:
        raise ShapeMismatchError(op, [x.shape], f"expected rank {rank}")


def conv2d(
    x,
    w,
    stride: IntPair = 1,
    padding: Padding = 0,
    dilation: IntPair = 1,
):
    """
    2D cross-correlation of an NCHW input with an OIHW filter.

    Parameters
    ----------
    x : Tensor
        Input of shape (N, C_in, H, W).
    w : Tensor
        Filter of shape (C_out, C_in, K_h, K_w).
    stride : int or tuple[int, int], optional
        Window step per spatial axis.
    padding : int, tuple or {"same", "valid"}, optional
        Zero padding (see `_conv_utils`).
    dilation : int or tuple[int, int], optional
        Spacing between filter taps.

    Returns
    -------
    Tensor
        Output of shape (N, C_out, H_out, W_out).
    """
    _require_rank("conv2d", x, 4)
    _require_rank("conv2d", w, 4)
    s = pair(stride, "stride")
    d = pair(dilation, "dilation")
    pads = resolve_pads(padding, x.shape[2:], w.shape[2:], s, d)
    return run("conv2d", (x, w), stride=s, pads=pads, dilation=d)


def conv1d(
    x,
    w,
    stride: int = 1,
    padding: Padding = "valid",
    dilation: int = 1,
):
    """
    1D cross-correlation of an NCW input with an OIW filter.

    An unbatched CW input is treated as a batch of one and gives an unbatched
    result. Implemented as a `conv2d` over a height-1 image, so it shares the
    2D kernels and gradients.
    """
    if x.rank == 2:
        y = conv1d(_transform.reshape(x, (1,) + x.shape), w, stride, padding, dilation)
        return _transform.reshape(y, y.shape[1:])
    _require_rank("conv1d", x, 3)
    _require_rank("conv1d", w, 3)
    N, C, W = x.shape
    O, I, K = w.shape
    if isinstance(padding, int):
        padding = (0, padding)
    x4 = _transform.reshape(x, (N, C, 1, W))
    w4 = _transform.reshape(w, (O, I, 1, K))
    y4 = conv2d(x4, w4, (1, int(stride)), padding, (1, int(dilation)))
    return _transform.reshape(y4, (y4.shape[0], y4.shape[1], y4.shape[3]))


def conv2d_backprop_input(
    dy,
    w,
    input_shape: Sequence[int],
    stride: IntPair = 1,
    padding: Padding = 0,
    dilation: IntPair = 1,
):
    """
    Gradient of `conv2d` with respect to its input, for an input of
    `input_shape`.
    """
    s = pair(stride, "stride")
    d = pair(dilation, "dilation")
    input_shape = tuple(int(v) for v in input_shape)
    pads = resolve_pads(padding, input_shape[2:], w.shape[2:], s, d)
    return run(
        "conv2d_backprop_input",
        (dy, w),
        input_shape=input_shape,
        stride=s,
        pads=pads,
        dilation=d,
    )


def conv2d_backprop_filter(
    x,
    dy,
    filter_shape: Sequence[int],
    stride: IntPair = 1,
    padding: Padding = 0,
    dilation: IntPair = 1,
):
    """
    Gradient of `conv2d` with respect to its filter, for a filter of
    `filter_shape`.
    """
    s = pair(stride, "stride")
    d = pair(dilation, "dilation")
    filter_shape = tuple(int(v) for v in filter_shape)
    pads = resolve_pads(padding, x.shape[2:], filter_shape[2:], s, d)
    return run(
        "conv2d_backprop_filter",
        (x, dy),
        filter_shape=filter_shape,
        stride=s,
        pads=pads,
        dilation=d,
    )


def _pool_attrs(x, kernel_size, stride, padding) -> Tuple[tuple, tuple, tuple]:
    k = pair(kernel_size, "kernel_size")
    s = pair(kernel_size if stride is None else stride, "stride")
    return k, s, resolve_pads(padding, x.shape[2:], k, s)


def max_pool2d(
    x,
    kernel_size: IntPair,
    stride: Optional[IntPair] = None,
    padding: Padding = 0,
):
    """
    Max pooling over NCHW windows. `stride` defaults to `kernel_size`.
    Padded positions never win.
    """
    _require_rank("max_pool2d", x, 4)
    k, s, pads = _pool_attrs(x, kernel_size, stride, padding)
    return run("max_pool2d", (x,), kernel=k, stride=s, pads=pads)


def avg_pool2d(
    x,
    kernel_size: IntPair,
    stride: Optional[IntPair] = None,
    padding: Padding = 0,
):
    """
    Average pooling over NCHW windows. `stride` defaults to `kernel_size`.
    Padded positions are excluded from each window's count.
    """
    _require_rank("avg_pool2d", x, 4)
    k, s, pads = _pool_attrs(x, kernel_size, stride, padding)
    return run("avg_pool2d", (x,), kernel=k, stride=s, pads=pads)
