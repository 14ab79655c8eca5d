"""
Hyperparameter normalization for convolution and pooling.

Padding may be given as:

- an int ``p``: symmetric padding ``p`` on both spatial axes;
- a pair ``(p_h, p_w)``: symmetric padding per axis;
- a 4-tuple ``(top, bottom, left, right)``;
- ``"valid"``: no padding;
- ``"same"``: the output has ``ceil(in / stride)`` positions per axis, with
  the total padding split evenly (the extra pixel, if any, at the end).
"""

from __future__ import annotations

from typing import Tuple, Union

from ...domain._errors import ShapeMismatchError

IntPair = Union[int, Tuple[int, int]]
Padding = Union[str, int, Tuple[int, ...]]


def pair(v: IntPair, name: str = "value") -> Tuple[int, int]:
    """
    Normalize an integer or pair into a 2-tuple of positive ints.
    """
    out = tuple(int(x) for x in v) if isinstance(v, (tuple, list)) else (int(v),) * 2
    if len(out) != 2 or any(x < 1 for x in out):
        raise ValueError(f"{name} must be a positive int or pair, got {v!r}")
    return out


def effective(k: int, d: int) -> int:
    return (k - 1) * d + 1


def _same_pads(size: int, k: int, s: int) -> Tuple[int, int]:
    out = -(-size // s)
    total = max((out - 1) * s + k - size, 0)
    return total // 2, total - total // 2


def resolve_pads(
    padding: Padding,
    in_hw: Tuple[int, int],
    kernel_hw: Tuple[int, int],
    stride: Tuple[int, int],
    dilation: Tuple[int, int] = (1, 1),
) -> Tuple[int, int, int, int]:
    """
    Convert a padding argument into explicit ``(top, bottom, left, right)``.
    """
    if isinstance(padding, str):
        mode = padding.lower()
        if mode == "valid":
            return (0, 0, 0, 0)
        if mode == "same":
            k_h = effective(kernel_hw[0], dilation[0])
            k_w = effective(kernel_hw[1], dilation[1])
            return _same_pads(in_hw[0], k_h, stride[0]) + _same_pads(
                in_hw[1], k_w, stride[1]
            )
        raise ValueError(f"Unknown padding mode {padding!r}")
    if isinstance(padding, int):
        pads = (padding,) * 4
    else:
        p = tuple(int(x) for x in padding)
        if len(p) == 2:
            pads = (p[0], p[0], p[1], p[1])
        elif len(p) == 4:
            pads = p
        else:
            raise ValueError(f"Invalid padding {padding!r}")
    if any(x < 0 for x in pads):
        raise ValueError(f"padding must be >= 0, got {padding!r}")
    return pads


def output_hw(
    op: str,
    in_shape: Tuple[int, ...],
    kernel_hw: Tuple[int, int],
    stride: Tuple[int, int],
    pads: Tuple[int, int, int, int],
    dilation: Tuple[int, int] = (1, 1),
) -> Tuple[int, int]:
    """
    Output spatial size of a sliding window over an NCHW input.

    Raises
    ------
    ShapeMismatchError
        If the window does not fit into the padded input.
    """
    H, W = in_shape[2], in_shape[3]
    p_t, p_b, p_l, p_r = pads
    k_h = effective(kernel_hw[0], dilation[0])
    k_w = effective(kernel_hw[1], dilation[1])
    H_out = (H + p_t + p_b - k_h) // stride[0] + 1
    W_out = (W + p_l + p_r - k_w) // stride[1] + 1
    if H + p_t + p_b < k_h or W + p_l + p_r < k_w or H_out < 1 or W_out < 1:
        raise ShapeMismatchError(
            op, [in_shape], f"window {kernel_hw} does not fit the padded input"
        )
    return H_out, W_out
