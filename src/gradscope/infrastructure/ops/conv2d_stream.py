"""
Vectorized Conv2D kernels for the stream backend.

The forward pass and the filter gradient gather every (dilated) receptive
field at once with `numpy.lib.stride_tricks.sliding_window_view` and contract
it against the filter or the output gradient with `numpy.einsum`. The input
gradient loops only over kernel taps (``K_h * K_w`` iterations), scattering a
strided slab per tap.

Layout and hyperparameters match `conv2d_cpu`, which is the reference these
kernels are tested against.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from ._kernel_builder import register_kernel
from .conv2d_cpu import _effective, _out_hw, _pad_nchw


def _windows(
    x: np.ndarray,
    kernel: Tuple[int, int],
    stride: Tuple[int, int],
    pads: Tuple[int, int, int, int],
    dilation: Tuple[int, int],
    pad_value: float = 0.0,
) -> np.ndarray:
    """
    Return a (N, C, H_out, W_out, K_h, K_w) view of the receptive fields.
    """
    K_h, K_w = kernel
    d_h, d_w = dilation
    s_h, s_w = stride
    H_out, W_out = _out_hw(x.shape[2], x.shape[3], kernel, stride, pads, dilation)
    x_pad = _pad_nchw(x, pads, pad_value)
    win = sliding_window_view(
        x_pad, (_effective(K_h, d_h), _effective(K_w, d_w)), axis=(2, 3)
    )
    return win[:, :, ::s_h, ::s_w, ::d_h, ::d_w][:, :, :H_out, :W_out]


@register_kernel("conv2d", "stream")
def conv2d_forward_stream(
    x: np.ndarray,
    w: np.ndarray,
    *,
    stride: Tuple[int, int],
    pads: Tuple[int, int, int, int],
    dilation: Tuple[int, int],
) -> np.ndarray:
    win = _windows(x, w.shape[2:], stride, pads, dilation)
    return np.einsum("nchwij,ocij->nohw", win, w, optimize=True)


@register_kernel("conv2d_backprop_input", "stream")
def conv2d_backprop_input_stream(
    dy: np.ndarray,
    w: np.ndarray,
    *,
    input_shape: Tuple[int, int, int, int],
    stride: Tuple[int, int],
    pads: Tuple[int, int, int, int],
    dilation: Tuple[int, int],
) -> np.ndarray:
    s_h, s_w = stride
    d_h, d_w = dilation
    p_t, p_b, p_l, p_r = pads

    N, C_in, H, W = input_shape
    _, _, K_h, K_w = w.shape
    _, _, H_out, W_out = dy.shape

    grad_x_pad = np.zeros((N, C_in, H + p_t + p_b, W + p_l + p_r), dtype=np.float64)
    for i in range(K_h):
        h = i * d_h
        for j in range(K_w):
            v = j * d_w
            tap = np.einsum("nohw,oc->nchw", dy, w[:, :, i, j], optimize=True)
            grad_x_pad[
                :,
                :,
                h : h + s_h * (H_out - 1) + 1 : s_h,
                v : v + s_w * (W_out - 1) + 1 : s_w,
            ] += tap

    return grad_x_pad[:, :, p_t : p_t + H, p_l : p_l + W]


@register_kernel("conv2d_backprop_filter", "stream")
def conv2d_backprop_filter_stream(
    x: np.ndarray,
    dy: np.ndarray,
    *,
    filter_shape: Tuple[int, int, int, int],
    stride: Tuple[int, int],
    pads: Tuple[int, int, int, int],
    dilation: Tuple[int, int],
) -> np.ndarray:
    win = _windows(x, filter_shape[2:], stride, pads, dilation)
    return np.einsum("nchwij,nohw->ocij", win, dy, optimize=True)
