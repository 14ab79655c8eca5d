"""
Vectorized 2D pooling kernels for the stream backend.

Pooling windows are gathered with `sliding_window_view` and reduced in one
NumPy call; backprop kernels loop only over the ``k_h * k_w`` window taps.
Semantics (padding, tie-breaking, average counts) match `pool2d_cpu`.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from ._kernel_builder import register_kernel
from .conv2d_cpu import _out_hw, _pad_nchw
from .conv2d_stream import _windows


def _valid_counts(
    H: int,
    W: int,
    kernel: Tuple[int, int],
    stride: Tuple[int, int],
    pads: Tuple[int, int, int, int],
) -> np.ndarray:
    H_out, W_out = _out_hw(H, W, kernel, stride, pads)
    mask = _pad_nchw(np.ones((1, 1, H, W)), pads)[0, 0]
    win = sliding_window_view(mask, kernel)[:: stride[0], :: stride[1]]
    return win[:H_out, :W_out].sum(axis=(-2, -1))


def _scatter_taps(
    grad_x_pad: np.ndarray,
    per_tap,
    kernel: Tuple[int, int],
    stride: Tuple[int, int],
    H_out: int,
    W_out: int,
) -> None:
    s_h, s_w = stride
    for i in range(kernel[0]):
        for j in range(kernel[1]):
            grad_x_pad[
                :,
                :,
                i : i + s_h * (H_out - 1) + 1 : s_h,
                j : j + s_w * (W_out - 1) + 1 : s_w,
            ] += per_tap(i, j)


@register_kernel("max_pool2d", "stream")
def maxpool2d_forward_stream(
    x: np.ndarray,
    *,
    kernel: Tuple[int, int],
    stride: Tuple[int, int],
    pads: Tuple[int, int, int, int],
) -> np.ndarray:
    win = _windows(x, kernel, stride, pads, (1, 1), -np.inf)
    return win.max(axis=(-2, -1))


@register_kernel("max_pool2d_backprop", "stream")
def maxpool2d_backward_stream(
    dy: np.ndarray,
    x: np.ndarray,
    *,
    kernel: Tuple[int, int],
    stride: Tuple[int, int],
    pads: Tuple[int, int, int, int],
) -> np.ndarray:
    N, C, H, W = x.shape
    k_h, k_w = kernel
    p_t, p_b, p_l, p_r = pads
    H_out, W_out = dy.shape[2], dy.shape[3]

    win = _windows(x, kernel, stride, pads, (1, 1), -np.inf)
    winner = win.reshape(N, C, H_out, W_out, k_h * k_w).argmax(axis=-1)

    grad_x_pad = np.zeros((N, C, H + p_t + p_b, W + p_l + p_r), dtype=np.float64)
    _scatter_taps(
        grad_x_pad,
        lambda i, j: np.where(winner == i * k_w + j, dy, 0.0),
        kernel,
        stride,
        H_out,
        W_out,
    )
    return grad_x_pad[:, :, p_t : p_t + H, p_l : p_l + W]


@register_kernel("avg_pool2d", "stream")
def avgpool2d_forward_stream(
    x: np.ndarray,
    *,
    kernel: Tuple[int, int],
    stride: Tuple[int, int],
    pads: Tuple[int, int, int, int],
) -> np.ndarray:
    win = _windows(x, kernel, stride, pads, (1, 1))
    counts = _valid_counts(x.shape[2], x.shape[3], kernel, stride, pads)
    return win.sum(axis=(-2, -1), dtype=np.float64) / counts


@register_kernel("avg_pool2d_backprop", "stream")
def avgpool2d_backward_stream(
    dy: np.ndarray,
    *,
    input_shape: Tuple[int, int, int, int],
    kernel: Tuple[int, int],
    stride: Tuple[int, int],
    pads: Tuple[int, int, int, int],
) -> np.ndarray:
    N, C, H, W = input_shape
    p_t, p_b, p_l, p_r = pads
    H_out, W_out = dy.shape[2], dy.shape[3]

    g = dy / _valid_counts(H, W, kernel, stride, pads)
    grad_x_pad = np.zeros((N, C, H + p_t + p_b, W + p_l + p_r), dtype=np.float64)
    _scatter_taps(grad_x_pad, lambda i, j: g, kernel, stride, H_out, W_out)
    return grad_x_pad[:, :, p_t : p_t + H, p_l : p_l + W]
