"""
CPU-based naive Conv2D kernels.

This module provides reference implementations of 2D convolution and its two
backprop kernels using NumPy on the CPU. These kernels are intentionally
written in a clear, explicit manner (nested Python loops) to prioritize
correctness over performance; they are the oracle the vectorized stream
kernels are tested against.

Tensor layout
-------------
All tensors follow the NCHW layout (filters are OIHW):

- N: batch size
- C: channels
- H: height
- W: width

Hyperparameters
---------------
All kernels take normalized hyperparameters (see `functional._conv_utils`):

- ``stride``: ``(s_h, s_w)``
- ``pads``: ``(top, bottom, left, right)`` zero padding
- ``dilation``: ``(d_h, d_w)``; a dilated kernel of size K spans
  ``(K - 1) * d + 1`` input pixels.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np

from ._kernel_builder import register_kernel


def _effective(k: int, d: int) -> int:
    return (k - 1) * d + 1


def _out_hw(
    H: int,
    W: int,
    k: Tuple[int, int],
    s: Tuple[int, int],
    pads: Tuple[int, int, int, int],
    d: Tuple[int, int] = (1, 1),
) -> Tuple[int, int]:
    """
    Compute output spatial dimensions of a (dilated) sliding window.
    """
    p_t, p_b, p_l, p_r = pads
    H_out = (H + p_t + p_b - _effective(k[0], d[0])) // s[0] + 1
    W_out = (W + p_l + p_r - _effective(k[1], d[1])) // s[1] + 1
    return H_out, W_out


def _pad_nchw(x: np.ndarray, pads: Tuple[int, int, int, int], value: float = 0.0):
    p_t, p_b, p_l, p_r = pads
    return np.pad(
        x,
        pad_width=((0, 0), (0, 0), (p_t, p_b), (p_l, p_r)),
        mode="constant",
        constant_values=value,
    )


@register_kernel("conv2d", "cpu")
def conv2d_forward_cpu(
    x: np.ndarray,
    w: np.ndarray,
    *,
    stride: Tuple[int, int],
    pads: Tuple[int, int, int, int],
    dilation: Tuple[int, int],
) -> np.ndarray:
    """
    Compute the forward pass of a 2D convolution (CPU, NumPy).

    Parameters
    ----------
    x : np.ndarray
        Input tensor of shape (N, C_in, H, W).
    w : np.ndarray
        Convolution kernel weights of shape (C_out, C_in, K_h, K_w).
    stride, pads, dilation
        Normalized hyperparameters.

    Returns
    -------
    np.ndarray
        Output tensor of shape (N, C_out, H_out, W_out).
    """
    s_h, s_w = stride
    d_h, d_w = dilation

    N, _, H, W = x.shape
    C_out, _, K_h, K_w = w.shape
    H_out, W_out = _out_hw(H, W, (K_h, K_w), stride, pads, dilation)
    span_h, span_w = _effective(K_h, d_h), _effective(K_w, d_w)

    x_pad = _pad_nchw(x, pads)
    y = np.zeros((N, C_out, H_out, W_out), dtype=np.float64)

    for n in range(N):
        for co in range(C_out):
            for i in range(H_out):
                h0 = i * s_h
                for j in range(W_out):
                    w0 = j * s_w
                    patch = x_pad[n, :, h0 : h0 + span_h : d_h, w0 : w0 + span_w : d_w]
                    y[n, co, i, j] = np.sum(patch * w[co])

    return y


@register_kernel("conv2d_backprop_input", "cpu")
def conv2d_backprop_input_cpu(
    dy: np.ndarray,
    w: np.ndarray,
    *,
    input_shape: Tuple[int, int, int, int],
    stride: Tuple[int, int],
    pads: Tuple[int, int, int, int],
    dilation: Tuple[int, int],
) -> np.ndarray:
    """
    Gradient of a 2D convolution with respect to its input (CPU, NumPy).

    Parameters
    ----------
    dy : np.ndarray
        Gradient with respect to the output, shape (N, C_out, H_out, W_out).
    w : np.ndarray
        Forward weights, shape (C_out, C_in, K_h, K_w).
    input_shape : tuple[int, int, int, int]
        Shape of the forward input (N, C_in, H, W).

    Returns
    -------
    np.ndarray
        Gradient with respect to the input, shape (N, C_in, H, W).

    Notes
    -----
    Gradients are scattered into a padded buffer and the padding is cropped
    before returning.
    """
    s_h, s_w = stride
    d_h, d_w = dilation
    p_t, p_b, p_l, p_r = pads

    N, C_in, H, W = input_shape
    C_out, _, K_h, K_w = w.shape
    _, _, H_out, W_out = dy.shape
    span_h, span_w = _effective(K_h, d_h), _effective(K_w, d_w)

    grad_x_pad = np.zeros((N, C_in, H + p_t + p_b, W + p_l + p_r), dtype=np.float64)

    for n in range(N):
        for co in range(C_out):
            for i in range(H_out):
                h0 = i * s_h
                for j in range(W_out):
                    w0 = j * s_w
                    go = dy[n, co, i, j]
                    grad_x_pad[
                        n, :, h0 : h0 + span_h : d_h, w0 : w0 + span_w : d_w
                    ] += go * w[co]

    return grad_x_pad[:, :, p_t : p_t + H, p_l : p_l + W]


@register_kernel("conv2d_backprop_filter", "cpu")
def conv2d_backprop_filter_cpu(
    x: np.ndarray,
    dy: np.ndarray,
    *,
    filter_shape: Tuple[int, int, int, int],
    stride: Tuple[int, int],
    pads: Tuple[int, int, int, int],
    dilation: Tuple[int, int],
) -> np.ndarray:
    """
    Gradient of a 2D convolution with respect to its filter (CPU, NumPy).

    Parameters
    ----------
    x : np.ndarray
        Forward input, shape (N, C_in, H, W).
    dy : np.ndarray
        Gradient with respect to the output, shape (N, C_out, H_out, W_out).
    filter_shape : tuple[int, int, int, int]
        Shape of the forward filter (C_out, C_in, K_h, K_w).

    Returns
    -------
    np.ndarray
        Gradient with respect to the filter.
    """
    s_h, s_w = stride
    d_h, d_w = dilation

    C_out, C_in, K_h, K_w = filter_shape
    N = x.shape[0]
    _, _, H_out, W_out = dy.shape
    span_h, span_w = _effective(K_h, d_h), _effective(K_w, d_w)

    x_pad = _pad_nchw(x, pads)
    grad_w = np.zeros((C_out, C_in, K_h, K_w), dtype=np.float64)

    for n in range(N):
        for co in range(C_out):
            for i in range(H_out):
                h0 = i * s_h
                for j in range(W_out):
                    w0 = j * s_w
                    go = dy[n, co, i, j]
                    grad_w[co] += (
                        go * x_pad[n, :, h0 : h0 + span_h : d_h, w0 : w0 + span_w : d_w]
                    )

    return grad_w
