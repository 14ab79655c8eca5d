"""
CPU reference implementations for 2D pooling operations (NumPy backend).

This module provides **naive, readable, and correct** NumPy-based
implementations of 2D max and average pooling for tensors in **NCHW**
layout. They serve as:

- A correctness reference for the vectorized stream kernels
- The numerical ground truth for unit tests

Design notes
------------
- Padding semantics are explicit:
  - MaxPool uses `-inf` padding so padded values never win.
  - AvgPool averages over the window positions that fall inside the input;
    padded positions are excluded from the count.
- Max ties are resolved to the first maximum in row-major window order, both
  in the forward pass and when routing gradients.
- Hyperparameters are normalized: ``kernel=(k_h, k_w)``,
  ``stride=(s_h, s_w)``, ``pads=(top, bottom, left, right)``.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np

from ._kernel_builder import register_kernel
from .conv2d_cpu import _out_hw, _pad_nchw


def _valid_counts(
    H: int,
    W: int,
    kernel: Tuple[int, int],
    stride: Tuple[int, int],
    pads: Tuple[int, int, int, int],
    H_out: int,
    W_out: int,
) -> np.ndarray:
    """
    Number of in-bounds input positions covered by each output window.
    """
    k_h, k_w = kernel
    s_h, s_w = stride
    mask = _pad_nchw(np.ones((1, 1, H, W)), pads)[0, 0]
    counts = np.empty((H_out, W_out), dtype=np.float64)
    for i in range(H_out):
        h0 = i * s_h
        for j in range(W_out):
            w0 = j * s_w
            counts[i, j] = mask[h0 : h0 + k_h, w0 : w0 + k_w].sum()
    return counts


@register_kernel("max_pool2d", "cpu")
def maxpool2d_forward_cpu(
    x: np.ndarray,
    *,
    kernel: Tuple[int, int],
    stride: Tuple[int, int],
    pads: Tuple[int, int, int, int],
) -> np.ndarray:
    """
    Naive MaxPool2D forward pass (CPU, NumPy) for NCHW tensors.

    Parameters
    ----------
    x : np.ndarray
        Input tensor of shape (N, C, H, W).
    kernel, stride, pads
        Normalized pooling hyperparameters.

    Returns
    -------
    np.ndarray
        Output tensor of shape (N, C, H_out, W_out).
    """
    N, C, H, W = x.shape
    k_h, k_w = kernel
    s_h, s_w = stride
    H_out, W_out = _out_hw(H, W, kernel, stride, pads)

    x_pad = _pad_nchw(x, pads, -np.inf)
    y = np.empty((N, C, H_out, W_out), dtype=x.dtype)

    for n in range(N):
        for c in range(C):
            for i in range(H_out):
                h0 = i * s_h
                for j in range(W_out):
                    w0 = j * s_w
                    y[n, c, i, j] = np.max(x_pad[n, c, h0 : h0 + k_h, w0 : w0 + k_w])

    return y


@register_kernel("max_pool2d_backprop", "cpu")
def maxpool2d_backward_cpu(
    dy: np.ndarray,
    x: np.ndarray,
    *,
    kernel: Tuple[int, int],
    stride: Tuple[int, int],
    pads: Tuple[int, int, int, int],
) -> np.ndarray:
    """
    Naive MaxPool2D backward pass (CPU, NumPy), NCHW.

    Parameters
    ----------
    dy : np.ndarray
        Gradient with respect to output, shape (N, C, H_out, W_out).
    x : np.ndarray
        Forward input, shape (N, C, H, W). The winning positions are
        recomputed from it.

    Returns
    -------
    np.ndarray
        Gradient with respect to input, shape (N, C, H, W).

    Notes
    -----
    - Gradients are routed only to the input locations that won the max
      operation during the forward pass.
    - Padding regions do not receive gradients.
    """
    N, C, H, W = x.shape
    k_h, k_w = kernel
    s_h, s_w = stride
    p_t, _, p_l, _ = pads
    H_out, W_out = dy.shape[2], dy.shape[3]

    x_pad = _pad_nchw(x, pads, -np.inf)
    grad_x_pad = np.zeros(x_pad.shape, dtype=np.float64)

    for n in range(N):
        for c in range(C):
            for i in range(H_out):
                h0 = i * s_h
                for j in range(W_out):
                    w0 = j * s_w
                    patch = x_pad[n, c, h0 : h0 + k_h, w0 : w0 + k_w]
                    flat_idx = int(np.argmax(patch))
                    h = h0 + flat_idx // k_w
                    w_ = w0 + flat_idx % k_w
                    grad_x_pad[n, c, h, w_] += dy[n, c, i, j]

    return grad_x_pad[:, :, p_t : p_t + H, p_l : p_l + W]


@register_kernel("avg_pool2d", "cpu")
def avgpool2d_forward_cpu(
    x: np.ndarray,
    *,
    kernel: Tuple[int, int],
    stride: Tuple[int, int],
    pads: Tuple[int, int, int, int],
) -> np.ndarray:
    """
    Naive AvgPool2D forward pass (CPU, NumPy), NCHW.

    Returns
    -------
    np.ndarray
        Output tensor of shape (N, C, H_out, W_out).
    """
    N, C, H, W = x.shape
    k_h, k_w = kernel
    s_h, s_w = stride
    H_out, W_out = _out_hw(H, W, kernel, stride, pads)

    x_pad = _pad_nchw(x, pads)
    counts = _valid_counts(H, W, kernel, stride, pads, H_out, W_out)
    y = np.zeros((N, C, H_out, W_out), dtype=np.float64)

    for n in range(N):
        for c in range(C):
            for i in range(H_out):
                h0 = i * s_h
                for j in range(W_out):
                    w0 = j * s_w
                    patch = x_pad[n, c, h0 : h0 + k_h, w0 : w0 + k_w]
                    y[n, c, i, j] = np.sum(patch) / counts[i, j]

    return y


@register_kernel("avg_pool2d_backprop", "cpu")
def avgpool2d_backward_cpu(
    dy: np.ndarray,
    *,
    input_shape: Tuple[int, int, int, int],
    kernel: Tuple[int, int],
    stride: Tuple[int, int],
    pads: Tuple[int, int, int, int],
) -> np.ndarray:
    """
    Naive AvgPool2D backward pass (CPU, NumPy), NCHW.

    Notes
    -----
    - Each output gradient is distributed uniformly over the in-bounds
      positions of its window.
    - Padding regions are cropped after accumulation.
    """
    N, C, H, W = input_shape
    k_h, k_w = kernel
    s_h, s_w = stride
    p_t, p_b, p_l, p_r = pads
    H_out, W_out = dy.shape[2], dy.shape[3]

    counts = _valid_counts(H, W, kernel, stride, pads, H_out, W_out)
    grad_x_pad = np.zeros((N, C, H + p_t + p_b, W + p_l + p_r), dtype=np.float64)

    for n in range(N):
        for c in range(C):
            for i in range(H_out):
                h0 = i * s_h
                for j in range(W_out):
                    w0 = j * s_w
                    go = dy[n, c, i, j] / counts[i, j]
                    grad_x_pad[n, c, h0 : h0 + k_h, w0 : w0 + k_w] += go

    return grad_x_pad[:, :, p_t : p_t + H, p_l : p_l + W]
