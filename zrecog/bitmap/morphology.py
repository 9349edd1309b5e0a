# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024 zrecog contributors

"""Morphological helpers used to normalize template stroke width."""
from __future__ import annotations

import numpy as np
from skimage.morphology import skeletonize

__all__ = ["dilate_rect", "erode_rect", "set_stroke_width", "thin"]


def dilate_rect(bw: "np.ndarray", wx: int, wy: int) -> "np.ndarray":
    """Dilate with a centered rectangle (even sizes round up to odd)."""
    H, W = bw.shape
    wx = max(1, int(wx))
    r = wx // 2
    k = 2 * r + 1
    s = np.pad(bw, ((0, 0), (r, r)), mode="constant")
    s2 = np.pad(s, ((0, 0), (1, 0)), mode="constant")
    csum = s2.cumsum(axis=1)
    right = np.arange(W) + k
    left = np.arange(W)
    win = csum[:, right] - csum[:, left]
    h = (win > 0).astype(np.uint8)

    wy = max(1, int(wy))
    r = wy // 2
    k = 2 * r + 1
    s = np.pad(h, ((r, r), (0, 0)), mode="constant")
    s2 = np.pad(s, ((1, 0), (0, 0)), mode="constant")
    csum = s2.cumsum(axis=0)
    bottom = np.arange(H) + k
    top = np.arange(H)
    win = csum[bottom, :] - csum[top, :]
    v = (win > 0).astype(np.uint8)
    return v


def erode_rect(bw: "np.ndarray", wx: int, wy: int) -> "np.ndarray":
    """Erode with a ``wx``×``wy`` brick; pixels outside the image are off."""
    H, W = bw.shape
    src = (np.asarray(bw) > 0).astype(np.int32)

    wx = max(1, int(wx))
    a, b = (wx - 1) // 2, wx // 2
    s = np.pad(src, ((0, 0), (a, b)), mode="constant")
    csum = np.pad(s, ((0, 0), (1, 0)), mode="constant").cumsum(axis=1)
    left = np.arange(W)
    win = csum[:, left + wx] - csum[:, left]
    h = (win == wx).astype(np.int32)

    wy = max(1, int(wy))
    a, b = (wy - 1) // 2, wy // 2
    s = np.pad(h, ((a, b), (0, 0)), mode="constant")
    csum = np.pad(s, ((1, 0), (0, 0)), mode="constant").cumsum(axis=0)
    top = np.arange(H)
    win = csum[top + wy, :] - csum[top, :]
    return (win == wy).astype(np.uint8)


def thin(bw: "np.ndarray") -> "np.ndarray":
    """Reduce strokes to a one-pixel-wide connected skeleton."""
    arr = np.asarray(bw) > 0
    if not arr.any():
        return arr.astype(np.uint8)
    return skeletonize(arr).astype(np.uint8)


def set_stroke_width(bw: "np.ndarray", line_width: int) -> "np.ndarray":
    """Thin to a skeleton, then dilate back to a uniform ``line_width``."""
    skel = thin(bw)
    if int(line_width) <= 1:
        return skel
    return dilate_rect(skel, line_width, line_width)
