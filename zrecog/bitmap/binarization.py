# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024 zrecog contributors

"""Conversion of input images to binary bitmaps."""
from __future__ import annotations

from typing import Any, Optional

import numpy as np
from PIL import Image

__all__ = ["box_mean", "to_binary"]


def box_mean(gray, k: int = 31):
    """Mean over a ``k``×``k`` window, computed from an integral image."""
    k = max(3, int(k))
    k |= 1
    r = k // 2
    H, W = gray.shape
    pad = np.pad(gray.astype(np.int64), ((1, 0), (1, 0)), mode="constant")
    ii = pad.cumsum(0).cumsum(1)
    y0 = np.clip(np.arange(H) - r, 0, H)
    y1 = np.clip(np.arange(H) + r + 1, 0, H)
    x0 = np.clip(np.arange(W) - r, 0, W)
    x1 = np.clip(np.arange(W) + r + 1, 0, W)
    Y0, X0 = np.meshgrid(y0, x0, indexing="ij")
    Y1, X1 = np.meshgrid(y1, x1, indexing="ij")
    S = ii[Y1, X1] - ii[Y0, X1] - ii[Y1, X0] + ii[Y0, X0]
    area = (Y1 - Y0) * (X1 - X0)
    area[area == 0] = 1
    return (S / area).astype(np.float32)


def _gray_to_binary(gray: np.ndarray, threshold: Optional[int], k: int = 31, c: int = 10) -> np.ndarray:
    if threshold is None:
        m = box_mean(gray, k)
        return (gray < (m - c)).astype(np.uint8)
    return (gray < int(threshold)).astype(np.uint8)


def to_binary(image: Any, threshold: Optional[int] = 150) -> np.ndarray:
    """Return ``image`` as a 0/1 ``uint8`` bitmap with 1 marking ink.

    * PIL images are read as grayscale; pixels darker than ``threshold``
      become foreground.
    * Boolean arrays, and integer or float arrays whose values are all 0 or 1,
      are taken as bitmaps already (nonzero = foreground).
    * Other float arrays within [0, 1] are gray on a unit scale and are
      stretched to 0..255 before thresholding.
    * Any other array is grayscale (RGB is averaged) and thresholded.

    ``threshold=None`` selects a local box-mean threshold instead of a global
    one, which copes with uneven illumination on scanned lines.
    """
    if isinstance(image, Image.Image):
        gray = np.asarray(image.convert("L"), dtype=np.uint8)
        return _gray_to_binary(gray, threshold)

    arr = np.asarray(image)
    if arr.ndim == 3:
        arr = np.mean(arr[..., :3].astype(np.float32), axis=2)
        return _gray_to_binary(arr, threshold)
    if arr.ndim != 2:
        raise ValueError(f"expected a 2-D bitmap, got shape {arr.shape}")
    if arr.dtype == np.bool_:
        return arr.astype(np.uint8)
    if arr.size == 0:
        return arr.astype(np.uint8)
    if np.issubdtype(arr.dtype, np.integer) and int(arr.min()) >= 0 and int(arr.max()) <= 1:
        return arr.astype(np.uint8)
    if np.issubdtype(arr.dtype, np.floating):
        if np.isin(arr, (0.0, 1.0)).all():
            return (arr > 0).astype(np.uint8)
        if float(arr.min()) >= 0.0 and float(arr.max()) <= 1.0:
            arr = arr.astype(np.float32) * 255.0
    return _gray_to_binary(arr, threshold)
