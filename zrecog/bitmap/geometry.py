# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024 zrecog contributors

"""Measurements, clipping, scaling and translate-and-AND on bitmaps."""
from __future__ import annotations

from typing import Optional, Tuple

import numpy as np
from PIL import Image

__all__ = [
    "centroid",
    "clip_to_foreground",
    "foreground_bbox",
    "overlap_count",
    "pixel_count",
    "scale_to_size",
]

_BILINEAR = Image.Resampling.BILINEAR if hasattr(Image, "Resampling") else Image.BILINEAR


def pixel_count(bitmap: np.ndarray) -> int:
    return int(np.count_nonzero(bitmap))


def centroid(bitmap: np.ndarray) -> Tuple[float, float]:
    """Return the foreground center of mass ``(x, y)``.

    An empty bitmap reports its geometric center.
    """
    arr = np.asarray(bitmap)
    H, W = arr.shape
    ys, xs = np.nonzero(arr)
    if xs.size == 0:
        return (W - 1) / 2.0, (H - 1) / 2.0
    return float(xs.mean()), float(ys.mean())


def foreground_bbox(bitmap: np.ndarray) -> Optional[Tuple[int, int, int, int]]:
    """Return ``(x0, y0, x1, y1)`` (exclusive end) of the foreground, or None."""
    arr = np.asarray(bitmap)
    if arr.size == 0:
        return None
    rows = np.flatnonzero(arr.any(axis=1))
    if rows.size == 0:
        return None
    cols = np.flatnonzero(arr.any(axis=0))
    return int(cols[0]), int(rows[0]), int(cols[-1]) + 1, int(rows[-1]) + 1


def clip_to_foreground(bitmap: np.ndarray) -> np.ndarray:
    """Crop to the foreground bounding box; an empty bitmap becomes 0×0."""
    box = foreground_bbox(bitmap)
    if box is None:
        return np.zeros((0, 0), dtype=np.uint8)
    x0, y0, x1, y1 = box
    return np.ascontiguousarray(bitmap[y0:y1, x0:x1], dtype=np.uint8)


def scale_to_size(bitmap: np.ndarray, width: int, height: int) -> np.ndarray:
    """Scale to ``width``×``height``.

    A zero on one axis keeps the aspect ratio from the other; zero on both
    returns a copy.
    """
    arr = np.asarray(bitmap, dtype=np.uint8)
    H, W = arr.shape
    if H == 0 or W == 0:
        raise ValueError("cannot scale an empty bitmap")
    width, height = int(width), int(height)
    if width <= 0 and height <= 0:
        return arr.copy()
    if width <= 0:
        width = max(1, int(round(W * height / float(H))))
    elif height <= 0:
        height = max(1, int(round(H * width / float(W))))
    if (width, height) == (W, H):
        return arr.copy()
    img = Image.fromarray((arr > 0).astype(np.uint8) * 255)
    resized = np.asarray(img.resize((width, height), resample=_BILINEAR), dtype=np.uint8)
    return (resized >= 128).astype(np.uint8)


def overlap_count(a: np.ndarray, b: np.ndarray, dx: int, dy: int) -> int:
    """Count foreground pixels shared by ``a`` and ``b`` translated by (dx, dy).

    Pixel ``b[y, x]`` lands on ``a[y + dy, x + dx]``; whatever falls outside
    ``a`` is dropped.
    """
    Ha, Wa = a.shape
    Hb, Wb = b.shape
    x0 = max(0, dx)
    x1 = min(Wa, Wb + dx)
    y0 = max(0, dy)
    y1 = min(Ha, Hb + dy)
    if x0 >= x1 or y0 >= y1:
        return 0
    sa = a[y0:y1, x0:x1]
    sb = b[y0 - dy:y1 - dy, x0 - dx:x1 - dx]
    return int(np.count_nonzero(sa & sb))
