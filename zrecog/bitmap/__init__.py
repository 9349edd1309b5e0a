# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024 zrecog contributors

"""Binary bitmap primitives.

Bitmaps are 2-D ``numpy.uint8`` arrays indexed ``[y, x]`` holding 1 for
foreground (ink) and 0 for background.
"""

from .binarization import box_mean, to_binary
from .components import Component, connected_components
from .geometry import (
    centroid,
    clip_to_foreground,
    foreground_bbox,
    overlap_count,
    pixel_count,
    scale_to_size,
)
from .morphology import dilate_rect, erode_rect, set_stroke_width, thin

__all__ = [
    "Component",
    "box_mean",
    "centroid",
    "clip_to_foreground",
    "connected_components",
    "dilate_rect",
    "erode_rect",
    "foreground_bbox",
    "overlap_count",
    "pixel_count",
    "scale_to_size",
    "set_stroke_width",
    "thin",
    "to_binary",
]
