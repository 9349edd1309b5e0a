# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024 zrecog contributors

"""Debug sinks and visual overlays.

Sinks are optional everywhere they are accepted and only ever receive data;
leaving them out never changes a result.
"""
from __future__ import annotations

import math
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from .bitmap import to_binary
from .results import MatchSequence
from .store import TemplateStore


class CollectingDebugSink:
    """Keep every debug record in memory, in arrival order."""

    def __init__(self) -> None:
        self.records: List[Tuple[str, Dict[str, Any]]] = []

    def add(self, kind: str, payload: Dict[str, Any]) -> None:
        self.records.append((kind, dict(payload)))

    def of_kind(self, kind: str) -> List[Dict[str, Any]]:
        return [payload for k, payload in self.records if k == kind]

    def __len__(self) -> int:
        return len(self.records)


def _bitmap_image(bitmap: np.ndarray) -> Image.Image:
    arr = np.where(np.asarray(bitmap) > 0, 0, 255).astype(np.uint8)
    return Image.fromarray(arr).convert("RGB")


def _font() -> Optional[ImageFont.ImageFont]:
    try:
        return ImageFont.load_default()
    except OSError:
        return None


def render_matches(image: Any, sequence: MatchSequence, threshold: Optional[int] = 150, zoom: int = 2) -> Image.Image:
    """Draw a box and label for every match over ``image``.

    Boxes span the full image height at ``xloc`` with the matched width;
    weak matches are drawn in red.
    """
    base = _bitmap_image(to_binary(image, threshold))
    zoom = max(1, int(zoom))
    if zoom > 1:
        base = base.resize((base.width * zoom, base.height * zoom), resample=Image.NEAREST)
    pad = 14
    tile = Image.new("RGB", (base.width, base.height + pad), "#ffffff")
    tile.paste(base, (0, pad))
    draw = ImageDraw.Draw(tile)
    font = _font()
    for r in sequence.results():
        x0 = r.xloc * zoom
        x1 = (r.xloc + max(1, r.width)) * zoom - 1
        color = "#1f77b4" if r.score >= 0.75 else "#d62728"
        draw.rectangle([x0, pad, x1, tile.height - 1], outline=color, width=1)
        draw.text((x0 + 1, 1), f"{r.text} {r.score:.2f}", fill=color, font=font)
    return tile


def render_averages(store: TemplateStore, scaled: bool = True, columns: int = 10) -> Image.Image:
    """Contact sheet of the class averages, each cell labeled with its class."""
    store.require_averages()
    averages = [
        store.average(i) if scaled else store.average_unscaled(i) for i in range(store.num_classes)
    ]
    columns = max(1, min(int(columns), len(averages)))
    rows = int(math.ceil(len(averages) / float(columns)))
    cell_w = max(a.width for a in averages) + 8
    cell_h = max(a.height for a in averages) + 20
    sheet = Image.new("RGB", (columns * cell_w, rows * cell_h), "#ffffff")
    draw = ImageDraw.Draw(sheet)
    font = _font()
    for i, avg in enumerate(averages):
        cx, cy = (i % columns) * cell_w, (i // columns) * cell_h
        sheet.paste(_bitmap_image(avg.bitmap), (cx + 4, cy + 16))
        draw.text((cx + 4, cy + 2), store.label_for(i), fill="#000000", font=font)
        draw.rectangle([cx, cy, cx + cell_w - 1, cy + cell_h - 1], outline="#cccccc", width=1)
    return sheet


__all__ = ["CollectingDebugSink", "render_averages", "render_matches"]
