# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024 zrecog contributors

"""Split a single text line into glyph groups and identify them."""
from __future__ import annotations

import logging
from typing import Any, List, Optional, Tuple

import numpy as np

from .bitmap import Component, connected_components, to_binary
from .config import RecogConfig
from .correlation import identify
from .decoder import WIDTH_SLACK, run_decoder
from .interfaces import DebugSink
from .results import MatchResult, MatchSequence
from .store import TemplateStore

LOGGER = logging.getLogger("zrecog.splitting")

Box = Tuple[int, int, int, int]


def _keep(comp: Component, config: RecogConfig) -> bool:
    if comp.width < config.min_split_w or comp.height < config.min_split_h:
        return False
    return comp.height <= config.max_split_h


def split_line(bitmap: np.ndarray, config: RecogConfig) -> List[Box]:
    """Group the components of a binary line into ``(x0, y0, x1, y1)`` boxes.

    Noise and over-tall components are dropped first; components whose
    horizontal extents overlap (the dot of an ``i``, broken strokes) are
    then merged. Boxes are returned left to right.
    """
    comps = [c for c in connected_components(bitmap) if _keep(c, config)]
    groups: List[List[int]] = []
    for comp in comps:
        if groups and comp.x0 < groups[-1][2]:
            g = groups[-1]
            g[1] = min(g[1], comp.y0)
            g[2] = max(g[2], comp.x1)
            g[3] = max(g[3], comp.y1)
        else:
            groups.append([comp.x0, comp.y0, comp.x1, comp.y1])
    return [tuple(g) for g in groups]


def _scaled_width(store: TemplateStore, box: Box) -> float:
    w, h = box[2] - box[0], box[3] - box[1]
    if store.config.scale_h > 0:
        return w * store.config.scale_h / float(h)
    return float(w)


def identify_line(store: TemplateStore, image: Any, debug: Optional[DebugSink] = None) -> MatchSequence:
    """Identify every glyph of a text line, in input-image coordinates.

    Groups no wider than the widest class average (plus the decoder slack)
    are identified directly; wider ones are decoded as touching glyphs.
    """
    store.require_finalized()
    binary = to_binary(image, store.config.threshold)
    boxes = split_line(binary, store.config)
    limit = store.max_width * (1.0 + WIDTH_SLACK)
    results: List[MatchResult] = []
    for box in boxes:
        x0, y0, x1, y1 = box
        crop = binary[y0:y1, x0:x1]
        if _scaled_width(store, box) <= limit:
            r = identify(store, crop)
            results.append(r.model_copy(update={"xloc": x0, "yloc": y0, "width": x1 - x0}))
            continue
        ws = run_decoder(store, crop)
        for seg in ws.path():
            left, top = ws.to_input(seg.left, 0)
            right, _ = ws.to_input(seg.right, 0)
            results.append(
                MatchResult(
                    index=seg.index,
                    score=seg.score,
                    text=store.label_for(seg.index),
                    sample=seg.sample,
                    xloc=x0 + int(round(left)),
                    yloc=y0 + int(round(top)),
                    width=max(0, int(round(right - left))),
                )
            )
        LOGGER.debug("decoded group %s into %d glyphs", box, len(ws.path()))
    combined = float(np.mean([r.score for r in results])) if results else None
    seq = MatchSequence.from_results(results, combined_score=combined)
    if debug is not None:
        debug.add("line", {"boxes": boxes, "sequence": seq})
    LOGGER.info("line split into %d groups, %d glyphs: %r", len(boxes), len(seq), seq.text)
    return seq


__all__ = ["identify_line", "split_line"]
