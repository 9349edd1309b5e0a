# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024 zrecog contributors

"""Line decoder: split a strip of touching glyphs into the best character run.

The strip is binarized, clipped to its foreground and brought to the
template height. A trellis over right-edge columns is then filled left to
right::

    T[0]   = 0
    T[c+1] = max over (template t, left edge l) of T[l] + score(t, strip[:, l:c+1]) * area(l, c+1)

Segment scores are weighted by the segment's foreground pixel count, so the
path objective is the number of "explained" ink pixels and the combined score
``T[W] / total_area`` stays in [0, 1]. A blank column may be skipped at no
cost. Candidate left edges come from each class average's width plus or
minus a slack; the area ratio of region and template bounds the achievable
score, which prunes candidates that cannot beat the current best exactly.
Every column is reachable, since a left edge clamped to 0 covers the first
columns and blank windows chain through the free skip, so ``T[W]`` is always
finite for a non-empty strip.

The first pass matches class averages only. The rescoring pass keeps every
segment boundary and re-matches each segment with the store's
``template_use`` policy.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

import numpy as np

from .bitmap import clip_to_foreground, foreground_bbox, scale_to_size, set_stroke_width, to_binary
from .config import TemplateType
from .correlation import best_alignment, best_template
from .errors import InvalidGeometry
from .interfaces import DebugSink
from .results import MatchResult, MatchSequence
from .store import Sample, TemplateStore

LOGGER = logging.getLogger("zrecog.decoder")

WIDTH_SLACK = 0.15


@dataclass
class Segment:
    left: int
    right: int
    index: int
    sample: int
    score: float
    xloc: int
    yloc: int
    width: int
    area: int


@dataclass
class DecodeWorkspace:
    """State of one decode call; never shared between calls."""

    bitmap: np.ndarray
    offset: Tuple[int, int] = (0, 0)
    scale: Tuple[float, float] = (1.0, 1.0)
    origin: Tuple[int, int] = (0, 0)
    colsum: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.int64))
    moment: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.int64))
    trellis: np.ndarray = field(default_factory=lambda: np.zeros(1, dtype=np.float64))
    predecessor: np.ndarray = field(default_factory=lambda: np.zeros(1, dtype=np.int64))
    template: np.ndarray = field(default_factory=lambda: np.full(1, -1, dtype=np.int64))
    y_shift: np.ndarray = field(default_factory=lambda: np.zeros(1, dtype=np.int64))
    segment_score: np.ndarray = field(default_factory=lambda: np.zeros(1, dtype=np.float64))
    initial: List[Segment] = field(default_factory=list)
    rescored: List[Segment] = field(default_factory=list)
    total_area: int = 0

    @property
    def width(self) -> int:
        return int(self.bitmap.shape[1]) if self.bitmap.ndim == 2 else 0

    def to_input(self, x: float, y: float) -> Tuple[float, float]:
        """Map a point of the normalized strip back to input coordinates."""
        sx, sy = self.scale
        return (
            self.offset[0] + (x + self.origin[0]) / sx,
            self.offset[1] + (y + self.origin[1]) / sy,
        )

    def path(self) -> List[Segment]:
        return self.rescored or self.initial

    def combined_score(self, segments: Optional[List[Segment]] = None) -> Optional[float]:
        segments = self.path() if segments is None else segments
        if not segments or self.total_area <= 0:
            return None
        explained = sum(s.score * s.area for s in segments)
        return min(1.0, max(0.0, explained / float(self.total_area)))


def _prefix(values: np.ndarray) -> np.ndarray:
    return np.concatenate(([0], np.cumsum(values, dtype=np.int64)))


def _left_edges(right: int, width: int, slack: int) -> List[int]:
    edges: List[int] = []
    for d in range(-slack, slack + 1):
        left = max(0, right - width + d)
        if left not in edges:
            edges.append(left)
    return sorted(edges)


def _normalize_strip(store: TemplateStore, clipped: np.ndarray, ws: DecodeWorkspace) -> np.ndarray:
    cfg = store.config
    H, W = clipped.shape
    if cfg.scale_w > 0:
        raise InvalidGeometry("cannot decode a strip against width-normalized templates (scale_w > 0)")
    if cfg.scale_h > 0:
        norm = scale_to_size(clipped, 0, cfg.scale_h)
        ws.scale = (norm.shape[1] / float(W), norm.shape[0] / float(H))
    else:
        lo = store.min_height_u - cfg.max_y_shift
        hi = store.max_height_u + cfg.max_y_shift
        if not lo <= H <= hi:
            raise InvalidGeometry(f"strip height {H} outside template heights [{lo}, {hi}] and vertical scaling is off")
        norm = clipped
    if cfg.template_type == TemplateType.OUTLINE:
        pad = cfg.line_width
        stroked = set_stroke_width(np.pad(norm, pad, mode="constant"), cfg.line_width)
        box = foreground_bbox(stroked)
        if box is None:
            raise InvalidGeometry("strip vanished under stroke normalization")
        ws.origin = (box[0] - pad, box[1] - pad)
        norm = clip_to_foreground(stroked)
    return norm


def _fill_trellis(store: TemplateStore, ws: DecodeWorkspace, slack: float) -> None:
    bm = ws.bitmap
    H, W = bm.shape
    max_y_shift = store.config.max_y_shift
    averages = store.averages()
    slacks = [max(1, int(round(slack * avg.width))) for avg in averages]

    area = _prefix(ws.colsum)
    xmom = _prefix(ws.colsum * np.arange(W, dtype=np.int64))
    ymom = _prefix(ws.moment)

    T = np.full(W + 1, -np.inf, dtype=np.float64)
    T[0] = 0.0
    pred = np.full(W + 1, -1, dtype=np.int64)
    tmpl = np.full(W + 1, -1, dtype=np.int64)
    yloc = np.zeros(W + 1, dtype=np.int64)
    seg_score = np.zeros(W + 1, dtype=np.float64)

    for c in range(W):
        j = c + 1
        if ws.colsum[c] == 0 and np.isfinite(T[c]):
            T[j] = T[c]
            pred[j] = c
        for t, avg in enumerate(averages):
            for left in _left_edges(j, avg.width, slacks[t]):
                prev = T[left]
                if not np.isfinite(prev):
                    continue
                a_r = int(area[j] - area[left])
                if a_r == 0:
                    continue
                bound = min(a_r, avg.area) / float(max(a_r, avg.area))
                if np.isfinite(T[j]) and prev + bound * a_r <= T[j]:
                    continue
                qc = ((xmom[j] - xmom[left]) / float(a_r) - left, (ymom[j] - ymom[left]) / float(a_r))
                al = best_alignment(
                    bm[:, left:j],
                    avg.bitmap,
                    max_y_shift,
                    query_centroid=qc,
                    query_area=a_r,
                    template_centroid=avg.centroid,
                    template_area=avg.area,
                )
                value = prev + al.score * a_r
                if value > T[j]:
                    T[j] = value
                    pred[j] = left
                    tmpl[j] = t
                    yloc[j] = al.yloc
                    seg_score[j] = al.score

    ws.trellis, ws.predecessor, ws.template = T, pred, tmpl
    ws.y_shift, ws.segment_score = yloc, seg_score


def _backtrack(store: TemplateStore, ws: DecodeWorkspace) -> List[Segment]:
    area = _prefix(ws.colsum)
    segments: List[Segment] = []
    j = ws.width
    while j > 0:
        left = int(ws.predecessor[j])
        t = int(ws.template[j])
        if t >= 0:
            avg = store.average(t)
            a_r = int(area[j] - area[left])
            qx = float(np.dot(ws.colsum[left:j], np.arange(left, j))) / a_r - left
            segments.append(
                Segment(
                    left=left,
                    right=j,
                    index=t,
                    sample=-1,
                    score=float(ws.segment_score[j]),
                    xloc=left + int(math.floor(qx - avg.centroid[0] + 0.5)),
                    yloc=int(ws.y_shift[j]),
                    width=avg.width,
                    area=a_r,
                )
            )
        j = left
    segments.reverse()
    return segments


def _rescore(store: TemplateStore, ws: DecodeWorkspace, segments: List[Segment]) -> List[Segment]:
    out = []
    for seg in segments:
        query = Sample.from_bitmap(ws.bitmap[:, seg.left:seg.right])
        index, sample_index, template, al = best_template(query, store.templates(), store.config.max_y_shift)
        out.append(
            Segment(
                left=seg.left,
                right=seg.right,
                index=index,
                sample=sample_index,
                score=al.score,
                xloc=seg.left + al.delx,
                yloc=al.yloc,
                width=template.width,
                area=seg.area,
            )
        )
    return out


def run_decoder(
    store: TemplateStore,
    strip: Any,
    *,
    rescore: bool = True,
    slack: float = WIDTH_SLACK,
) -> DecodeWorkspace:
    """Decode ``strip`` and return the full workspace of the call."""
    store.require_finalized()
    binary = to_binary(strip, store.config.threshold)
    box = foreground_bbox(binary)
    if box is None:
        return DecodeWorkspace(bitmap=np.zeros((0, 0), dtype=np.uint8))

    ws = DecodeWorkspace(bitmap=np.zeros((0, 0), dtype=np.uint8), offset=(box[0], box[1]))
    ws.bitmap = _normalize_strip(store, clip_to_foreground(binary), ws)
    H, W = ws.bitmap.shape
    ws.colsum = ws.bitmap.sum(axis=0, dtype=np.int64)
    ws.moment = (ws.bitmap * np.arange(H, dtype=np.int64)[:, None]).sum(axis=0)
    ws.total_area = int(ws.colsum.sum())

    _fill_trellis(store, ws, slack)
    ws.initial = _backtrack(store, ws)
    if rescore:
        ws.rescored = _rescore(store, ws, ws.initial)
    LOGGER.debug(
        "decoded %d segments from a %dx%d strip (combined %.3f)",
        len(ws.path()),
        W,
        H,
        ws.combined_score() or 0.0,
    )
    return ws


def _to_sequence(store: TemplateStore, ws: DecodeWorkspace) -> MatchSequence:
    results = [
        MatchResult(
            index=s.index,
            score=s.score,
            text=store.label_for(s.index),
            sample=s.sample,
            xloc=s.xloc,
            yloc=s.yloc,
            width=s.width,
        )
        for s in ws.path()
    ]
    return MatchSequence.from_results(results, combined_score=ws.combined_score())


def decode(
    store: TemplateStore,
    strip: Any,
    rescore: bool = True,
    debug: Optional[DebugSink] = None,
) -> MatchSequence:
    """Decode a strip of adjacent glyphs into a left-to-right :class:`MatchSequence`.

    Coordinates are in the normalized strip frame; use :func:`run_decoder`
    and :meth:`DecodeWorkspace.to_input` to map them back.
    """
    ws = run_decoder(store, strip, rescore=rescore)
    seq = _to_sequence(store, ws)
    if debug is not None:
        debug.add(
            "decode",
            {
                "bitmap": ws.bitmap,
                "initial": [(s.left, s.right, store.label_for(s.index), s.score) for s in ws.initial],
                "rescored": [(s.left, s.right, store.label_for(s.index), s.score) for s in ws.rescored],
                "sequence": seq,
            },
        )
    return seq


__all__ = ["DecodeWorkspace", "Segment", "WIDTH_SLACK", "decode", "run_decoder"]
