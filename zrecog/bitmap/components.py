# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024 zrecog contributors

"""Connected components via run-length linking (8-connected)."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np

__all__ = ["Component", "connected_components"]


@dataclass(frozen=True)
class Component:
    x0: int
    y0: int
    x1: int
    y1: int
    area: int

    @property
    def width(self) -> int:
        return self.x1 - self.x0

    @property
    def height(self) -> int:
        return self.y1 - self.y0


def _row_runs(binary: np.ndarray) -> List[List[Tuple[int, int]]]:
    """Return ``[(start, end), ...]`` foreground spans for each row."""

    runs_by_row = []
    for row in binary:
        padded = np.concatenate(([0], (row > 0).astype(np.int8), [0]))
        edges = np.flatnonzero(np.diff(padded))
        runs_by_row.append([(int(s), int(e)) for s, e in zip(edges[0::2], edges[1::2])])
    return runs_by_row


def _find(idx: int, parent: list) -> int:
    while parent[idx] != idx:
        parent[idx] = parent[parent[idx]]
        idx = parent[idx]
    return idx


def _touches(prev: Tuple[int, int], cur: Tuple[int, int]) -> bool:
    # diagonal neighbours count, so spans may be one pixel apart
    return prev[0] <= cur[1] and cur[0] <= prev[1]


def connected_components(bitmap: np.ndarray) -> List[Component]:
    """Return the 8-connected components of ``bitmap`` ordered left to right."""

    arr = np.asarray(bitmap)
    if arr.size == 0:
        return []
    runs_by_row = _row_runs(arr)
    parent: List[int] = []
    labels: List[List[int]] = []
    for y, runs in enumerate(runs_by_row):
        row_labels = []
        for _ in runs:
            lab = len(parent)
            parent.append(lab)
            row_labels.append(lab)
        labels.append(row_labels)
        if y == 0 or not runs:
            continue
        prev_runs: Sequence[Tuple[int, int]] = runs_by_row[y - 1]
        i = 0
        j = 0
        while i < len(prev_runs) and j < len(runs):
            p0, p1 = prev_runs[i]
            c0, c1 = runs[j]
            if _touches((p0, p1), (c0, c1)):
                rp = _find(labels[y - 1][i], parent)
                rc = _find(row_labels[j], parent)
                if rp != rc:
                    parent[max(rp, rc)] = min(rp, rc)
            if p1 < c1:
                i += 1
            else:
                j += 1

    boxes = {}
    for y, runs in enumerate(runs_by_row):
        for (x0, x1), lab in zip(runs, labels[y]):
            root = _find(lab, parent)
            box = boxes.get(root)
            if box is None:
                boxes[root] = [x0, y, x1, y + 1, x1 - x0]
            else:
                box[0] = min(box[0], x0)
                box[2] = max(box[2], x1)
                box[3] = y + 1
                box[4] += x1 - x0
    comps = [Component(*box) for box in boxes.values()]
    comps.sort(key=lambda c: (c.x0, c.y0))
    return comps
