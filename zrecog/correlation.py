# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024 zrecog contributors

"""Correlation matching of binary bitmaps against templates.

The score of a query ``Q`` against a template ``T`` placed at a given
offset is::

    overlap(Q, T)² / (|Q| · |T|)

where ``overlap`` counts foreground pixels shared by both images and ``|·|``
is the foreground pixel count. It lies in [0, 1] and equals 1 only when the
two foregrounds coincide. The template is registered on the query by
centroid in both axes; only the vertical offset is additionally searched,
within ``±max_y_shift``.
"""
from __future__ import annotations

import concurrent.futures
import logging
import math
from typing import Any, Iterable, Iterator, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from .bitmap import centroid, overlap_count, pixel_count
from .results import MatchResult, MatchSequence
from .store import Sample, TemplateStore
from .utils.env import env_int

LOGGER = logging.getLogger("zrecog.correlation")


class Alignment(NamedTuple):
    score: float
    y_shift: int
    delx: int
    dely: int

    @property
    def yloc(self) -> int:
        return self.dely + self.y_shift


def _half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _as_bitmap(arr: Any) -> np.ndarray:
    a = np.asarray(arr)
    if a.dtype == np.uint8 and (a.size == 0 or int(a.max()) <= 1):
        return a
    return (a > 0).astype(np.uint8)


def shift_order(max_y_shift: int) -> Iterator[int]:
    """Yield ``0, -1, 1, -2, 2, ...`` up to ``max_y_shift``."""
    yield 0
    for d in range(1, int(max_y_shift) + 1):
        yield -d
        yield d


def correlation(overlap: int, query_area: int, template_area: int) -> float:
    if query_area <= 0 or template_area <= 0:
        return 0.0
    return float(overlap) * float(overlap) / (float(query_area) * float(template_area))


def best_alignment(
    query: np.ndarray,
    template: np.ndarray,
    max_y_shift: int = 0,
    *,
    query_centroid: Optional[Tuple[float, float]] = None,
    query_area: Optional[int] = None,
    template_centroid: Optional[Tuple[float, float]] = None,
    template_area: Optional[int] = None,
) -> Alignment:
    """Register ``template`` on ``query`` and search the vertical jiggle.

    Ties go to the smallest absolute shift, then to the upward (negative)
    one. Precomputed centroids and pixel counts may be supplied.
    """
    qx, qy = query_centroid if query_centroid is not None else centroid(query)
    tx, ty = template_centroid if template_centroid is not None else centroid(template)
    qa = pixel_count(query) if query_area is None else int(query_area)
    ta = pixel_count(template) if template_area is None else int(template_area)
    delx = _half_up(qx - tx)
    dely = _half_up(qy - ty)
    best_score = -1.0
    best_shift = 0
    for dy in shift_order(max_y_shift):
        s = correlation(overlap_count(query, template, delx, dely + dy), qa, ta)
        if s > best_score:
            best_score = s
            best_shift = dy
    return Alignment(max(0.0, best_score), best_shift, delx, dely)


def score(query: Any, template: Any, max_y_shift: int = 0) -> Tuple[float, int]:
    """Return ``(best_score, best_y_shift)`` of ``query`` against ``template``."""
    alignment = best_alignment(_as_bitmap(query), _as_bitmap(template), max_y_shift)
    return alignment.score, alignment.y_shift


def align_samples(query: Sample, template: Sample, max_y_shift: int) -> Alignment:
    return best_alignment(
        query.bitmap,
        template.bitmap,
        max_y_shift,
        query_centroid=query.centroid,
        query_area=query.area,
        template_centroid=template.centroid,
        template_area=template.area,
    )


def best_template(
    query: Sample,
    templates: Iterable[Tuple[int, int, Sample]],
    max_y_shift: int,
) -> Tuple[int, int, Sample, Alignment]:
    """Return ``(class_index, sample_index, template, alignment)`` of the best match.

    The first template reaching the best score wins.
    """
    best = None
    for class_index, sample_index, template in templates:
        alignment = align_samples(query, template, max_y_shift)
        if best is None or alignment.score > best[3].score:
            best = (class_index, sample_index, template, alignment)
    if best is None:
        raise ValueError("no templates to match against")
    return best


def identify(store: TemplateStore, image: Any) -> MatchResult:
    """Identify one isolated character image against a finalized store."""
    store.require_finalized()
    query = store.prepare_query(image)
    class_index, sample_index, template, alignment = best_template(
        query, store.templates(), store.config.max_y_shift
    )
    return MatchResult(
        index=class_index,
        score=alignment.score,
        text=store.label_for(class_index),
        sample=sample_index,
        xloc=alignment.delx,
        yloc=alignment.yloc,
        width=template.width,
    )


def identify_many(store: TemplateStore, images: Sequence[Any], workers: Optional[int] = None) -> MatchSequence:
    """Identify independent character images, in parallel when ``workers`` > 1.

    ``workers`` defaults to ``ZRECOG_WORKERS`` (serial when unset).
    """
    store.require_finalized()
    if workers is None:
        workers = env_int("ZRECOG_WORKERS", 1)
    workers = max(1, int(workers or 1))
    if workers == 1 or len(images) <= 1:
        results = [identify(store, image) for image in images]
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(lambda image: identify(store, image), images))
    LOGGER.debug("identified %d images with %d workers", len(results), workers)
    return MatchSequence.from_results(results)


__all__ = [
    "Alignment",
    "align_samples",
    "best_alignment",
    "best_template",
    "correlation",
    "identify",
    "identify_many",
    "score",
    "shift_order",
]
