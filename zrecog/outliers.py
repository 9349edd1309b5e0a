# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024 zrecog contributors

"""Outlier detection against per-class averaged templates.

Averages are used here and nowhere else: identification always follows the
store's ``template_use`` policy. Detection is advisory. The store never
prunes itself; :func:`remove_outliers` returns a new generating collection
to build a fresh store from.
"""
from __future__ import annotations

import logging
from typing import Any, List, Optional, Set, Tuple

import numpy as np

from .correlation import best_template
from .interfaces import DebugSink
from .store import Sample, TemplateStore

LOGGER = logging.getLogger("zrecog.outliers")


def classify_against_averages(store: TemplateStore, image: Any) -> Tuple[int, float]:
    """Return ``(class_index, score)`` of the best class average for ``image``.

    ``image`` may be a raw bitmap, which is prepared like a query, or a
    :class:`~zrecog.store.Sample` already at template scale.
    """
    store.require_averages()
    query = image if isinstance(image, Sample) else store.prepare_query(image)
    averages = ((index, -1, avg) for index, avg in enumerate(store.averages()))
    class_index, _, _, alignment = best_template(query, averages, store.config.max_y_shift)
    return class_index, alignment.score


def find_outliers(
    store: TemplateStore,
    score_threshold: float,
    debug: Optional[DebugSink] = None,
) -> Set[Tuple[str, int]]:
    """Flag samples that match another class best, or their own class poorly.

    Returns ``{(label, sample_index), ...}``.
    """
    store.require_averages()
    flagged: Set[Tuple[str, int]] = set()
    for index in range(store.num_classes):
        label = store.label_for(index)
        for sample_index, sample in enumerate(store.scaled_samples(index)):
            best_index, best_score = classify_against_averages(store, sample)
            if best_index == index and best_score >= score_threshold:
                continue
            flagged.add((label, sample_index))
            LOGGER.debug(
                "outlier %r[%d]: best class %r score %.3f",
                label,
                sample_index,
                store.label_for(best_index),
                best_score,
            )
            if debug is not None:
                debug.add(
                    "outlier",
                    {
                        "label": label,
                        "sample": sample_index,
                        "best_label": store.label_for(best_index),
                        "score": best_score,
                    },
                )
    LOGGER.info("flagged %d of %d samples", len(flagged), store.num_samples)
    return flagged


def remove_outliers(
    store: TemplateStore,
    score_threshold: float,
    debug: Optional[DebugSink] = None,
) -> List[Tuple[str, np.ndarray]]:
    """Return the store's generating collection without its outliers."""
    flagged = find_outliers(store, score_threshold, debug=debug)
    kept = []
    for index in range(store.num_classes):
        label = store.label_for(index)
        for sample_index, sample in enumerate(store.samples(index)):
            if (label, sample_index) not in flagged:
                kept.append((label, sample.bitmap.copy()))
    return kept


__all__ = ["classify_against_averages", "find_outliers", "remove_outliers"]
