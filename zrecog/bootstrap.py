# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024 zrecog contributors

"""Training flow, with optional help from a generic bootstrap recognizer.

A bootstrap recognizer is built from pre-labeled stores saved in a
directory. Their generating collections are joined, never the stores
themselves, and the joined samples may be eroded so that bold corpora match
lighter print. It is used for two things only: labeling unlabeled glyphs when
too few labeled ones exist, and padding classes that have too few samples.
"""
from __future__ import annotations

import logging
from collections import Counter
from pathlib import Path
from typing import Any, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

from .bitmap import clip_to_foreground, erode_rect
from .charset import CharsetType, charset_labels
from .config import RecogConfig, TemplateUse
from .interfaces import BootstrapSource, DebugSink
from .outliers import classify_against_averages, remove_outliers
from .serialization import load_store
from .store import TemplateStore

LOGGER = logging.getLogger("zrecog.bootstrap")

DEFAULT_MIN_SCORE = 0.75

LabeledSamples = List[Tuple[str, np.ndarray]]


def erode_samples(samples: Iterable[Tuple[str, np.ndarray]], iterations: int) -> LabeledSamples:
    """Erode every bitmap ``iterations`` times with a 2×2 brick.

    Samples that vanish are dropped.
    """
    out: LabeledSamples = []
    dropped = 0
    for label, bitmap in samples:
        arr = np.asarray(bitmap, dtype=np.uint8)
        for _ in range(int(iterations)):
            arr = erode_rect(arr, 2, 2)
        arr = clip_to_foreground(arr)
        if arr.size == 0:
            dropped += 1
            continue
        out.append((label, arr))
    if dropped:
        LOGGER.debug("erosion removed %d bootstrap samples", dropped)
    return out


class DirectoryBootstrapSource:
    """Bootstrap source reading every serialized store in ``directory``."""

    def __init__(self, directory: Union[str, Path], pattern: str = "*.json", boot_iters: Optional[int] = None) -> None:
        self.directory = Path(directory)
        self.pattern = pattern
        self.boot_iters = boot_iters
        self._samples: Optional[LabeledSamples] = None

    def paths(self) -> List[Path]:
        return sorted(p for p in self.directory.glob(self.pattern) if p.is_file())

    def generating_samples(self) -> LabeledSamples:
        if self._samples is None:
            paths = self.paths()
            if not paths:
                raise FileNotFoundError(f"no stores matching {self.pattern!r} in {self.directory}")
            joined: LabeledSamples = []
            for path in paths:
                joined.extend(load_store(path).generating_samples())
            LOGGER.info("bootstrap corpus: %d samples from %d stores", len(joined), len(paths))
            self._samples = joined
        return list(self._samples)

    def build_store(self, config: RecogConfig) -> TemplateStore:
        """Return a finalized store at ``config``'s scale over the joined corpus."""
        iters = config.boot_iters if self.boot_iters is None else self.boot_iters
        samples = self.generating_samples()
        if iters:
            samples = erode_samples(samples, iters)
        boot_config = config.model_copy(
            update={
                "charset_type": CharsetType.UNKNOWN,
                "charset_size": 0,
                "template_use": TemplateUse.AVERAGE,
            }
        )
        return TemplateStore.from_samples(samples, boot_config, finalize=True)


def bootstrap_label(
    bootstrap_store: TemplateStore,
    images: Iterable[Any],
    min_score: float = DEFAULT_MIN_SCORE,
    debug: Optional[DebugSink] = None,
) -> LabeledSamples:
    """Label ``images`` with the bootstrap averages, keeping confident ones."""
    kept: LabeledSamples = []
    total = 0
    for image in images:
        total += 1
        query = bootstrap_store.prepare_query(image)
        index, score = classify_against_averages(bootstrap_store, query)
        label = bootstrap_store.label_for(index)
        if debug is not None:
            debug.add("bootstrap_label", {"label": label, "score": score, "kept": score >= min_score})
        if score < min_score:
            continue
        kept.append((label, np.asarray(image)))
    LOGGER.info("bootstrap labeled %d of %d images (min score %.2f)", len(kept), total, min_score)
    return kept


def pad_samples(
    samples: Sequence[Tuple[str, np.ndarray]],
    bootstrap_samples: Sequence[Tuple[str, np.ndarray]],
    config: RecogConfig,
) -> LabeledSamples:
    """Top up classes having fewer than ``min_nopad`` samples.

    Bootstrap samples of the same label are appended in order until the class
    holds ``max_afterpad`` samples. For a fixed charset, labels without any
    sample of their own are padded too.
    """
    out: LabeledSamples = list(samples)
    if config.min_nopad <= 0:
        return out
    counts = Counter(label for label, _ in samples)
    labels = list(dict.fromkeys([label for label, _ in samples] + charset_labels(config.charset_type)))
    target = max(config.max_afterpad, config.min_nopad)
    for label in labels:
        have = counts.get(label, 0)
        if have >= config.min_nopad:
            continue
        extra = [bm for lab, bm in bootstrap_samples if lab == label][: max(0, target - have)]
        if not extra:
            LOGGER.debug("no bootstrap samples to pad %r", label)
            continue
        out.extend((label, bm) for bm in extra)
        LOGGER.debug("padded %r from %d to %d samples", label, have, have + len(extra))
    return out


def train_recognizer(
    config: RecogConfig,
    labeled: Iterable[Tuple[str, Any]],
    unlabeled: Iterable[Any] = (),
    bootstrap: Optional[BootstrapSource] = None,
    remove_outliers_below: Optional[float] = None,
    *,
    min_score: float = DEFAULT_MIN_SCORE,
    debug: Optional[DebugSink] = None,
) -> TemplateStore:
    """Run the training flow and return a finalized store.

    With fewer than ``min_samples`` labeled samples and a bootstrap source,
    unlabeled images are labeled by the bootstrap recognizer first. Thin
    classes are then padded from the bootstrap corpus, and when
    ``remove_outliers_below`` is given the store is rebuilt without the
    samples flagged at that score threshold.
    """
    samples = [(str(label), np.asarray(bitmap)) for label, bitmap in labeled]
    if bootstrap is not None:
        unlabeled = list(unlabeled)
        if len(samples) < config.min_samples and unlabeled:
            boot_store = bootstrap.build_store(config)
            samples.extend(bootstrap_label(boot_store, unlabeled, min_score=min_score, debug=debug))
        if config.min_nopad > 0:
            samples = pad_samples(samples, bootstrap.generating_samples(), config)
    elif len(samples) < config.min_samples:
        LOGGER.warning("only %d labeled samples (min %d) and no bootstrap source", len(samples), config.min_samples)

    store = TemplateStore.from_samples(samples, config)
    store.build_averages()
    if remove_outliers_below is not None:
        kept = remove_outliers(store, remove_outliers_below, debug=debug)
        LOGGER.info("removed %d outliers", store.num_samples - len(kept))
        store = TemplateStore.from_samples(kept, config)
        store.build_averages()
    store.finalize_training()
    return store


__all__ = [
    "DEFAULT_MIN_SCORE",
    "DirectoryBootstrapSource",
    "bootstrap_label",
    "erode_samples",
    "pad_samples",
    "train_recognizer",
]
