# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024 zrecog contributors

"""Template store: labeled samples, their scaled forms and class averages.

A store is built from a *generating collection* of unscaled labeled
bitmaps. While training it accepts new samples; :meth:`TemplateStore.build_averages`
derives the scaled templates and per-class averages, and
:meth:`TemplateStore.finalize_training` freezes it for identification. A
finalized store is never modified again: to extend it, take
:meth:`TemplateStore.generating_samples`, append to that collection and build
a new store.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Iterable, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from .bitmap import (
    centroid,
    clip_to_foreground,
    pixel_count,
    scale_to_size,
    set_stroke_width,
    to_binary,
)
from .charset import CharsetType, LabelIndex
from .config import RecogConfig, TemplateType, TemplateUse
from .errors import AveragesNotBuilt, EmptyClass, InvalidGeometry, NotFinalized, NotTraining, UnknownClass

LOGGER = logging.getLogger("zrecog.store")


@dataclass(frozen=True, eq=False)
class Sample:
    """A foreground-clipped bitmap with its centroid and pixel count."""

    bitmap: np.ndarray
    centroid: Tuple[float, float]
    area: int

    @classmethod
    def from_bitmap(cls, bitmap: np.ndarray) -> "Sample":
        arr = np.array(bitmap, dtype=np.uint8, copy=True)
        arr.setflags(write=False)
        return cls(bitmap=arr, centroid=centroid(arr), area=pixel_count(arr))

    @property
    def width(self) -> int:
        return int(self.bitmap.shape[1])

    @property
    def height(self) -> int:
        return int(self.bitmap.shape[0])


def _half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def average_samples(samples: Sequence[Sample]) -> Sample:
    """Centroid-align ``samples`` and keep pixels set in at least half of them.

    The vote threshold is half of the strongest pixel's share, which is the
    plain majority whenever some pixel is set in every sample.
    """
    if not samples:
        raise EmptyClass()
    ref_x = max(s.centroid[0] for s in samples)
    ref_y = max(s.centroid[1] for s in samples)
    offsets = [(_half_up(ref_x - s.centroid[0]), _half_up(ref_y - s.centroid[1])) for s in samples]
    width = max(ox + s.width for (ox, _), s in zip(offsets, samples))
    height = max(oy + s.height for (_, oy), s in zip(offsets, samples))
    acc = np.zeros((height, width), dtype=np.float64)
    for (ox, oy), s in zip(offsets, samples):
        acc[oy:oy + s.height, ox:ox + s.width] += s.bitmap
    acc /= float(len(samples))
    binary = (acc >= 0.5 * float(acc.max())).astype(np.uint8)
    return Sample.from_bitmap(clip_to_foreground(binary))


class TemplateStore:
    """Per-class labeled samples plus derived scaled and averaged templates."""

    def __init__(self, config: Optional[RecogConfig] = None, labels: Iterable[str] = ()) -> None:
        self.config = config or RecogConfig()
        if self.config.charset_type != CharsetType.UNKNOWN:
            self.labels = LabelIndex.for_charset(self.config.charset_type)
        else:
            self.labels = LabelIndex(labels)
        self._samples: List[List[Sample]] = [[] for _ in range(len(self.labels))]
        self._scaled: List[List[Sample]] = []
        self._averages_u: List[Sample] = []
        self._averages: List[Sample] = []
        self._averages_done = False
        self._finalized = False
        self.min_width_u = self.max_width_u = 0
        self.min_height_u = self.max_height_u = 0
        self.min_width = self.max_width = 0

    @classmethod
    def from_samples(
        cls,
        samples: Iterable[Tuple[str, Any]],
        config: Optional[RecogConfig] = None,
        *,
        labels: Iterable[str] = (),
        finalize: bool = False,
    ) -> "TemplateStore":
        """Build a store from a generating collection of ``(label, bitmap)``."""
        store = cls(config, labels=labels)
        for label, bitmap in samples:
            store.add_sample(label, bitmap)
        if finalize:
            store.build_averages()
            store.finalize_training()
        return store

    # -- lifecycle -------------------------------------------------------

    @property
    def finalized(self) -> bool:
        return self._finalized

    @property
    def averages_built(self) -> bool:
        return self._averages_done

    def require_finalized(self) -> None:
        if not self._finalized:
            raise NotFinalized()

    def require_averages(self) -> None:
        if not self._averages_done:
            raise AveragesNotBuilt()

    def add_sample(self, label: str, bitmap: Any) -> int:
        """Add one labeled sample; return its class index."""
        if self._finalized:
            raise NotTraining()
        clipped = clip_to_foreground(to_binary(bitmap, self.config.threshold))
        if clipped.size == 0:
            raise InvalidGeometry(f"sample for {label!r} has no foreground pixels")
        index = self.labels.add(label)
        while len(self._samples) <= index:
            self._samples.append([])
        self._samples[index].append(Sample.from_bitmap(clipped))
        self._averages_done = False
        return index

    def build_averages(self) -> None:
        """Derive scaled templates and per-class averages at both scales."""
        if len(self.labels) == 0:
            raise EmptyClass()
        for index, samples in enumerate(self._samples):
            if not samples:
                raise EmptyClass(self.labels.label_of(index))

        scaled = []
        for index, samples in enumerate(self._samples):
            try:
                scaled.append([self.modify_template(s.bitmap) for s in samples])
            except InvalidGeometry as exc:
                raise InvalidGeometry(f"class {self.labels.label_of(index)!r}: {exc}") from exc
        self._scaled = scaled
        self._averages_u = [average_samples(samples) for samples in self._samples]
        self._averages = [average_samples(samples) for samples in self._scaled]

        widths_u = [a.width for a in self._averages_u]
        heights_u = [a.height for a in self._averages_u]
        widths = [a.width for a in self._averages]
        self.min_width_u, self.max_width_u = min(widths_u), max(widths_u)
        self.min_height_u, self.max_height_u = min(heights_u), max(heights_u)
        self.min_width, self.max_width = min(widths), max(widths)
        self._averages_done = True

        expected = self.config.expected_classes
        if expected and expected != self.num_classes:
            LOGGER.warning("expected %d classes, store has %d", expected, self.num_classes)
        LOGGER.debug(
            "built averages for %d classes from %d samples (scaled width %d..%d)",
            self.num_classes,
            self.num_samples,
            self.min_width,
            self.max_width,
        )

    def finalize_training(self) -> None:
        if not self._averages_done:
            raise AveragesNotBuilt()
        self._finalized = True
        self.labels.freeze()
        LOGGER.info("recognizer finalized: %d classes, %d samples", self.num_classes, self.num_samples)

    # -- template preparation -------------------------------------------

    def modify_template(self, bitmap: np.ndarray) -> Sample:
        """Scale (and outline) a clipped bitmap the way templates are stored."""
        cfg = self.config
        arr = np.asarray(bitmap, dtype=np.uint8)
        if cfg.scale_w or cfg.scale_h:
            arr = scale_to_size(arr, cfg.scale_w, cfg.scale_h)
        if cfg.template_type == TemplateType.OUTLINE:
            pad = cfg.line_width
            arr = set_stroke_width(np.pad(arr, pad, mode="constant"), cfg.line_width)
        arr = clip_to_foreground(arr)
        if arr.size == 0:
            raise InvalidGeometry("bitmap vanished when scaled to the template size")
        return Sample.from_bitmap(arr)

    def prepare_query(self, image: Any) -> Sample:
        """Binarize, clip and scale an unlabeled image for matching."""
        clipped = clip_to_foreground(to_binary(image, self.config.threshold))
        if clipped.size == 0:
            raise InvalidGeometry("image has no foreground pixels")
        return self.modify_template(clipped)

    # -- access ------------------------------------------------------------

    @property
    def num_classes(self) -> int:
        return len(self.labels)

    @property
    def num_samples(self) -> int:
        return sum(len(samples) for samples in self._samples)

    def _check_index(self, index: int) -> int:
        if not 0 <= int(index) < len(self._samples):
            raise UnknownClass(index)
        return int(index)

    def label_for(self, index: int) -> str:
        return self.labels.label_of(index)

    def index_for(self, label: str) -> int:
        return self.labels.index_of(label)

    def samples(self, index: int) -> Tuple[Sample, ...]:
        return tuple(self._samples[self._check_index(index)])

    def scaled_samples(self, index: int) -> Tuple[Sample, ...]:
        self.require_averages()
        return tuple(self._scaled[self._check_index(index)])

    def average(self, index: int) -> Sample:
        self.require_averages()
        return self._averages[self._check_index(index)]

    def average_unscaled(self, index: int) -> Sample:
        self.require_averages()
        return self._averages_u[self._check_index(index)]

    def averages(self) -> Tuple[Sample, ...]:
        self.require_averages()
        return tuple(self._averages)

    def templates(self, use: Optional[TemplateUse] = None) -> Iterator[Tuple[int, int, Sample]]:
        """Yield ``(class_index, sample_index, template)`` for matching.

        With ``TemplateUse.AVERAGE`` one average per class is yielded and the
        sample index is ``-1``.
        """
        self.require_averages()
        use = use or self.config.template_use
        if use == TemplateUse.AVERAGE:
            for index, avg in enumerate(self._averages):
                yield index, -1, avg
            return
        for index, samples in enumerate(self._scaled):
            for sample_index, sample in enumerate(samples):
                yield index, sample_index, sample

    def generating_samples(self) -> List[Tuple[str, np.ndarray]]:
        """Return the unscaled ``(label, bitmap)`` collection the store came from."""
        out = []
        for index, samples in enumerate(self._samples):
            label = self.labels.label_of(index)
            out.extend((label, s.bitmap.copy()) for s in samples)
        return out

    def __repr__(self) -> str:
        state = "finalized" if self._finalized else "training"
        return f"TemplateStore({self.num_classes} classes, {self.num_samples} samples, {state})"


__all__ = ["Sample", "TemplateStore", "average_samples"]
