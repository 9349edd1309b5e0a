# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024 zrecog contributors

import numpy as np
import pytest

from zrecog import (
    AveragesNotBuilt,
    CharsetType,
    EmptyClass,
    InvalidGeometry,
    NotTraining,
    RecogConfig,
    TemplateStore,
    TemplateType,
    TemplateUse,
    UnknownClass,
)
from zrecog.store import Sample, average_samples

from _glyphs import bar, digit_samples, pad, ring


def _training_store(**config):
    return TemplateStore.from_samples(digit_samples(), RecogConfig(**config))


def test_add_sample_clips_and_measures():
    store = TemplateStore()
    index = store.add_sample("1", pad(bar(), top=5, left=7))
    assert index == 0
    sample = store.samples(0)[0]
    assert sample.bitmap.shape == (20, 4)
    assert sample.area == 80
    assert sample.centroid == (1.5, 9.5)
    assert not sample.bitmap.flags.writeable


def test_add_sample_reads_float_bitmaps():
    store = TemplateStore()
    store.add_sample("0", ring().astype(np.float64))
    assert store.samples(0)[0].area == 156


def test_samples_compare_by_identity():
    a = Sample.from_bitmap(ring())
    b = Sample.from_bitmap(ring())
    assert a == a
    assert a != b
    assert len({a, b}) == 2


def test_add_sample_rejects_blank_bitmaps():
    store = TemplateStore()
    with pytest.raises(InvalidGeometry):
        store.add_sample("x", np.zeros((5, 5), dtype=np.uint8))
    assert store.num_classes == 0


def test_training_gating():
    store = _training_store()
    with pytest.raises(AveragesNotBuilt):
        store.finalize_training()
    store.build_averages()
    store.finalize_training()
    assert store.finalized
    with pytest.raises(NotTraining):
        store.add_sample("0", ring())


def test_build_averages_on_empty_store():
    with pytest.raises(EmptyClass):
        TemplateStore().build_averages()


def test_fixed_charset_requires_every_class():
    store = TemplateStore(RecogConfig(charset_type=CharsetType.ARABIC_NUMERALS))
    assert store.num_classes == 10
    store.add_sample("0", ring())
    with pytest.raises(UnknownClass):
        store.add_sample("x", ring())
    with pytest.raises(EmptyClass) as info:
        store.build_averages()
    assert info.value.label == "1"


def test_build_averages_is_idempotent():
    store = _training_store()
    store.build_averages()
    first = [avg.bitmap.copy() for avg in store.averages()]
    store.build_averages()
    second = [avg.bitmap for avg in store.averages()]
    assert len(first) == len(second) == 2
    for a, b in zip(first, second):
        assert np.array_equal(a, b)


def test_add_sample_marks_averages_stale():
    store = _training_store()
    store.build_averages()
    store.add_sample("1", bar())
    assert not store.averages_built
    with pytest.raises(AveragesNotBuilt):
        store.average(0)


def test_scaled_templates_follow_config():
    store = _training_store()
    store.build_averages()
    one = store.index_for("1")
    assert store.scaled_samples(one)[0].bitmap.shape == (40, 8)
    assert store.average(one).height == 40
    assert store.average_unscaled(one).height == 20
    assert store.min_height_u == store.max_height_u == 20


def test_outline_templates_have_uniform_strokes():
    store = TemplateStore.from_samples(
        [("1", bar(width=7, height=40))],
        RecogConfig(template_type=TemplateType.OUTLINE, line_width=3),
        finalize=True,
    )
    avg = store.average(0)
    assert int(avg.bitmap[avg.height // 2].sum()) == 3


def test_templates_follow_usage_policy():
    store = _training_store(template_use=TemplateUse.AVERAGE)
    store.build_averages()
    assert [(c, s) for c, s, _ in store.templates()] == [(0, -1), (1, -1)]
    everything = list(store.templates(TemplateUse.ALL))
    assert len(everything) == 10
    assert everything[0][:2] == (0, 0) and everything[-1][:2] == (1, 4)


def test_lookup_errors():
    store = _training_store()
    with pytest.raises(UnknownClass):
        store.index_for("7")
    with pytest.raises(UnknownClass):
        store.label_for(5)
    with pytest.raises(UnknownClass):
        store.samples(-1)


def test_generating_samples_rebuild_an_equal_store():
    store = _training_store()
    store.build_averages()
    store.finalize_training()
    rebuilt = TemplateStore.from_samples(store.generating_samples() + [("2", bar(width=8))], store.config)
    assert rebuilt.labels.labels == ["0", "1", "2"]
    assert rebuilt.num_samples == store.num_samples + 1
    for i in range(store.num_classes):
        for a, b in zip(store.samples(i), rebuilt.samples(i)):
            assert np.array_equal(a.bitmap, b.bitmap)


def test_average_samples_aligns_by_centroid():
    a = Sample.from_bitmap(ring())
    b = Sample.from_bitmap(ring())
    avg = average_samples([a, b])
    assert np.array_equal(avg.bitmap, a.bitmap)
