# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024 zrecog contributors

import pytest

from zrecog import AveragesNotBuilt, RecogConfig, TemplateStore
from zrecog.debug import CollectingDebugSink
from zrecog.outliers import classify_against_averages, find_outliers, remove_outliers

from _glyphs import bar, pad, plus, ring


def _mislabeled_store():
    samples = [("A", pad(ring(), top=i)) for i in range(5)]
    samples.append(("A", bar()))
    samples += [("B", pad(bar(), left=i)) for i in range(4)]
    samples += [("C", plus()) for _ in range(3)]
    store = TemplateStore.from_samples(samples, RecogConfig())
    store.build_averages()
    return store


def test_classify_needs_current_averages():
    store = TemplateStore.from_samples([("A", ring())])
    with pytest.raises(AveragesNotBuilt):
        classify_against_averages(store, ring())


def test_classify_against_averages():
    store = _mislabeled_store()
    index, s = classify_against_averages(store, plus())
    assert store.label_for(index) == "C"
    assert s == pytest.approx(1.0)


def test_mislabeled_sample_is_flagged():
    store = _mislabeled_store()
    flagged = find_outliers(store, 0.5)
    assert ("A", 5) in flagged
    for i in range(5):
        assert ("A", i) not in flagged
    assert not any(label in ("B", "C") for label, _ in flagged)


def test_low_threshold_only_flags_class_mismatch():
    store = _mislabeled_store()
    assert find_outliers(store, 0.0) == {("A", 5)}


def test_remove_outliers_returns_generating_collection():
    store = _mislabeled_store()
    sink = CollectingDebugSink()
    kept = remove_outliers(store, 0.5, debug=sink)
    assert len(kept) == store.num_samples - 1
    assert [label for label, _ in kept].count("A") == 5
    assert sink.of_kind("outlier")[0]["best_label"] == "B"

    rebuilt = TemplateStore.from_samples(kept, store.config, finalize=True)
    assert find_outliers(rebuilt, 0.5) == set()
