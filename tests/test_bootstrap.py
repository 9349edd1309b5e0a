# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024 zrecog contributors

import numpy as np
import pytest

from zrecog import EmptyClass, RecogConfig, TemplateStore, TemplateUse
from zrecog.bootstrap import (
    DirectoryBootstrapSource,
    bootstrap_label,
    erode_samples,
    pad_samples,
    train_recognizer,
)
from zrecog.debug import CollectingDebugSink
from zrecog.serialization import save_store

from _glyphs import bar, digit_samples, pad, plus, ring


@pytest.fixture
def boot_dir(tmp_path):
    samples = digit_samples()
    save_store(TemplateStore.from_samples(samples[:5], finalize=True), tmp_path / "zeros.json")
    save_store(TemplateStore.from_samples(samples[5:], finalize=True), tmp_path / "ones.json")
    (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")
    return tmp_path


def test_directory_source_joins_generating_collections(boot_dir):
    source = DirectoryBootstrapSource(boot_dir)
    assert [p.name for p in source.paths()] == ["ones.json", "zeros.json"]
    joined = source.generating_samples()
    assert len(joined) == 10
    assert sorted({label for label, _ in joined}) == ["0", "1"]

    store = source.build_store(RecogConfig(scale_h=30))
    assert store.finalized
    assert store.config.template_use is TemplateUse.AVERAGE
    assert store.average(store.index_for("1")).height == 30


def test_directory_source_without_stores(tmp_path):
    with pytest.raises(FileNotFoundError):
        DirectoryBootstrapSource(tmp_path).generating_samples()


def test_erode_samples_drops_vanishing_strokes():
    block = np.ones((6, 6), dtype=np.uint8)
    line = np.ones((1, 9), dtype=np.uint8)
    out = erode_samples([("a", block), ("b", line)], 1)
    assert [label for label, _ in out] == ["a"]
    assert out[0][1].shape == (5, 5)


def test_boot_iters_erode_the_bootstrap_store(boot_dir):
    thin = DirectoryBootstrapSource(boot_dir, boot_iters=1).build_store(RecogConfig(scale_h=0))
    plain = DirectoryBootstrapSource(boot_dir).build_store(RecogConfig(scale_h=0))
    index = plain.index_for("1")
    assert thin.samples(index)[0].width == plain.samples(index)[0].width - 1


def test_bootstrap_label_keeps_confident_matches(boot_dir):
    boot = DirectoryBootstrapSource(boot_dir).build_store(RecogConfig())
    sink = CollectingDebugSink()
    labeled = bootstrap_label(boot, [ring(), bar(), plus()], min_score=0.8, debug=sink)
    assert [label for label, _ in labeled] == ["0", "1"]
    assert [r["kept"] for r in sink.of_kind("bootstrap_label")] == [True, True, False]


def test_pad_samples_tops_up_thin_classes():
    config = RecogConfig(min_nopad=2, max_afterpad=4)
    own = [("0", ring()), ("1", bar()), ("1", bar()), ("x", plus())]
    padded = pad_samples(own, digit_samples(), config)
    labels = [label for label, _ in padded]
    assert labels.count("0") == 4
    assert labels.count("1") == 2
    assert labels.count("x") == 1
    assert pad_samples(own, digit_samples(), RecogConfig()) == own


def test_train_recognizer_bootstraps_unlabeled_images(boot_dir):
    config = RecogConfig(min_samples=3)
    store = train_recognizer(
        config,
        labeled=[],
        unlabeled=[pad(ring(), 3, 3, 3, 3), bar(), pad(bar(), 2, 2, 2, 2)],
        bootstrap=DirectoryBootstrapSource(boot_dir),
    )
    assert store.finalized
    assert store.labels.labels == ["0", "1"]
    assert store.num_samples == 3


def test_train_recognizer_removes_outliers():
    labeled = digit_samples() + [("0", bar())]
    store = train_recognizer(RecogConfig(), labeled, remove_outliers_below=0.5)
    assert store.finalized
    assert len(store.samples(store.index_for("0"))) == 5


def test_train_recognizer_without_samples():
    with pytest.raises(EmptyClass):
        train_recognizer(RecogConfig(min_samples=5), labeled=[])
