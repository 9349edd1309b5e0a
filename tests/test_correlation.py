# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024 zrecog contributors

import numpy as np
import pytest

from zrecog import NotFinalized, RecogConfig, TemplateStore, TemplateUse
from zrecog.correlation import best_alignment, identify, identify_many, score, shift_order

from _glyphs import bar, digit_samples, pad, plus, ring, to_gray


def _shifted_pair():
    template = np.zeros((10, 12), dtype=np.uint8)
    template[2:8, 5] = 1
    query = np.zeros((12, 12), dtype=np.uint8)
    query[5:11, 5] = 1
    query[0, [1, 2, 8, 9]] = 1
    return query, template


def test_self_score_is_one():
    for glyph in (ring(), bar(), plus()):
        assert score(glyph, glyph, 2) == (1.0, 0)


def test_scores_are_bounded():
    glyphs = [ring(), bar(), plus(), pad(bar(width=2), 3, 0, 0, 5)]
    for q in glyphs:
        for t in glyphs:
            s, shift = score(q, t, 3)
            assert 0.0 <= s <= 1.0
            assert -3 <= shift <= 3


def test_disjoint_bitmaps_score_zero():
    assert score(np.zeros((4, 4), dtype=np.uint8), bar(), 1) == (0.0, 0)


def test_shift_search_finds_known_offset():
    query, template = _shifted_pair()
    s, shift = score(query, template, 3)
    assert shift == 3
    assert s == pytest.approx(36 / 60)
    assert score(query, template, 4) == (s, 3)


def test_shift_search_is_limited_to_window():
    query, template = _shifted_pair()
    s, shift = score(query, template, 2)
    assert shift == 2
    assert s == pytest.approx(25 / 60)
    assert score(query, template, 0)[1] == 0


def test_ties_prefer_small_then_negative_shift():
    assert list(shift_order(2)) == [0, -1, 1, -2, 2]
    tall = bar(width=1, height=9)
    dot = np.ones((1, 1), dtype=np.uint8)
    # every shift within the bar overlaps equally
    assert score(tall, dot, 2) == (pytest.approx(1 / 9), 0)

    comb = np.array([[1], [0], [1], [0], [1]], dtype=np.uint8)
    teeth = np.array([[1], [0], [1]], dtype=np.uint8)
    # shift 0 misses both teeth; -1 and +1 each hit two
    assert score(comb, teeth, 0) == (0.0, 0)
    assert score(comb, teeth, 1) == (pytest.approx(2 / 3), -1)
    assert score(comb, teeth, 2) == (pytest.approx(2 / 3), -1)


def test_best_alignment_reports_placement():
    query, template = _shifted_pair()
    al = best_alignment(query, template, 3)
    assert (al.delx, al.dely, al.y_shift) == (0, 0, 3)
    assert al.yloc == 3


def test_score_is_deterministic():
    query, template = _shifted_pair()
    assert score(query, template, 3) == score(query, template, 3)


def test_identify_requires_finalized_store():
    store = TemplateStore.from_samples(digit_samples())
    with pytest.raises(NotFinalized):
        identify(store, ring())


def test_identify_uses_template_policy(digit_store):
    result = identify(digit_store, pad(ring(), 4, 4, 4, 4))
    assert result.text == "0"
    assert result.index == digit_store.index_for("0")
    assert result.score > 0.9
    assert result.sample >= 0

    averages = TemplateStore.from_samples(
        digit_samples(), RecogConfig(template_use=TemplateUse.AVERAGE), finalize=True
    )
    result = identify(averages, to_gray(pad(bar())))
    assert result.text == "1"
    assert result.sample == -1


def test_identify_reads_float_bitmaps(digit_store):
    expected = identify(digit_store, ring())
    for dtype in (np.float32, np.float64):
        result = identify(digit_store, ring().astype(dtype))
        assert result.text == "0"
        assert result.score == pytest.approx(expected.score)
        assert result.score == pytest.approx(score(ring().astype(dtype), ring())[0])


def test_identify_many_keeps_input_order(digit_store):
    images = [ring(), bar(), bar(width=5), ring(width=13)]
    serial = identify_many(digit_store, images, workers=1)
    parallel = identify_many(digit_store, images, workers=3)
    assert serial.texts == ["0", "1", "1", "0"]
    assert parallel.model_dump() == serial.model_dump()
    assert serial.combined_score is None
