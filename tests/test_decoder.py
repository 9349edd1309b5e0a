# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024 zrecog contributors

import numpy as np
import pytest

from zrecog import InvalidGeometry, NotFinalized, RecogConfig, TemplateStore, TemplateUse
from zrecog.debug import CollectingDebugSink
from zrecog.decoder import decode, run_decoder

from _glyphs import bar, digit_samples, hstack, ring, to_gray


def test_decodes_two_character_strip(digit_store):
    strip = hstack([ring(), bar()])
    seq = decode(digit_store, strip)
    assert len(seq) == 2
    assert seq.texts == ["0", "1"]
    assert seq.text == "01"
    assert seq.combined_score > 0.8
    assert seq.xlocs[0] < seq.xlocs[1]


def test_decodes_float_bitmap_strip(digit_store):
    strip = hstack([ring(), bar()])
    seq = decode(digit_store, strip.astype(np.float64))
    assert seq.texts == ["0", "1"]
    assert seq.model_dump() == decode(digit_store, strip).model_dump()


def test_decodes_touching_glyphs_on_gray_input(digit_store):
    strip = to_gray(hstack([bar(), ring(), ring()], gap=0))
    seq = decode(digit_store, strip)
    assert seq.text == "100"
    assert seq.combined_score > 0.8


def test_rescoring_keeps_boundaries(digit_store):
    strip = hstack([ring(), bar(), ring(width=13)], gap=1)
    ws = run_decoder(digit_store, strip)
    assert ws.rescored
    assert [(s.left, s.right) for s in ws.rescored] == [(s.left, s.right) for s in ws.initial]
    assert all(s.sample == -1 for s in ws.initial)
    assert all(s.sample >= 0 for s in ws.rescored)


def test_rescoring_can_be_skipped(digit_store):
    strip = hstack([ring(), bar()])
    ws = run_decoder(digit_store, strip, rescore=False)
    assert ws.rescored == []
    seq = decode(digit_store, strip, rescore=False)
    assert seq.samples == [-1, -1]


def test_average_policy_rescore():
    store = TemplateStore.from_samples(
        digit_samples(), RecogConfig(template_use=TemplateUse.AVERAGE), finalize=True
    )
    seq = decode(store, hstack([bar(), ring()]))
    assert seq.text == "10"
    assert seq.samples == [-1, -1]


def test_decode_is_deterministic(digit_store):
    strip = hstack([ring(), bar(), ring()], gap=2)
    assert decode(digit_store, strip).model_dump() == decode(digit_store, strip).model_dump()


def test_empty_strip_gives_empty_sequence(digit_store):
    seq = decode(digit_store, np.zeros((24, 40), dtype=np.uint8))
    assert len(seq) == 0
    assert seq.combined_score is None
    assert len(decode(digit_store, np.full((24, 40), 255, dtype=np.uint8))) == 0


def test_narrow_strip_gives_single_guess(digit_store):
    seq = decode(digit_store, bar(width=2))
    assert len(seq) == 1
    assert seq.texts[0] in ("0", "1")


@pytest.mark.parametrize("slack", [0.0, 0.15, 0.5])
def test_every_strip_reaches_its_last_column(digit_store, slack):
    strips = [
        bar(width=2),
        hstack([ring(), bar()], gap=15),
        hstack([bar(width=7), ring(width=19), bar()], gap=0),
        hstack([ring(), ring(), ring()], gap=1),
    ]
    for strip in strips:
        ws = run_decoder(digit_store, strip, rescore=False, slack=slack)
        assert np.isfinite(ws.trellis[ws.width])
        assert sum(s.area for s in ws.initial) == ws.total_area


def test_decode_requires_finalized_store():
    store = TemplateStore.from_samples(digit_samples())
    store.build_averages()
    with pytest.raises(NotFinalized):
        decode(store, hstack([ring(), bar()]))


def test_width_normalized_templates_cannot_decode():
    store = TemplateStore.from_samples(digit_samples(), RecogConfig(scale_w=20, scale_h=40), finalize=True)
    with pytest.raises(InvalidGeometry):
        decode(store, hstack([ring(), bar()]))


def test_unscaled_store_checks_strip_height():
    store = TemplateStore.from_samples(digit_samples(), RecogConfig(scale_h=0, max_y_shift=1), finalize=True)
    assert decode(store, hstack([ring(), bar()])).text == "01"
    tall = hstack([ring(height=30), bar(height=30)], height=34)
    with pytest.raises(InvalidGeometry):
        decode(store, tall)


def test_workspace_maps_back_to_input(digit_store):
    strip = hstack([ring(), bar()], margin=2)
    ws = run_decoder(digit_store, strip)
    assert ws.offset == (2, 2)
    assert ws.scale == (2.0, 2.0)
    assert ws.to_input(0, 0) == (2.0, 2.0)
    assert ws.colsum.sum() == ws.total_area


def test_debug_sink_does_not_change_result(digit_store):
    strip = hstack([ring(), bar()])
    sink = CollectingDebugSink()
    assert decode(digit_store, strip, debug=sink).model_dump() == decode(digit_store, strip).model_dump()
    (record,) = sink.of_kind("decode")
    assert [seg[2] for seg in record["rescored"]] == ["0", "1"]
