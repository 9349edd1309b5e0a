# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024 zrecog contributors

import pytest
from pydantic import ValidationError

from zrecog import CharsetType, LabelIndex, RecogConfig, TemplateType, TemplateUse, UnknownClass
from zrecog.charset import charset_labels, charset_size


def test_defaults():
    cfg = RecogConfig()
    assert cfg.scale_w == 0 and cfg.scale_h == 40
    assert cfg.template_type is TemplateType.IMAGE
    assert cfg.template_use is TemplateUse.ALL
    assert cfg.expected_classes == 0


@pytest.mark.parametrize(
    "kwargs",
    [
        {"scale_h": -1},
        {"threshold": 0},
        {"max_y_shift": 9},
        {"template_type": "outline", "scale_h": 0},
        {"charset_type": "arabic_numerals", "charset_size": 7},
        {"min_split_h": 50, "max_split_h": 10},
    ],
)
def test_malformed_config_is_rejected(kwargs):
    with pytest.raises(ValidationError):
        RecogConfig(**kwargs)


def test_config_is_frozen():
    cfg = RecogConfig()
    with pytest.raises(ValidationError):
        cfg.scale_h = 10


def test_from_env_overrides(monkeypatch):
    monkeypatch.setenv("ZRECOG_SCALE_H", "32")
    monkeypatch.setenv("ZRECOG_TEMPLATE_USE", "AVERAGE")
    monkeypatch.setenv("ZRECOG_MAX_Y_SHIFT", "not-a-number")
    cfg = RecogConfig.from_env({"threshold": 120})
    assert cfg.scale_h == 32
    assert cfg.template_use is TemplateUse.AVERAGE
    assert cfg.max_y_shift == 1
    assert cfg.threshold == 120


def test_fixed_charsets():
    assert charset_labels(CharsetType.ARABIC_NUMERALS) == list("0123456789")
    assert charset_size(CharsetType.UC_ROMAN_NUMERALS) == 7
    assert charset_labels(CharsetType.UNKNOWN) == []
    assert RecogConfig(charset_type="lc_alpha").expected_classes == 26


def test_label_index_grows_until_frozen():
    index = LabelIndex()
    assert index.add("a") == 0
    assert index.add("ß") == 1
    assert index.add("a") == 0
    assert index.index_of("ß") == 1 and index.label_of(1) == "ß"
    index.freeze()
    with pytest.raises(UnknownClass):
        index.add("c")
    assert index.add("a") == 0


def test_fixed_label_index_rejects_unknown_labels():
    index = LabelIndex.for_charset(CharsetType.LC_ROMAN_NUMERALS)
    assert index.frozen
    assert index.labels == list("ivxlcdm")
    with pytest.raises(UnknownClass) as info:
        index.add("q")
    assert isinstance(info.value, KeyError)
    with pytest.raises(UnknownClass):
        index.label_of(7)
