# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024 zrecog contributors

"""Pytest configuration shared across the suite."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

HERE = Path(__file__).resolve().parent
ROOT = HERE.parent
for path in (ROOT, HERE):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from zrecog import RecogConfig, TemplateStore  # noqa: E402

from _glyphs import digit_samples  # noqa: E402


@pytest.fixture
def digit_store() -> TemplateStore:
    """Finalized store with five samples each of "0" and "1"."""
    return TemplateStore.from_samples(digit_samples(), RecogConfig(), finalize=True)
