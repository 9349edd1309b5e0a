# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024 zrecog contributors

"""zrecog public package surface.

The core types are imported eagerly; the heavier entry points (decoder,
bootstrap, debug rendering) resolve on first attribute access.
"""

from __future__ import annotations

from importlib import import_module as _import_module
from typing import Any, Dict

from ._version import __version__
from .charset import CharsetType, LabelIndex
from .config import RecogConfig, TemplateType, TemplateUse
from .errors import (
    AveragesNotBuilt,
    EmptyClass,
    InvalidGeometry,
    NotFinalized,
    NotTraining,
    RecogError,
    UnknownClass,
)
from .results import MatchResult, MatchSequence
from .store import Sample, TemplateStore

# Mapping of public attribute -> defining module
_ATTR_TO_MODULE: Dict[str, str] = {
    "score": ".correlation",
    "identify": ".correlation",
    "identify_many": ".correlation",
    "classify_against_averages": ".outliers",
    "find_outliers": ".outliers",
    "remove_outliers": ".outliers",
    "decode": ".decoder",
    "run_decoder": ".decoder",
    "DecodeWorkspace": ".decoder",
    "split_line": ".splitting",
    "identify_line": ".splitting",
    "DirectoryBootstrapSource": ".bootstrap",
    "train_recognizer": ".bootstrap",
    "load_store": ".serialization",
    "save_store": ".serialization",
    "CollectingDebugSink": ".debug",
}

__all__ = [
    "AveragesNotBuilt",
    "CharsetType",
    "EmptyClass",
    "InvalidGeometry",
    "LabelIndex",
    "MatchResult",
    "MatchSequence",
    "NotFinalized",
    "NotTraining",
    "RecogConfig",
    "RecogError",
    "Sample",
    "TemplateStore",
    "TemplateType",
    "TemplateUse",
    "UnknownClass",
    "__version__",
    *_ATTR_TO_MODULE,
]


def __getattr__(name: str) -> Any:
    spec = _ATTR_TO_MODULE.get(name)
    if spec is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    value = getattr(_import_module(spec, __name__), name)
    globals()[name] = value
    return value


def __dir__() -> list[str]:
    return sorted(set(__all__ + list(globals().keys())))
