# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024 zrecog contributors

"""JSON serialization helpers."""

from __future__ import annotations

import dataclasses
import json
from enum import Enum
from pathlib import Path
from typing import Any

import numpy as np


def json_ready(obj: Any):
    """Return a JSON-serializable representation of ``obj``.

    Mappings, sequences, dataclasses, pydantic models, enums and numpy
    arrays/scalars are converted recursively. Anything else is returned
    unchanged so :mod:`json` can deal with the plain scalar types.
    """

    if obj is None or isinstance(obj, (bool, int, float, str)):
        return obj

    if isinstance(obj, Enum):
        return obj.value

    if isinstance(obj, dict):
        return {str(k): json_ready(v) for k, v in obj.items()}

    if hasattr(obj, "model_dump"):
        return json_ready(obj.model_dump())

    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return json_ready(dataclasses.asdict(obj))

    if isinstance(obj, (list, tuple)):
        return [json_ready(v) for v in obj]

    if isinstance(obj, (set, frozenset)):
        return [json_ready(v) for v in sorted(obj, key=repr)]

    if isinstance(obj, np.generic):
        return obj.item()

    if isinstance(obj, np.ndarray):
        return obj.tolist()

    if isinstance(obj, Path):
        return obj.as_posix()

    return obj


def dump_json(payload: Any, out: str = "-") -> str:
    """Write ``payload`` as indented JSON to ``out`` (``-`` means stdout)."""

    text = json.dumps(json_ready(payload), ensure_ascii=False, indent=2)
    if out == "-":
        print(text)
    else:
        Path(out).write_text(text, encoding="utf-8")
    return text


__all__ = ["dump_json", "json_ready"]
