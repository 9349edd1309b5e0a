# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024 zrecog contributors

"""Interfaces for recognizer collaborators."""
from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Protocol, Tuple, Union

import numpy as np

if TYPE_CHECKING:
    from .config import RecogConfig
    from .store import TemplateStore


class DebugSink(Protocol):
    def add(self, kind: str, payload: Dict[str, Any]) -> None:
        ...


class BootstrapSource(Protocol):
    def generating_samples(self) -> List[Tuple[str, np.ndarray]]:
        ...

    def build_store(self, config: "RecogConfig") -> "TemplateStore":
        ...


class StoreSerializer(Protocol):
    def save(self, store: "TemplateStore", path: Union[str, Path]) -> None:
        ...

    def load(self, path: Union[str, Path]) -> "TemplateStore":
        ...


__all__ = ["BootstrapSource", "DebugSink", "StoreSerializer"]
