# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024 zrecog contributors

"""JSON persistence of template stores.

Only the generating collection is written (configuration, ordered labels and
raw samples as packed bits); scaled templates and averages are rebuilt on
load, so reading a file back reproduces the same store.
"""
from __future__ import annotations

import base64
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Union

import numpy as np
from pydantic import ValidationError

from .config import RecogConfig
from .store import TemplateStore

LOGGER = logging.getLogger("zrecog.serialization")

FORMAT = "zrecog-store"
VERSION = 1


def _encode_bitmap(bitmap: np.ndarray) -> Dict[str, Any]:
    arr = np.asarray(bitmap, dtype=np.uint8)
    bits = np.packbits(arr.reshape(-1) > 0)
    return {
        "shape": [int(dim) for dim in arr.shape],
        "bits": base64.b64encode(bits.tobytes()).decode("ascii"),
    }


def _decode_bitmap(entry: Any) -> np.ndarray:
    if not isinstance(entry, dict):
        raise ValueError("sample entry must be an object")
    shape = entry.get("shape")
    if not isinstance(shape, list) or len(shape) != 2:
        raise ValueError(f"bad sample shape {shape!r}")
    try:
        h, w = (int(v) for v in shape)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"bad sample shape {shape!r}") from exc
    if h <= 0 or w <= 0:
        raise ValueError(f"bad sample shape {shape!r}")
    try:
        raw = base64.b64decode(entry.get("bits", ""), validate=True)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"bad sample bits: {exc}") from exc
    bits = np.unpackbits(np.frombuffer(raw, dtype=np.uint8))
    if bits.size < h * w:
        raise ValueError(f"sample bits too short for shape {h}x{w}")
    return bits[: h * w].reshape(h, w).astype(np.uint8)


def store_to_payload(store: TemplateStore) -> Dict[str, Any]:
    classes = []
    for index in range(store.num_classes):
        classes.append(
            {
                "label": store.label_for(index),
                "samples": [_encode_bitmap(s.bitmap) for s in store.samples(index)],
            }
        )
    return {
        "format": FORMAT,
        "version": VERSION,
        "config": store.config.model_dump(mode="json"),
        "labels": store.labels.labels,
        "classes": classes,
        "finalized": store.finalized,
    }


def store_from_payload(payload: Dict[str, Any]) -> TemplateStore:
    if not isinstance(payload, dict) or payload.get("format") != FORMAT:
        raise ValueError("not a zrecog store payload")
    version = payload.get("version")
    if version != VERSION:
        raise ValueError(f"unsupported store version {version!r}")
    config_data = payload.get("config") or {}
    if not isinstance(config_data, dict):
        raise ValueError("store config must be an object")
    try:
        config = RecogConfig(**config_data)
    except ValidationError as exc:
        raise ValueError(f"bad store config: {exc}") from exc

    raw_labels = payload.get("labels") or []
    if not isinstance(raw_labels, list):
        raise ValueError("store labels must be a list")
    labels: List[str] = [str(v) for v in raw_labels]
    store = TemplateStore(config, labels=labels)
    if store.labels.labels != labels:
        raise ValueError("stored labels do not match the configured charset")
    classes = payload.get("classes") or []
    if not isinstance(classes, list):
        raise ValueError("store classes must be a list")
    for entry in classes:
        if not isinstance(entry, dict):
            raise ValueError(f"class entry must be an object, got {entry!r}")
        label = str(entry.get("label"))
        samples = entry.get("samples") or []
        if not isinstance(samples, list):
            raise ValueError(f"samples of class {label!r} must be a list")
        for sample in samples:
            store.add_sample(label, _decode_bitmap(sample))
    if payload.get("finalized"):
        store.build_averages()
        store.finalize_training()
    return store


def save_store(store: TemplateStore, path: Union[str, Path]) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as fw:
        json.dump(store_to_payload(store), fw, ensure_ascii=False)
    LOGGER.info("saved %r to %s", store, path)


def load_store(path: Union[str, Path]) -> TemplateStore:
    path = Path(path)
    with path.open("r", encoding="utf-8") as fr:
        try:
            payload = json.load(fr)
        except json.JSONDecodeError as exc:
            raise ValueError(f"{path}: invalid JSON: {exc}") from exc
    store = store_from_payload(payload)
    LOGGER.debug("loaded %r from %s", store, path)
    return store


class JsonStoreSerializer:
    """:class:`~zrecog.interfaces.StoreSerializer` backed by JSON files."""

    def save(self, store: TemplateStore, path: Union[str, Path]) -> None:
        save_store(store, path)

    def load(self, path: Union[str, Path]) -> TemplateStore:
        return load_store(path)


__all__ = [
    "FORMAT",
    "JsonStoreSerializer",
    "VERSION",
    "load_store",
    "save_store",
    "store_from_payload",
    "store_to_payload",
]
