# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024 zrecog contributors

"""Character sets and the class index <-> label lookup."""

from __future__ import annotations

from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional

from .errors import UnknownClass


class CharsetType(str, Enum):
    UNKNOWN = "unknown"
    ARABIC_NUMERALS = "arabic_numerals"
    LC_ROMAN_NUMERALS = "lc_roman_numerals"
    UC_ROMAN_NUMERALS = "uc_roman_numerals"
    LC_ALPHA = "lc_alpha"
    UC_ALPHA = "uc_alpha"


_ALPHABETS: Dict[CharsetType, str] = {
    CharsetType.ARABIC_NUMERALS: "0123456789",
    CharsetType.LC_ROMAN_NUMERALS: "ivxlcdm",
    CharsetType.UC_ROMAN_NUMERALS: "IVXLCDM",
    CharsetType.LC_ALPHA: "abcdefghijklmnopqrstuvwxyz",
    CharsetType.UC_ALPHA: "ABCDEFGHIJKLMNOPQRSTUVWXYZ",
}


def charset_labels(charset_type: CharsetType) -> List[str]:
    """Return the ordered labels of a fixed charset (empty for ``UNKNOWN``)."""

    return list(_ALPHABETS.get(CharsetType(charset_type), ""))


def charset_size(charset_type: CharsetType) -> int:
    return len(_ALPHABETS.get(CharsetType(charset_type), ""))


class LabelIndex:
    """Ordered labels plus the reverse lookup from label to class index.

    A fixed charset is fully populated at construction and never grows. An
    open index (``CharsetType.UNKNOWN``) assigns the next index to each new
    label until :meth:`freeze` is called. Indices are never reassigned.
    """

    def __init__(self, labels: Iterable[str] = (), *, fixed: bool = False) -> None:
        self._labels: List[str] = []
        self._lookup: Dict[str, int] = {}
        for label in labels:
            self._append(str(label))
        self._frozen = bool(fixed)

    @classmethod
    def for_charset(cls, charset_type: CharsetType) -> "LabelIndex":
        labels = charset_labels(charset_type)
        return cls(labels, fixed=bool(labels))

    def _append(self, label: str) -> int:
        if label in self._lookup:
            return self._lookup[label]
        index = len(self._labels)
        self._labels.append(label)
        self._lookup[label] = index
        return index

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        self._frozen = True

    def add(self, label: str) -> int:
        """Return the index for ``label``, assigning a new one when allowed."""

        label = str(label)
        index = self._lookup.get(label)
        if index is not None:
            return index
        if self._frozen:
            raise UnknownClass(label)
        return self._append(label)

    def index_of(self, label: str) -> int:
        try:
            return self._lookup[str(label)]
        except KeyError:
            raise UnknownClass(label) from None

    def label_of(self, index: int) -> str:
        if not 0 <= int(index) < len(self._labels):
            raise UnknownClass(index)
        return self._labels[int(index)]

    def get(self, label: str) -> Optional[int]:
        return self._lookup.get(str(label))

    @property
    def labels(self) -> List[str]:
        return list(self._labels)

    def __contains__(self, label: object) -> bool:
        return str(label) in self._lookup

    def __len__(self) -> int:
        return len(self._labels)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._labels))

    def __repr__(self) -> str:
        state = "frozen" if self._frozen else "open"
        return f"LabelIndex({self._labels!r}, {state})"


__all__ = ["CharsetType", "LabelIndex", "charset_labels", "charset_size"]
