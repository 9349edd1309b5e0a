# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024 zrecog contributors

"""Exceptions raised by the recognizer.

All of them are recoverable conditions reported to the caller; none of the
operations substitute a default result in their place.
"""

from __future__ import annotations


class RecogError(RuntimeError):
    """Base class for recognizer errors."""


class NotTraining(RecogError):
    """A finalized store was asked to accept more samples."""

    def __init__(self, message: str = "recognizer is finalized; rebuild it from its generating samples") -> None:
        super().__init__(message)


class AveragesNotBuilt(RecogError):
    """Averaged templates are missing or stale."""

    def __init__(self, message: str = "averaged templates are not built; call build_averages() first") -> None:
        super().__init__(message)


class EmptyClass(RecogError):
    """A class (or the whole store) has no samples."""

    def __init__(self, label: str | None = None) -> None:
        if label is None:
            message = "recognizer has no classes"
        else:
            message = f"class {label!r} has no samples"
        super().__init__(message)
        self.label = label


class NotFinalized(RecogError):
    """Identification was requested while the store is still training."""

    def __init__(self, message: str = "recognizer is still training; call finalize_training() first") -> None:
        super().__init__(message)


class InvalidGeometry(RecogError):
    """Input bitmap dimensions are unusable with the store configuration."""


class UnknownClass(RecogError, KeyError):
    """Lookup of a class index or label not present in the store."""

    def __init__(self, key: object) -> None:
        super().__init__(f"unknown class {key!r}")
        self.key = key

    def __str__(self) -> str:
        return str(self.args[0])


__all__ = [
    "AveragesNotBuilt",
    "EmptyClass",
    "InvalidGeometry",
    "NotFinalized",
    "NotTraining",
    "RecogError",
    "UnknownClass",
]
