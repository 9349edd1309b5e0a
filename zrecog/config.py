# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024 zrecog contributors

"""Recognizer configuration.

The configuration is validated once, when it is built, so that a store never
discovers a malformed setting halfway through matching. Values may be
overridden from ``ZRECOG_*`` environment variables via
:meth:`RecogConfig.from_env`.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .charset import CharsetType, charset_size
from .utils.env import env_int, env_str


class TemplateType(str, Enum):
    IMAGE = "image"
    OUTLINE = "outline"


class TemplateUse(str, Enum):
    ALL = "all"
    AVERAGE = "average"


class RecogConfig(BaseModel):
    """Geometry, matching and training parameters of a recognizer."""

    model_config = ConfigDict(frozen=True)

    scale_w: int = Field(0, ge=0)
    scale_h: int = Field(40, ge=0)
    template_type: TemplateType = TemplateType.IMAGE
    line_width: int = Field(5, ge=1, le=15)
    template_use: TemplateUse = TemplateUse.ALL
    threshold: int = Field(150, ge=1, le=255)
    max_y_shift: int = Field(1, ge=0, le=4)
    charset_type: CharsetType = CharsetType.UNKNOWN
    charset_size: int = Field(0, ge=0)

    min_samples: int = Field(1, ge=0)
    min_nopad: int = Field(0, ge=0)
    max_afterpad: int = Field(0, ge=0)
    boot_iters: int = Field(0, ge=0, le=4)

    min_split_w: int = Field(2, ge=1)
    min_split_h: int = Field(4, ge=1)
    max_split_h: int = Field(200, ge=1)

    @model_validator(mode="after")
    def _check_consistency(self) -> "RecogConfig":
        if self.template_type == TemplateType.OUTLINE and self.scale_h == 0:
            raise ValueError("outline templates require scale_h > 0 to normalize the stroke width")
        if self.max_afterpad and self.max_afterpad < self.min_nopad:
            raise ValueError("max_afterpad must be >= min_nopad")
        if self.min_split_h > self.max_split_h:
            raise ValueError("min_split_h must be <= max_split_h")
        fixed = charset_size(self.charset_type)
        if fixed and self.charset_size not in (0, fixed):
            raise ValueError(
                f"charset_size {self.charset_size} does not match {self.charset_type.value} ({fixed})"
            )
        return self

    @property
    def expected_classes(self) -> int:
        return self.charset_size or charset_size(self.charset_type)

    @classmethod
    def from_env(cls, base: Optional[Dict[str, Any]] = None, prefix: str = "ZRECOG_") -> "RecogConfig":
        """Build a config from ``base`` overlaid with environment overrides."""

        values: Dict[str, Any] = dict(base or {})
        for name in (
            "scale_w",
            "scale_h",
            "line_width",
            "threshold",
            "max_y_shift",
            "min_samples",
            "min_nopad",
            "max_afterpad",
            "boot_iters",
        ):
            raw = env_int(prefix + name.upper())
            if raw is not None:
                values[name] = raw
        for name in ("template_type", "template_use", "charset_type"):
            raw = env_str(prefix + name.upper())
            if raw is not None:
                values[name] = raw.lower()
        return cls(**values)


__all__ = ["RecogConfig", "TemplateType", "TemplateUse"]
