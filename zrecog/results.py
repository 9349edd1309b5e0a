# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024 zrecog contributors

"""Result containers for single and sequence identification.

These are plain data carriers: the matcher fills :class:`MatchResult`, the
line decoder and the batch identifier fill :class:`MatchSequence`.
"""
from __future__ import annotations

from typing import Iterator, List, Optional

from pydantic import BaseModel, Field


class MatchResult(BaseModel):
    """Best template for one character."""

    index: int = Field(..., ge=0)
    score: float = Field(..., ge=0.0, le=1.0)
    text: str
    sample: int = Field(-1, ge=-1)
    xloc: int = 0
    yloc: int = 0
    width: int = Field(0, ge=0)


class MatchSequence(BaseModel):
    """Best templates for a left-to-right run of characters."""

    indices: List[int] = Field(default_factory=list)
    scores: List[float] = Field(default_factory=list)
    texts: List[str] = Field(default_factory=list)
    samples: List[int] = Field(default_factory=list)
    xlocs: List[int] = Field(default_factory=list)
    ylocs: List[int] = Field(default_factory=list)
    widths: List[int] = Field(default_factory=list)
    combined_score: Optional[float] = Field(None, ge=0.0, le=1.0)

    @classmethod
    def from_results(cls, results: List[MatchResult], combined_score: Optional[float] = None) -> "MatchSequence":
        seq = cls(combined_score=combined_score)
        for result in results:
            seq.append(result)
        return seq

    def append(self, result: MatchResult) -> None:
        self.indices.append(result.index)
        self.scores.append(result.score)
        self.texts.append(result.text)
        self.samples.append(result.sample)
        self.xlocs.append(result.xloc)
        self.ylocs.append(result.yloc)
        self.widths.append(result.width)

    @property
    def text(self) -> str:
        return "".join(self.texts)

    def __len__(self) -> int:
        return len(self.indices)

    def __getitem__(self, i: int) -> MatchResult:
        return MatchResult(
            index=self.indices[i],
            score=self.scores[i],
            text=self.texts[i],
            sample=self.samples[i],
            xloc=self.xlocs[i],
            yloc=self.ylocs[i],
            width=self.widths[i],
        )

    def results(self) -> Iterator[MatchResult]:
        for i in range(len(self)):
            yield self[i]


__all__ = ["MatchResult", "MatchSequence"]
