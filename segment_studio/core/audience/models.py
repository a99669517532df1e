"""Pydantic schemas for audience calculation results."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class AudienceResult(BaseModel):
    """Customers matched by a rule tree.

    Partial results from chunks of a population can be merged in any
    grouping; merging in chunk order keeps ids in population order.
    """

    matched_count: int = 0
    matched_ids: List[str] = Field(default_factory=list)
    evaluated_count: int = 0
    unevaluable_count: int = 0  # Records whose evaluation raised
    unevaluable_ids: List[str] = Field(default_factory=list)

    def merge(self, other: "AudienceResult") -> "AudienceResult":
        """Combine two partial results (left operand first)."""
        return AudienceResult(
            matched_count=self.matched_count + other.matched_count,
            matched_ids=self.matched_ids + other.matched_ids,
            evaluated_count=self.evaluated_count + other.evaluated_count,
            unevaluable_count=self.unevaluable_count + other.unevaluable_count,
            unevaluable_ids=self.unevaluable_ids + other.unevaluable_ids,
        )

    @property
    def match_rate(self) -> Optional[float]:
        """Share of evaluated records that matched, as a percentage."""
        if not self.evaluated_count:
            return None
        return self.matched_count / self.evaluated_count * 100


class AudienceRequest(BaseModel):
    """Schema for previewing the audience of an unsaved tree."""

    rules: Dict[str, Any]
    include_ids: bool = False


class AudienceResponse(BaseModel):
    """Schema for audience preview responses."""

    matched_count: int
    evaluated_count: int
    unevaluable_count: int
    match_rate: Optional[float] = None
    matched_ids: Optional[List[str]] = None
    description: str
