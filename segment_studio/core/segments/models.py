"""Pydantic schemas for saved segment operations."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class SegmentCreate(BaseModel):
    """Schema for creating a new segment."""

    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    rules: Optional[Dict[str, Any]] = Field(None, description="NULL = start from the default rule tree")


class SegmentUpdate(BaseModel):
    """Schema for updating a segment."""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    rules: Optional[Dict[str, Any]] = None


class SegmentResponse(BaseModel):
    """Schema for segment response."""

    id: str
    name: str
    description: Optional[str]
    rules: Dict[str, Any]
    audience_size: Optional[int]
    is_ai_generated: bool
    last_calculated_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class DescribeRequest(BaseModel):
    """Schema for describing an unsaved rule tree."""

    rules: Dict[str, Any]


class DescribeResponse(BaseModel):
    """Plain-English rendering of a rule tree."""

    description: str
