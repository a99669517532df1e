"""Field registry API routes."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from segment_studio.api.deps import get_registry
from segment_studio.core.rules.registry import FieldRegistry, Operator

router = APIRouter()


class OperatorResponse(BaseModel):
    key: str
    label: str


class FieldResponse(BaseModel):
    key: str
    label: str
    type: str
    operators: List[OperatorResponse]


@router.get("/", response_model=List[FieldResponse])
def list_fields(registry: FieldRegistry = Depends(get_registry)):
    """List rule-builder fields with their valid operators, default first."""
    return [
        FieldResponse(
            key=descriptor.key,
            label=descriptor.label,
            type=descriptor.semantic_type.value,
            operators=[
                OperatorResponse(key=op, label=Operator(op).label)
                for op in descriptor.operators
            ],
        )
        for descriptor in registry
    ]
