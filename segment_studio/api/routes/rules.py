"""Rule tree editing API routes.

Each endpoint applies one editor operation to a saved segment. A rejected
operation returns an error and leaves the stored tree unchanged.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status

from segment_studio.api.deps import get_segment_service
from segment_studio.core.rules.models import (
    CombinatorUpdate,
    GroupCreate,
    NodeMove,
    RuleCreate,
    RuleUpdate,
)
from segment_studio.core.segments.models import SegmentResponse
from segment_studio.core.segments.service import SegmentService
from segment_studio.db.models import Segment

router = APIRouter()


def _found(segment: Optional[Segment], segment_id: str) -> Segment:
    if segment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Segment {segment_id} not found",
        )
    return segment


@router.post("/{segment_id}/rules", response_model=SegmentResponse, status_code=status.HTTP_201_CREATED)
def add_rule(
    segment_id: str,
    payload: RuleCreate,
    service: SegmentService = Depends(get_segment_service),
):
    """Append a rule to a group."""
    segment = service.add_rule(
        segment_id,
        payload.parent_id,
        field=payload.field,
        operator=payload.operator,
        value=payload.value,
    )
    return _found(segment, segment_id)


@router.post("/{segment_id}/groups", response_model=SegmentResponse, status_code=status.HTTP_201_CREATED)
def add_group(
    segment_id: str,
    payload: GroupCreate,
    service: SegmentService = Depends(get_segment_service),
):
    """Append an empty nested group to a group."""
    segment = service.add_group(segment_id, payload.parent_id, payload.combinator)
    return _found(segment, segment_id)


@router.patch("/{segment_id}/rules/{rule_id}", response_model=SegmentResponse)
def update_rule(
    segment_id: str,
    rule_id: str,
    payload: RuleUpdate,
    service: SegmentService = Depends(get_segment_service),
):
    """Change a rule's field, operator and/or value."""
    segment = service.update_rule(segment_id, rule_id, **payload.changes())
    return _found(segment, segment_id)


@router.put("/{segment_id}/groups/{group_id}/combinator", response_model=SegmentResponse)
def set_combinator(
    segment_id: str,
    group_id: str,
    payload: CombinatorUpdate,
    service: SegmentService = Depends(get_segment_service),
):
    """Switch a group between AND and OR."""
    segment = service.set_combinator(segment_id, group_id, payload.combinator)
    return _found(segment, segment_id)


@router.post("/{segment_id}/nodes/{node_id}/move", response_model=SegmentResponse)
def move_node(
    segment_id: str,
    node_id: str,
    payload: NodeMove,
    service: SegmentService = Depends(get_segment_service),
):
    """Move a rule or group into a group at a position."""
    segment = service.move_node(segment_id, node_id, payload.target_group_id, payload.position)
    return _found(segment, segment_id)


@router.delete("/{segment_id}/nodes/{node_id}", response_model=SegmentResponse)
def remove_node(
    segment_id: str,
    node_id: str,
    service: SegmentService = Depends(get_segment_service),
):
    """Remove a rule or a whole group."""
    segment = service.remove_node(segment_id, node_id)
    return _found(segment, segment_id)
