"""Segment API routes."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from segment_studio.api.deps import get_segment_service
from segment_studio.core.audience.models import AudienceRequest, AudienceResponse, AudienceResult
from segment_studio.core.rules.describe import describe_segment
from segment_studio.core.rules.validation import load_tree
from segment_studio.core.segments.models import (
    DescribeRequest,
    DescribeResponse,
    SegmentCreate,
    SegmentResponse,
    SegmentUpdate,
)
from segment_studio.core.segments.service import SegmentService

router = APIRouter()


def _audience_response(result: AudienceResult, description: str, include_ids: bool) -> AudienceResponse:
    return AudienceResponse(
        matched_count=result.matched_count,
        evaluated_count=result.evaluated_count,
        unevaluable_count=result.unevaluable_count,
        match_rate=result.match_rate,
        matched_ids=result.matched_ids if include_ids else None,
        description=description,
    )


def _not_found(segment_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Segment {segment_id} not found",
    )


@router.get("/", response_model=List[SegmentResponse])
def list_segments(service: SegmentService = Depends(get_segment_service)):
    """List all saved segments."""
    return service.repo.get_all()


@router.post("/", response_model=SegmentResponse, status_code=status.HTTP_201_CREATED)
def add_segment(payload: SegmentCreate, service: SegmentService = Depends(get_segment_service)):
    """Create a segment. Without rules it starts from the default tree."""
    if service.repo.get_by_name(payload.name):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Segment named '{payload.name}' already exists",
        )

    return service.create_segment(
        name=payload.name,
        description=payload.description,
        rules=payload.rules,
    )


@router.post("/calculate", response_model=AudienceResponse)
def preview_audience(payload: AudienceRequest, service: SegmentService = Depends(get_segment_service)):
    """Size an unsaved rule tree against the current customers."""
    tree = load_tree(payload.rules, service.registry)
    result = service.preview(tree)
    return _audience_response(result, describe_segment(tree, service.registry), payload.include_ids)


@router.post("/describe", response_model=DescribeResponse)
def describe_rules(payload: DescribeRequest, service: SegmentService = Depends(get_segment_service)):
    """Render an unsaved rule tree as plain English."""
    tree = load_tree(payload.rules, service.registry)
    return DescribeResponse(description=describe_segment(tree, service.registry))


@router.get("/{segment_id}", response_model=SegmentResponse)
def get_segment(segment_id: str, service: SegmentService = Depends(get_segment_service)):
    """Get a specific segment by ID."""
    segment = service.repo.get_by_id(segment_id)
    if not segment:
        raise _not_found(segment_id)
    return segment


@router.patch("/{segment_id}", response_model=SegmentResponse)
def update_segment(
    segment_id: str,
    payload: SegmentUpdate,
    service: SegmentService = Depends(get_segment_service),
):
    """Rename a segment, change its description or replace its whole tree."""
    segment = service.repo.get_by_id(segment_id)
    if not segment:
        raise _not_found(segment_id)

    if payload.name and payload.name != segment.name and service.repo.get_by_name(payload.name):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Segment named '{payload.name}' already exists",
        )

    if payload.rules is not None:
        service.replace_rules(segment_id, payload.rules)

    return service.repo.update(segment_id, name=payload.name, description=payload.description)


@router.delete("/{segment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_segment(segment_id: str, service: SegmentService = Depends(get_segment_service)):
    """Delete a segment by ID."""
    if not service.repo.delete(segment_id):
        raise _not_found(segment_id)


@router.post("/{segment_id}/calculate", response_model=AudienceResponse)
def calculate_segment(
    segment_id: str,
    include_ids: bool = False,
    service: SegmentService = Depends(get_segment_service),
):
    """Recalculate and store a saved segment's audience size."""
    result = service.calculate(segment_id)
    if result is None:
        raise _not_found(segment_id)

    segment = service.repo.get_by_id(segment_id)
    return _audience_response(result, service.describe(segment), include_ids)
