"""Natural-language segment generation API routes."""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field
from slowapi import Limiter
from slowapi.util import get_remote_address

from segment_studio.api.deps import get_registry, get_segment_service
from segment_studio.ai.segments.generator import build_segment_from_query
from segment_studio.config import get_settings
from segment_studio.core.rules.describe import describe_segment
from segment_studio.core.rules.models import serialize_tree
from segment_studio.core.rules.registry import FieldRegistry
from segment_studio.core.segments.models import SegmentResponse
from segment_studio.core.segments.service import SegmentService

settings = get_settings()

# Rate limiter for generation endpoints (each call may hit OpenAI)
limiter = Limiter(key_func=get_remote_address)

router = APIRouter()


class GenerateSegmentRequest(BaseModel):
    query: str = Field(..., min_length=1, max_length=500)
    save_as: Optional[str] = Field(None, min_length=1, max_length=100, description="Save under this name")


class GenerateSegmentResponse(BaseModel):
    rules: Dict[str, Any]
    description: str
    generated: bool  # False when the fallback rule was used
    segment: Optional[SegmentResponse] = None


@router.post("/generate-segment", response_model=GenerateSegmentResponse, status_code=status.HTTP_200_OK)
@limiter.limit(settings.ai_rate_limit)
def generate_segment(
    request: Request,
    payload: GenerateSegmentRequest,
    registry: FieldRegistry = Depends(get_registry),
    service: SegmentService = Depends(get_segment_service),
):
    """Turn a plain-English audience description into a validated rule tree."""
    tree, generated = build_segment_from_query(payload.query, registry)
    rules = serialize_tree(tree)

    segment = None
    if payload.save_as:
        if service.repo.get_by_name(payload.save_as):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Segment named '{payload.save_as}' already exists",
            )
        saved = service.create_segment(
            name=payload.save_as,
            description=payload.query,
            rules=rules,
            is_ai_generated=generated,
        )
        segment = SegmentResponse.model_validate(saved)

    return GenerateSegmentResponse(
        rules=rules,
        description=describe_segment(tree, registry),
        generated=generated,
        segment=segment,
    )
