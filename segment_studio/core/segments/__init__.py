"""Saved segments: persistence, editing and audience sizing."""

from .models import SegmentCreate, SegmentUpdate, SegmentResponse, DescribeRequest, DescribeResponse
from .repository import SegmentRepository
from .service import SegmentService

__all__ = [
    "SegmentCreate",
    "SegmentUpdate",
    "SegmentResponse",
    "DescribeRequest",
    "DescribeResponse",
    "SegmentRepository",
    "SegmentService",
]
