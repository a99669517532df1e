"""Audience sizing over customer populations."""

from .models import AudienceResult, AudienceRequest, AudienceResponse
from .calculator import AudienceCalculator, chunked

__all__ = [
    "AudienceResult",
    "AudienceRequest",
    "AudienceResponse",
    "AudienceCalculator",
    "chunked",
]
