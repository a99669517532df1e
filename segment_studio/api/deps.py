"""FastAPI dependencies."""

from __future__ import annotations

from functools import lru_cache
from typing import Generator

from fastapi import Depends
from sqlalchemy.orm import Session

from segment_studio.db.database import get_db as db_context
from segment_studio.core.rules.registry import FieldRegistry, default_registry
from segment_studio.core.segments.service import SegmentService


def get_db() -> Generator[Session, None, None]:
    """Yield a database session."""
    with db_context() as db:
        yield db


@lru_cache
def get_registry() -> FieldRegistry:
    """Field registry shared by every request."""
    return default_registry()


def get_segment_service(
    db: Session = Depends(get_db),
    registry: FieldRegistry = Depends(get_registry),
) -> SegmentService:
    """Segment service bound to the request's session."""
    return SegmentService(db, registry)
