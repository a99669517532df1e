"""Segment repository for CRUD operations."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from segment_studio.db.models import Segment
from segment_studio.core.rules.models import RuleGroup, serialize_tree
from segment_studio.core.rules.registry import FieldRegistry
from segment_studio.core.rules.validation import load_tree


def _utcnow() -> datetime:
    """Get current UTC time as naive datetime for database compatibility."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SegmentRepository:
    """Repository for Segment CRUD operations.

    Rule trees are stored as serialized documents and validated against the
    registry whenever they are read back.
    """

    def __init__(self, db: Session, registry: FieldRegistry):
        """Initialize repository with database session and field registry."""
        self.db = db
        self.registry = registry

    def get_all(self) -> List[Segment]:
        """Get all segments, most recently updated first."""
        return self.db.query(Segment).order_by(Segment.updated_at.desc()).all()

    def get_by_id(self, segment_id: str) -> Optional[Segment]:
        """Get a segment by ID."""
        return self.db.query(Segment).filter_by(id=segment_id).first()

    def get_by_name(self, name: str) -> Optional[Segment]:
        """Get a segment by name."""
        return self.db.query(Segment).filter_by(name=name).first()

    def load_tree(self, segment: Segment) -> RuleGroup:
        """Parse and validate a segment's stored rule tree."""
        return load_tree(segment.rules, self.registry)

    def create(
        self,
        name: str,
        tree: RuleGroup,
        description: Optional[str] = None,
        is_ai_generated: bool = False,
    ) -> Segment:
        """Create a new segment.

        Args:
            name: Unique segment name
            tree: Validated rule tree
            description: Optional description
            is_ai_generated: Whether the rules came from a language model

        Returns:
            Created segment
        """
        segment = Segment(
            name=name,
            description=description,
            rules=serialize_tree(tree),
            is_ai_generated=is_ai_generated,
        )
        self.db.add(segment)
        self.db.flush()
        return segment

    def update(
        self,
        segment_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
        tree: Optional[RuleGroup] = None,
    ) -> Optional[Segment]:
        """Update a segment.

        Changing the tree clears the stored audience size; it is only
        recalculated on request.

        Returns:
            Updated segment or None if not found
        """
        segment = self.get_by_id(segment_id)
        if not segment:
            return None

        if name is not None:
            segment.name = name
        if description is not None:
            segment.description = description
        if tree is not None:
            segment.rules = serialize_tree(tree)
            segment.audience_size = None
            segment.last_calculated_at = None
        segment.updated_at = _utcnow()

        self.db.flush()
        return segment

    def update_audience(self, segment_id: str, audience_size: int) -> None:
        """Store the latest audience size for a segment."""
        segment = self.get_by_id(segment_id)
        if segment:
            segment.audience_size = audience_size
            segment.last_calculated_at = _utcnow()
            self.db.flush()

    def delete(self, segment_id: str) -> bool:
        """Delete a segment.

        Returns:
            True if deleted, False if not found
        """
        segment = self.get_by_id(segment_id)
        if not segment:
            return False

        self.db.delete(segment)
        self.db.flush()
        return True
