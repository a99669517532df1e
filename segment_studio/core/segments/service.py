"""Segment service - ties stored segments to the rule editor and audience calculator."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Callable, Dict, List, Mapping, Optional

from sqlalchemy.orm import Session

from segment_studio.db.models import Segment
from segment_studio.core.audience.calculator import AudienceCalculator
from segment_studio.core.audience.models import AudienceResult
from segment_studio.core.customers.repository import CustomerRepository
from segment_studio.core.rules.describe import describe_segment
from segment_studio.core.rules.editor import TreeEditor, default_tree
from segment_studio.core.rules.engine import utc_today
from segment_studio.core.rules.exceptions import SegmentRuleError
from segment_studio.core.rules.models import Combinator, RuleGroup
from segment_studio.core.rules.registry import FieldRegistry
from segment_studio.core.rules.validation import load_tree
from .repository import SegmentRepository

logger = logging.getLogger(__name__)

EditOperation = Callable[[TreeEditor], RuleGroup]


class SegmentService:
    """Service for creating, editing and sizing saved segments."""

    def __init__(
        self,
        db: Session,
        registry: FieldRegistry,
        calculator: Optional[AudienceCalculator] = None,
    ):
        """Initialize the segment service.

        Args:
            db: Database session
            registry: Field registry shared by editor, validator and evaluator
            calculator: Audience calculator (defaults to one built from settings)
        """
        self.db = db
        self.registry = registry
        self.repo = SegmentRepository(db, registry)
        self.customers = CustomerRepository(db)
        self.calculator = calculator or AudienceCalculator(registry)

    def create_segment(
        self,
        name: str,
        description: Optional[str] = None,
        rules: Optional[Mapping[str, Any]] = None,
        is_ai_generated: bool = False,
    ) -> Segment:
        """Create a segment from a stored tree document, or the default tree.

        Raises:
            SegmentRuleError: If the supplied tree is invalid
        """
        tree = default_tree() if rules is None else load_tree(rules, self.registry)
        segment = self.repo.create(
            name=name,
            tree=tree,
            description=description,
            is_ai_generated=is_ai_generated,
        )
        logger.info(f"Created segment {segment.name!r} ({segment.id})")
        return segment

    def replace_rules(self, segment_id: str, rules: Mapping[str, Any]) -> Optional[Segment]:
        """Replace a segment's whole tree with a validated document."""
        tree = load_tree(rules, self.registry)
        return self.repo.update(segment_id, tree=tree)

    def load_tree(self, segment: Segment) -> RuleGroup:
        """Get the validated rule tree of a stored segment."""
        return self.repo.load_tree(segment)

    def edit(self, segment_id: str, operation: EditOperation) -> Optional[Segment]:
        """Apply one editor operation to a stored segment and save the result.

        Args:
            segment_id: Segment ID
            operation: Callable receiving a TreeEditor and returning the new tree

        Returns:
            Updated segment, or None if the segment does not exist

        Raises:
            SegmentRuleError: If the operation is rejected (nothing is saved)
        """
        segment = self.repo.get_by_id(segment_id)
        if not segment:
            return None

        current = self.repo.load_tree(segment)
        editor = TreeEditor(self.registry, current)
        updated = operation(editor)

        if updated == current:
            return segment
        return self.repo.update(segment_id, tree=updated)

    def add_rule(
        self,
        segment_id: str,
        parent_id: str,
        field: Optional[str] = None,
        operator: Optional[str] = None,
        value: Optional[str] = None,
    ) -> Optional[Segment]:
        return self.edit(segment_id, lambda editor: editor.add_rule(parent_id, field, operator, value))

    def add_group(
        self,
        segment_id: str,
        parent_id: str,
        combinator: Combinator = Combinator.AND,
    ) -> Optional[Segment]:
        return self.edit(segment_id, lambda editor: editor.add_group(parent_id, combinator))

    def remove_node(self, segment_id: str, node_id: str) -> Optional[Segment]:
        return self.edit(segment_id, lambda editor: editor.remove_node(node_id))

    def update_rule(
        self,
        segment_id: str,
        node_id: str,
        field: Optional[str] = None,
        operator: Optional[str] = None,
        value: Optional[str] = None,
    ) -> Optional[Segment]:
        return self.edit(segment_id, lambda editor: editor.update_rule(node_id, field, operator, value))

    def set_combinator(self, segment_id: str, group_id: str, combinator: Combinator) -> Optional[Segment]:
        return self.edit(segment_id, lambda editor: editor.set_combinator(group_id, combinator))

    def move_node(
        self,
        segment_id: str,
        node_id: str,
        target_group_id: str,
        position: Optional[int] = None,
    ) -> Optional[Segment]:
        return self.edit(segment_id, lambda editor: editor.move_node(node_id, target_group_id, position))

    def preview(self, tree: RuleGroup, reference_date: Optional[date] = None) -> AudienceResult:
        """Size an unsaved tree against the current customer population."""
        reference_date = reference_date or utc_today()
        chunks = self.customers.iter_record_chunks(reference_date, self.calculator.chunk_size)
        return self.calculator.compute_audience_stream(tree, chunks, reference_date)

    def calculate(self, segment_id: str, reference_date: Optional[date] = None) -> Optional[AudienceResult]:
        """Recalculate and store a segment's audience size.

        Returns:
            Audience result, or None if the segment does not exist
        """
        segment = self.repo.get_by_id(segment_id)
        if not segment:
            return None

        result = self.preview(self.repo.load_tree(segment), reference_date)
        self.repo.update_audience(segment_id, result.matched_count)
        logger.info(f"Segment {segment.name!r}: audience of {result.matched_count}")
        return result

    def refresh_all(self, reference_date: Optional[date] = None) -> Dict[str, int]:
        """Recalculate every saved segment.

        A segment whose stored tree no longer validates is logged and
        skipped; the others are still refreshed.

        Returns:
            Mapping of segment name to new audience size
        """
        sizes: Dict[str, int] = {}
        segments: List[Segment] = self.repo.get_all()

        for segment in segments:
            try:
                result = self.calculate(segment.id, reference_date)
            except SegmentRuleError as e:
                logger.error(f"Could not refresh segment {segment.name!r}: {e}")
                continue
            if result is not None:
                sizes[segment.name] = result.matched_count

        return sizes

    def describe(self, segment: Segment) -> str:
        """Plain-English description of a segment's rules."""
        return describe_segment(self.repo.load_tree(segment), self.registry)
