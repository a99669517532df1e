"""Rule evaluator for testing a rule tree against one customer record."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any, Mapping, Optional, Union

from .evaluators import ConditionEvaluator, coerce, get_evaluator
from .exceptions import CoercionError, UnknownOperatorError
from .models import Combinator, Rule, RuleGroup
from .registry import FieldRegistry

logger = logging.getLogger(__name__)

# Result of a group with no children
EMPTY_AND_RESULT = True
EMPTY_OR_RESULT = False


def utc_today() -> date:
    """Current calendar date in UTC."""
    return datetime.now(timezone.utc).date()


class RuleEvaluator:
    """Evaluates rule trees against customer records.

    Evaluation is pure: the tree and the record are never modified and the
    only input besides them is the reference date used by "daysAgo".
    """

    def __init__(self, registry: FieldRegistry):
        """Initialize the evaluator.

        Args:
            registry: Field registry used to type record values
        """
        self.registry = registry

    def evaluate(
        self,
        node: Union[Rule, RuleGroup],
        record: Mapping[str, Any],
        reference_date: Optional[date] = None,
    ) -> bool:
        """Evaluate a rule or group against one record.

        Args:
            node: Rule or rule group to evaluate
            record: Mapping from field key to scalar value
            reference_date: "Today" for relative date rules (defaults to UTC today)

        Returns:
            True if the record satisfies the node

        Raises:
            UnknownFieldError: If a rule references an unregistered field
            UnknownOperatorError: If a rule's operator is invalid for its field
            InvalidValueError: If a rule's own value cannot be interpreted
            TypeError: If the record is not a mapping
        """
        if not isinstance(record, Mapping):
            raise TypeError(f"Customer record must be a mapping, got {type(record).__name__}")
        if reference_date is None:
            reference_date = utc_today()
        return self._evaluate_node(node, record, reference_date)

    def check(self, node: Union[Rule, RuleGroup]) -> None:
        """Validate every rule in a tree without evaluating a record.

        Raises the same errors evaluate() would raise for a malformed tree.
        """
        if isinstance(node, RuleGroup):
            for child in node.children:
                self.check(child)
            return
        evaluator = self._evaluator_for(node)
        if node.value != "":
            evaluator.parse_value(node.value)

    def _evaluate_node(
        self,
        node: Union[Rule, RuleGroup],
        record: Mapping[str, Any],
        reference_date: date,
    ) -> bool:
        if isinstance(node, RuleGroup):
            return self._evaluate_group(node, record, reference_date)
        return self._evaluate_rule(node, record, reference_date)

    def _evaluate_group(
        self,
        group: RuleGroup,
        record: Mapping[str, Any],
        reference_date: date,
    ) -> bool:
        if not group.children:
            return EMPTY_AND_RESULT if group.combinator == Combinator.AND else EMPTY_OR_RESULT

        results = (
            self._evaluate_node(child, record, reference_date) for child in group.children
        )
        if group.combinator == Combinator.AND:
            return all(results)
        return any(results)

    def _evaluate_rule(
        self,
        rule: Rule,
        record: Mapping[str, Any],
        reference_date: date,
    ) -> bool:
        evaluator = self._evaluator_for(rule)

        # Rules without a value are incomplete and never match
        if rule.value == "":
            return False
        expected = evaluator.parse_value(rule.value)

        raw = record.get(rule.field)
        if raw is None:
            return False

        try:
            actual = coerce(evaluator.semantic_type, raw)
        except CoercionError as e:
            logger.debug(f"Record value for {rule.field} not usable: {e}")
            return False

        return evaluator.evaluate(actual, expected, reference_date)

    def _evaluator_for(self, rule: Rule) -> ConditionEvaluator:
        semantic_type = self.registry.type_of(rule.field)
        evaluator = get_evaluator(semantic_type, rule.operator)
        if evaluator is None:
            raise UnknownOperatorError(rule.operator, rule.field)
        return evaluator
