"""Render rule trees as plain-English audience descriptions."""

from __future__ import annotations

from typing import Union

from .evaluators import get_evaluator
from .models import Combinator, Rule, RuleGroup
from .registry import FieldRegistry

EMPTY_AND_TEXT = "all customers"
EMPTY_OR_TEXT = "no customers"


def describe_rule(rule: Rule, registry: FieldRegistry) -> str:
    """Describe one rule, e.g. 'Total Spend is greater than 10000'."""
    label = registry.label_for(rule.field)
    if rule.value == "":
        return f"{label} {rule.operator} (no value)"

    evaluator = None
    if rule.field in registry:
        evaluator = get_evaluator(registry.type_of(rule.field), rule.operator)
    if evaluator is None:
        return f"{label} {rule.operator} {rule.value}"
    return f"{label} {evaluator.format_phrase(rule.value)}"


def describe_tree(node: Union[Rule, RuleGroup], registry: FieldRegistry) -> str:
    """Describe a whole tree; nested groups with several conditions are parenthesised."""
    if isinstance(node, Rule):
        return describe_rule(node, registry)

    if not node.children:
        return EMPTY_AND_TEXT if node.combinator == Combinator.AND else EMPTY_OR_TEXT

    parts = []
    for child in node.children:
        text = describe_tree(child, registry)
        if isinstance(child, RuleGroup) and len(child.children) > 1:
            text = f"({text})"
        parts.append(text)

    joiner = " and " if node.combinator == Combinator.AND else " or "
    return joiner.join(parts)


def describe_segment(tree: RuleGroup, registry: FieldRegistry) -> str:
    """Full sentence used for segment descriptions."""
    if not tree.children:
        return f"Matches {describe_tree(tree, registry)}."
    return f"Customers where {describe_tree(tree, registry)}."
