"""Validation of rule trees that come from outside the editor."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Mapping, Optional, Set, Union

from .editor import MAX_TREE_DEPTH, NEW_RULE_DEFAULTS, ROOT_ID, IdAllocator, default_tree
from .evaluators import validate_value
from .exceptions import InvalidValueError, StructuralError, UnknownOperatorError
from .models import Combinator, Rule, RuleGroup
from .registry import FieldRegistry

logger = logging.getLogger(__name__)


def validate_tree(tree: RuleGroup, registry: FieldRegistry) -> None:
    """Check a tree's structure and every rule against the registry.

    Raises:
        StructuralError: Cycle, duplicate id, excessive depth or unknown node
        UnknownFieldError / UnknownOperatorError / InvalidValueError
    """
    if not isinstance(tree, RuleGroup):
        raise StructuralError("Top-level node must be a rule group")

    seen_ids: Set[str] = set()
    active: Set[int] = set()

    def visit(node: Any, depth: int) -> None:
        if depth > MAX_TREE_DEPTH:
            raise StructuralError(f"Tree is nested deeper than {MAX_TREE_DEPTH} levels")
        if not isinstance(node, (Rule, RuleGroup)):
            raise StructuralError(f"Unknown node type: {type(node).__name__}")
        if isinstance(node, RuleGroup) and id(node) in active:
            raise StructuralError(f"Group {node.id!r} contains itself")
        if node.id in seen_ids:
            raise StructuralError(f"Duplicate node id: {node.id!r}")
        seen_ids.add(node.id)

        if isinstance(node, Rule):
            check_rule(node, registry)
            return

        active.add(id(node))
        for child in node.children:
            visit(child, depth + 1)
        active.discard(id(node))

    visit(tree, 1)


def check_rule(rule: Rule, registry: FieldRegistry) -> None:
    """Validate one rule's field, operator and value."""
    semantic_type = registry.type_of(rule.field)
    if not registry.is_valid_operator(rule.field, rule.operator):
        raise UnknownOperatorError(rule.operator, rule.field)
    validate_value(semantic_type, rule.operator, rule.value)


def load_tree(document: Union[Mapping[str, Any], str, bytes], registry: FieldRegistry) -> RuleGroup:
    """Load a stored tree document, keeping its ids.

    Nothing is repaired: missing or duplicate ids, unknown shapes and
    invalid rules reject the whole document.
    """

    def keep_id(raw_id: Any, is_root: bool) -> str:
        if not isinstance(raw_id, str) or not raw_id:
            raise StructuralError(f"Node id must be a non-empty string, got {raw_id!r}")
        return raw_id

    tree = _build_tree(_parse_json(document), keep_id)
    validate_tree(tree, registry)
    return tree


def accept_external_tree(
    document: Union[Mapping[str, Any], str, bytes],
    registry: FieldRegistry,
    allocator: Optional[IdAllocator] = None,
) -> RuleGroup:
    """Accept a candidate tree from an untrusted producer (e.g. a language model).

    Ids supplied by the producer are discarded and every node gets a fresh
    id from the allocator. Leaf nodes may omit "type"; "rules" is accepted
    for "children"; numeric values and two-element lists ("between") are
    converted to text. An empty tree becomes the single default rule.

    Raises:
        StructuralError / UnknownFieldError / UnknownOperatorError / InvalidValueError
    """
    allocator = allocator or IdAllocator()
    allocator.reserve([ROOT_ID])

    def fresh_id(raw_id: Any, is_root: bool) -> str:
        return ROOT_ID if is_root else allocator.new_id()

    tree = _build_tree(_parse_json(document), fresh_id)
    if not tree.children:
        logger.info("External tree has no conditions, using default rule")
        tree = default_tree(allocator, seed=[NEW_RULE_DEFAULTS])
    validate_tree(tree, registry)
    return tree


def _parse_json(document: Union[Mapping[str, Any], str, bytes]) -> Any:
    if isinstance(document, (str, bytes)):
        try:
            return json.loads(document)
        except json.JSONDecodeError as e:
            raise StructuralError(f"Tree document is not valid JSON: {e}") from None
    return document


def _build_tree(raw: Any, assign_id: Callable[[Any, bool], str]) -> RuleGroup:
    active: Set[int] = set()

    def build(node: Any, depth: int) -> Union[Rule, RuleGroup]:
        if depth > MAX_TREE_DEPTH:
            raise StructuralError(f"Tree is nested deeper than {MAX_TREE_DEPTH} levels")
        if not isinstance(node, Mapping):
            raise StructuralError(f"Node must be an object, got {type(node).__name__}")

        kind = _node_kind(node)
        node_id = assign_id(node.get("id"), depth == 1)

        if kind == "rule":
            return Rule(
                id=node_id,
                field=_text(node.get("field"), "field"),
                operator=_text(node.get("operator"), "operator"),
                value=_value_text(node.get("value")),
            )

        if id(node) in active:
            raise StructuralError("Group contains itself")
        active.add(id(node))
        children_raw = node.get("children", node.get("rules", []))
        if children_raw is None:
            children_raw = []
        if not isinstance(children_raw, list):
            raise StructuralError(f"Children of group {node_id!r} must be a list")
        children = [build(child, depth + 1) for child in children_raw]
        active.discard(id(node))

        return RuleGroup(
            id=node_id,
            combinator=_combinator(node.get("combinator")),
            children=children,
        )

    tree = build(raw, 1)
    if not isinstance(tree, RuleGroup):
        raise StructuralError("Top-level node must be a rule group")
    return tree


def _node_kind(node: Mapping[str, Any]) -> str:
    declared = node.get("type")
    if declared in ("group", "rule"):
        return declared
    if declared is not None:
        raise StructuralError(f"Unknown node type: {declared!r}")
    if "field" in node:
        return "rule"
    if "combinator" in node or "children" in node or "rules" in node:
        return "group"
    raise StructuralError(f"Cannot tell whether node is a rule or a group: {sorted(node)}")


def _text(raw: Any, name: str) -> str:
    if not isinstance(raw, str) or not raw:
        raise StructuralError(f"Rule {name} must be a non-empty string, got {raw!r}")
    return raw


def _value_text(raw: Any) -> str:
    if raw is None:
        return ""
    if isinstance(raw, bool):
        raise InvalidValueError(f"Rule value cannot be a boolean: {raw!r}")
    if isinstance(raw, str):
        return raw
    if isinstance(raw, (int, float)):
        return str(raw)
    if isinstance(raw, list) and len(raw) == 2:
        return ",".join(_value_text(bound) for bound in raw)
    raise InvalidValueError(f"Unsupported rule value: {raw!r}")


def _combinator(raw: Any) -> Combinator:
    if raw is None:
        return Combinator.AND
    try:
        return Combinator(str(raw).upper())
    except ValueError:
        raise InvalidValueError(f"Combinator must be AND or OR, got {raw!r}") from None
