"""Tree editor: id-addressed mutations over a segment rule tree."""

from __future__ import annotations

import logging
import uuid
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union

from .evaluators import validate_value
from .exceptions import (
    InvalidFieldError,
    InvalidMoveError,
    InvalidOperatorError,
    InvalidValueError,
    NodeNotFoundError,
    NotAGroupError,
    NotARuleError,
    TreeTooDeepError,
)
from .models import Combinator, Rule, RuleGroup
from .registry import FieldRegistry

logger = logging.getLogger(__name__)

ROOT_ID = "root"

# Levels counted from the root group (1) down to the deepest rule or group
MAX_TREE_DEPTH = 32

# Rule appended by "Add Condition" when the caller gives no details
NEW_RULE_DEFAULTS: Tuple[str, str, str] = ("totalSpend", "greaterThan", "1000")

# Conditions a brand-new segment starts with
DEFAULT_SEED_RULES: List[Tuple[str, str, str]] = [
    ("totalSpend", "greaterThan", "10000"),
    ("visits", "lessThan", "3"),
]

NodeIndex = Dict[str, Tuple[Union[Rule, RuleGroup], Optional[RuleGroup]]]


class IdAllocator:
    """Hands out node ids that are never reused within a session."""

    def __init__(self, reserved: Iterable[str] = ()):
        self._issued: Set[str] = set(reserved)

    def reserve(self, ids: Iterable[str]) -> None:
        """Mark ids as taken (e.g. ids of a loaded tree)."""
        self._issued.update(ids)

    def new_id(self) -> str:
        while True:
            candidate = uuid.uuid4().hex[:12]
            if candidate not in self._issued:
                self._issued.add(candidate)
                return candidate


def default_tree(
    allocator: Optional[IdAllocator] = None,
    seed: Optional[List[Tuple[str, str, str]]] = None,
) -> RuleGroup:
    """Create the starting tree for a new segment: root AND group plus seed rules.

    Args:
        allocator: Id allocator (a fresh one if omitted)
        seed: (field, operator, value) triples; defaults to DEFAULT_SEED_RULES,
            pass [] for an empty root

    Returns:
        New rule tree
    """
    allocator = allocator or IdAllocator()
    allocator.reserve([ROOT_ID])
    rules = DEFAULT_SEED_RULES if seed is None else seed
    return RuleGroup(
        id=ROOT_ID,
        combinator=Combinator.AND,
        children=[
            Rule(id=allocator.new_id(), field=field, operator=operator, value=value)
            for field, operator, value in rules
        ],
    )


def index_tree(tree: RuleGroup) -> NodeIndex:
    """Map every node id to (node, parent)."""
    return {node.id: (node, parent) for node, parent in tree.walk()}


class TreeEditor:
    """Copy-on-write editor for one segment's rule tree.

    Every operation validates the request against the current tree, applies
    it to a deep copy and makes the copy current. A tree returned by the
    editor is never mutated afterwards, so it can be handed to the audience
    calculator as a snapshot. Failed operations leave the current tree as is.
    """

    def __init__(
        self,
        registry: FieldRegistry,
        tree: Optional[RuleGroup] = None,
        allocator: Optional[IdAllocator] = None,
    ):
        """Initialize the editor.

        Args:
            registry: Field registry used to validate fields and operators
            tree: Already-validated tree to edit (defaults to the seed tree)
            allocator: Id allocator shared by the editing session
        """
        self.registry = registry
        self.allocator = allocator or IdAllocator()
        if tree is None:
            tree = default_tree(self.allocator)
        self._tree = tree.model_copy(deep=True)
        self.allocator.reserve(self._tree.node_ids())

    @property
    def tree(self) -> RuleGroup:
        """Current tree. Treat as read-only."""
        return self._tree

    def snapshot(self) -> RuleGroup:
        """Independent deep copy of the current tree."""
        return self._tree.model_copy(deep=True)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def add_rule(
        self,
        parent_id: str,
        field: Optional[str] = None,
        operator: Optional[str] = None,
        value: Optional[str] = None,
    ) -> RuleGroup:
        """Append a new rule as the last child of a group.

        Omitted details fall back to NEW_RULE_DEFAULTS when no field is
        given, otherwise to the field's default operator and an empty value.

        Raises:
            NodeNotFoundError: If the parent id is absent
            NotAGroupError: If the parent id resolves to a rule
            InvalidFieldError: If the field is not registered
            InvalidOperatorError: If the operator is invalid for the field
            InvalidValueError: If the value cannot be interpreted
            TreeTooDeepError: If the parent already sits at the depth limit
        """
        index = index_tree(self._tree)
        self._require_group(index, parent_id)
        self._require_room(index, parent_id, 1)

        if field is None:
            field, default_operator, default_value = NEW_RULE_DEFAULTS
            operator = operator or default_operator
            value = default_value if value is None else value

        self._require_field(field)
        if operator is None:
            operator = self.registry.default_operator(field)
        self._require_operator(field, operator)
        value = "" if value is None else value
        validate_value(self.registry.type_of(field), operator, value)

        rule = Rule(id=self.allocator.new_id(), field=field, operator=operator, value=value)

        def apply(index: NodeIndex) -> None:
            parent, _ = index[parent_id]
            parent.children.append(rule)

        logger.debug(f"Adding rule {rule.id} ({field} {operator} {value!r}) to {parent_id}")
        return self._commit(apply)

    def add_group(self, parent_id: str, combinator: Union[Combinator, str] = Combinator.AND) -> RuleGroup:
        """Append a new empty group as the last child of a group."""
        index = index_tree(self._tree)
        self._require_group(index, parent_id)
        self._require_room(index, parent_id, 1)
        group = RuleGroup(id=self.allocator.new_id(), combinator=_to_combinator(combinator))

        def apply(index: NodeIndex) -> None:
            parent, _ = index[parent_id]
            parent.children.append(group)

        logger.debug(f"Adding {group.combinator.value} group {group.id} to {parent_id}")
        return self._commit(apply)

    def remove_node(self, node_id: str) -> RuleGroup:
        """Remove a rule or a whole group subtree.

        Raises:
            NodeNotFoundError: If the id is absent or names the root
        """
        if node_id == self._tree.id:
            raise NodeNotFoundError(node_id, "The root group cannot be removed")
        self._require_node(index_tree(self._tree), node_id)

        def apply(index: NodeIndex) -> None:
            node, parent = index[node_id]
            parent.children = [child for child in parent.children if child.id != node_id]

        logger.debug(f"Removing node {node_id}")
        return self._commit(apply)

    def update_rule(
        self,
        node_id: str,
        field: Optional[str] = None,
        operator: Optional[str] = None,
        value: Optional[str] = None,
    ) -> RuleGroup:
        """Merge field/operator/value changes into a rule as one atomic update.

        If the operator is not supplied and the current one is invalid for
        the (new) field, it resets to the field's first operator. If the value
        is not supplied and the current one no longer parses, it resets to "".

        Raises:
            NodeNotFoundError: If the id is absent
            NotARuleError: If the id resolves to a group
            InvalidFieldError / InvalidOperatorError / InvalidValueError
        """
        node = self._require_node(index_tree(self._tree), node_id)
        if isinstance(node, RuleGroup):
            raise NotARuleError(node_id)

        new_field = node.field if field is None else field
        self._require_field(new_field)

        if operator is not None:
            self._require_operator(new_field, operator)
            new_operator = operator
        elif self.registry.is_valid_operator(new_field, node.operator):
            new_operator = node.operator
        else:
            new_operator = self.registry.default_operator(new_field)

        semantic_type = self.registry.type_of(new_field)
        if value is not None:
            validate_value(semantic_type, new_operator, value)
            new_value = value
        else:
            try:
                validate_value(semantic_type, new_operator, node.value)
                new_value = node.value
            except InvalidValueError:
                new_value = ""

        if (new_field, new_operator, new_value) == (node.field, node.operator, node.value):
            return self._tree

        def apply(index: NodeIndex) -> None:
            rule, parent = index[node_id]
            replacement = Rule(id=node_id, field=new_field, operator=new_operator, value=new_value)
            parent.children = [replacement if child.id == node_id else child for child in parent.children]

        logger.debug(f"Updating rule {node_id} -> {new_field} {new_operator} {new_value!r}")
        return self._commit(apply)

    def set_combinator(self, group_id: str, combinator: Union[Combinator, str]) -> RuleGroup:
        """Change AND/OR on one group (children keep their own combinators)."""
        self._require_group(index_tree(self._tree), group_id)
        new_combinator = _to_combinator(combinator)

        def apply(index: NodeIndex) -> None:
            group, _ = index[group_id]
            group.combinator = new_combinator

        return self._commit(apply)

    def move_node(self, node_id: str, target_group_id: str, position: Optional[int] = None) -> RuleGroup:
        """Move a rule or group subtree into a group at a position.

        Args:
            node_id: Node to move
            target_group_id: Destination group
            position: Index among the destination's children after the node
                is detached; None appends

        Raises:
            InvalidMoveError: If moving the root, into the node's own subtree,
                or to a negative position
            TreeTooDeepError: If the subtree would end up past the depth limit
        """
        index = index_tree(self._tree)
        if node_id == self._tree.id:
            raise InvalidMoveError("The root group cannot be moved")
        node = self._require_node(index, node_id)
        self._require_group(index, target_group_id)
        if position is not None and position < 0:
            raise InvalidMoveError(f"Position must be non-negative, got {position}")

        if isinstance(node, RuleGroup) and target_group_id in node.node_ids():
            raise InvalidMoveError(f"Group {node_id} cannot be moved into its own subtree")
        self._require_room(index, target_group_id, _height(node))

        def apply(working: NodeIndex) -> None:
            moving, parent = working[node_id]
            target, _ = working[target_group_id]
            parent.children = [child for child in parent.children if child.id != node_id]
            children = list(target.children)
            if position is None:
                children.append(moving)
            else:
                children.insert(position, moving)
            target.children = children

        logger.debug(f"Moving node {node_id} to {target_group_id} at {position}")
        return self._commit(apply)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _commit(self, apply) -> RuleGroup:
        working = self._tree.model_copy(deep=True)
        apply(index_tree(working))
        self._tree = working
        return working

    def _require_node(self, index: NodeIndex, node_id: str) -> Union[Rule, RuleGroup]:
        entry = index.get(node_id)
        if entry is None:
            raise NodeNotFoundError(node_id)
        return entry[0]

    def _require_group(self, index: NodeIndex, node_id: str) -> RuleGroup:
        node = self._require_node(index, node_id)
        if not isinstance(node, RuleGroup):
            raise NotAGroupError(node_id)
        return node

    def _require_field(self, field: str) -> None:
        if field not in self.registry:
            raise InvalidFieldError(field)

    def _require_operator(self, field: str, operator: str) -> None:
        if not self.registry.is_valid_operator(field, operator):
            raise InvalidOperatorError(operator, field)

    def _require_room(self, index: NodeIndex, parent_id: str, height: int) -> None:
        """Reject placing a subtree `height` levels tall under `parent_id` past MAX_TREE_DEPTH."""
        depth = 1
        _, parent = index[parent_id]
        while parent is not None:
            depth += 1
            _, parent = index[parent.id]
        if depth + height > MAX_TREE_DEPTH:
            raise TreeTooDeepError(MAX_TREE_DEPTH)


def _to_combinator(combinator: Union[Combinator, str]) -> Combinator:
    if isinstance(combinator, Combinator):
        return combinator
    try:
        return Combinator(str(combinator).upper())
    except ValueError:
        raise InvalidValueError(f"Combinator must be AND or OR, got {combinator!r}") from None


def _height(node: Union[Rule, RuleGroup]) -> int:
    """Levels a node occupies, counting itself and its deepest descendant."""
    if isinstance(node, Rule):
        return 1
    return 1 + max((_height(child) for child in node.children), default=0)
