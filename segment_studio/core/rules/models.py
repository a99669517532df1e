"""Pydantic schemas for segment rule trees."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Dict, Iterator, List, Literal, Optional, Tuple, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class Combinator(str, Enum):
    """Boolean combinator joining a group's children."""

    AND = "AND"
    OR = "OR"

    def description(self) -> str:
        """Human-readable meaning of the combinator."""
        if self is Combinator.AND:
            return "All conditions must be true"
        return "Any condition can be true"


class Rule(BaseModel):
    """Leaf predicate: field, operator, literal value."""

    model_config = ConfigDict(validate_assignment=True, coerce_numbers_to_str=True)

    type: Literal["rule"] = "rule"
    id: str = Field(..., min_length=1)
    field: str
    operator: str
    value: str = ""  # Interpreted according to the field's semantic type


class RuleGroup(BaseModel):
    """Combinator node over an ordered list of rules and nested groups."""

    model_config = ConfigDict(validate_assignment=True, populate_by_name=True)

    type: Literal["group"] = "group"
    id: str = Field(..., min_length=1)
    combinator: Combinator = Combinator.AND
    children: List[RuleNode] = Field(
        default_factory=list,
        validation_alias=AliasChoices("children", "rules"),
    )

    def walk(self) -> Iterator[Tuple[Union[Rule, RuleGroup], Optional[RuleGroup]]]:
        """Yield (node, parent) pairs depth-first, starting with this group."""
        stack: List[Tuple[Union[Rule, RuleGroup], Optional[RuleGroup]]] = [(self, None)]
        while stack:
            node, parent = stack.pop()
            yield node, parent
            if isinstance(node, RuleGroup):
                for child in reversed(node.children):
                    stack.append((child, node))

    def node_ids(self) -> List[str]:
        return [node.id for node, _ in self.walk()]

    def leaf_rules(self) -> List[Rule]:
        return [node for node, _ in self.walk() if isinstance(node, Rule)]

    def depth(self) -> int:
        """Nesting depth (a group with only rules has depth 1)."""
        nested = [child.depth() for child in self.children if isinstance(child, RuleGroup)]
        return 1 + max(nested, default=0)


# Tagged variant: the "type" key selects the concrete node class
RuleNode = Annotated[Union[Rule, RuleGroup], Field(discriminator="type")]

RuleGroup.model_rebuild()


def serialize_tree(tree: RuleGroup) -> Dict[str, Any]:
    """Convert a tree to a JSON-compatible nested document."""
    return tree.model_dump(mode="json")


def deserialize_tree(document: Dict[str, Any]) -> RuleGroup:
    """Parse a nested document into a tree without registry validation.

    Use validation.load_tree for documents read from storage.
    """
    return RuleGroup.model_validate(document)


class RuleCreate(BaseModel):
    """Schema for adding a rule to a group."""

    parent_id: str
    field: Optional[str] = None
    operator: Optional[str] = None
    value: Optional[str] = None


class RuleUpdate(BaseModel):
    """Schema for a partial rule update."""

    field: Optional[str] = None
    operator: Optional[str] = None
    value: Optional[str] = None

    def changes(self) -> Dict[str, str]:
        return self.model_dump(exclude_none=True)


class GroupCreate(BaseModel):
    """Schema for adding a nested group."""

    parent_id: str
    combinator: Combinator = Combinator.AND


class CombinatorUpdate(BaseModel):
    """Schema for changing a group's combinator."""

    combinator: Combinator


class NodeMove(BaseModel):
    """Schema for moving a node into a group."""

    target_group_id: str
    position: Optional[int] = Field(None, ge=0, description="NULL = append as last child")
