"""Typed errors raised by the rule registry, editor and evaluator."""

from __future__ import annotations


class SegmentRuleError(ValueError):
    """Base class for every rule-tree error."""


class RuleValidationError(SegmentRuleError):
    """A request or document failed validation. The tree is left unchanged."""


class UnknownFieldError(RuleValidationError):
    """Field key is not present in the field registry."""

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Unknown field: {field!r}")


class InvalidFieldError(UnknownFieldError):
    """An edit request named a field the registry does not know."""


class UnknownOperatorError(RuleValidationError):
    """Operator key is not valid for the field's semantic type."""

    def __init__(self, operator: str, field: str | None = None):
        self.operator = operator
        self.field = field
        if field:
            message = f"Operator {operator!r} is not valid for field {field!r}"
        else:
            message = f"Unknown operator: {operator!r}"
        super().__init__(message)


class InvalidOperatorError(UnknownOperatorError):
    """An edit request named an operator invalid for the rule's field."""


class InvalidValueError(RuleValidationError):
    """Rule value cannot be interpreted for the field's type and operator."""


class CoercionError(InvalidValueError):
    """A raw value could not be coerced to a semantic type."""


class NodeNotFoundError(RuleValidationError):
    """No node with the given id exists in the tree (or it is the root)."""

    def __init__(self, node_id: str, message: str | None = None):
        self.node_id = node_id
        super().__init__(message or f"Node {node_id!r} not found")


class NotAGroupError(RuleValidationError):
    """The addressed node is a rule where a group was required."""

    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Node {node_id!r} is a rule, not a group")


class NotARuleError(RuleValidationError):
    """The addressed node is a group where a rule was required."""

    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Node {node_id!r} is a group, not a rule")


class InvalidMoveError(RuleValidationError):
    """A move would detach the root or place a group inside itself."""


class StructuralError(SegmentRuleError):
    """A supplied tree has a cycle, duplicate ids or an unknown node shape."""


class TreeTooDeepError(RuleValidationError):
    """An edit would nest the tree deeper than the loader accepts."""

    def __init__(self, max_depth: int):
        self.max_depth = max_depth
        super().__init__(f"Tree cannot be nested deeper than {max_depth} levels")
