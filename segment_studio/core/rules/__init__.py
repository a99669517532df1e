"""Segment rule trees: registry, editor, evaluator and validation."""

from .registry import (
    SemanticType,
    Operator,
    FieldDescriptor,
    FieldRegistry,
    DEFAULT_FIELDS,
    default_registry,
)
from .models import (
    Combinator,
    Rule,
    RuleGroup,
    RuleNode,
    serialize_tree,
    deserialize_tree,
)
from .exceptions import (
    SegmentRuleError,
    RuleValidationError,
    UnknownFieldError,
    InvalidFieldError,
    UnknownOperatorError,
    InvalidOperatorError,
    InvalidValueError,
    CoercionError,
    NodeNotFoundError,
    NotAGroupError,
    NotARuleError,
    InvalidMoveError,
    TreeTooDeepError,
    StructuralError,
)
from .evaluators import EVALUATORS, get_evaluator, ConditionEvaluator
from .engine import RuleEvaluator, EMPTY_AND_RESULT, EMPTY_OR_RESULT
from .editor import TreeEditor, IdAllocator, default_tree
from .validation import validate_tree, load_tree, accept_external_tree
from .describe import describe_rule, describe_tree, describe_segment

__all__ = [
    "SemanticType",
    "Operator",
    "FieldDescriptor",
    "FieldRegistry",
    "DEFAULT_FIELDS",
    "default_registry",
    "Combinator",
    "Rule",
    "RuleGroup",
    "RuleNode",
    "serialize_tree",
    "deserialize_tree",
    "SegmentRuleError",
    "RuleValidationError",
    "UnknownFieldError",
    "InvalidFieldError",
    "UnknownOperatorError",
    "InvalidOperatorError",
    "InvalidValueError",
    "CoercionError",
    "NodeNotFoundError",
    "NotAGroupError",
    "NotARuleError",
    "InvalidMoveError",
    "TreeTooDeepError",
    "StructuralError",
    "EVALUATORS",
    "get_evaluator",
    "ConditionEvaluator",
    "RuleEvaluator",
    "EMPTY_AND_RESULT",
    "EMPTY_OR_RESULT",
    "TreeEditor",
    "IdAllocator",
    "default_tree",
    "validate_tree",
    "load_tree",
    "accept_external_tree",
    "describe_rule",
    "describe_tree",
    "describe_segment",
]
