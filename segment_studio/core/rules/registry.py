"""Field type registry: field key -> semantic type -> valid operators."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .exceptions import UnknownFieldError


class SemanticType(str, Enum):
    """How a field's raw values are interpreted."""

    STRING = "string"
    NUMBER = "number"
    DATE = "date"


class Operator(str, Enum):
    """Supported rule operators."""

    # String operators
    EQUALS = "equals"
    CONTAINS = "contains"
    STARTS_WITH = "startsWith"
    ENDS_WITH = "endsWith"

    # Number operators (equals is shared)
    GREATER_THAN = "greaterThan"
    LESS_THAN = "lessThan"
    BETWEEN = "between"

    # Date operators (between is shared)
    BEFORE = "before"
    AFTER = "after"
    DAYS_AGO = "daysAgo"

    @property
    def label(self) -> str:
        """Display label used by editor surfaces."""
        labels = {
            Operator.EQUALS: "Equals",
            Operator.CONTAINS: "Contains",
            Operator.STARTS_WITH: "Starts With",
            Operator.ENDS_WITH: "Ends With",
            Operator.GREATER_THAN: "Greater Than",
            Operator.LESS_THAN: "Less Than",
            Operator.BETWEEN: "Between",
            Operator.BEFORE: "Before",
            Operator.AFTER: "After",
            Operator.DAYS_AGO: "Days Ago",
        }
        return labels[self]


# Ordered: the first entry is the default when a rule switches to the type.
OPERATORS_BY_TYPE: Dict[SemanticType, Tuple[Operator, ...]] = {
    SemanticType.STRING: (
        Operator.EQUALS,
        Operator.CONTAINS,
        Operator.STARTS_WITH,
        Operator.ENDS_WITH,
    ),
    SemanticType.NUMBER: (
        Operator.EQUALS,
        Operator.GREATER_THAN,
        Operator.LESS_THAN,
        Operator.BETWEEN,
    ),
    SemanticType.DATE: (
        Operator.BEFORE,
        Operator.AFTER,
        Operator.BETWEEN,
        Operator.DAYS_AGO,
    ),
}


@dataclass(frozen=True)
class FieldDescriptor:
    """Registry entry for one customer attribute."""

    key: str
    label: str
    semantic_type: SemanticType

    @property
    def operators(self) -> Tuple[str, ...]:
        return tuple(op.value for op in OPERATORS_BY_TYPE[self.semantic_type])


# Customer attributes exposed to the rule builder
DEFAULT_FIELDS: List[FieldDescriptor] = [
    FieldDescriptor("customerName", "Customer Name", SemanticType.STRING),
    FieldDescriptor("email", "Email", SemanticType.STRING),
    FieldDescriptor("totalSpend", "Total Spend", SemanticType.NUMBER),
    FieldDescriptor("lastPurchaseDate", "Last Purchase Date", SemanticType.DATE),
    FieldDescriptor("visits", "Visits", SemanticType.NUMBER),
    FieldDescriptor("daysInactive", "Days Inactive", SemanticType.NUMBER),
]


class FieldRegistry:
    """Immutable lookup of field descriptors.

    Registries are plain objects passed to the editor, evaluator and
    calculator, so independent registries can coexist in one process.
    """

    def __init__(self, fields: Iterable[FieldDescriptor]):
        self._fields: Dict[str, FieldDescriptor] = {}
        for descriptor in fields:
            if descriptor.key in self._fields:
                raise ValueError(f"Duplicate field key: {descriptor.key}")
            self._fields[descriptor.key] = descriptor

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Mapping[str, str]]) -> "FieldRegistry":
        """Build a registry from configuration data.

        Example:
            {"totalSpend": {"type": "number", "label": "Total Spend"}}
        """
        return cls(
            FieldDescriptor(
                key=key,
                label=entry.get("label", key),
                semantic_type=SemanticType(entry["type"]),
            )
            for key, entry in mapping.items()
        )

    def __contains__(self, field: object) -> bool:
        return field in self._fields

    def __iter__(self):
        return iter(self._fields.values())

    def __len__(self) -> int:
        return len(self._fields)

    def descriptor(self, field: str) -> FieldDescriptor:
        try:
            return self._fields[field]
        except (KeyError, TypeError):
            raise UnknownFieldError(field) from None

    def type_of(self, field: str) -> SemanticType:
        """Semantic type of a field; raises UnknownFieldError if absent."""
        return self.descriptor(field).semantic_type

    def operators_for(self, field: str) -> Tuple[str, ...]:
        """Ordered operator keys valid for a field; raises UnknownFieldError if absent."""
        return self.descriptor(field).operators

    def default_operator(self, field: str) -> str:
        """First valid operator for the field's type."""
        return self.operators_for(field)[0]

    def is_valid_operator(self, field: str, operator: str) -> bool:
        return operator in self.operators_for(field)

    def label_for(self, field: str) -> str:
        descriptor = self._fields.get(field)
        return descriptor.label if descriptor else field

    def keys(self) -> List[str]:
        return list(self._fields.keys())


def default_registry(extra_fields: Optional[Iterable[FieldDescriptor]] = None) -> FieldRegistry:
    """Build a fresh registry with the standard customer fields."""
    fields = list(DEFAULT_FIELDS)
    if extra_fields:
        fields.extend(extra_fields)
    return FieldRegistry(fields)
