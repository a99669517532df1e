"""Value coercion and condition evaluators for each field type and operator."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Optional, Tuple

from .exceptions import CoercionError, InvalidValueError
from .registry import Operator, SemanticType

# String operators ignore case ("VIP" contains "vip")
CASE_SENSITIVE_STRINGS = False

# Two-bound values are written "low,high"; both bounds are inclusive
RANGE_SEPARATOR = ","


def coerce_string(raw: Any) -> str:
    """Coerce a raw value to text."""
    if isinstance(raw, str):
        return raw
    if isinstance(raw, bool):
        raise CoercionError(f"Expected text, got boolean {raw!r}")
    if isinstance(raw, (int, float, Decimal)):
        return str(raw)
    raise CoercionError(f"Expected text, got {type(raw).__name__}")


def coerce_number(raw: Any) -> float:
    """Coerce a raw value to a finite float."""
    if isinstance(raw, bool):
        raise CoercionError(f"Expected a number, got boolean {raw!r}")
    if isinstance(raw, (int, float, Decimal)):
        try:
            number = float(raw)
        except OverflowError:
            raise CoercionError("Expected a finite number, got an integer too large for a float") from None
    elif isinstance(raw, str):
        try:
            number = float(raw.strip())
        except ValueError:
            raise CoercionError(f"Expected a number, got {raw!r}") from None
    else:
        raise CoercionError(f"Expected a number, got {type(raw).__name__}")

    if not math.isfinite(number):
        raise CoercionError(f"Expected a finite number, got {raw!r}")
    return number


def coerce_date(raw: Any) -> date:
    """Coerce a raw value to a calendar date.

    Accepts date and datetime objects, "YYYY-MM-DD" strings and full ISO
    timestamps (a trailing "Z" is read as UTC).
    """
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if not isinstance(raw, str):
        raise CoercionError(f"Expected a date, got {type(raw).__name__}")

    text = raw.strip()
    try:
        if len(text) == 10:
            return date.fromisoformat(text)
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        raise CoercionError(f"Expected an ISO date (YYYY-MM-DD), got {raw!r}") from None


COERCERS: Dict[SemanticType, Callable[[Any], Any]] = {
    SemanticType.STRING: coerce_string,
    SemanticType.NUMBER: coerce_number,
    SemanticType.DATE: coerce_date,
}


def coerce(semantic_type: SemanticType, raw: Any) -> Any:
    """Coerce a raw value to the Python type backing a semantic type."""
    return COERCERS[semantic_type](raw)


def split_range(value: str) -> Tuple[str, str]:
    """Split a "low,high" value into its two bounds."""
    parts = value.split(RANGE_SEPARATOR)
    if len(parts) != 2 or not parts[0].strip() or not parts[1].strip():
        raise InvalidValueError(
            f"Range value must be written 'low{RANGE_SEPARATOR}high', got {value!r}"
        )
    return parts[0].strip(), parts[1].strip()


class ConditionEvaluator(ABC):
    """Abstract base class for condition evaluators."""

    semantic_type: SemanticType
    operator: Operator

    def parse_value(self, value: str) -> Any:
        """Interpret a rule's text value for this operator.

        Args:
            value: Rule value as stored in the tree

        Returns:
            Parsed operand passed to evaluate()

        Raises:
            InvalidValueError: If the value cannot be interpreted
        """
        return coerce(self.semantic_type, value)

    @abstractmethod
    def evaluate(self, actual: Any, expected: Any, reference_date: date) -> bool:
        """Evaluate if the condition is met.

        Args:
            actual: Record value, already coerced to the semantic type
            expected: Parsed rule value from parse_value()
            reference_date: "Today" for relative date operators

        Returns:
            True if the record satisfies the condition
        """
        ...

    @abstractmethod
    def format_phrase(self, value: str) -> str:
        """Generate the human-readable predicate, e.g. "is greater than 10".

        Args:
            value: Rule value as stored in the tree

        Returns:
            Phrase appended to the field label
        """
        ...


def _fold_case(text: str) -> str:
    return text if CASE_SENSITIVE_STRINGS else text.casefold()


class StringEqualsEvaluator(ConditionEvaluator):
    """Text equals the value."""

    semantic_type = SemanticType.STRING
    operator = Operator.EQUALS

    def evaluate(self, actual: str, expected: str, reference_date: date) -> bool:
        return _fold_case(actual) == _fold_case(expected)

    def format_phrase(self, value: str) -> str:
        return f'is "{value}"'


class StringContainsEvaluator(ConditionEvaluator):
    """Text contains the value."""

    semantic_type = SemanticType.STRING
    operator = Operator.CONTAINS

    def evaluate(self, actual: str, expected: str, reference_date: date) -> bool:
        return _fold_case(expected) in _fold_case(actual)

    def format_phrase(self, value: str) -> str:
        return f'contains "{value}"'


class StringStartsWithEvaluator(ConditionEvaluator):
    """Text starts with the value."""

    semantic_type = SemanticType.STRING
    operator = Operator.STARTS_WITH

    def evaluate(self, actual: str, expected: str, reference_date: date) -> bool:
        return _fold_case(actual).startswith(_fold_case(expected))

    def format_phrase(self, value: str) -> str:
        return f'starts with "{value}"'


class StringEndsWithEvaluator(ConditionEvaluator):
    """Text ends with the value."""

    semantic_type = SemanticType.STRING
    operator = Operator.ENDS_WITH

    def evaluate(self, actual: str, expected: str, reference_date: date) -> bool:
        return _fold_case(actual).endswith(_fold_case(expected))

    def format_phrase(self, value: str) -> str:
        return f'ends with "{value}"'


class NumberEqualsEvaluator(ConditionEvaluator):
    """Number equals the value."""

    semantic_type = SemanticType.NUMBER
    operator = Operator.EQUALS

    def evaluate(self, actual: float, expected: float, reference_date: date) -> bool:
        return actual == expected

    def format_phrase(self, value: str) -> str:
        return f"is {value}"


class NumberGreaterThanEvaluator(ConditionEvaluator):
    """Number is strictly greater than the value."""

    semantic_type = SemanticType.NUMBER
    operator = Operator.GREATER_THAN

    def evaluate(self, actual: float, expected: float, reference_date: date) -> bool:
        return actual > expected

    def format_phrase(self, value: str) -> str:
        return f"is greater than {value}"


class NumberLessThanEvaluator(ConditionEvaluator):
    """Number is strictly less than the value."""

    semantic_type = SemanticType.NUMBER
    operator = Operator.LESS_THAN

    def evaluate(self, actual: float, expected: float, reference_date: date) -> bool:
        return actual < expected

    def format_phrase(self, value: str) -> str:
        return f"is less than {value}"


class RangeEvaluator(ConditionEvaluator):
    """Inclusive range test shared by number and date fields."""

    operator = Operator.BETWEEN

    def parse_value(self, value: str) -> Tuple[Any, Any]:
        low_text, high_text = split_range(value)
        low = coerce(self.semantic_type, low_text)
        high = coerce(self.semantic_type, high_text)
        if low > high:
            raise InvalidValueError(f"Range lower bound {low_text} is above upper bound {high_text}")
        return low, high

    def evaluate(self, actual: Any, expected: Tuple[Any, Any], reference_date: date) -> bool:
        low, high = expected
        return low <= actual <= high

    def format_phrase(self, value: str) -> str:
        try:
            low, high = split_range(value)
        except InvalidValueError:
            return f"is between {value}"
        return f"is between {low} and {high}"


class NumberBetweenEvaluator(RangeEvaluator):
    """Number lies in [low, high]."""

    semantic_type = SemanticType.NUMBER


class DateBetweenEvaluator(RangeEvaluator):
    """Date lies in [low, high]."""

    semantic_type = SemanticType.DATE


class DateBeforeEvaluator(ConditionEvaluator):
    """Date is strictly before the value."""

    semantic_type = SemanticType.DATE
    operator = Operator.BEFORE

    def evaluate(self, actual: date, expected: date, reference_date: date) -> bool:
        return actual < expected

    def format_phrase(self, value: str) -> str:
        return f"is before {value}"


class DateAfterEvaluator(ConditionEvaluator):
    """Date is strictly after the value."""

    semantic_type = SemanticType.DATE
    operator = Operator.AFTER

    def evaluate(self, actual: date, expected: date, reference_date: date) -> bool:
        return actual > expected

    def format_phrase(self, value: str) -> str:
        return f"is after {value}"


class DaysAgoEvaluator(ConditionEvaluator):
    """Date is at least N days before the reference date."""

    semantic_type = SemanticType.DATE
    operator = Operator.DAYS_AGO

    def parse_value(self, value: str) -> int:
        try:
            days = int(value.strip())
        except ValueError:
            raise InvalidValueError(f"Days ago must be a whole number, got {value!r}") from None
        if days < 0:
            raise InvalidValueError(f"Days ago cannot be negative, got {days}")
        return days

    def evaluate(self, actual: date, expected: int, reference_date: date) -> bool:
        return (reference_date - actual).days >= expected

    def format_phrase(self, value: str) -> str:
        return f"was at least {value} days ago"


# Registry mapping (semantic type, operator) to evaluators
EVALUATORS: Dict[Tuple[SemanticType, Operator], ConditionEvaluator] = {
    (evaluator.semantic_type, evaluator.operator): evaluator
    for evaluator in (
        StringEqualsEvaluator(),
        StringContainsEvaluator(),
        StringStartsWithEvaluator(),
        StringEndsWithEvaluator(),
        NumberEqualsEvaluator(),
        NumberGreaterThanEvaluator(),
        NumberLessThanEvaluator(),
        NumberBetweenEvaluator(),
        DateBeforeEvaluator(),
        DateAfterEvaluator(),
        DateBetweenEvaluator(),
        DaysAgoEvaluator(),
    )
}


def get_evaluator(semantic_type: SemanticType, operator: str) -> Optional[ConditionEvaluator]:
    """Get evaluator for a semantic type and operator key."""
    try:
        return EVALUATORS.get((semantic_type, Operator(operator)))
    except ValueError:
        return None


def validate_value(semantic_type: SemanticType, operator: str, value: str) -> None:
    """Check that a rule value is usable with the operator.

    An empty value is a rule that has not been filled in yet and is always
    accepted.

    Raises:
        InvalidValueError: If the value cannot be interpreted
    """
    if value == "":
        return
    evaluator = get_evaluator(semantic_type, operator)
    if evaluator is None:
        return
    evaluator.parse_value(value)
