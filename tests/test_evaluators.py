"""Tests for value coercion and condition evaluators."""

from datetime import date, datetime

import pytest

from segment_studio.core.rules.evaluators import (
    coerce_date,
    coerce_number,
    coerce_string,
    get_evaluator,
    split_range,
    validate_value,
    DateAfterEvaluator,
    DateBeforeEvaluator,
    DateBetweenEvaluator,
    DaysAgoEvaluator,
    NumberBetweenEvaluator,
    NumberGreaterThanEvaluator,
    StringContainsEvaluator,
    StringEqualsEvaluator,
    StringStartsWithEvaluator,
    StringEndsWithEvaluator,
)
from segment_studio.core.rules.exceptions import CoercionError, InvalidValueError
from segment_studio.core.rules.registry import Operator, SemanticType

TODAY = date(2024, 6, 30)


class TestCoercion:
    """Tests for raw value coercion."""

    def test_number_from_text_and_numbers(self):
        """Should accept numeric text and numbers."""
        assert coerce_number("15000") == 15000.0
        assert coerce_number(" 2.5 ") == 2.5
        assert coerce_number(3) == 3.0

    @pytest.mark.parametrize("raw", ["abc", "", True, None, "nan", "inf", [1]])
    def test_number_rejects_garbage(self, raw):
        """Should raise CoercionError for non-numbers, booleans and non-finite values."""
        with pytest.raises(CoercionError):
            coerce_number(raw)

    def test_number_rejects_int_too_large_for_float(self):
        """An int beyond float range should be a CoercionError, not OverflowError."""
        with pytest.raises(CoercionError):
            coerce_number(10**400)

    def test_date_formats(self):
        """Should accept dates, datetimes, ISO dates and ISO timestamps."""
        assert coerce_date("2024-01-15") == date(2024, 1, 15)
        assert coerce_date("2024-01-15T10:30:00Z") == date(2024, 1, 15)
        assert coerce_date(datetime(2024, 1, 15, 23, 59)) == date(2024, 1, 15)
        assert coerce_date(date(2024, 1, 15)) == date(2024, 1, 15)

    def test_date_rejects_other_formats(self):
        """Should raise CoercionError for non-ISO text."""
        with pytest.raises(CoercionError):
            coerce_date("15/01/2024")

    def test_string_from_number(self):
        """Should render numbers as text but refuse booleans."""
        assert coerce_string(42) == "42"
        with pytest.raises(CoercionError):
            coerce_string(False)

    def test_coercion_error_is_invalid_value(self):
        """CoercionError should be reported as an InvalidValueError."""
        assert issubclass(CoercionError, InvalidValueError)


class TestStringEvaluators:
    """Tests for string operators (case-insensitive)."""

    def test_equals_ignores_case(self):
        """Should match regardless of case."""
        assert StringEqualsEvaluator().evaluate("Alice", "alice", TODAY) is True
        assert StringEqualsEvaluator().evaluate("Alice", "Alicia", TODAY) is False

    def test_contains(self):
        """Should match substrings."""
        assert StringContainsEvaluator().evaluate("alice@Example.com", "example", TODAY) is True
        assert StringContainsEvaluator().evaluate("alice@example.com", "gmail", TODAY) is False

    def test_starts_and_ends_with(self):
        """Should match prefixes and suffixes."""
        assert StringStartsWithEvaluator().evaluate("Alice Smith", "ali", TODAY) is True
        assert StringEndsWithEvaluator().evaluate("bob@shop.IO", ".io", TODAY) is True
        assert StringEndsWithEvaluator().evaluate("bob@shop.io", ".com", TODAY) is False

    def test_format_phrase(self):
        """Should quote string values."""
        assert StringContainsEvaluator().format_phrase("vip") == 'contains "vip"'


class TestNumberEvaluators:
    """Tests for number operators."""

    def test_greater_than_is_strict(self):
        """Should not match the boundary value."""
        evaluator = NumberGreaterThanEvaluator()
        assert evaluator.evaluate(10001.0, 10000.0, TODAY) is True
        assert evaluator.evaluate(10000.0, 10000.0, TODAY) is False

    def test_between_is_inclusive(self):
        """Should include both bounds."""
        evaluator = NumberBetweenEvaluator()
        bounds = evaluator.parse_value("100,500")
        assert bounds == (100.0, 500.0)
        assert evaluator.evaluate(100.0, bounds, TODAY) is True
        assert evaluator.evaluate(500.0, bounds, TODAY) is True
        assert evaluator.evaluate(500.5, bounds, TODAY) is False

    def test_between_rejects_reversed_bounds(self):
        """Should reject low > high."""
        with pytest.raises(InvalidValueError):
            NumberBetweenEvaluator().parse_value("500,100")

    @pytest.mark.parametrize("value", ["100", "100,", ",500", "1,2,3", "a,b"])
    def test_between_rejects_malformed(self, value):
        """Should reject anything but two numeric bounds."""
        with pytest.raises(InvalidValueError):
            NumberBetweenEvaluator().parse_value(value)

    def test_between_phrase(self):
        """Should describe both bounds."""
        assert NumberBetweenEvaluator().format_phrase("100,500") == "is between 100 and 500"


class TestDateEvaluators:
    """Tests for date operators."""

    def test_days_ago_threshold(self):
        """Should match dates at least N days before the reference date."""
        evaluator = DaysAgoEvaluator()
        assert evaluator.evaluate(date(2024, 1, 2), 180, TODAY) is True  # 180 days
        assert evaluator.evaluate(date(2024, 1, 3), 180, TODAY) is False  # 179 days

    @pytest.mark.parametrize("value", ["-1", "3.5", "soon"])
    def test_days_ago_requires_non_negative_whole_number(self, value):
        """Should reject negative, fractional and non-numeric day counts."""
        with pytest.raises(InvalidValueError):
            DaysAgoEvaluator().parse_value(value)

    def test_date_between(self):
        """Should match dates inside an inclusive range."""
        evaluator = DateBetweenEvaluator()
        bounds = evaluator.parse_value("2024-01-01,2024-03-31")
        assert evaluator.evaluate(date(2024, 3, 31), bounds, TODAY) is True
        assert evaluator.evaluate(date(2024, 4, 1), bounds, TODAY) is False

    def test_before_is_strict(self):
        """Only dates strictly earlier than the value should match."""
        evaluator = DateBeforeEvaluator()
        cutoff = evaluator.parse_value("2024-03-01")
        assert evaluator.evaluate(date(2024, 2, 29), cutoff, TODAY) is True
        assert evaluator.evaluate(date(2024, 3, 1), cutoff, TODAY) is False
        assert evaluator.evaluate(date(2024, 3, 2), cutoff, TODAY) is False

    def test_after_is_strict(self):
        """Only dates strictly later than the value should match."""
        evaluator = DateAfterEvaluator()
        cutoff = evaluator.parse_value("2024-03-01")
        assert evaluator.evaluate(date(2024, 3, 2), cutoff, TODAY) is True
        assert evaluator.evaluate(date(2024, 3, 1), cutoff, TODAY) is False
        assert evaluator.evaluate(date(2024, 2, 29), cutoff, TODAY) is False


class TestGetEvaluator:
    """Tests for evaluator lookup."""

    def test_returns_correct_evaluator(self):
        """Should return the evaluator for a type and operator."""
        evaluator = get_evaluator(SemanticType.NUMBER, "greaterThan")
        assert isinstance(evaluator, NumberGreaterThanEvaluator)
        assert evaluator.operator == Operator.GREATER_THAN

    def test_equals_depends_on_type(self):
        """Should pick different evaluators for string and number equals."""
        assert get_evaluator(SemanticType.STRING, "equals") is not get_evaluator(SemanticType.NUMBER, "equals")

    def test_unknown_combination_returns_none(self):
        """Should return None for operators not valid for the type."""
        assert get_evaluator(SemanticType.STRING, "daysAgo") is None
        assert get_evaluator(SemanticType.NUMBER, "fuzzyMatch") is None

    def test_range_split(self):
        """Should split and trim a two-bound value."""
        assert split_range(" 1 , 2 ") == ("1", "2")


class TestValidateValue:
    """Tests for edit-time value validation."""

    def test_empty_value_is_accepted(self):
        """A rule without a value yet should be allowed."""
        validate_value(SemanticType.NUMBER, "greaterThan", "")

    def test_non_numeric_value_rejected(self):
        """Should reject text for number fields."""
        with pytest.raises(InvalidValueError):
            validate_value(SemanticType.NUMBER, "greaterThan", "lots")
