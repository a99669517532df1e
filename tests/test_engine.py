"""Tests for the rule evaluator."""

from datetime import date

import pytest

from segment_studio.core.rules.engine import EMPTY_AND_RESULT, EMPTY_OR_RESULT, RuleEvaluator
from segment_studio.core.rules.exceptions import (
    InvalidValueError,
    UnknownFieldError,
    UnknownOperatorError,
)
from segment_studio.core.rules.models import Combinator, Rule, RuleGroup

TODAY = date(2024, 6, 30)


@pytest.fixture
def evaluator(registry):
    return RuleEvaluator(registry)


class TestScenarios:
    """End-to-end evaluation of small trees."""

    def test_and_tree(self, evaluator, spend_and_visits_tree):
        """AND should require both conditions."""
        customer_a = {"totalSpend": 15000, "visits": 1}
        customer_b = {"totalSpend": 15000, "visits": 5}

        assert evaluator.evaluate(spend_and_visits_tree, customer_a, TODAY) is True
        assert evaluator.evaluate(spend_and_visits_tree, customer_b, TODAY) is False

    def test_or_tree(self, evaluator, spend_and_visits_tree):
        """OR should match on the second clause alone."""
        tree = spend_and_visits_tree.model_copy(update={"combinator": Combinator.OR})
        customer_c = {"totalSpend": 500, "visits": 1}

        assert evaluator.evaluate(tree, customer_c, TODAY) is True

    def test_nested_or_inside_and(self, evaluator):
        """Should recurse into nested groups and combine with the outer AND."""
        tree = RuleGroup(
            id="root",
            combinator=Combinator.AND,
            children=[
                Rule(id="r1", field="visits", operator="lessThan", value="3"),
                RuleGroup(
                    id="g1",
                    combinator=Combinator.OR,
                    children=[
                        Rule(id="r2", field="totalSpend", operator="greaterThan", value="5000"),
                        Rule(id="r3", field="lastPurchaseDate", operator="daysAgo", value="180"),
                    ],
                ),
            ],
        )

        big_spender = {"visits": 1, "totalSpend": 9000, "lastPurchaseDate": "2024-06-01"}
        lapsed = {"visits": 2, "totalSpend": 100, "lastPurchaseDate": "2023-06-01"}
        recent_small = {"visits": 2, "totalSpend": 100, "lastPurchaseDate": "2024-06-01"}
        frequent = {"visits": 8, "totalSpend": 9000, "lastPurchaseDate": "2023-06-01"}

        assert evaluator.evaluate(tree, big_spender, TODAY) is True
        assert evaluator.evaluate(tree, lapsed, TODAY) is True
        assert evaluator.evaluate(tree, recent_small, TODAY) is False
        assert evaluator.evaluate(tree, frequent, TODAY) is False


class TestEmptyGroups:
    """Vacuous truth policy for groups without children."""

    def test_empty_and_matches_everyone(self, evaluator):
        """Empty AND should evaluate to the documented constant (True)."""
        tree = RuleGroup(id="root", combinator=Combinator.AND)
        assert EMPTY_AND_RESULT is True
        assert evaluator.evaluate(tree, {"visits": 1}, TODAY) is EMPTY_AND_RESULT

    def test_empty_or_matches_no_one(self, evaluator):
        """Empty OR should evaluate to the documented constant (False)."""
        tree = RuleGroup(id="root", combinator=Combinator.OR)
        assert EMPTY_OR_RESULT is False
        assert evaluator.evaluate(tree, {"visits": 1}, TODAY) is EMPTY_OR_RESULT

    def test_empty_nested_group_inside_and(self, evaluator):
        """An empty nested AND should not block the outer AND."""
        tree = RuleGroup(
            id="root",
            children=[
                Rule(id="r1", field="visits", operator="lessThan", value="3"),
                RuleGroup(id="g1", combinator=Combinator.AND),
            ],
        )
        assert evaluator.evaluate(tree, {"visits": 1}, TODAY) is True


class TestRecordValues:
    """Missing and malformed record values fail closed."""

    def test_missing_field_does_not_match(self, evaluator, spend_and_visits_tree):
        """A record without the field should not match the rule."""
        assert evaluator.evaluate(spend_and_visits_tree, {"visits": 1}, TODAY) is False

    def test_none_value_does_not_match(self, evaluator):
        """None should never match, even for lessThan."""
        rule = Rule(id="r1", field="visits", operator="lessThan", value="3")
        assert evaluator.evaluate(rule, {"visits": None}, TODAY) is False

    def test_incoercible_record_value_does_not_match(self, evaluator):
        """Non-numeric text in a number field should not match."""
        rule = Rule(id="r1", field="totalSpend", operator="greaterThan", value="10")
        assert evaluator.evaluate(rule, {"totalSpend": "a lot"}, TODAY) is False

    def test_huge_integer_record_value_does_not_match(self, evaluator):
        """An integer too large for a float should fail the rule, not raise."""
        rule = Rule(id="r1", field="totalSpend", operator="greaterThan", value="10")
        assert evaluator.evaluate(rule, {"totalSpend": 10**400}, TODAY) is False

    def test_huge_integer_leaves_other_or_branch(self, evaluator):
        """An OR should still match through its other condition."""
        tree = RuleGroup(
            id="root",
            combinator=Combinator.OR,
            children=[
                Rule(id="r1", field="totalSpend", operator="lessThan", value="10"),
                Rule(id="r2", field="visits", operator="lessThan", value="3"),
            ],
        )
        assert evaluator.evaluate(tree, {"totalSpend": 10**400, "visits": 1}, TODAY) is True

    def test_iso_string_dates_before_and_after(self, evaluator):
        """ISO text in a date field should compare strictly against the value."""
        before = Rule(id="r1", field="lastPurchaseDate", operator="before", value="2024-03-01")
        after = Rule(id="r2", field="lastPurchaseDate", operator="after", value="2024-03-01")

        assert evaluator.evaluate(before, {"lastPurchaseDate": "2024-02-15"}, TODAY) is True
        assert evaluator.evaluate(after, {"lastPurchaseDate": "2024-02-15"}, TODAY) is False
        assert evaluator.evaluate(before, {"lastPurchaseDate": "2024-03-01"}, TODAY) is False
        assert evaluator.evaluate(after, {"lastPurchaseDate": "2024-03-01T08:00:00Z"}, TODAY) is False
        assert evaluator.evaluate(after, {"lastPurchaseDate": "2024-03-02"}, TODAY) is True

    def test_numeric_text_record_value(self, evaluator):
        """Numeric text in the record should be coerced."""
        rule = Rule(id="r1", field="totalSpend", operator="greaterThan", value="10")
        assert evaluator.evaluate(rule, {"totalSpend": "15.5"}, TODAY) is True

    def test_empty_rule_value_never_matches(self, evaluator):
        """A rule not yet filled in should not match anyone."""
        rule = Rule(id="r1", field="customerName", operator="contains", value="")
        assert evaluator.evaluate(rule, {"customerName": "Alice"}, TODAY) is False

    def test_string_matching_ignores_case(self, evaluator):
        """String operators should be case-insensitive."""
        rule = Rule(id="r1", field="email", operator="endsWith", value="@EXAMPLE.com")
        assert evaluator.evaluate(rule, {"email": "ann@example.COM"}, TODAY) is True

    def test_record_must_be_mapping(self, evaluator, spend_and_visits_tree):
        """Should raise TypeError for non-mapping records."""
        with pytest.raises(TypeError):
            evaluator.evaluate(spend_and_visits_tree, ["not", "a", "record"], TODAY)

    def test_evaluation_does_not_mutate(self, evaluator, spend_and_visits_tree):
        """Tree and record should be unchanged after evaluation."""
        before = spend_and_visits_tree.model_copy(deep=True)
        record = {"totalSpend": "15000", "visits": 1}
        evaluator.evaluate(spend_and_visits_tree, record, TODAY)

        assert spend_and_visits_tree == before
        assert record == {"totalSpend": "15000", "visits": 1}


class TestMalformedTrees:
    """Externally built trees with bad rules raise typed errors."""

    def test_unknown_field(self, evaluator):
        """Should raise UnknownFieldError."""
        rule = Rule(id="r1", field="loyaltyTier", operator="equals", value="gold")
        with pytest.raises(UnknownFieldError):
            evaluator.evaluate(rule, {}, TODAY)

    def test_operator_invalid_for_field(self, evaluator):
        """Should raise UnknownOperatorError for an operator of another type."""
        rule = Rule(id="r1", field="totalSpend", operator="contains", value="10")
        with pytest.raises(UnknownOperatorError):
            evaluator.evaluate(rule, {"totalSpend": 10}, TODAY)

    def test_invalid_rule_value(self, evaluator):
        """Should raise InvalidValueError when the rule's own value is bad."""
        rule = Rule(id="r1", field="totalSpend", operator="greaterThan", value="lots")
        with pytest.raises(InvalidValueError):
            evaluator.evaluate(rule, {"totalSpend": 10}, TODAY)

    def test_check_without_record(self, evaluator):
        """check() should validate every rule in the tree."""
        tree = RuleGroup(
            id="root",
            children=[
                RuleGroup(
                    id="g1",
                    children=[Rule(id="r1", field="visits", operator="between", value="9,1")],
                ),
            ],
        )
        with pytest.raises(InvalidValueError):
            evaluator.check(tree)
