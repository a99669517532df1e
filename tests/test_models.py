"""Tests for rule tree models and serialization."""

import json

import pytest
from pydantic import ValidationError

from segment_studio.core.rules.models import (
    Combinator,
    Rule,
    RuleGroup,
    RuleUpdate,
    deserialize_tree,
    serialize_tree,
)


@pytest.fixture
def nested_tree():
    return RuleGroup(
        id="root",
        combinator=Combinator.AND,
        children=[
            Rule(id="r1", field="visits", operator="lessThan", value="3"),
            RuleGroup(
                id="g1",
                combinator=Combinator.OR,
                children=[
                    Rule(id="r2", field="totalSpend", operator="between", value="100,500"),
                    RuleGroup(id="g2", combinator=Combinator.AND),
                    Rule(id="r3", field="email", operator="endsWith", value=""),
                ],
            ),
        ],
    )


class TestSerialization:
    """Tests for serialize_tree / deserialize_tree."""

    def test_round_trip_preserves_structure(self, nested_tree):
        """Should restore ids, order and rule contents."""
        restored = deserialize_tree(serialize_tree(nested_tree))

        assert restored == nested_tree
        assert restored.node_ids() == ["root", "r1", "g1", "r2", "g2", "r3"]

    def test_round_trip_through_json_text(self, nested_tree):
        """Serialized documents should survive JSON encoding."""
        text = json.dumps(serialize_tree(nested_tree))
        assert deserialize_tree(json.loads(text)) == nested_tree

    def test_document_is_tagged(self, nested_tree):
        """Every node should carry its type tag."""
        document = serialize_tree(nested_tree)
        assert document["type"] == "group"
        assert document["combinator"] == "AND"
        assert document["children"][0] == {
            "type": "rule",
            "id": "r1",
            "field": "visits",
            "operator": "lessThan",
            "value": "3",
        }

    def test_accepts_rules_alias(self):
        """Should accept 'rules' in place of 'children'."""
        tree = deserialize_tree({
            "type": "group",
            "id": "root",
            "combinator": "OR",
            "rules": [{"type": "rule", "id": "a", "field": "visits", "operator": "equals", "value": "1"}],
        })
        assert tree.combinator == Combinator.OR
        assert tree.children[0].id == "a"

    def test_unknown_node_type_rejected(self):
        """Should reject nodes with an unknown type tag."""
        with pytest.raises(ValidationError):
            deserialize_tree({"type": "group", "id": "root", "children": [{"type": "folder", "id": "x"}]})


class TestTreeHelpers:
    """Tests for tree traversal helpers."""

    def test_walk_yields_parents(self, nested_tree):
        """Should pair every node with its parent."""
        parents = {node.id: (parent.id if parent else None) for node, parent in nested_tree.walk()}
        assert parents == {"root": None, "r1": "root", "g1": "root", "r2": "g1", "g2": "g1", "r3": "g1"}

    def test_leaf_rules(self, nested_tree):
        """Should collect rules only."""
        assert [rule.id for rule in nested_tree.leaf_rules()] == ["r1", "r2", "r3"]

    def test_depth(self, nested_tree):
        """Should count nested group levels."""
        assert nested_tree.depth() == 3
        assert RuleGroup(id="root").depth() == 1

    def test_numeric_value_stored_as_text(self):
        """Numbers given as rule values should be stored as text."""
        rule = Rule(id="r1", field="visits", operator="equals", value=3)
        assert rule.value == "3"

    def test_combinator_description(self):
        """Should explain the combinator."""
        assert Combinator.AND.description() == "All conditions must be true"
        assert Combinator.OR.description() == "Any condition can be true"

    def test_rule_update_changes(self):
        """Should only include supplied fields."""
        assert RuleUpdate(value="5").changes() == {"value": "5"}
