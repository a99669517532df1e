"""Tests for the REST API."""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from segment_studio.ai.segments.generator import KeywordSegmentRuleGenerator
from segment_studio.api.app import app
from segment_studio.api.deps import get_db
from segment_studio.core.customers.repository import CustomerRepository
from segment_studio.core.rules.models import serialize_tree


@pytest.fixture
def client(db):
    """Test client sharing the in-memory session."""

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def customers(db):
    repo = CustomerRepository(db)
    repo.create(name="Asha", email="asha@example.com", total_spend=15000, visits=1)
    repo.create(name="Ben", email="ben@example.com", total_spend=15000, visits=5)
    repo.create(name="Cara", email="cara@example.com", total_spend=500, visits=1)


def _create_segment(client, name="VIP", rules=None):
    payload = {"name": name}
    if rules is not None:
        payload["rules"] = rules
    response = client.post("/api/segments/", json=payload)
    assert response.status_code == 201
    return response.json()


class TestHealthAndFields:
    """Tests for health and field endpoints."""

    def test_health(self, client):
        """Should report status ok."""
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_fields(self, client):
        """Should list fields with ordered operators."""
        fields = {f["key"]: f for f in client.get("/api/fields/").json()}
        assert fields["totalSpend"]["type"] == "number"
        assert fields["totalSpend"]["operators"][0] == {"key": "equals", "label": "Equals"}


class TestCustomerRoutes:
    """Tests for customer endpoints."""

    def test_create_and_list(self, client):
        """Should create a customer and list it."""
        response = client.post("/api/customers/", json={"name": "Asha", "email": "Asha@Example.com"})
        assert response.status_code == 201
        assert response.json()["email"] == "asha@example.com"

        assert [c["name"] for c in client.get("/api/customers/").json()] == ["Asha"]

    def test_duplicate_email(self, client):
        """Should return 409 for an existing email."""
        client.post("/api/customers/", json={"name": "Asha", "email": "asha@example.com"})
        response = client.post("/api/customers/", json={"name": "Other", "email": "asha@example.com"})
        assert response.status_code == 409

    def test_import_csv(self, client):
        """Should import CSV text."""
        response = client.post(
            "/api/customers/import",
            json={"csv": "name,email,visits\nAsha,asha@example.com,3\n,bad,1\n"},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["created"] == 1
        assert len(body["errors"]) == 1

    def test_delete_missing(self, client):
        """Should return 404 for unknown customers."""
        assert client.delete("/api/customers/nope").status_code == 404


class TestSegmentRoutes:
    """Tests for segment CRUD and calculation."""

    def test_create_with_default_rules(self, client):
        """Should start from the seed tree."""
        segment = _create_segment(client)
        assert segment["rules"]["id"] == "root"
        assert len(segment["rules"]["children"]) == 2
        assert segment["audience_size"] is None

    def test_duplicate_name(self, client):
        """Should return 409 for an existing name."""
        _create_segment(client)
        assert client.post("/api/segments/", json={"name": "VIP"}).status_code == 409

    def test_invalid_rules(self, client):
        """Should return 422 for trees that fail validation."""
        rules = {"type": "group", "id": "root", "children": [
            {"type": "rule", "id": "r", "field": "tier", "operator": "equals", "value": "gold"},
        ]}
        response = client.post("/api/segments/", json={"name": "Bad", "rules": rules})
        assert response.status_code == 422
        assert response.json()["error"] == "UnknownFieldError"

    def test_calculate_saved_segment(self, client, customers, spend_and_visits_tree):
        """Should size and store the audience."""
        segment = _create_segment(client, rules=serialize_tree(spend_and_visits_tree))
        response = client.post(f"/api/segments/{segment['id']}/calculate?include_ids=true")

        assert response.status_code == 200
        body = response.json()
        assert body["matched_count"] == 1
        assert len(body["matched_ids"]) == 1
        assert body["description"].startswith("Customers where")
        assert client.get(f"/api/segments/{segment['id']}").json()["audience_size"] == 1

    def test_preview_unsaved_tree(self, client, customers, spend_and_visits_tree):
        """Should size a tree without saving it."""
        response = client.post("/api/segments/calculate", json={"rules": serialize_tree(spend_and_visits_tree)})
        assert response.status_code == 200
        assert response.json()["matched_count"] == 1
        assert response.json()["matched_ids"] is None

    def test_describe(self, client, spend_and_visits_tree):
        """Should describe an unsaved tree."""
        response = client.post("/api/segments/describe", json={"rules": serialize_tree(spend_and_visits_tree)})
        assert response.json()["description"] == (
            "Customers where Total Spend is greater than 10000 and Visits is less than 3."
        )

    def test_patch_and_delete(self, client):
        """Should rename and then delete a segment."""
        segment = _create_segment(client)
        response = client.patch(f"/api/segments/{segment['id']}", json={"name": "Renamed"})
        assert response.json()["name"] == "Renamed"

        assert client.delete(f"/api/segments/{segment['id']}").status_code == 204
        assert client.get(f"/api/segments/{segment['id']}").status_code == 404


class TestRuleEditorRoutes:
    """Tests for tree editing endpoints."""

    def test_add_rule_and_group(self, client):
        """Should append a rule and a group to the root."""
        segment = _create_segment(client)
        sid = segment["id"]

        response = client.post(
            f"/api/segments/{sid}/rules",
            json={"parent_id": "root", "field": "email", "operator": "contains", "value": "@shop"},
        )
        assert response.status_code == 201
        assert response.json()["rules"]["children"][-1]["field"] == "email"

        response = client.post(f"/api/segments/{sid}/groups", json={"parent_id": "root", "combinator": "OR"})
        assert response.json()["rules"]["children"][-1]["type"] == "group"

    def test_update_rule_and_combinator(self, client):
        """Should change a rule and the root combinator."""
        segment = _create_segment(client)
        sid = segment["id"]
        rule_id = segment["rules"]["children"][0]["id"]

        response = client.patch(f"/api/segments/{sid}/rules/{rule_id}", json={"field": "customerName"})
        rule = response.json()["rules"]["children"][0]
        assert (rule["field"], rule["operator"]) == ("customerName", "equals")

        response = client.put(f"/api/segments/{sid}/groups/root/combinator", json={"combinator": "OR"})
        assert response.json()["rules"]["combinator"] == "OR"

    def test_move_and_remove(self, client):
        """Should reorder and delete nodes."""
        segment = _create_segment(client)
        sid = segment["id"]
        first, second = [child["id"] for child in segment["rules"]["children"]]

        response = client.post(f"/api/segments/{sid}/nodes/{second}/move", json={"target_group_id": "root", "position": 0})
        assert [c["id"] for c in response.json()["rules"]["children"]] == [second, first]

        response = client.delete(f"/api/segments/{sid}/nodes/{first}")
        assert [c["id"] for c in response.json()["rules"]["children"]] == [second]

    def test_unknown_node_is_404(self, client):
        """Should map a missing node to 404."""
        segment = _create_segment(client)
        response = client.delete(f"/api/segments/{segment['id']}/nodes/ghost")
        assert response.status_code == 404
        assert response.json()["error"] == "NodeNotFoundError"

    def test_invalid_edit_is_422(self, client):
        """Should map other rule errors to 422 and keep the tree."""
        segment = _create_segment(client)
        sid = segment["id"]
        rule_id = segment["rules"]["children"][0]["id"]

        response = client.patch(f"/api/segments/{sid}/rules/{rule_id}", json={"operator": "contains"})
        assert response.status_code == 422
        assert client.get(f"/api/segments/{sid}").json()["rules"] == segment["rules"]

    def test_unknown_segment(self, client):
        """Should return 404 for unknown segments."""
        response = client.post("/api/segments/nope/rules", json={"parent_id": "root"})
        assert response.status_code == 404


class TestAIRoutes:
    """Tests for natural-language generation."""

    def test_generate_and_save(self, client):
        """Should generate rules and optionally save them."""
        with patch(
            "segment_studio.ai.segments.generator.get_rule_generator",
            return_value=KeywordSegmentRuleGenerator(),
        ):
            response = client.post(
                "/api/ai/generate-segment",
                json={"query": "people who spent over 5K", "save_as": "Spenders"},
            )

        assert response.status_code == 200
        body = response.json()
        assert body["generated"] is True
        assert body["rules"]["children"][0]["field"] == "totalSpend"
        assert body["segment"]["name"] == "Spenders"
        assert body["segment"]["is_ai_generated"] is True

    def test_generate_fallback(self, client):
        """Should fall back to the starter rule for unrecognized queries."""
        with patch(
            "segment_studio.ai.segments.generator.get_rule_generator",
            return_value=KeywordSegmentRuleGenerator(),
        ):
            response = client.post("/api/ai/generate-segment", json={"query": "jazz fans"})

        body = response.json()
        assert body["generated"] is False
        assert body["segment"] is None
        assert body["description"] == "Customers where Total Spend is greater than 1000."
